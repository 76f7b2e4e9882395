"""Data models for calendar feed aggregation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..core.timezone_utils import now_utc as _now_utc

DEFAULT_FEED_COLOR = "#3b82f6"
UNTITLED_SUMMARY = "Untitled"


class RecurrenceRule(Protocol):
    """Protocol for a parsed recurrence rule attached to a component."""

    def between(self, after: datetime, before: datetime, inc: bool = False) -> list[datetime]:
        """Return every occurrence start between two instants.

        Args:
            after: Lower bound instant
            before: Upper bound instant
            inc: Include occurrences equal to either bound

        Returns:
            Occurrence start instants in ascending order

        Raises:
            Exception: Any error for a malformed rule
        """
        ...


class CalendarFeedSource(BaseModel):
    """A configured external calendar feed."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Feed ID")
    name: str = Field(..., description="Human-readable name for this calendar feed")
    url: str = Field(..., description="ICS calendar URL")
    color: str = Field(default=DEFAULT_FEED_COLOR, description="Display color")
    enabled: bool = Field(default=True, description="Whether the feed is aggregated")
    created_at: datetime = Field(default_factory=_now_utc, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> str:
        """Serialize creation time to ISO format."""
        return dt.isoformat()

    def to_api_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class RawCalendarComponent:
    """One VEVENT-like block produced by the ICS parser.

    Only components whose ``component_type`` is ``"VEVENT"`` are expanded.
    Absent ``uid`` resolves to ``""`` and absent ``summary`` to ``"Untitled"``.
    """

    component_type: str
    uid: Optional[str] = None
    summary: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    recurrence_rule: Optional[RecurrenceRule] = field(default=None, compare=False)

    @property
    def resolved_uid(self) -> str:
        return self.uid if self.uid is not None else ""

    @property
    def resolved_summary(self) -> str:
        return self.summary if self.summary is not None else UNTITLED_SUMMARY

    @property
    def is_event(self) -> bool:
        return self.component_type == "VEVENT"


class CalendarOccurrence(BaseModel):
    """A concrete calendar occurrence bucketed into one civil date.

    ``id`` is ``"{uid}_{date}"`` and is only unique per (uid, date) pair.
    """

    id: str = Field(..., description="Occurrence ID")
    title: str = Field(..., description="Display text")
    date: str = Field(..., description="Civil date YYYY-MM-DD in the target timezone")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    all_day: bool = Field(default=False, alias="allDay")
    feed_name: str = Field(..., alias="feedName")
    feed_color: str = Field(..., alias="feedColor")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_api_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting absent times."""
        return self.model_dump(by_alias=True, exclude_none=True)
