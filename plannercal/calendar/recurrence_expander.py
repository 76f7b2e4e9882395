"""Recurrence expansion of parsed calendar components into dated occurrences."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..core.timezone_utils import (
    ONE_DAY,
    civil_date,
    clock_time,
    elapsed,
    is_all_day,
    next_civil_day,
)
from .models import CalendarOccurrence, RawCalendarComponent, RecurrenceRule

logger = logging.getLogger(__name__)

_UTC = datetime.timezone.utc


@dataclass
class RecurrenceEvaluation:
    """Outcome of asking a recurrence rule for its dates in a window.

    Exactly one of ``dates`` / ``error`` is meaningful: a failed evaluation
    carries the exception and no dates.
    """

    dates: list[datetime.datetime] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def evaluate_recurrence(
    rule: RecurrenceRule,
    range_start: datetime.datetime,
    range_end: datetime.datetime,
) -> RecurrenceEvaluation:
    """Evaluate ``rule`` over ``[range_start, range_end]``, both bounds inclusive.

    A malformed rule is reported as a failed evaluation instead of raising.
    """
    try:
        dates = [d for d in rule.between(range_start, range_end, inc=True)
                 if isinstance(d, datetime.datetime)]
    except Exception as e:
        return RecurrenceEvaluation(error=e)
    return RecurrenceEvaluation(dates=dates)


def _occurrence(
    uid: str,
    title: str,
    date_str: str,
    all_day: bool,
    start: Optional[datetime.datetime],
    end: Optional[datetime.datetime],
    feed_name: str,
    feed_color: str,
    tz: datetime.tzinfo,
) -> CalendarOccurrence:
    return CalendarOccurrence(
        id=f"{uid}_{date_str}",
        title=title,
        date=date_str,
        start_time=None if all_day or start is None else clock_time(start, tz),
        end_time=None if all_day or end is None else clock_time(end, tz),
        all_day=all_day,
        feed_name=feed_name,
        feed_color=feed_color,
    )


def _expand_recurring(
    component: RawCalendarComponent,
    dates: list[datetime.datetime],
    feed_name: str,
    feed_color: str,
    tz: datetime.tzinfo,
) -> list[CalendarOccurrence]:
    if component.start is not None and component.end is not None:
        duration = elapsed(component.start, component.end)
    else:
        duration = datetime.timedelta(0)

    occurrences = []
    for occurrence_start in dates:
        if occurrence_start.tzinfo is None:
            occurrence_start = occurrence_start.replace(tzinfo=_UTC)
        # UTC arithmetic so the duration is absolute across DST changes
        start = occurrence_start.astimezone(_UTC)
        end = start + duration
        # Without duration information an instance cannot be timed
        all_day = is_all_day(start, end, tz) if duration > datetime.timedelta(0) else True
        # One occurrence per instance, dated at its start; recurring
        # instances are never split across days.
        occurrences.append(
            _occurrence(
                component.resolved_uid,
                component.resolved_summary,
                civil_date(start, tz),
                all_day,
                start,
                end,
                feed_name,
                feed_color,
                tz,
            )
        )
    return occurrences


def _expand_single(
    component: RawCalendarComponent,
    range_from: str,
    range_to: str,
    feed_name: str,
    feed_color: str,
    tz: datetime.tzinfo,
) -> list[CalendarOccurrence]:
    start = component.start
    if start is None:
        return []
    end = component.end if component.end is not None else start

    date_str = civil_date(start, tz)
    if not range_from <= date_str <= range_to:
        return []

    all_day = is_all_day(start, end, tz)
    uid = component.resolved_uid
    title = component.resolved_summary

    if all_day and elapsed(start, end) > ONE_DAY:
        occurrences = []
        current = start
        while elapsed(current, end) > datetime.timedelta(0):
            day = civil_date(current, tz)
            if range_from <= day <= range_to:
                occurrences.append(
                    _occurrence(uid, title, day, True, None, None, feed_name, feed_color, tz)
                )
            current = next_civil_day(current, tz)
        return occurrences

    return [_occurrence(uid, title, date_str, all_day, start, end, feed_name, feed_color, tz)]


def expand_component(
    component: RawCalendarComponent,
    range_start: datetime.datetime,
    range_end: datetime.datetime,
    feed_name: str,
    feed_color: str,
    tz: datetime.tzinfo,
) -> list[CalendarOccurrence]:
    """Expand one parsed component into the occurrences inside a query window.

    Args:
        component: Parsed calendar component
        range_start: Instant at local midnight of the first requested day
        range_end: Instant at local end of the last requested day
        feed_name: Name of the owning feed, copied onto every occurrence
        feed_color: Color of the owning feed, copied onto every occurrence
        tz: Target timezone for civil dates and clock strings

    Returns:
        Occurrences whose dates fall inside the window. Non-VEVENT components
        yield nothing.

    A recurrence rule that fails to evaluate, or that yields no dates in the
    window, falls back to treating the component as a single event.
    """
    if not component.is_event:
        return []

    occurrences: list[CalendarOccurrence] = []

    if component.recurrence_rule is not None:
        evaluation = evaluate_recurrence(component.recurrence_rule, range_start, range_end)
        if evaluation.ok:
            occurrences = _expand_recurring(component, evaluation.dates, feed_name, feed_color, tz)
        else:
            logger.debug(
                "Recurrence evaluation failed for uid=%r, falling back to single event: %s",
                component.resolved_uid,
                evaluation.error,
            )

    if not occurrences:
        occurrences = _expand_single(
            component,
            civil_date(range_start, tz),
            civil_date(range_end, tz),
            feed_name,
            feed_color,
            tz,
        )

    return occurrences
