"""Fetch-and-parse collaborator used by the aggregator."""

from __future__ import annotations

import datetime
import logging
from typing import Protocol

from .fetcher import ICSFetcher
from .ics_parser import parse_ics
from .models import RawCalendarComponent

logger = logging.getLogger(__name__)


class FeedLoader(Protocol):
    """Protocol for retrieving and parsing one calendar feed."""

    async def load(self, url: str) -> dict[str, RawCalendarComponent]:
        """Return the feed's parsed components keyed by an opaque key.

        Raises:
            Exception: On network failure or malformed calendar data
        """
        ...


class ICSFeedLoader:
    """Loads a feed over HTTP and parses it with icalendar."""

    def __init__(self, fetcher: ICSFetcher, tz: datetime.tzinfo):
        self.fetcher = fetcher
        self.tz = tz

    async def load(self, url: str) -> dict[str, RawCalendarComponent]:
        content = await self.fetcher.fetch_ics(url)
        components = parse_ics(content, self.tz)
        logger.debug("Loaded %d components from %s", len(components), url)
        return components
