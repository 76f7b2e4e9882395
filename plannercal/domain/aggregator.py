"""Multi-feed aggregation of calendar occurrences."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Iterable, Sequence

from ..calendar.feed_loader import FeedLoader
from ..calendar.models import CalendarFeedSource, CalendarOccurrence
from ..calendar.recurrence_expander import expand_component
from ..core.timezone_utils import local_day_bounds, parse_civil_date

logger = logging.getLogger(__name__)


def occurrence_sort_key(occurrence: CalendarOccurrence) -> tuple[str, bool, str]:
    """Date, then all-day before timed, then start time (missing sorts first).

    Start times compare as text with ":" ranked below the digits, so
    "1:00 PM" sorts before "10:00 AM".
    """
    return (occurrence.date, not occurrence.all_day, (occurrence.start_time or "").replace(":", "!"))


def sort_occurrences(occurrences: Iterable[CalendarOccurrence]) -> list[CalendarOccurrence]:
    return sorted(occurrences, key=occurrence_sort_key)


class CalendarAggregator:
    """Expands every enabled feed over a civil date range and merges the results."""

    def __init__(self, feed_loader: FeedLoader, tz: datetime.tzinfo):
        """Initialize aggregator.

        Args:
            feed_loader: Collaborator that fetches and parses one feed URL
            tz: Target timezone for civil-date bucketing
        """
        self.feed_loader = feed_loader
        self.tz = tz

    async def _expand_feed(
        self,
        feed: CalendarFeedSource,
        range_start: datetime.datetime,
        range_end: datetime.datetime,
    ) -> list[CalendarOccurrence]:
        components = await self.feed_loader.load(feed.url)

        occurrences: list[CalendarOccurrence] = []
        for component in components.values():
            occurrences.extend(
                expand_component(component, range_start, range_end, feed.name, feed.color, self.tz)
            )
        logger.debug(
            "Feed %r produced %d occurrences from %d components",
            feed.name,
            len(occurrences),
            len(components),
        )
        return occurrences

    async def list_occurrences(
        self,
        range_from: str | None,
        range_to: str | None,
        feeds: Sequence[CalendarFeedSource],
    ) -> list[CalendarOccurrence]:
        """List occurrences from all feeds whose civil date is in ``[range_from, range_to]``.

        Args:
            range_from: First civil date, YYYY-MM-DD
            range_to: Last civil date, YYYY-MM-DD
            feeds: Enabled feeds to aggregate

        Returns:
            Occurrences sorted by date, all-day first, then start time

        Raises:
            InvalidRangeError: If either bound is missing or malformed. Raised
                before any feed is fetched.

        A feed that fails to fetch or parse is logged and contributes nothing.
        """
        first_day = parse_civil_date(range_from, "from")
        last_day = parse_civil_date(range_to, "to")

        if first_day > last_day:
            logger.debug("Empty range %s..%s, skipping feed work", range_from, range_to)
            return []
        if not feeds:
            return []

        range_start, range_end = local_day_bounds(first_day, last_day, self.tz)

        tasks = [
            asyncio.create_task(self._expand_feed(feed, range_start, range_end))
            for feed in feeds
        ]
        # Settle every task; one feed failing must not cancel the others
        results = await asyncio.gather(*tasks, return_exceptions=True)

        merged: list[CalendarOccurrence] = []
        for feed, result in zip(feeds, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error("Failed to fetch calendar feed %r: %s", feed.name, result)
                continue
            merged.extend(result)

        logger.debug(
            "Aggregated %d occurrences from %d feeds for %s..%s",
            len(merged),
            len(feeds),
            range_from,
            range_to,
        )
        return sort_occurrences(merged)
