"""Timezone-aware date/time helpers for plannercal.

Calendar feeds store instants in UTC or at a fixed offset, but the planner
buckets everything by the civil date of one configured zone. This module is
the only place where an absolute instant becomes a civil date or a wall-clock
string; everything downstream compares zero-padded ``YYYY-MM-DD`` strings.

Every helper takes the zone as an explicit argument so the functions stay pure
and can be exercised with any injected zone.
"""

from __future__ import annotations

import datetime
import logging
import os
import re
import zoneinfo

from .exceptions import InvalidRangeError, InvalidTimezoneError

logger = logging.getLogger(__name__)

# Default target timezone for civil-date bucketing
DEFAULT_TIMEZONE = "America/Los_Angeles"

_CIVIL_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

ONE_DAY = datetime.timedelta(days=1)


def resolve_timezone(name: str | None) -> zoneinfo.ZoneInfo:
    """Resolve an IANA timezone name into a ZoneInfo.

    Args:
        name: IANA identifier such as "America/Los_Angeles". Empty or None
            resolves to DEFAULT_TIMEZONE.

    Returns:
        ZoneInfo for the zone

    Raises:
        InvalidTimezoneError: If the name is not a known zone
    """
    zone_name = (name or "").strip() or DEFAULT_TIMEZONE
    try:
        return zoneinfo.ZoneInfo(zone_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(f"Unknown timezone: {zone_name!r}") from e


def _local(instant: datetime.datetime, tz: datetime.tzinfo) -> datetime.datetime:
    if instant.tzinfo is None:
        # Naive instants are treated as UTC, matching how feeds store them
        instant = instant.replace(tzinfo=datetime.timezone.utc)
    return instant.astimezone(tz)


def civil_date(instant: datetime.datetime, tz: datetime.tzinfo) -> str:
    """Return the calendar date of ``instant`` as observed in ``tz`` (YYYY-MM-DD)."""
    return _local(instant, tz).strftime("%Y-%m-%d")


def clock_time(instant: datetime.datetime, tz: datetime.tzinfo) -> str:
    """Return the 12-hour wall-clock time of ``instant`` in ``tz``.

    No leading zero on the hour, two-digit minute: "9:05 AM", "12:30 PM".
    """
    local = _local(instant, tz)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def hour_of_day(instant: datetime.datetime, tz: datetime.tzinfo) -> int:
    return _local(instant, tz).hour


def minute_of_hour(instant: datetime.datetime, tz: datetime.tzinfo) -> int:
    return _local(instant, tz).minute


def elapsed(start: datetime.datetime, end: datetime.datetime) -> datetime.timedelta:
    """Absolute time between two instants.

    Plain subtraction of two datetimes sharing one ZoneInfo compares wall
    clocks; this always compares UTC instants.
    """
    return _local(end, datetime.timezone.utc) - _local(start, datetime.timezone.utc)


def is_all_day(start: datetime.datetime, end: datetime.datetime, tz: datetime.tzinfo) -> bool:
    """Classify an interval as all-day.

    Both ends must sit exactly on local midnight and the span must cover at
    least one full day. A zero-length or sub-24h midnight-to-midnight-ish
    interval is not all-day.
    """
    return (
        hour_of_day(start, tz) == 0
        and minute_of_hour(start, tz) == 0
        and hour_of_day(end, tz) == 0
        and minute_of_hour(end, tz) == 0
        and elapsed(start, end) >= ONE_DAY
    )


def parse_civil_date(value: str | None, param_name: str = "date") -> datetime.date:
    """Parse a strict YYYY-MM-DD civil date.

    Raises:
        InvalidRangeError: If the value is missing or malformed
    """
    if not value:
        raise InvalidRangeError(f"{param_name} is required")
    text = value.strip()
    if not _CIVIL_DATE_RE.match(text):
        raise InvalidRangeError(f"{param_name} must be YYYY-MM-DD, got {value!r}")
    try:
        return datetime.date.fromisoformat(text)
    except ValueError as e:
        raise InvalidRangeError(f"{param_name} must be YYYY-MM-DD, got {value!r}") from e


def local_day_bounds(
    range_from: datetime.date,
    range_to: datetime.date,
    tz: datetime.tzinfo,
) -> tuple[datetime.datetime, datetime.datetime]:
    """Return the instants bounding a civil date range in ``tz``.

    The start is local midnight of ``range_from``; the end is local 23:59:59 of
    ``range_to``.
    """
    range_start = datetime.datetime.combine(range_from, datetime.time(0, 0, 0), tzinfo=tz)
    range_end = datetime.datetime.combine(range_to, datetime.time(23, 59, 59), tzinfo=tz)
    return range_start, range_end


def next_civil_day(instant: datetime.datetime, tz: datetime.tzinfo) -> datetime.datetime:
    """Advance ``instant`` by one calendar day, keeping its wall-clock time in ``tz``.

    Across a DST transition this is 23 or 25 hours of absolute time.
    """
    local = _local(instant, tz)
    following = local.date() + ONE_DAY
    return datetime.datetime.combine(following, local.time(), tzinfo=tz)


def to_aware(
    value: datetime.datetime | datetime.date,
    tz: datetime.tzinfo,
) -> datetime.datetime:
    """Normalize a parsed calendar value into an aware instant.

    - date-only values become local midnight in ``tz``
    - naive (floating) datetimes are read as wall time in ``tz``
    - aware datetimes are returned unchanged
    """
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        return value
    return datetime.datetime.combine(value, datetime.time(0, 0), tzinfo=tz)


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via the PLANNERCAL_TEST_TIME environment
    variable (ISO 8601, e.g. "2024-03-05T08:20:00-08:00").
    """
    test_time = os.environ.get("PLANNERCAL_TEST_TIME")
    if test_time:
        try:
            from dateutil import parser as date_parser

            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(datetime.timezone.utc)
            return dt.replace(tzinfo=datetime.timezone.utc)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse PLANNERCAL_TEST_TIME=%r: %s", test_time, e)

    return datetime.datetime.now(datetime.timezone.utc)
