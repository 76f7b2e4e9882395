"""ICS parsing into RawCalendarComponent structures.

The heavy lifting is done by ``icalendar``; this module only maps each
top-level calendar component into the small structure the expander consumes
and wraps RRULE/EXDATE data in a lazily evaluated dateutil rule set.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any, Optional

from dateutil.rrule import rruleset, rrulestr
from icalendar import Calendar
from icalendar.prop import vRecur

from ..core.timezone_utils import to_aware
from .models import RawCalendarComponent

logger = logging.getLogger(__name__)

_UTC = datetime.timezone.utc


class ICSParseError(Exception):
    """Raised when feed content is not a parseable iCalendar document."""


class DateutilRecurrenceRule:
    """Recurrence rule backed by ``dateutil.rrule``.

    The rule set is only built when ``between`` is called, so a malformed
    RRULE surfaces as an exception from ``between`` rather than at parse time.
    """

    def __init__(
        self,
        rrule_text: str,
        dtstart: datetime.datetime,
        exdates: Optional[list[datetime.datetime]] = None,
    ):
        self.rrule_text = rrule_text
        self.dtstart = dtstart
        self.exdates = list(exdates or [])

    def _build(self) -> rruleset:
        parsed = rrulestr(self.rrule_text, dtstart=self.dtstart, forceset=True)
        for exdate in self.exdates:
            parsed.exdate(exdate)
        return parsed

    def between(
        self, after: datetime.datetime, before: datetime.datetime, inc: bool = False
    ) -> list[datetime.datetime]:
        return self._build().between(after, before, inc=inc)

    def __repr__(self) -> str:
        return f"DateutilRecurrenceRule({self.rrule_text!r}, dtstart={self.dtstart.isoformat()})"


def _text(component: Any, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def _instant(component: Any, name: str, tz: datetime.tzinfo) -> Optional[datetime.datetime]:
    prop = component.get(name)
    if prop is None or not hasattr(prop, "dt"):
        return None
    value = prop.dt
    if not isinstance(value, (datetime.date, datetime.datetime)):
        return None
    return to_aware(value, tz)


def _collect_exdates(component: Any, tz: datetime.tzinfo) -> list[datetime.datetime]:
    """Collect EXDATE values whether icalendar exposes one property or a list."""
    raw = component.get("EXDATE")
    if raw is None:
        return []
    props = raw if isinstance(raw, list) else [raw]

    exdates = []
    for prop in props:
        for entry in getattr(prop, "dts", []):
            value = getattr(entry, "dt", None)
            if isinstance(value, (datetime.date, datetime.datetime)):
                exdates.append(to_aware(value, tz))
    return exdates


def _normalize_recur(recur: Any, dtstart: datetime.datetime, tz: datetime.tzinfo) -> str:
    if isinstance(recur, vRecur) and recur.get("UNTIL") and dtstart.tzinfo is not None:
        # dateutil rejects a floating UNTIL when DTSTART carries a timezone
        until = recur["UNTIL"][0]
        if not isinstance(until, datetime.datetime) or until.tzinfo is None:
            recur = vRecur(recur)
            recur["UNTIL"] = [to_aware(until, tz).astimezone(_UTC)]

    if hasattr(recur, "to_ical"):
        return recur.to_ical().decode("utf-8")
    return str(recur)


def _rrule_text(component: Any, dtstart: datetime.datetime, tz: datetime.tzinfo) -> Optional[str]:
    """Return the component's RRULE value(s) in a form ``rrulestr`` accepts.

    Several RRULE properties become one ``RRULE:`` line each, so every rule
    contributes to the same rule set.
    """
    raw = component.get("RRULE")
    if raw is None:
        return None
    recurs = raw if isinstance(raw, list) else [raw]

    texts = [_normalize_recur(recur, dtstart, tz) for recur in recurs]
    if len(texts) == 1:
        return texts[0]
    return "\n".join(f"RRULE:{text}" for text in texts)


def _component_key(component: Any, index: int) -> str:
    uid = _text(component, "UID")
    if uid:
        return uid
    tzid = _text(component, "TZID")
    if tzid:
        return tzid
    return f"{component.name.lower()}-{index}-{uuid.uuid4().hex[:8]}"


def parse_component(component: Any, tz: datetime.tzinfo) -> RawCalendarComponent:
    """Map one icalendar component into a RawCalendarComponent."""
    start = _instant(component, "DTSTART", tz)
    end = _instant(component, "DTEND", tz)
    if end is None and start is not None:
        duration = component.get("DURATION")
        if duration is not None and isinstance(getattr(duration, "dt", None), datetime.timedelta):
            end = start + duration.dt

    rule = None
    if start is not None:
        try:
            rrule_text = _rrule_text(component, start, tz)
        except (ValueError, TypeError, KeyError, IndexError) as e:
            # Keep the raw text so evaluation fails later and falls back
            logger.debug("Could not normalize RRULE for %r: %s", _text(component, "UID"), e)
            rrule_text = str(component.get("RRULE"))
        if rrule_text:
            rule = DateutilRecurrenceRule(rrule_text, start, _collect_exdates(component, tz))

    return RawCalendarComponent(
        component_type=str(component.name).upper(),
        uid=_text(component, "UID"),
        summary=_text(component, "SUMMARY"),
        start=start,
        end=end,
        recurrence_rule=rule,
    )


def parse_ics(content: str | bytes, tz: datetime.tzinfo) -> dict[str, RawCalendarComponent]:
    """Parse ICS content into components keyed by UID.

    Args:
        content: Raw iCalendar text
        tz: Zone used for date-only and floating values

    Returns:
        Mapping of component key to parsed component. Instances overriding a
        recurring series (RECURRENCE-ID) are keyed ``"{uid}_{recurrence-id}"``
        and excluded from the master series.

    Raises:
        ICSParseError: If the content cannot be parsed
    """
    try:
        calendar = Calendar.from_ical(content)
    except (ValueError, IndexError, KeyError) as e:
        raise ICSParseError(f"Invalid ICS content: {e}") from e

    components: dict[str, RawCalendarComponent] = {}
    overrides: dict[str, list[datetime.datetime]] = {}

    for index, sub in enumerate(calendar.subcomponents):
        parsed = parse_component(sub, tz)
        key = _component_key(sub, index)

        recurrence_id = _instant(sub, "RECURRENCE-ID", tz)
        if recurrence_id is not None:
            overrides.setdefault(key, []).append(recurrence_id)
            key = f"{key}_{recurrence_id.astimezone(_UTC).strftime('%Y%m%dT%H%M%SZ')}"
        elif key in components:
            key = f"{key}-{index}"

        components[key] = parsed

    for uid, recurrence_ids in overrides.items():
        master = components.get(uid)
        if master is not None and isinstance(master.recurrence_rule, DateutilRecurrenceRule):
            master.recurrence_rule.exdates.extend(recurrence_ids)

    logger.debug(
        "Parsed %d components (%d overridden instances)",
        len(components),
        sum(len(v) for v in overrides.values()),
    )
    return components
