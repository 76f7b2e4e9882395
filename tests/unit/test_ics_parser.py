"""Unit tests for plannercal.calendar.ics_parser."""

import datetime

import pytest

from plannercal.calendar.ics_parser import (
    DateutilRecurrenceRule,
    ICSParseError,
    parse_ics,
)
from plannercal.calendar.recurrence_expander import expand_component
from plannercal.core.timezone_utils import local_day_bounds

pytestmark = pytest.mark.unit

UTC = datetime.timezone.utc


def _ics(*events: str) -> str:
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//plannercal//tests//EN"]
    for event in events:
        lines.extend(event.strip().splitlines())
    lines.append("END:VCALENDAR")
    return "\r\n".join(line.strip() for line in lines) + "\r\n"


def _january(components, tz):
    range_start, range_end = local_day_bounds(
        datetime.date(2024, 1, 1), datetime.date(2024, 1, 31), tz
    )
    occurrences = []
    for component in components.values():
        occurrences.extend(expand_component(component, range_start, range_end, "Feed", "#000", tz))
    return sorted(occurrences, key=lambda occ: (occ.date, occ.start_time or ""))


TIMED_EVENT = """
BEGIN:VEVENT
UID:timed-1
SUMMARY:Dentist
DTSTART:20240105T170000Z
DTEND:20240105T180000Z
END:VEVENT
"""

ALL_DAY_EVENT = """
BEGIN:VEVENT
UID:allday-1
SUMMARY:Conference
DTSTART;VALUE=DATE:20240110
DTEND;VALUE=DATE:20240113
END:VEVENT
"""


class TestParseIcs:
    def test_parse_ics_when_timed_event_then_aware_instants(self, la_tz) -> None:
        components = parse_ics(_ics(TIMED_EVENT), la_tz)

        component = components["timed-1"]
        assert component.component_type == "VEVENT"
        assert component.summary == "Dentist"
        assert component.start == datetime.datetime(2024, 1, 5, 17, 0, tzinfo=UTC)
        assert component.end == datetime.datetime(2024, 1, 5, 18, 0, tzinfo=UTC)
        assert component.recurrence_rule is None

    def test_parse_ics_when_date_only_then_local_midnight(self, la_tz) -> None:
        components = parse_ics(_ics(ALL_DAY_EVENT), la_tz)

        component = components["allday-1"]
        assert component.start == datetime.datetime(2024, 1, 10, tzinfo=la_tz)
        assert component.end == datetime.datetime(2024, 1, 13, tzinfo=la_tz)

    def test_parse_ics_when_date_only_multi_day_then_split_on_expansion(self, la_tz) -> None:
        occurrences = _january(parse_ics(_ics(ALL_DAY_EVENT), la_tz), la_tz)

        assert [occ.date for occ in occurrences] == ["2024-01-10", "2024-01-11", "2024-01-12"]
        assert all(occ.all_day for occ in occurrences)

    def test_parse_ics_when_duration_then_end_computed(self, la_tz) -> None:
        event = """
        BEGIN:VEVENT
        UID:dur-1
        DTSTART:20240102T180000Z
        DURATION:PT1H30M
        END:VEVENT
        """
        component = parse_ics(_ics(event), la_tz)["dur-1"]
        assert component.end == datetime.datetime(2024, 1, 2, 19, 30, tzinfo=UTC)

    def test_parse_ics_when_missing_summary_then_untitled(self, la_tz) -> None:
        event = """
        BEGIN:VEVENT
        UID:nameless
        DTSTART:20240102T180000Z
        END:VEVENT
        """
        component = parse_ics(_ics(event), la_tz)["nameless"]
        assert component.summary is None
        assert component.resolved_summary == "Untitled"

    def test_parse_ics_when_non_event_components_then_kept_with_type(self, la_tz) -> None:
        todo = """
        BEGIN:VTODO
        UID:todo-1
        SUMMARY:Buy milk
        DTSTART:20240102T180000Z
        END:VTODO
        """
        components = parse_ics(_ics(todo, TIMED_EVENT), la_tz)

        assert components["todo-1"].component_type == "VTODO"
        assert [occ.title for occ in _january(components, la_tz)] == ["Dentist"]

    def test_parse_ics_when_no_uid_then_distinct_generated_keys(self, la_tz) -> None:
        event = """
        BEGIN:VEVENT
        SUMMARY:Anonymous
        DTSTART:20240102T180000Z
        END:VEVENT
        """
        components = parse_ics(_ics(event, event), la_tz)

        assert len(components) == 2
        assert all(component.uid is None for component in components.values())

    def test_parse_ics_when_duplicate_uid_then_both_kept(self, la_tz) -> None:
        components = parse_ics(_ics(TIMED_EVENT, TIMED_EVENT), la_tz)
        assert len(components) == 2
        assert "timed-1" in components

    def test_parse_ics_when_invalid_content_then_raises(self, la_tz) -> None:
        with pytest.raises(ICSParseError):
            parse_ics("this is not a calendar", la_tz)


class TestRecurrenceParsing:
    def test_parse_ics_when_rrule_then_rule_expands(self, la_tz) -> None:
        event = """
        BEGIN:VEVENT
        UID:daily
        SUMMARY:Daily check-in
        DTSTART:20240101T170000Z
        DTEND:20240101T173000Z
        RRULE:FREQ=DAILY;COUNT=3
        END:VEVENT
        """
        components = parse_ics(_ics(event), la_tz)

        assert isinstance(components["daily"].recurrence_rule, DateutilRecurrenceRule)
        occurrences = _january(components, la_tz)
        assert [occ.date for occ in occurrences] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert {occ.start_time for occ in occurrences} == {"9:00 AM"}
        assert {occ.end_time for occ in occurrences} == {"9:30 AM"}

    def test_parse_ics_when_multiple_rrules_then_all_rules_expand(self, la_tz) -> None:
        event = """
        BEGIN:VEVENT
        UID:multi
        SUMMARY:Stand-up
        DTSTART:20240105T170000Z
        DTEND:20240105T173000Z
        RRULE:FREQ=DAILY;COUNT=3
        RRULE:FREQ=WEEKLY;BYDAY=MO;COUNT=2
        END:VEVENT
        """
        occurrences = _january(parse_ics(_ics(event), la_tz), la_tz)

        assert [occ.date for occ in occurrences] == [
            "2024-01-05",
            "2024-01-06",
            "2024-01-07",
            "2024-01-08",
            "2024-01-15",
        ]
        assert {occ.start_time for occ in occurrences} == {"9:00 AM"}

    def test_parse_ics_when_exdate_then_instance_skipped(self, la_tz) -> None:
        event = """
        BEGIN:VEVENT
        UID:daily-ex
        DTSTART:20240101T170000Z
        DTEND:20240101T173000Z
        RRULE:FREQ=DAILY;COUNT=5
        EXDATE:20240103T170000Z
        END:VEVENT
        """
        occurrences = _january(parse_ics(_ics(event), la_tz), la_tz)

        assert [occ.date for occ in occurrences] == [
            "2024-01-01",
            "2024-01-02",
            "2024-01-04",
            "2024-01-05",
        ]

    def test_parse_ics_when_until_is_date_then_rule_still_evaluates(self, la_tz) -> None:
        event = """
        BEGIN:VEVENT
        UID:until-date
        DTSTART:20240101T170000Z
        DTEND:20240101T173000Z
        RRULE:FREQ=DAILY;UNTIL=20240105
        END:VEVENT
        """
        occurrences = _january(parse_ics(_ics(event), la_tz), la_tz)

        assert [occ.date for occ in occurrences] == [
            "2024-01-01",
            "2024-01-02",
            "2024-01-03",
            "2024-01-04",
        ]

    def test_parse_ics_when_recurrence_id_then_override_replaces_instance(self, la_tz) -> None:
        master = """
        BEGIN:VEVENT
        UID:series
        SUMMARY:Planning
        DTSTART:20240101T170000Z
        DTEND:20240101T180000Z
        RRULE:FREQ=WEEKLY;COUNT=3
        END:VEVENT
        """
        override = """
        BEGIN:VEVENT
        UID:series
        SUMMARY:Planning (moved)
        RECURRENCE-ID:20240108T170000Z
        DTSTART:20240108T200000Z
        DTEND:20240108T210000Z
        END:VEVENT
        """
        components = parse_ics(_ics(master, override), la_tz)

        assert set(components) == {"series", "series_20240108T170000Z"}
        occurrences = _january(components, la_tz)
        assert [(occ.date, occ.title, occ.start_time) for occ in occurrences] == [
            ("2024-01-01", "Planning", "9:00 AM"),
            ("2024-01-08", "Planning (moved)", "12:00 PM"),
            ("2024-01-15", "Planning", "9:00 AM"),
        ]
