"""Unit tests for calpost_lite.calendar.lite_parser."""

from datetime import UTC, datetime

import pytest

from calpost_lite.calendar.lite_models import Window
from calpost_lite.calendar.lite_parser import LiteICSParser, _normalize_until, parse_ics
from calpost_lite.calendar.lite_rrule_expander import RecurrenceExpander
from calpost_lite.domain.occurrence_preview import parse_rule_parts

pytestmark = pytest.mark.unit


def _calendar(*events: str) -> str:
    body = "\n".join(events)
    return f"BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//Test//Test//EN\n{body}\nEND:VCALENDAR\n"


WEEKLY_STANDUP = """BEGIN:VEVENT
UID:standup@example.org
SUMMARY:Weekly standup
LOCATION:Room 4
DTSTART;TZID=America/Vancouver:20240603T090000
DTEND;TZID=America/Vancouver:20240603T093000
RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO
EXDATE;TZID=America/Vancouver:20240610T090000
END:VEVENT"""

ALL_DAY = """BEGIN:VEVENT
UID:holiday@example.org
SUMMARY:Office closed
DTSTART;VALUE=DATE:20240612
DTEND;VALUE=DATE:20240613
END:VEVENT"""

NO_UID = """BEGIN:VEVENT
SUMMARY:Orphan
DTSTART:20240612T100000Z
END:VEVENT"""

OVERRIDE = """BEGIN:VEVENT
UID:standup@example.org
SUMMARY:Weekly standup (moved)
RECURRENCE-ID;TZID=America/Vancouver:20240617T090000
DTSTART;TZID=America/Vancouver:20240617T110000
DTEND;TZID=America/Vancouver:20240617T113000
END:VEVENT"""


class TestLiteICSParser:
    """Tests for VEVENT to CalendarComponent conversion."""

    def setup_method(self) -> None:
        self.parser = LiteICSParser()

    def test_parse_when_tzid_start_then_instant_and_tzid_kept(self) -> None:
        """Test a TZID start keeps its instant and remembers the zone name."""
        [component] = self.parser.parse(_calendar(WEEKLY_STANDUP))

        assert component.uid == "standup@example.org"
        assert component.summary == "Weekly standup"
        assert component.location == "Room 4"
        assert component.start.astimezone(UTC) == datetime(2024, 6, 3, 16, 0, tzinfo=UTC)
        assert component.start_tzid == "America/Vancouver"
        assert component.is_all_day is False
        assert parse_rule_parts(component.rrule) == {
            "FREQ": "WEEKLY",
            "INTERVAL": "1",
            "BYDAY": "MO",
        }

    def test_parse_when_exdate_then_excluded_from_expansion(self) -> None:
        """Test EXDATE instants are collected and skipped by the expander."""
        [component] = self.parser.parse(_calendar(WEEKLY_STANDUP))
        window = Window(
            datetime(2024, 6, 1, tzinfo=UTC), datetime(2024, 6, 30, tzinfo=UTC), inclusive=False
        )

        occurrences = RecurrenceExpander().expand(component, window)

        assert len(component.exdates) == 1
        assert [o.start.day for o in occurrences] == [3, 17, 24]

    def test_parse_when_all_day_then_midnight_utc(self) -> None:
        """Test DATE starts become midnight UTC and are flagged all-day."""
        [component] = self.parser.parse(_calendar(ALL_DAY))

        assert component.start == datetime(2024, 6, 12, tzinfo=UTC)
        assert component.is_all_day is True
        assert component.start_tzid is None
        assert component.rrule is None

    def test_parse_when_uid_missing_then_skipped(self) -> None:
        """Test a VEVENT without UID does not stop the rest of the calendar."""
        components = self.parser.parse(_calendar(NO_UID, ALL_DAY))

        assert [c.uid for c in components] == ["holiday@example.org"]

    def test_parse_when_recurrence_id_then_master_slot_excluded(self) -> None:
        """Test an overridden instance replaces its slot in the master series."""
        master, moved = self.parser.parse(_calendar(WEEKLY_STANDUP, OVERRIDE))

        assert moved.rrule is None
        assert moved.summary == "Weekly standup (moved)"
        assert datetime(2024, 6, 17, 16, 0, tzinfo=UTC) in [
            d.astimezone(UTC) for d in master.exdates
        ]

        window = Window(
            datetime(2024, 6, 15, tzinfo=UTC), datetime(2024, 6, 20, tzinfo=UTC), inclusive=False
        )
        assert RecurrenceExpander().expand(master, window) == []

    @pytest.mark.parametrize("content", ["", "   \n"])
    def test_parse_when_empty_then_no_components(self, content: str) -> None:
        """Test blank input yields an empty list."""
        assert parse_ics(content) == []

    def test_parse_when_not_icalendar_then_value_error(self) -> None:
        """Test garbage input raises ValueError for the caller to wrap."""
        with pytest.raises(ValueError):
            self.parser.parse("this is not a calendar")


class TestNormalizeUntil:
    """Tests for UNTIL rewriting."""

    @pytest.mark.parametrize(
        ("rule", "expected"),
        [
            ("FREQ=DAILY;UNTIL=20240630", "FREQ=DAILY;UNTIL=20240630T235959Z"),
            ("FREQ=DAILY;UNTIL=20240630T120000", "FREQ=DAILY;UNTIL=20240630T120000Z"),
            ("FREQ=DAILY;UNTIL=20240630T120000Z", "FREQ=DAILY;UNTIL=20240630T120000Z"),
            ("FREQ=DAILY;UNTIL=20240630;BYDAY=MO", "FREQ=DAILY;UNTIL=20240630T235959Z;BYDAY=MO"),
            ("FREQ=DAILY;COUNT=3", "FREQ=DAILY;COUNT=3"),
        ],
    )
    def test_normalize_until(self, rule: str, expected: str) -> None:
        """Test floating UNTIL values become UTC and others are untouched."""
        assert _normalize_until(rule) == expected
