"""
Unit tests for calpost_lite.calendar.lite_rrule_expander.RecurrenceExpander

Covers:
- WEEKLY/INTERVAL expansion inside a window
- TZID-anchored expansion across a DST change
- EXDATE exclusion
- window inclusivity for recurring and single components
- malformed rule errors and the per-rule occurrence cap
"""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from calpost_lite.calendar.lite_models import Window
from calpost_lite.calendar.lite_rrule_expander import (
    RecurrenceExpander,
    RRuleExpansionError,
    RRuleParseError,
)

pytestmark = pytest.mark.unit


JANUARY = Window(
    datetime(2024, 1, 1, tzinfo=UTC),
    datetime(2024, 2, 1, tzinfo=UTC),
    inclusive=False,
)


class TestRecurrenceExpansion:
    """Tests for expanding recurring components."""

    def setup_method(self) -> None:
        self.expander = RecurrenceExpander()

    def test_expand_when_biweekly_then_every_other_monday(self, make_component) -> None:
        """Test WEEKLY;INTERVAL=2 from Monday 2024-01-01 yields 01-01, 01-15, 01-29."""
        component = make_component(
            start=datetime(2024, 1, 1, 9, 0, tzinfo=UTC), rrule="FREQ=WEEKLY;INTERVAL=2"
        )

        occurrences = self.expander.expand(component, JANUARY)

        assert [o.start for o in occurrences] == [
            datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
            datetime(2024, 1, 15, 9, 0, tzinfo=UTC),
            datetime(2024, 1, 29, 9, 0, tzinfo=UTC),
        ]

    def test_expand_when_occurrences_then_distinct_identities_shared_uid(
        self, make_component
    ) -> None:
        """Test three expansions of one component are three distinct occurrences."""
        component = make_component(
            uid="weekly", start=datetime(2024, 1, 1, 9, 0, tzinfo=UTC), rrule="FREQ=WEEKLY"
        )
        window = Window(
            datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 20, tzinfo=UTC), inclusive=False
        )

        occurrences = self.expander.expand(component, window)

        assert len(occurrences) == 3
        assert {o.uid for o in occurrences} == {"weekly"}
        assert len({o.identity for o in occurrences}) == 3

    def test_expand_when_fields_then_copied_and_url_empty(self, make_component) -> None:
        """Test occurrences carry summary/location/description and never a URL."""
        component = make_component(
            start=datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
            rrule="FREQ=WEEKLY;COUNT=1",
            location="Room 5",
            description="Agenda TBD",
            url="https://example.org/event",
        )

        (occurrence,) = self.expander.expand(component, JANUARY)

        assert occurrence.summary == "Board meeting"
        assert occurrence.location == "Room 5"
        assert occurrence.description == "Agenda TBD"
        assert occurrence.url is None
        assert occurrence.rrule is None

    def test_expand_when_keep_rule_then_raw_rule_attached(self, make_component) -> None:
        """Test the listing path attaches the raw rule string."""
        component = make_component(
            start=datetime(2024, 1, 1, 9, 0, tzinfo=UTC), rrule="FREQ=WEEKLY;INTERVAL=2"
        )

        occurrences = self.expander.expand(component, JANUARY, keep_rule=True)

        assert {o.rrule for o in occurrences} == {"FREQ=WEEKLY;INTERVAL=2"}

    def test_expand_when_tzid_then_wall_clock_kept_across_dst(self, make_component) -> None:
        """Test a TZID-anchored weekly event stays at 09:00 local across DST start."""
        component = make_component(
            start=datetime(2024, 3, 4, 9, 0),
            start_tzid="America/Vancouver",
            rrule="FREQ=WEEKLY;COUNT=2",
        )
        window = Window(
            datetime(2024, 3, 1, tzinfo=UTC), datetime(2024, 3, 31, tzinfo=UTC), inclusive=False
        )

        occurrences = self.expander.expand(component, window)

        # PST (UTC-8) before 2024-03-10, PDT (UTC-7) after
        assert [o.start for o in occurrences] == [
            datetime(2024, 3, 4, 17, 0, tzinfo=UTC),
            datetime(2024, 3, 11, 16, 0, tzinfo=UTC),
        ]

    def test_expand_when_naive_start_without_tzid_then_utc(self, make_component) -> None:
        """Test a floating start is treated as UTC."""
        component = make_component(start=datetime(2024, 1, 1, 9, 0), rrule="FREQ=DAILY;COUNT=1")

        (occurrence,) = self.expander.expand(component, JANUARY)

        assert occurrence.start == datetime(2024, 1, 1, 9, 0, tzinfo=UTC)

    def test_expand_when_exdate_then_instance_skipped(self, make_component) -> None:
        """Test EXDATE instants are removed from the series."""
        component = make_component(
            start=datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
            rrule="FREQ=WEEKLY",
            exdates=[datetime(2024, 1, 8, 9, 0, tzinfo=UTC)],
        )
        window = Window(
            datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 20, tzinfo=UTC), inclusive=False
        )

        occurrences = self.expander.expand(component, window)

        assert [o.start.day for o in occurrences] == [1, 15]

    def test_expand_when_window_inclusive_then_boundaries_included(self, make_component) -> None:
        """Test inclusive windows keep occurrences exactly on both boundaries."""
        start = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        component = make_component(start=start, rrule="FREQ=DAILY")

        inclusive = Window(start, start + timedelta(days=2), inclusive=True)
        exclusive = Window(start, start + timedelta(days=2), inclusive=False)

        assert len(self.expander.expand(component, inclusive)) == 3
        assert len(self.expander.expand(component, exclusive)) == 1

    def test_expand_when_over_cap_then_truncated(self, make_component) -> None:
        """Test the per-rule cap limits runaway expansions."""
        expander = RecurrenceExpander(SimpleNamespace(max_occurrences_per_rule=5))
        component = make_component(start=datetime(2024, 1, 1, tzinfo=UTC), rrule="FREQ=HOURLY")

        occurrences = expander.expand(component, JANUARY)

        assert len(occurrences) == 5
        assert occurrences[0].start == datetime(2024, 1, 1, 1, 0, tzinfo=UTC)


class TestMalformedRules:
    """Tests for rule parse failures."""

    @pytest.mark.parametrize("rule", ["FREQ=SOMETIMES", "NOT A RULE", "FREQ=WEEKLY;INTERVAL=x"])
    def test_build_rule_when_malformed_then_parse_error_with_uid(
        self, make_component, rule: str
    ) -> None:
        """Test malformed rules raise RRuleParseError carrying uid and rule text."""
        component = make_component(uid="broken", rrule=rule)

        with pytest.raises(RRuleParseError) as exc_info:
            RecurrenceExpander().build_rule(component)

        assert exc_info.value.uid == "broken"
        assert exc_info.value.rule == rule

    def test_parse_error_is_expansion_error(self) -> None:
        """Test RRuleParseError is caught by handlers of RRuleExpansionError."""
        assert issubclass(RRuleParseError, RRuleExpansionError)


class TestSingleComponents:
    """Tests for non-recurring components."""

    def setup_method(self) -> None:
        self.expander = RecurrenceExpander()

    def test_occurrences_in_window_when_single_inside_then_one(self, make_component) -> None:
        """Test a single component inside the window yields one occurrence."""
        component = make_component(start=datetime(2024, 1, 10, 12, 0, tzinfo=UTC))

        occurrences = self.expander.occurrences_in_window(component, JANUARY, keep_rule=True)

        assert len(occurrences) == 1
        assert occurrences[0].start_iso == "2024-01-10T12:00:00.000Z"
        assert occurrences[0].rrule is None

    def test_occurrences_in_window_when_on_boundary_then_follows_inclusivity(
        self, make_component
    ) -> None:
        """Test a single component exactly on the start boundary follows the flag."""
        start = datetime(2024, 1, 1, tzinfo=UTC)
        component = make_component(start=start)

        open_window = Window(start, start + timedelta(days=1), inclusive=False)
        closed_window = Window(start, start + timedelta(days=1), inclusive=True)

        assert self.expander.occurrences_in_window(component, open_window) == []
        assert len(self.expander.occurrences_in_window(component, closed_window)) == 1
