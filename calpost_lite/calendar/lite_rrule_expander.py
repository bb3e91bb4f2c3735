"""RRULE expansion logic for calpost_lite.

Expands one calendar component into the occurrences that fall inside a
Window. Recurring components go through dateutil's rule engine; single
components are checked directly against the same Window.
"""

# ruff: noqa: I001
from dataclasses import dataclass
from datetime import UTC, datetime
import logging
from typing import Any, Optional

from dateutil.rrule import rruleset, rrulestr

from calpost_lite.calendar.lite_models import CalendarComponent, Occurrence, Window
from calpost_lite.core.timezone_utils import ensure_utc, resolve_tzid

logger = logging.getLogger(__name__)

# Exceptions dateutil raises for malformed rule text
_RULE_PARSE_ERRORS = (ValueError, TypeError, KeyError, IndexError, AttributeError)


class RRuleExpansionError(Exception):
    """Base exception for RRULE expansion errors."""

    def __init__(self, message: str, uid: Optional[str] = None, rule: Optional[str] = None):
        super().__init__(message)
        self.uid = uid
        self.rule = rule


class RRuleParseError(RRuleExpansionError):
    """Error parsing RRULE string."""


@dataclass
class RRuleExpanderConfig:
    """Configuration for RRULE expansion."""

    max_occurrences_per_rule: int = 1000

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        """Extract RRULE configuration from a settings object (or None for defaults)."""
        return cls(
            max_occurrences_per_rule=getattr(settings, "max_occurrences_per_rule", 1000),
        )


class RecurrenceExpander:
    """Turns calendar components into occurrences inside a window."""

    def __init__(self, settings: Any = None):
        """Initialize expander.

        Args:
            settings: Optional configuration object with RRULE settings
        """
        config = RRuleExpanderConfig.from_settings(settings)
        self.max_occurrences = config.max_occurrences_per_rule

    def anchor_start(self, component: CalendarComponent) -> datetime:
        """Return the component's start localized for rule arithmetic.

        An explicit TZID wins so weekday and wall-clock arithmetic happen in
        that zone. Without one, naive starts are taken as UTC.
        """
        start = component.start
        tz = resolve_tzid(component.start_tzid)
        if tz is not None:
            return start.replace(tzinfo=tz) if start.tzinfo is None else start.astimezone(tz)
        if start.tzinfo is None:
            return start.replace(tzinfo=UTC)
        return start

    def build_rule(self, component: CalendarComponent) -> rruleset:
        """Parse the component's RRULE into a rule set anchored at its start.

        Raises:
            RRuleParseError: If the rule text is missing or malformed
        """
        rule_text = (component.rrule or "").strip()
        if not rule_text:
            raise RRuleParseError(f"Empty RRULE for {component.uid}", component.uid, rule_text)

        try:
            rule_set = rrulestr(rule_text, dtstart=self.anchor_start(component), forceset=True)
        except _RULE_PARSE_ERRORS as e:
            raise RRuleParseError(
                f"Invalid RRULE for {component.uid}: {rule_text!r} ({e})",
                component.uid,
                rule_text,
            ) from e

        for exdate in component.exdates:
            rule_set.exdate(ensure_utc(exdate))

        return rule_set

    def expand(
        self,
        component: CalendarComponent,
        window: Window,
        keep_rule: bool = False,
    ) -> list[Occurrence]:
        """Expand a recurring component into occurrences inside ``window``.

        Args:
            component: Component whose RRULE is present
            window: Selection window; its inclusivity applies to both ends
            keep_rule: Attach the raw rule string to each occurrence (listing)

        Returns:
            Occurrences in ascending start order

        Raises:
            RRuleParseError: If the rule is malformed
            RRuleExpansionError: If enumeration fails
        """
        rule_set = self.build_rule(component)

        try:
            instants = rule_set.between(window.start, window.end, inc=window.inclusive)
        except _RULE_PARSE_ERRORS as e:
            raise RRuleExpansionError(
                f"Failed to expand RRULE for {component.uid}: {e}",
                component.uid,
                component.rrule,
            ) from e

        if len(instants) > self.max_occurrences:
            logger.warning(
                "RRULE for %s produced %d occurrences; keeping first %d",
                component.uid,
                len(instants),
                self.max_occurrences,
            )
            instants = instants[: self.max_occurrences]

        occurrences = [
            self._make_occurrence(component, instant, component.rrule if keep_rule else None)
            for instant in instants
        ]
        logger.debug(
            "Expanded %s (%s) to %d occurrences in window %s..%s",
            component.uid,
            component.rrule,
            len(occurrences),
            window.start.isoformat(),
            window.end.isoformat(),
        )
        return occurrences

    def occurrences_in_window(
        self,
        component: CalendarComponent,
        window: Window,
        keep_rule: bool = False,
    ) -> list[Occurrence]:
        """Resolve any component (recurring or single) against ``window``.

        Single components yield one occurrence iff their start falls inside the
        window, using the window's inclusivity.
        """
        if component.is_recurring:
            return self.expand(component, window, keep_rule=keep_rule)

        start = self.anchor_start(component)
        if window.contains(start):
            return [self._make_occurrence(component, start, None)]
        return []

    @staticmethod
    def _make_occurrence(
        component: CalendarComponent,
        instant: datetime,
        rule: Optional[str],
    ) -> Occurrence:
        return Occurrence(
            uid=component.uid,
            summary=component.summary,
            start=ensure_utc(instant),
            location=component.location,
            description=component.description,
            url=None,
            rrule=rule,
        )
