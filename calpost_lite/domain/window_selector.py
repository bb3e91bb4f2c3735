"""Window construction and occurrence selection for the four request modes.

Modes, all measured from ``now`` (the instant the operation begins):

- general-upcoming: (now, now + 360h), exclusive
- day-targeted: [start_of_day + d, start_of_day + d + 1], inclusive, per offset
- next-event: [now, now + 14 days], inclusive, then strictly after now
- list-range: (now, now + D days), exclusive, sorted, rules attached
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Optional

from calpost_lite.calendar.lite_models import CalendarComponent, Occurrence, Window
from calpost_lite.calendar.lite_rrule_expander import RecurrenceExpander, RRuleExpansionError
from calpost_lite.core.timezone_utils import ensure_utc, resolve_timezone
from calpost_lite.domain.occurrence_merger import deduplicate_occurrences

logger = logging.getLogger(__name__)

GENERAL_UPCOMING_HOURS = 360
NEXT_EVENT_DAYS = 14

MIN_DAY_OFFSET = 0
MAX_DAY_OFFSET = 15
MAX_DAY_OFFSETS = 4
DEFAULT_DAY_OFFSETS = (1,)

MIN_LIST_DAYS = 1
MAX_LIST_DAYS = 28
DEFAULT_LIST_DAYS = 14

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class RuleErrorPolicy(str, Enum):
    """What to do when one component's recurrence rule cannot be expanded."""

    SKIP = "skip"
    ABORT = "abort"


def _parse_leading_int(token: str) -> Optional[int]:
    match = _LEADING_INT.match(token)
    return int(match.group(1)) if match else None


def parse_day_offsets(raw: Optional[str]) -> list[int]:
    """Normalize a comma-separated day-offset string.

    Tokens are read as leading integers; values outside 0..15 and
    non-numeric tokens are dropped; at most the first four accepted values
    are kept; the result is deduplicated and sorted. Never raises: an empty
    result falls back to ``[1]``.

    >>> parse_day_offsets("1,1,2,abc,20,-1")
    [1, 2]
    >>> parse_day_offsets("")
    [1]
    """
    accepted: list[int] = []
    for token in (raw or "").split(","):
        value = _parse_leading_int(token)
        if value is None or not MIN_DAY_OFFSET <= value <= MAX_DAY_OFFSET:
            continue
        accepted.append(value)

    offsets = sorted(set(accepted[:MAX_DAY_OFFSETS]))
    if not offsets:
        if raw:
            logger.debug("No usable day offsets in %r; using default %s", raw, DEFAULT_DAY_OFFSETS)
        return list(DEFAULT_DAY_OFFSETS)
    return offsets


def format_day_label(offsets: list[int]) -> str:
    """Human-readable label for a set of day offsets ("1 day", "3 days", "0,2 days")."""
    if len(offsets) == 1:
        day = offsets[0]
        return f"{day} {'day' if day == 1 else 'days'}"
    return f"{','.join(str(d) for d in offsets)} days"


def general_upcoming_window(now: datetime) -> Window:
    """Window for the baseline post-check."""
    now = ensure_utc(now)
    return Window(now, now + timedelta(hours=GENERAL_UPCOMING_HOURS), inclusive=False)


def day_window(now: datetime, offset: int, local_timezone: str | None = None) -> Window:
    """Window covering one local calendar day ``offset`` days after today.

    Day boundaries are local midnights in ``local_timezone`` (default UTC),
    so DST transitions produce 23- or 25-hour days rather than shifted ones.
    """
    tz = resolve_timezone(local_timezone)
    today = ensure_utc(now).astimezone(tz).date()
    day = today + timedelta(days=offset)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return Window(ensure_utc(start), ensure_utc(end), inclusive=True)


def next_event_window(now: datetime) -> Window:
    """Window for the next-event search (inclusive of both ends)."""
    now = ensure_utc(now)
    return Window(now, now + timedelta(days=NEXT_EVENT_DAYS), inclusive=True)


def list_range_window(now: datetime, days: int) -> Window:
    """Window for the listing API.

    Raises:
        ValueError: If ``days`` is outside 1..28
    """
    if not MIN_LIST_DAYS <= days <= MAX_LIST_DAYS:
        raise ValueError(f"days must be between {MIN_LIST_DAYS} and {MAX_LIST_DAYS}")
    now = ensure_utc(now)
    return Window(now, now + timedelta(days=days), inclusive=False)


class WindowSelector:
    """Applies mode-specific windows to raw calendar components."""

    def __init__(
        self,
        expander: Optional[RecurrenceExpander] = None,
        rule_error_policy: RuleErrorPolicy | str = RuleErrorPolicy.SKIP,
        local_timezone: str | None = None,
    ):
        """Initialize selector.

        Args:
            expander: Recurrence expander (a default one is created if omitted)
            rule_error_policy: Skip or abort when a component's rule is malformed
            local_timezone: Timezone defining calendar-day boundaries
        """
        self.expander = expander or RecurrenceExpander()
        self.rule_error_policy = RuleErrorPolicy(rule_error_policy)
        self.local_timezone = local_timezone

    @classmethod
    def from_config(cls, config: Any) -> WindowSelector:
        """Build a selector from a Config-like object."""
        return cls(
            rule_error_policy=getattr(config, "rule_error_policy", RuleErrorPolicy.SKIP),
            local_timezone=getattr(config, "local_timezone", None),
        )

    def apply(
        self,
        components: Iterable[CalendarComponent],
        window: Window,
        keep_rule: bool = False,
    ) -> list[Occurrence]:
        """Resolve every component against ``window`` into a flat occurrence list.

        Raises:
            RRuleExpansionError: Only under RuleErrorPolicy.ABORT
        """
        occurrences: list[Occurrence] = []
        for component in components:
            try:
                occurrences.extend(
                    self.expander.occurrences_in_window(component, window, keep_rule=keep_rule)
                )
            except RRuleExpansionError as e:
                if self.rule_error_policy is RuleErrorPolicy.ABORT:
                    raise
                logger.warning("Skipping component %s: %s", e.uid or component.uid, e)
        return occurrences

    def select_upcoming(
        self, components: Iterable[CalendarComponent], now: datetime
    ) -> list[Occurrence]:
        """General-upcoming mode: everything in the next 360 hours."""
        return self.apply(components, general_upcoming_window(now))

    def select_days(
        self,
        components: Iterable[CalendarComponent],
        now: datetime,
        offsets: list[int],
    ) -> list[Occurrence]:
        """Day-targeted mode: each offset evaluated independently, then deduplicated."""
        components = list(components)
        collected: list[Occurrence] = []
        for offset in offsets:
            window = day_window(now, offset, self.local_timezone)
            collected.extend(self.apply(components, window))
        return deduplicate_occurrences(collected)

    def select_next_event(
        self, components: Iterable[CalendarComponent], now: datetime
    ) -> Optional[Occurrence]:
        """Next-event mode: earliest occurrence strictly after ``now``.

        The enumeration window is inclusive so an occurrence exactly at the
        14-day boundary is found; an occurrence exactly at ``now`` is then
        dropped. Equal starts keep their order of first appearance.
        """
        now = ensure_utc(now)
        candidates = [
            occurrence
            for occurrence in self.apply(components, next_event_window(now))
            if occurrence.start > now
        ]
        if not candidates:
            return None
        candidates.sort(key=lambda occurrence: occurrence.start)
        return candidates[0]

    def select_listing(
        self,
        components: Iterable[CalendarComponent],
        now: datetime,
        days: int = DEFAULT_LIST_DAYS,
    ) -> list[Occurrence]:
        """List-range mode: sorted occurrences with raw rules attached."""
        occurrences = self.apply(components, list_range_window(now, days), keep_rule=True)
        occurrences.sort(key=lambda occurrence: occurrence.start)
        return occurrences
