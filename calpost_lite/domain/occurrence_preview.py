"""Best-effort "next occurrence" estimate for the event listing.

This is a display hint, not a source of truth. It re-reads the raw RRULE and
the occurrence's own start, and understands only two pattern families:

- WEEKLY with an optional INTERVAL
- MONTHLY with a single BYDAY weekday and a positive BYSETPOS

Everything else yields None so the listing can show "no future occurrence
computed" instead of a wrong date. It does not consult RecurrenceExpander and
may disagree with it (COUNT, UNTIL, EXDATE and multi-day BYDAY are ignored).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from calpost_lite.calendar.lite_models import Occurrence
from calpost_lite.core.timezone_utils import ensure_utc, resolve_timezone

logger = logging.getLogger(__name__)

# Sunday-first weekday numbering
WEEKDAY_CODES: dict[str, int] = {"SU": 0, "MO": 1, "TU": 2, "WE": 3, "TH": 4, "FR": 5, "SA": 6}


def parse_rule_parts(rule: Optional[str]) -> dict[str, str]:
    """Split a raw RRULE into upper-cased KEY -> value pairs."""
    parts: dict[str, str] = {}
    if not rule:
        return parts
    text = rule.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:") :]
    for part in text.split(";"):
        key, sep, value = part.partition("=")
        if sep and key.strip() and value.strip():
            parts[key.strip().upper()] = value.strip()
    return parts


def _sunday_first_weekday(day: date) -> int:
    return day.isoweekday() % 7


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class NextOccurrencePreviewer:
    """Estimates when a recurring occurrence's pattern next happens."""

    def __init__(self, display_timezone: str | None = None):
        """Initialize previewer.

        Args:
            display_timezone: Zone whose calendar days and wall-clock times are used
        """
        self.tz = resolve_timezone(display_timezone)

    def estimate(self, occurrence: Occurrence, now: datetime) -> Optional[datetime]:
        """Estimate the next occurrence after ``now`` for a listed occurrence."""
        return self.estimate_from_rule(occurrence.rrule, occurrence.start, now)

    def estimate_from_rule(
        self,
        rule: Optional[str],
        start: datetime,
        now: datetime,
    ) -> Optional[datetime]:
        """Estimate the next occurrence from a raw rule and an anchor start.

        Returns:
            Aware datetime in the display timezone, or None for unsupported patterns
        """
        parts = parse_rule_parts(rule)
        freq = parts.get("FREQ", "").upper()
        start_local = ensure_utc(start).astimezone(self.tz)
        now_local = ensure_utc(now).astimezone(self.tz)

        if freq == "WEEKLY":
            interval = _parse_int(parts.get("INTERVAL")) or 1
            return self._next_weekly(start_local, now_local, interval)

        if freq == "MONTHLY" and "BYDAY" in parts and "BYSETPOS" in parts:
            return self._next_monthly_by_setpos(
                start_local, now_local, parts["BYDAY"], parts["BYSETPOS"]
            )

        logger.debug("No preview for rule %r", rule)
        return None

    def _next_weekly(
        self, start_local: datetime, now_local: datetime, interval: int
    ) -> datetime:
        target = _sunday_first_weekday(start_local.date())
        candidate = now_local.date() + timedelta(days=1)
        while _sunday_first_weekday(candidate) != target:
            candidate += timedelta(days=1)

        if interval > 1:
            elapsed_weeks = (candidate - start_local.date()).days // 7
            remainder = elapsed_weeks % interval
            if remainder:
                candidate += timedelta(weeks=interval - remainder)

        return datetime.combine(candidate, start_local.time(), tzinfo=self.tz)

    def _next_monthly_by_setpos(
        self,
        start_local: datetime,
        now_local: datetime,
        byday: str,
        bysetpos: str,
    ) -> Optional[datetime]:
        target = WEEKDAY_CODES.get(byday.strip().upper())
        ordinal = _parse_int(bysetpos)
        # "last Friday" (negative) and ordinal-prefixed/multi-day BYDAY are not handled
        if target is None or ordinal is None or ordinal < 1:
            return None

        month_start = (now_local.date().replace(day=1) + timedelta(days=32)).replace(day=1)
        day = month_start
        seen = 0
        while day.month == month_start.month:
            if _sunday_first_weekday(day) == target:
                seen += 1
                if seen == ordinal:
                    return datetime.combine(day, start_local.time(), tzinfo=self.tz)
            day += timedelta(days=1)
        return None
