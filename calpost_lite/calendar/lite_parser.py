"""iCalendar export parser - calpost_lite version.

Turns the VEVENTs of a calendar export into CalendarComponents. Recurrence
is not expanded here; the raw RRULE text is carried through for
RecurrenceExpander.
"""

import logging
import re
from collections import defaultdict
from datetime import UTC, date, datetime, time
from typing import Any, Optional

from icalendar import Calendar, Event as ICalEvent

from calpost_lite.calendar.lite_models import CalendarComponent

logger = logging.getLogger(__name__)

# UNTIL without a trailing Z; dateutil rejects it against an aware DTSTART
_FLOATING_UNTIL = re.compile(r"UNTIL=(\d{8})(T\d{6})?(?=;|$)")


def _normalize_until(rule: str) -> str:
    """Rewrite floating UNTIL values as UTC.

    A date-only UNTIL covers the whole day, so it becomes 23:59:59Z.
    """

    def _replace(match: re.Match[str]) -> str:
        day, clock = match.group(1), match.group(2)
        return f"UNTIL={day}{clock or 'T235959'}Z"

    return _FLOATING_UNTIL.sub(_replace, rule)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _to_datetime(value: date | datetime) -> datetime:
    """Promote DATE values to midnight UTC; leave datetimes as icalendar decoded them."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=UTC)


class LiteICSParser:
    """Parses calendar export text into CalendarComponents."""

    def parse(self, ics_content: str) -> list[CalendarComponent]:
        """Parse ICS text into components.

        VEVENTs without UID or DTSTART are skipped with a warning. Overridden
        instances (RECURRENCE-ID) are kept as their own components and their
        original slot is excluded from the master series.

        Args:
            ics_content: Raw iCalendar text

        Returns:
            Parsed components in document order

        Raises:
            ValueError: If the text is not an iCalendar document
        """
        if not ics_content or not ics_content.strip():
            logger.warning("Empty ICS content provided")
            return []

        calendar = Calendar.from_ical(ics_content)

        components: list[CalendarComponent] = []
        overridden: dict[str, list[datetime]] = defaultdict(list)

        for vevent in calendar.walk("VEVENT"):
            recurrence_id = vevent.get("RECURRENCE-ID")
            if recurrence_id is not None and vevent.get("UID"):
                overridden[str(vevent.get("UID"))].append(_to_datetime(recurrence_id.dt))

            component = self.parse_event(vevent)
            if component is not None:
                components.append(component)

        if overridden:
            components = [self._exclude_overridden(c, overridden) for c in components]

        logger.debug(
            "Parsed %d components (%d recurring)",
            len(components),
            sum(1 for c in components if c.is_recurring),
        )
        return components

    def parse_event(self, vevent: ICalEvent) -> Optional[CalendarComponent]:
        """Parse one VEVENT, returning None if it lacks the required properties."""
        uid = vevent.get("UID")
        dtstart = vevent.get("DTSTART")
        if not uid or dtstart is None:
            logger.warning("Skipping VEVENT without UID or DTSTART (uid=%s)", uid)
            return None

        raw_start = dtstart.dt
        is_all_day = not isinstance(raw_start, datetime)
        start_tzid = None if is_all_day else dtstart.params.get("TZID")

        rrule = None
        rrule_props = _as_list(vevent.get("RRULE"))
        if rrule_props and vevent.get("RECURRENCE-ID") is None:
            if len(rrule_props) > 1:
                logger.warning("Event %s has %d RRULEs; using the first", uid, len(rrule_props))
            rrule = _normalize_until(rrule_props[0].to_ical().decode())

        try:
            return CalendarComponent(
                uid=str(uid),
                summary=str(vevent.get("SUMMARY", "")),
                location=self._optional_text(vevent.get("LOCATION")),
                description=self._optional_text(vevent.get("DESCRIPTION")),
                url=self._optional_text(vevent.get("URL")),
                start=_to_datetime(raw_start),
                start_tzid=str(start_tzid) if start_tzid else None,
                is_all_day=is_all_day,
                rrule=rrule,
                exdates=self._collect_exdates(vevent),
            )
        except ValueError as e:
            logger.warning("Failed to parse event %s: %s", uid, e)
            return None

    @staticmethod
    def _optional_text(value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def _collect_exdates(vevent: ICalEvent) -> list[datetime]:
        """Flatten every EXDATE property (single or repeated) into datetimes."""
        exdates: list[datetime] = []
        for prop in _as_list(vevent.get("EXDATE")):
            for entry in getattr(prop, "dts", []):
                exdates.append(_to_datetime(entry.dt))
        return exdates

    @staticmethod
    def _exclude_overridden(
        component: CalendarComponent, overridden: dict[str, list[datetime]]
    ) -> CalendarComponent:
        slots = overridden.get(component.uid)
        if not component.is_recurring or not slots:
            return component
        return component.model_copy(update={"exdates": [*component.exdates, *slots]})


def parse_ics(ics_content: str) -> list[CalendarComponent]:
    """Module-level convenience wrapper around LiteICSParser.parse."""
    return LiteICSParser().parse(ics_content)
