"""Announcement text for a single occurrence.

Layout, one item per line::

    <header>                          (optional)
    <summary>
    Monday, Jun. 10, 2024             (date in the primary zone)
    9:00 AM PT | 12:00 PM ET | 16:00 UTC
    <location>                        (omitted when it looks like a URL)

    <footer>                          (optional)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from calpost_lite.calendar.lite_models import Occurrence
from calpost_lite.core.timezone_utils import ensure_utc, resolve_timezone

logger = logging.getLogger(__name__)

_URL_LIKE = re.compile(r"\w+\.\w+/\w+")


@dataclass(frozen=True)
class ZoneLabel:
    """A timezone rendered in the times line, e.g. ("America/Toronto", "ET")."""

    timezone: str
    label: str


DEFAULT_ZONES = (
    ZoneLabel("America/Vancouver", "PT"),
    ZoneLabel("America/Toronto", "ET"),
)


def format_time_12h(dt: datetime) -> str:
    """Format as 12-hour time without a leading zero ("9:05 AM").

    Built by hand since %-I is not portable across platforms.
    """
    hour = dt.hour % 12 or 12
    period = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {period}"


def format_long_date(dt: datetime) -> str:
    """Format as "Monday, Jun. 10, 2024"."""
    return f"{dt.strftime('%A')}, {dt.strftime('%b')}. {dt.day}, {dt.year}"


def looks_like_url(location: str) -> bool:
    """Locations that are links (video calls, etc.) are left out of the status."""
    return "://" in location or _URL_LIKE.search(location) is not None


@dataclass
class StatusFormatter:
    """Renders an Occurrence as Mastodon status text."""

    header: str = ""
    footer: str = ""
    zones: tuple[ZoneLabel, ...] = field(default=DEFAULT_ZONES)

    @classmethod
    def from_config(cls, config: Any) -> "StatusFormatter":
        """Build a formatter from a Config-like object.

        The configured display timezone becomes the primary (date) zone.
        """
        zones = DEFAULT_ZONES
        display = getattr(config, "display_timezone", None)
        if display and display != DEFAULT_ZONES[0].timezone:
            zones = (ZoneLabel(display, _zone_abbreviation(display)), *DEFAULT_ZONES[1:])
        return cls(
            header=getattr(config, "status_header", "") or "",
            footer=getattr(config, "status_footer", "") or "",
            zones=zones,
        )

    def times_line(self, start: datetime) -> str:
        """Start time in every configured zone plus 24-hour UTC."""
        parts = [
            f"{format_time_12h(start.astimezone(resolve_timezone(zone.timezone)))} {zone.label}"
            for zone in self.zones
        ]
        parts.append(f"{start.strftime('%H:%M')} UTC")
        return " | ".join(parts)

    def format(self, occurrence: Occurrence) -> str:
        """Build the status text for one occurrence."""
        start = ensure_utc(occurrence.start)
        primary_tz = resolve_timezone(self.zones[0].timezone if self.zones else None)

        lines: list[str] = []
        if self.header:
            lines.append(self.header)
        lines.append(occurrence.summary)
        lines.append(format_long_date(start.astimezone(primary_tz)))
        lines.append(self.times_line(start))

        location: Optional[str] = occurrence.location
        if location and not looks_like_url(location):
            lines.append(location)

        if self.footer:
            lines.append("")
            lines.append(self.footer)

        return "\n".join(lines)


def _zone_abbreviation(timezone: str) -> str:
    """Short label for a zone: its tzname today, or the city part of the name."""
    abbreviation = datetime.now(resolve_timezone(timezone)).tzname() or ""
    if abbreviation and not abbreviation.startswith(("+", "-")):
        return abbreviation
    return timezone.rsplit("/", 1)[-1].replace("_", " ")
