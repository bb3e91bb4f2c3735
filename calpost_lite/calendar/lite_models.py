"""Data models for calendar occurrence resolution - calpost_lite."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def format_instant(dt: datetime) -> str:
    """Render an instant as ISO-8601 UTC with milliseconds and a Z suffix.

    Naive datetimes are taken as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


class CalendarComponent(BaseModel):
    """A single VEVENT as read from the calendar export.

    Read-only input to the occurrence resolution core.
    """

    uid: str = Field(..., description="Stable identity of the source event")
    summary: str = Field(default="", description="Event title")
    location: Optional[str] = Field(default=None, description="Event location")
    description: Optional[str] = Field(default=None, description="Event description")
    url: Optional[str] = Field(default=None, description="Event URL")

    start: datetime = Field(..., description="DTSTART instant")
    start_tzid: Optional[str] = Field(
        default=None, description="Explicit TZID parameter of DTSTART, if any"
    )
    is_all_day: bool = Field(default=False, description="DTSTART was a DATE value")

    rrule: Optional[str] = Field(default=None, description="Raw RRULE value")
    exdates: list[datetime] = Field(
        default_factory=list, description="EXDATE instants excluded from expansion"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def is_recurring(self) -> bool:
        """Check if the component carries a recurrence rule."""
        return bool(self.rrule)


class Occurrence(BaseModel):
    """One concrete instance of an event at a specific instant.

    ``uid`` is inherited from the source component and is shared by every
    occurrence of a recurring event. Two occurrences are duplicates iff both
    ``uid`` and ``start`` are equal.
    """

    uid: str = Field(..., description="UID of the source component")
    summary: str = Field(default="", description="Event title")
    start: datetime = Field(..., description="Occurrence start instant (UTC)")
    location: Optional[str] = Field(default=None, description="Event location")
    description: Optional[str] = Field(default=None, description="Event description")
    url: Optional[str] = Field(default=None, description="Always empty for produced occurrences")
    rrule: Optional[str] = Field(
        default=None, description="Raw RRULE of the source, for listing/preview only"
    )

    @field_validator("start")
    @classmethod
    def normalize_start(cls, value: datetime) -> datetime:
        """Store starts as aware UTC instants."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_serializer("start")
    def serialize_start(self, dt: datetime) -> str:
        """Serialize start in the wire format used by the listing API."""
        return format_instant(dt)

    @property
    def start_iso(self) -> str:
        """Start instant as ISO-8601 UTC string."""
        return format_instant(self.start)

    @property
    def identity(self) -> tuple[str, str]:
        """Deduplication key: (uid, start instant)."""
        return (self.uid, self.start_iso)

    @property
    def is_recurring(self) -> bool:
        """Check if the occurrence came from a recurring component (listing contexts only)."""
        return bool(self.rrule)


@dataclass(frozen=True)
class Window:
    """An instant range used to select occurrences.

    ``inclusive=True`` is ``[start, end]``; ``inclusive=False`` is ``(start, end)``.
    """

    start: datetime
    end: datetime
    inclusive: bool = False

    def contains(self, instant: datetime) -> bool:
        """Check whether ``instant`` falls inside the window."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        if self.inclusive:
            return self.start <= instant <= self.end
        return self.start < instant < self.end

    @property
    def start_epoch(self) -> int:
        """Window start as whole epoch seconds."""
        return int(self.start.timestamp())

    @property
    def end_epoch(self) -> int:
        """Window end as whole epoch seconds."""
        return int(self.end.timestamp())


class OperationResult(BaseModel):
    """Outcome of a request-triggered post operation."""

    success: bool
    message: str
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return self.model_dump()
