"""Time source and timezone helpers for calpost_lite."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from typing import ClassVar

logger = logging.getLogger(__name__)

TEST_TIME_ENV_VAR = "CALPOST_TEST_TIME"

# Fallback when a configured timezone name cannot be resolved
DEFAULT_TIMEZONE = "UTC"


class TimezoneResolver:
    """Resolves timezone names (including legacy aliases) to ZoneInfo objects."""

    # Obsolete/deprecated names still found in exported calendars
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "Canada/Pacific": "America/Vancouver",
        "Canada/Eastern": "America/Toronto",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Zulu": "UTC",
        "Z": "UTC",
    }

    def resolve(self, name: str | None) -> zoneinfo.ZoneInfo | None:
        """Return a ZoneInfo for ``name`` or None when it is empty or unknown."""
        if not name:
            return None
        canonical = self.TZ_ALIAS_MAP.get(name, name)
        try:
            return zoneinfo.ZoneInfo(canonical)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r", name)
            return None

    def resolve_or_default(self, name: str | None) -> zoneinfo.ZoneInfo:
        """Return a ZoneInfo for ``name``, falling back to UTC."""
        tz = self.resolve(name)
        if tz is None:
            return zoneinfo.ZoneInfo(DEFAULT_TIMEZONE)
        return tz


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the CALPOST_TEST_TIME environment variable
        (ISO 8601, e.g. "2024-06-10T10:00:00Z"). Naive values are taken as UTC.
        """
        test_time = os.environ.get(TEST_TIME_ENV_VAR)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.UTC)
                return dt.replace(tzinfo=datetime.UTC)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV_VAR, test_time, e)

        return datetime.datetime.now(datetime.UTC)


def ensure_utc(dt: datetime.datetime) -> datetime.datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.UTC)
    return dt.astimezone(datetime.UTC)


_resolver = TimezoneResolver()
_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def resolve_timezone(name: str | None) -> zoneinfo.ZoneInfo:
    """Resolve a timezone name to ZoneInfo, falling back to UTC."""
    return _resolver.resolve_or_default(name)


def resolve_tzid(tzid: str | None) -> zoneinfo.ZoneInfo | None:
    """Resolve a TZID parameter to ZoneInfo, or None when absent or unknown."""
    return _resolver.resolve(tzid)
