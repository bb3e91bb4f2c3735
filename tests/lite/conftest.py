"""Fixtures shared by the calpost_lite unit and integration tests."""

import json
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from typing import Any, Optional

import httpx
import pytest

from calpost_lite.calendar.lite_models import CalendarComponent, Occurrence
from calpost_lite.core.config_loader import Config


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear time-freezing and debug variables so tests do not leak into each other."""
    for key in ("CALPOST_TEST_TIME", "CALPOST_DEBUG", "CALPOST_LOG_LEVEL", "CALPOST_CONFIG"):
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic 'now' used across selection tests (a Monday)."""
    return datetime(2024, 6, 10, 10, 0, tzinfo=UTC)


@pytest.fixture
def make_component() -> Callable[..., CalendarComponent]:
    """Factory for CalendarComponent with sensible defaults."""

    def _make(
        uid: str = "evt-1",
        start: Optional[datetime] = None,
        rrule: Optional[str] = None,
        summary: str = "Board meeting",
        **kwargs: Any,
    ) -> CalendarComponent:
        return CalendarComponent(
            uid=uid,
            summary=summary,
            start=start or datetime(2024, 6, 11, 18, 0, tzinfo=UTC),
            rrule=rrule,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_occurrence() -> Callable[..., Occurrence]:
    """Factory for Occurrence with sensible defaults."""

    def _make(
        uid: str = "evt-1",
        start: Optional[datetime] = None,
        summary: str = "Board meeting",
        **kwargs: Any,
    ) -> Occurrence:
        return Occurrence(
            uid=uid,
            summary=summary,
            start=start or datetime(2024, 6, 11, 18, 0, tzinfo=UTC),
            **kwargs,
        )

    return _make


@pytest.fixture
def test_config() -> Config:
    """Config pointing at fake endpoints."""
    return Config(
        calendar_export_url="https://dav.example.org/calendars/team/events/?export",
        mastodon_instance_url="https://social.example.org",
        mastodon_access_token="secret-token",
        days_ahead="1",
        local_timezone="UTC",
        display_timezone="America/Vancouver",
    )


class RecordingMastodon:
    """httpx.MockTransport handler that mimics POST /api/v1/statuses."""

    def __init__(self, fail_on: tuple[int, ...] = (), status_code: int = 422) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_on = fail_on
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        call_number = len(self.requests)
        if call_number in self.fail_on:
            return httpx.Response(self.status_code, text="Validation failed: Text can't be blank")
        return httpx.Response(200, json={"id": str(1000 + call_number)})

    @property
    def statuses(self) -> list[str]:
        return [json.loads(r.content)["status"] for r in self.requests]


@pytest.fixture
def mastodon_handler() -> RecordingMastodon:
    """Recording fake Mastodon instance."""
    return RecordingMastodon()


@pytest.fixture
def make_mastodon() -> Callable[..., RecordingMastodon]:
    """Factory for fake Mastodon instances that fail on given call numbers."""
    return RecordingMastodon
