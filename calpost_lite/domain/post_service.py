"""Request-mode operations: fetch, select, deduplicate, post.

Each operation fetches its own calendar snapshot, so there is no event state
shared between requests. Posting within one operation is sequential.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional

from calpost_lite.calendar.lite_fetcher import CalendarExportFetcher, CalendarSnapshot
from calpost_lite.calendar.lite_models import Occurrence, OperationResult, Window, format_instant
from calpost_lite.core.timezone_utils import ensure_utc, now_utc
from calpost_lite.domain.occurrence_merger import OccurrenceMerger
from calpost_lite.domain.occurrence_preview import NextOccurrencePreviewer
from calpost_lite.domain.window_selector import (
    DEFAULT_LIST_DAYS,
    MAX_LIST_DAYS,
    NEXT_EVENT_DAYS,
    WindowSelector,
    day_window,
    format_day_label,
    general_upcoming_window,
    list_range_window,
    next_event_window,
    parse_day_offsets,
)
from calpost_lite.mastodon.poster import BatchPolicy, BatchPostResult, MastodonPoster

logger = logging.getLogger(__name__)


class EventNotFoundError(LookupError):
    """No occurrence matches the requested (uid, start) identity."""


def _pluralize_events(count: int) -> str:
    return f"{count} {'event' if count == 1 else 'events'}"


class CalendarPostService:
    """Runs the post and listing operations against a calendar and an instance."""

    def __init__(
        self,
        fetcher: CalendarExportFetcher,
        poster: MastodonPoster,
        selector: Optional[WindowSelector] = None,
        previewer: Optional[NextOccurrencePreviewer] = None,
        days_ahead: str = "1",
        batch_policy: BatchPolicy | str = BatchPolicy.ABORT,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        """Initialize service.

        Args:
            fetcher: Calendar export fetcher
            poster: Mastodon poster
            selector: Window selector (default: skip malformed rules, UTC days)
            previewer: Next-occurrence previewer for the listing
            days_ahead: Raw comma-separated day offsets for day-targeted posting
            batch_policy: Abort or continue after a failed post
            clock: Source of "now"
        """
        self.fetcher = fetcher
        self.poster = poster
        self.selector = selector or WindowSelector()
        self.previewer = previewer or NextOccurrencePreviewer()
        self.days_ahead = days_ahead
        self.batch_policy = BatchPolicy(batch_policy)
        self.clock = clock
        self._merger = OccurrenceMerger()

    @classmethod
    def from_config(cls, config: Any, client: Any = None) -> "CalendarPostService":
        """Wire the service from a Config object.

        Args:
            config: Loaded Config
            client: Optional httpx.AsyncClient shared by fetcher and poster
        """
        return cls(
            fetcher=CalendarExportFetcher.from_config(config, client=client),
            poster=MastodonPoster.from_config(config, client=client),
            selector=WindowSelector.from_config(config),
            previewer=NextOccurrencePreviewer(config.display_timezone),
            days_ahead=config.days_ahead,
            batch_policy=config.batch_policy,
        )

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else self.clock()

    async def _fetch(self, *windows: Window) -> CalendarSnapshot:
        start = min(w.start_epoch for w in windows)
        end = max(w.end_epoch for w in windows)
        return await self.fetcher.fetch_components(start, end)

    async def _post(self, occurrences: list[Occurrence]) -> BatchPostResult:
        """Post in order; under ABORT a failure is re-raised once recorded."""
        result = await self.poster.post_batch(occurrences, self.batch_policy)
        if result.aborted and result.first_error is not None:
            raise result.first_error
        return result

    async def check_and_post_events(self, now: Optional[datetime] = None) -> BatchPostResult:
        """General-upcoming: post everything in the next 360 hours.

        Raises:
            CalendarFetchError: If the calendar cannot be fetched
            MastodonPostError: On the first failed post under BatchPolicy.ABORT
        """
        now = self._now(now)
        snapshot = await self._fetch(general_upcoming_window(now))
        occurrences = self.selector.select_upcoming(snapshot.components, now)
        logger.info("General check found %d occurrences to post", len(occurrences))
        return await self._post(occurrences)

    async def check_and_post_day_events(
        self,
        now: Optional[datetime] = None,
        days_ahead: Optional[str] = None,
    ) -> OperationResult:
        """Day-targeted: post the occurrences on each configured day offset."""
        now = self._now(now)
        offsets = parse_day_offsets(days_ahead if days_ahead is not None else self.days_ahead)
        label = format_day_label(offsets)

        windows = [day_window(now, offset, self.selector.local_timezone) for offset in offsets]
        snapshot = await self._fetch(*windows)
        occurrences = self.selector.select_days(snapshot.components, now, offsets)

        if not occurrences:
            logger.info("%s: no events to post", label)
            return OperationResult(success=True, message=f"{label}: No events found", count=0)

        result = await self._post(occurrences)
        message = f"{label}: Posted {_pluralize_events(result.count)}"
        if result.failed:
            message += f", {len(result.failed)} failed"
        return OperationResult(success=not result.failed, message=message, count=result.count)

    async def check_and_post_next_event(self, now: Optional[datetime] = None) -> OperationResult:
        """Next-event: post the single earliest occurrence strictly after now."""
        now = self._now(now)
        snapshot = await self._fetch(next_event_window(now))
        occurrence = self.selector.select_next_event(snapshot.components, now)

        if occurrence is None:
            return OperationResult(
                success=True,
                message=f"No events found in next {NEXT_EVENT_DAYS} days",
                count=0,
            )

        result = await self._post([occurrence])
        if result.failed:
            return OperationResult(
                success=False, message=result.failed[0].error or "Post failed", count=0
            )
        return OperationResult(success=True, message="Posted next upcoming event", count=1)

    async def list_occurrences(
        self,
        days: int = DEFAULT_LIST_DAYS,
        now: Optional[datetime] = None,
    ) -> tuple[list[Occurrence], CalendarSnapshot]:
        """List-range: sorted occurrences with raw rules attached.

        Raises:
            ValueError: If ``days`` is outside 1..28
        """
        now = self._now(now)
        window = list_range_window(now, days)
        snapshot = await self._fetch(window)
        return self.selector.select_listing(snapshot.components, now, days), snapshot

    async def get_web_events(
        self,
        days: int = DEFAULT_LIST_DAYS,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Listing payload for the web API: events plus fetch diagnostics."""
        now = self._now(now)
        occurrences, snapshot = await self.list_occurrences(days, now)

        events = []
        for occurrence in occurrences:
            event = occurrence.model_dump()
            estimate = self.previewer.estimate(occurrence, now) if occurrence.rrule else None
            event["next_occurrence"] = format_instant(estimate) if estimate else None
            events.append(event)

        return {"events": events, "debug": snapshot.debug}

    async def resolve_event(
        self,
        uid: str,
        start: datetime | str,
        now: Optional[datetime] = None,
    ) -> Occurrence:
        """Find an occurrence by identity in a fresh listing of the maximum range.

        Raises:
            EventNotFoundError: If nothing matches
            ValueError: If ``start`` is not a valid ISO-8601 string
        """
        occurrences, _ = await self.list_occurrences(MAX_LIST_DAYS, now)
        occurrence = self._merger.find_by_identity(occurrences, uid, start)
        if occurrence is None:
            raise EventNotFoundError(f"No event {uid} starting at {start}")
        return occurrence

    async def post_event(self, payload: dict[str, Any]) -> Occurrence:
        """Post one event given either a full occurrence payload or a (uid, start) identity.

        A payload with a ``summary`` is posted as given. Otherwise ``uid`` and
        ``start`` are resolved against a fresh listing.

        Raises:
            ValueError: If the payload is neither shape (pydantic errors included)
            EventNotFoundError: If an identity does not resolve
            MastodonPostError: If the post fails
        """
        if not isinstance(payload, dict):
            raise ValueError("Event payload must be a JSON object")

        if "summary" in payload:
            occurrence = Occurrence.model_validate(payload)
        elif payload.get("uid") and payload.get("start"):
            occurrence = await self.resolve_event(str(payload["uid"]), str(payload["start"]))
        else:
            raise ValueError("Event payload needs either summary and start, or uid and start")

        await self.poster.post_occurrence(occurrence)
        return occurrence
