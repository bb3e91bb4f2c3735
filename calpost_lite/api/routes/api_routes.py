"""Posting and listing routes for calpost_lite."""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from calpost_lite.calendar.lite_fetcher import CalendarFetchError
from calpost_lite.calendar.lite_rrule_expander import RRuleExpansionError
from calpost_lite.domain.post_service import CalendarPostService, EventNotFoundError
from calpost_lite.domain.window_selector import (
    DEFAULT_LIST_DAYS,
    MAX_LIST_DAYS,
    MIN_LIST_DAYS,
    format_day_label,
    parse_day_offsets,
)
from calpost_lite.mastodon.poster import MastodonPostError

logger = logging.getLogger(__name__)

# Failures that end an operation with a 500
OPERATION_ERRORS = (CalendarFetchError, MastodonPostError, RRuleExpansionError)

INVALID_DAYS_MESSAGE = (
    f"Invalid days parameter. Must be between {MIN_LIST_DAYS} and {MAX_LIST_DAYS}."
)


def register_api_routes(app: Any, service: CalendarPostService) -> None:
    """Register posting and listing routes.

    Args:
        app: aiohttp web application
        service: Operation service shared by all handlers
    """

    async def index(_request: Any) -> Any:
        """Liveness text."""
        label = format_day_label(parse_day_offsets(service.days_ahead))
        return web.Response(text=f"Calendar to Mastodon bot is running (day posts: {label})")

    async def post_upcoming(_request: Any) -> Any:
        """Post every occurrence in the general-upcoming window."""
        try:
            result = await service.check_and_post_events()
        except OPERATION_ERRORS as e:
            logger.exception("Calendar check failed")
            return web.Response(text=f"Error: {e}", status=500)

        # Under the continue policy failures come back in the result
        if result.failed:
            message = f"{len(result.failed)} of {len(result.outcomes)} posts failed"
            logger.error("Calendar check: %s", message)
            return web.Response(text=f"Error: {message}", status=500)
        return web.Response(text="Calendar check completed")

    async def post_days(_request: Any) -> Any:
        """Post occurrences on the configured day offsets."""
        try:
            result = await service.check_and_post_day_events()
        except OPERATION_ERRORS as e:
            logger.exception("Day post failed")
            return web.json_response({"success": False, "message": str(e)}, status=500)
        return web.json_response(result.to_dict(), status=200 if result.success else 500)

    async def post_next(_request: Any) -> Any:
        """Post the next upcoming occurrence."""
        try:
            result = await service.check_and_post_next_event()
        except OPERATION_ERRORS as e:
            logger.exception("Next-event post failed")
            return web.json_response({"success": False, "message": str(e)}, status=500)
        return web.json_response(result.to_dict(), status=200 if result.success else 500)

    async def post_event(request: Any) -> Any:
        """Post one event by payload or by (uid, start) identity."""
        try:
            payload = await request.json()
        except ValueError:
            return web.Response(text="Error: invalid json", status=400)

        try:
            occurrence = await service.post_event(payload)
        except EventNotFoundError as e:
            return web.Response(text=f"Error: {e}", status=404)
        except ValueError as e:
            return web.Response(text=f"Error: {e}", status=400)
        except OPERATION_ERRORS as e:
            logger.exception("Single event post failed")
            return web.Response(text=f"Error: {e}", status=500)

        logger.info("Posted single event %s at %s", occurrence.uid, occurrence.start_iso)
        return web.Response(text="Event posted successfully")

    async def list_events(request: Any) -> Any:
        """List upcoming occurrences with next-occurrence estimates."""
        raw_days = request.query.get("days", str(DEFAULT_LIST_DAYS))
        try:
            days = int(raw_days)
        except ValueError:
            days = 0
        if not MIN_LIST_DAYS <= days <= MAX_LIST_DAYS:
            return web.json_response({"error": INVALID_DAYS_MESSAGE}, status=400)

        try:
            payload = await service.get_web_events(days)
        except OPERATION_ERRORS as e:
            logger.exception("Event listing failed")
            return web.json_response({"error": str(e)}, status=500)
        return web.json_response(payload)

    app.router.add_get("/", index)
    app.router.add_post("/post", post_upcoming)
    app.router.add_post("/post/day", post_days)
    app.router.add_post("/post/tomorrow", post_days)
    app.router.add_post("/post/next", post_next)
    app.router.add_post("/post/event", post_event)
    app.router.add_get("/api/events", list_events)

    logger.debug("API routes registered")
