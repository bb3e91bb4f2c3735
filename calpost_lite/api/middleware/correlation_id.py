"""Request correlation ID middleware.

Every request gets an ID taken from the client's X-Request-ID or
X-Correlation-ID header, or a fresh UUID when neither carries a usable
value. The ID is stored in a context variable so log records emitted while
handling the request carry it, and it is echoed back in the X-Request-ID
response header.
"""

import logging
import re
import uuid
from collections.abc import Callable
from typing import Any

from aiohttp import web

from calpost_lite.core.request_context import request_id_var

logger = logging.getLogger(__name__)

# Client-supplied IDs are echoed into headers and logs
MAX_REQUEST_ID_LENGTH = 128
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:;=/+-]+$")


def _client_request_id(request: web.Request) -> str | None:
    """First usable ID from X-Request-ID or X-Correlation-ID, if any."""
    for header in ("X-Request-ID", "X-Correlation-ID"):
        value = request.headers.get(header, "").strip()
        if not value:
            continue
        if len(value) <= MAX_REQUEST_ID_LENGTH and _REQUEST_ID_PATTERN.match(value):
            return value
        logger.debug("Ignoring malformed %s header", header)
    return None


@web.middleware
async def correlation_id_middleware(
    request: web.Request, handler: Callable[[web.Request], Any]
) -> web.StreamResponse:
    """Extract or generate correlation ID for request tracking.

    Args:
        request: aiohttp request object
        handler: Next handler in middleware chain

    Returns:
        Response with correlation ID added to headers
    """
    correlation_id = _client_request_id(request) or str(uuid.uuid4())

    token = request_id_var.set(correlation_id)
    request["correlation_id"] = correlation_id
    try:
        response = await handler(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = correlation_id
    return response

