"""Middleware components for request processing.

Provides request correlation ID tracking so log lines for one request can be
grouped together.
"""

from calpost_lite.core.request_context import get_request_id

from .correlation_id import correlation_id_middleware

__all__ = ["correlation_id_middleware", "get_request_id"]
