"""Per-request correlation ID context.

The HTTP middleware sets the ID; logging and outbound HTTP read it.
"""

from contextvars import ContextVar

NO_REQUEST_ID = "no-request-id"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get current request correlation ID from context.

    Returns:
        Current request correlation ID, or "no-request-id" if not set
    """
    request_id = request_id_var.get()
    return request_id if request_id else NO_REQUEST_ID
