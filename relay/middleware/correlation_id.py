"""
Correlation ID Middleware
Gives every request an opaque trace identifier, echoed in the X-Request-Id
response header and stamped on every log entry written while serving it
"""

from uuid import uuid4

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id

REQUEST_ID_HEADER = "X-Request-Id"

__all__ = ["CorrelationIdMiddleware", "REQUEST_ID_HEADER", "correlation_id_options", "get_correlation_id"]


def correlation_id_options() -> dict:
    """
    Keyword arguments for ``app.add_middleware(CorrelationIdMiddleware, ...)``.

    A valid client-supplied UUID is reused; anything else is replaced with
    a fresh 32-character hex id.
    """
    return {
        "header_name": REQUEST_ID_HEADER,
        "update_request_header": True,
        "generator": lambda: uuid4().hex,
    }


def get_correlation_id() -> str:
    """
    Get current correlation ID from async context.

    Returns:
        str: The correlation ID or 'none' if not available
    """
    return correlation_id.get() or 'none'
