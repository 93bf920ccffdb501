"""
Middleware Module
ASGI middleware for request processing
"""

from relay.middleware.admission import AdmissionMiddleware
from relay.middleware.correlation_id import (
    CorrelationIdMiddleware,
    REQUEST_ID_HEADER,
    correlation_id_options,
    get_correlation_id,
)
from relay.middleware.security_headers import SecurityHeadersMiddleware, SECURITY_HEADERS

__all__ = [
    "AdmissionMiddleware",
    "CorrelationIdMiddleware",
    "REQUEST_ID_HEADER",
    "correlation_id_options",
    "get_correlation_id",
    "SecurityHeadersMiddleware",
    "SECURITY_HEADERS",
]
