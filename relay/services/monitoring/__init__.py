"""
Monitoring Module
Exports for structured logging, circuit breakers and error tracking
"""

from relay.services.monitoring.logging import setup_logging, CorrelationJsonFormatter
from relay.services.monitoring.circuit_breakers import (
    get_redis_breaker,
    create_breaker,
    CircuitBreakerError,
    CircuitBreakerLogListener,
)
from relay.services.monitoring.error_tracking import init_sentry, capture_backend_error

__all__ = [
    "setup_logging",
    "CorrelationJsonFormatter",
    "get_redis_breaker",
    "create_breaker",
    "CircuitBreakerError",
    "CircuitBreakerLogListener",
    "init_sentry",
    "capture_backend_error",
]
