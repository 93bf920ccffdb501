"""
Circuit Breaker for the Redis Backend

Protects request handlers against a hanging or flapping Redis: after
consecutive failures the circuit opens and store calls fail fast until the
reset timeout elapses and a trial call succeeds.
"""

import logging
from typing import Dict, Optional

import pybreaker

from relay.config import settings

logger = logging.getLogger(__name__)


class CircuitBreakerLogListener(pybreaker.CircuitBreakerListener):
    """
    Logging listener for circuit breaker state changes.

    An opened circuit means the backend has been isolated and every
    lifecycle operation answers 500 until it recovers, so it is logged
    at ERROR level.
    """

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state, new_state):
        """
        Handle circuit breaker state changes.

        Args:
            cb: The circuit breaker instance
            old_state: Previous state
            new_state: New state
        """
        level = logging.ERROR if new_state.name == pybreaker.STATE_OPEN else logging.WARNING
        logger.log(
            level,
            f"Circuit breaker state change: {cb.name} transitioned from {old_state.name} to {new_state.name}",
            extra={
                "circuit_breaker": cb.name,
                "old_state": old_state.name,
                "new_state": new_state.name,
                "fail_count": cb.fail_counter,
                "reset_timeout": cb.reset_timeout,
            }
        )


def create_breaker(
    name: str,
    fail_max: Optional[int] = None,
    reset_timeout: Optional[int] = None,
) -> pybreaker.CircuitBreaker:
    """
    Create a circuit breaker with configured thresholds.

    Args:
        name: Service name for the circuit breaker
        fail_max: Consecutive failures before opening (default from settings)
        reset_timeout: Seconds before a trial call (default from settings)

    Returns:
        Configured CircuitBreaker instance
    """
    return pybreaker.CircuitBreaker(
        name=name,
        fail_max=fail_max or settings.circuit_breaker_fail_max,
        reset_timeout=reset_timeout or settings.circuit_breaker_reset_timeout,
        listeners=[CircuitBreakerLogListener()]
    )


# Module-level instances (lazy initialization)
_breakers: Dict[str, pybreaker.CircuitBreaker] = {}


def get_breaker(service_name: str) -> pybreaker.CircuitBreaker:
    """
    Get the shared circuit breaker for a backend service.

    Lazy initializes breakers on first access to avoid import-time side effects.

    Args:
        service_name: Service name (currently only "redis")

    Returns:
        Circuit breaker instance for the service

    Raises:
        ValueError: If service_name is not recognized
    """
    if service_name != "redis":
        raise ValueError(f"Unknown service name: {service_name}. Must be 'redis'")

    if service_name not in _breakers:
        _breakers[service_name] = create_breaker(service_name)
        logger.info("Initialized Redis circuit breaker")
    return _breakers[service_name]


def get_redis_breaker() -> pybreaker.CircuitBreaker:
    """
    Get circuit breaker for Redis.

    Returns:
        Circuit breaker instance for Redis
    """
    return get_breaker("redis")


# Re-export exception for caller handling
from pybreaker import CircuitBreakerError  # noqa: E402

__all__ = [
    "CircuitBreakerLogListener",
    "create_breaker",
    "get_breaker",
    "get_redis_breaker",
    "CircuitBreakerError",
]
