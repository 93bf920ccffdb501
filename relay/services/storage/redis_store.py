"""
Redis Secret Store

Redis-backed SecretStore. Reservation uses SET NX; attach and consume are Lua
scripts so each three-way decision is evaluated and applied in one step on
the Redis server, never as a read followed by a separate write.

Key format: msg:{code}
"""

from datetime import timedelta
from typing import Optional, Tuple

import pybreaker
import redis
import structlog

from relay.services.monitoring.circuit_breakers import get_redis_breaker
from relay.services.storage.base import AttachOutcome, SecretStore, StoreError, message_key

logger = structlog.get_logger(__name__)

# 1 = attached, 0 = already populated, -1 = no such key
ATTACH_SCRIPT = """
local v = redis.call('GET', KEYS[1])
if not v then return -1 end
if v ~= '' then return 0 end
redis.call('SET', KEYS[1], ARGV[1], 'PX', ARGV[2])
return 1
"""

# Deletes the key whatever its value; a reserved-empty record reads as absent.
CONSUME_SCRIPT = """
local v = redis.call('GET', KEYS[1])
if not v then return false end
redis.call('DEL', KEYS[1])
if v == '' then return false end
return v
"""

_ATTACH_RESULTS = {
    1: AttachOutcome.ATTACHED,
    0: AttachOutcome.CONFLICT,
    -1: AttachOutcome.NOT_FOUND,
}


def _ttl_ms(ttl: timedelta) -> int:
    return max(1, int(ttl.total_seconds() * 1000))


def create_redis_client(
    url: str,
    max_connections: int = 10,
    socket_timeout: float = 5.0,
    socket_connect_timeout: float = 5.0,
) -> redis.Redis:
    """
    Build a redis-py client from a redis:// or rediss:// URL.

    Socket timeouts bound every store call so a stalled backend surfaces
    as a StoreError instead of blocking the request thread.
    """
    return redis.Redis.from_url(
        url,
        max_connections=max_connections,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_connect_timeout,
        socket_keepalive=True,
        decode_responses=True,
    )


class RedisStore(SecretStore):
    """
    SecretStore on a single authoritative Redis.

    Usage:
        client = create_redis_client(settings.redis_url)
        store = RedisStore(client)
        if store.reserve_code("Ab3dEf7h", timedelta(minutes=30)):
            ...
    """

    def __init__(self, redis_client: redis.Redis, breaker: Optional[pybreaker.CircuitBreaker] = None):
        """
        Initialize store with a Redis client.

        Args:
            redis_client: Redis client instance (from redis-py), decode_responses=True
            breaker: Circuit breaker guarding backend calls.
                     Defaults to the shared "redis" breaker.
        """
        self.redis = redis_client
        self.breaker = breaker or get_redis_breaker()
        self._attach = self.redis.register_script(ATTACH_SCRIPT)
        self._consume = self.redis.register_script(CONSUME_SCRIPT)

    def _call(self, operation: str, func, *args, **kwargs):
        try:
            return self.breaker.call(func, *args, **kwargs)
        except pybreaker.CircuitBreakerError as e:
            logger.warning("redis_circuit_open", operation=operation)
            raise StoreError(f"{operation}: circuit open") from e
        except redis.RedisError as e:
            logger.error("redis_call_failed", operation=operation, error=str(e))
            raise StoreError(f"{operation}: {e}") from e

    def reserve_code(self, code: str, ttl: timedelta) -> bool:
        created = self._call("reserve_code", self.redis.set, message_key(code), "", nx=True, px=_ttl_ms(ttl))
        return bool(created)

    def attach_payload(self, code: str, blob: str, ttl: timedelta) -> AttachOutcome:
        result = self._call(
            "attach_payload",
            self._attach,
            keys=[message_key(code)],
            args=[blob, _ttl_ms(ttl)],
        )
        try:
            return _ATTACH_RESULTS[int(result)]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"attach_payload: unexpected script result {result!r}") from e

    def consume_if_present(self, code: str) -> Tuple[Optional[str], bool]:
        value = self._call("consume_if_present", self._consume, keys=[message_key(code)])
        if not value:
            return None, False
        return value, True

    def ping(self) -> None:
        self._call("ping", self.redis.ping)

    def close(self) -> None:
        self.redis.close()

    def __repr__(self) -> str:
        return f"RedisStore(breaker={self.breaker.name}, state={self.breaker.current_state})"
