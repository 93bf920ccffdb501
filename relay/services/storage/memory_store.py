"""
In-process secret store.

Used when no Redis URL is configured (local development, tests). All
operations run under a single lock, which gives the same all-or-nothing
semantics as the Redis scripts within one process. Expiry is evaluated
lazily against an injectable monotonic clock.
"""

import threading
import time
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

from relay.services.storage.base import AttachOutcome, SecretStore, message_key


class MemoryStore(SecretStore):
    """Dictionary-backed SecretStore with TTL support."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Dict[str, Tuple[str, float]] = {}

    def _live_value(self, key: str) -> Optional[str]:
        # Caller must hold the lock.
        record = self._records.get(key)
        if record is None:
            return None
        value, expires_at = record
        if self._clock() >= expires_at:
            del self._records[key]
            return None
        return value

    def reserve_code(self, code: str, ttl: timedelta) -> bool:
        key = message_key(code)
        with self._lock:
            if self._live_value(key) is not None:
                return False
            self._records[key] = ("", self._clock() + ttl.total_seconds())
            return True

    def attach_payload(self, code: str, blob: str, ttl: timedelta) -> AttachOutcome:
        key = message_key(code)
        with self._lock:
            current = self._live_value(key)
            if current is None:
                return AttachOutcome.NOT_FOUND
            if current != "":
                return AttachOutcome.CONFLICT
            self._records[key] = (blob, self._clock() + ttl.total_seconds())
            return AttachOutcome.ATTACHED

    def consume_if_present(self, code: str) -> Tuple[Optional[str], bool]:
        key = message_key(code)
        with self._lock:
            current = self._live_value(key)
            if current is None:
                return None, False
            del self._records[key]
            if current == "":
                return None, False
            return current, True

    def ping(self) -> None:
        return None

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for key in list(self._records) if self._live_value(key) is not None)

    def __repr__(self) -> str:
        return f"MemoryStore(records={len(self)})"
