"""
Secret Store Interface

Atomic key-value primitives the lifecycle engine is built on. Every mutating
operation is a single indivisible step on the backend so that exactly one of
several concurrent callers observes success.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from enum import Enum
from typing import Optional, Tuple

KEY_PREFIX = "msg:"


def message_key(code: str) -> str:
    """Backend key for a code."""
    return f"{KEY_PREFIX}{code}"


class StoreError(Exception):
    """Backend failure: connectivity, timeout, protocol error or open circuit."""


class AttachOutcome(str, Enum):
    """Result of attaching a payload to a reserved code."""

    ATTACHED = "attached"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


class SecretStore(ABC):
    """
    TTL-capable key-value backend for secret records.

    A record is either absent, reserved-empty (value is the empty string)
    or populated (value is the client's ciphertext blob).
    """

    @abstractmethod
    def reserve_code(self, code: str, ttl: timedelta) -> bool:
        """
        Create an empty record for ``code`` if no record exists.

        Returns:
            True if created, False on collision (not an error)
        """

    @abstractmethod
    def attach_payload(self, code: str, blob: str, ttl: timedelta) -> AttachOutcome:
        """
        Populate a reserved-empty record and reset its TTL.

        Returns:
            ATTACHED on success, CONFLICT if already populated,
            NOT_FOUND if the record does not exist
        """

    @abstractmethod
    def consume_if_present(self, code: str) -> Tuple[Optional[str], bool]:
        """
        Fetch and delete the record in one step, whatever its value.

        A reserved-empty record is deleted too and reported as not found.

        Returns:
            (blob, True) if a populated record was consumed, (None, False) otherwise
        """

    @abstractmethod
    def ping(self) -> None:
        """Liveness check. Raises StoreError when the backend is unreachable."""

    def close(self) -> None:
        """Release backend resources."""
