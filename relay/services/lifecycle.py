"""
Secret Lifecycle Engine

Sequences store primitives into the reservation, attachment and burn
protocols. Per code:

    absent --reserve--> reserved-empty --attach--> populated --consume--> absent

Reserved-empty and populated records also fall back to absent on TTL expiry.
Attaching to a populated record is a conflict; attaching to or consuming an
absent record is not-found. Consuming a reserved-empty record deletes it and
also reports not-found. All coordination between concurrent requests
happens inside the store's atomic operations.
"""

import base64
import binascii
import secrets
from datetime import timedelta
from enum import Enum
from typing import Optional

import structlog

from relay.services.storage.base import AttachOutcome, SecretStore, StoreError

logger = structlog.get_logger(__name__)

# No 0/O, 1/l/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789"
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 20

NONCE_BYTES = 12
MIN_PAYLOAD_BYTES = NONCE_BYTES + 1


class InvalidPayload(ValueError):
    """Client payload is not valid base64 or too short to hold nonce + ciphertext."""


class CodeGenerationExhausted(Exception):
    """Every candidate code collided with a live record."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"No free code after {attempts} attempts")


class HealthStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"


def generate_code(length: int = CODE_LENGTH) -> str:
    """Random code from the unambiguous alphabet."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def validate_payload(text: str) -> str:
    """
    Check that a PUT body can be stored as a secret.

    The body must be standard base64 whose decoded form holds a 12-byte
    nonce followed by at least one byte of ciphertext. Line breaks inside the
    base64 (as emitted by wrapping encoders) are accepted and kept in the
    stored text. The ciphertext itself is never inspected.

    Args:
        text: Raw request body

    Returns:
        The body with surrounding whitespace removed, as it will be stored

    Raises:
        InvalidPayload: empty body, bad base64, or decoded length < 13 bytes
    """
    blob = text.strip()
    if not blob:
        raise InvalidPayload("empty payload")
    try:
        raw = base64.b64decode(blob.replace("\r", "").replace("\n", ""), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidPayload("payload is not valid base64") from e
    if len(raw) < MIN_PAYLOAD_BYTES:
        raise InvalidPayload(
            f"payload too short: {len(raw)} bytes, need nonce ({NONCE_BYTES}) + ciphertext"
        )
    return blob


def _code_hint(code: str) -> str:
    # Full codes never reach the logs.
    return code[:2] + "..."


class LifecycleEngine:
    """
    Code reservation, secret attachment and one-time retrieval.

    Configuration is passed in as plain values at construction time; the
    engine never consults global settings while serving a call.
    """

    def __init__(
        self,
        store: SecretStore,
        placeholder_ttl: timedelta,
        message_ttl: timedelta,
        code_length: int = CODE_LENGTH,
        max_attempts: int = MAX_CODE_ATTEMPTS,
    ):
        """
        Args:
            store: Atomic key store holding the secret records
            placeholder_ttl: Lifetime of a reserved code that has no payload yet
            message_ttl: Lifetime of a populated secret, counted from attachment
            code_length: Characters per generated code
            max_attempts: Collision retries before giving up
        """
        self.store = store
        self.placeholder_ttl = placeholder_ttl
        self.message_ttl = message_ttl
        self.code_length = code_length
        self.max_attempts = max_attempts
        self.logger = logger.bind(component="lifecycle")

    def request_new_code(self) -> str:
        """
        Reserve a fresh code with the placeholder TTL.

        Returns:
            The reserved code

        Raises:
            CodeGenerationExhausted: max_attempts candidates all collided
            StoreError: backend failure (not retried)
        """
        for attempt in range(1, self.max_attempts + 1):
            code = generate_code(self.code_length)
            if self.store.reserve_code(code, self.placeholder_ttl):
                self.logger.info("code_reserved", code=_code_hint(code), attempts=attempt)
                return code
            self.logger.debug("code_collision", attempt=attempt)

        self.logger.error("code_generation_exhausted", attempts=self.max_attempts)
        raise CodeGenerationExhausted(self.max_attempts)

    def attach_secret(self, code: str, blob: str) -> AttachOutcome:
        """
        Attach a ciphertext blob to a reserved code.

        Raises:
            InvalidPayload: blob fails validation; the store is not called
            StoreError: backend failure
        """
        blob = validate_payload(blob)
        outcome = self.store.attach_payload(code, blob, self.message_ttl)

        if outcome is AttachOutcome.ATTACHED:
            self.logger.info("secret_attached", code=_code_hint(code))
        else:
            self.logger.warning("attach_rejected", code=_code_hint(code), outcome=outcome.value)
        return outcome

    def retrieve_secret(self, code: str) -> Optional[str]:
        """
        Burn a secret: return its blob and delete it.

        Returns None whether the code never existed, was already read,
        expired, or has no payload yet.
        """
        blob, found = self.store.consume_if_present(code)
        if not found:
            return None
        self.logger.info("secret_consumed", code=_code_hint(code))
        return blob

    def health_check(self) -> HealthStatus:
        """Backend liveness; does not affect lifecycle operations."""
        try:
            self.store.ping()
        except StoreError as e:
            self.logger.warning("store_ping_failed", error=str(e))
            return HealthStatus.DEGRADED
        return HealthStatus.OK
