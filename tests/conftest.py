"""Shared fixtures for relay tests."""

import base64
import os
from datetime import timedelta

os.environ.setdefault("ENVIRONMENT", "testing")

import pytest

from relay.services.lifecycle import LifecycleEngine
from relay.services.storage import MemoryStore

PLACEHOLDER_TTL = timedelta(minutes=30)
MESSAGE_TTL = timedelta(hours=24)


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_payload(ciphertext: bytes = b"ciphertext", nonce: bytes = b"\x00" * 12) -> str:
    """Base64 body as a client would send it."""
    return base64.b64encode(nonce + ciphertext).decode("ascii")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def engine(memory_store):
    return LifecycleEngine(memory_store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL)
