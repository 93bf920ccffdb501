"""
Storage Module
Atomic secret record stores (Redis in production, in-process otherwise)
"""

from relay.services.storage.base import (
    AttachOutcome,
    SecretStore,
    StoreError,
    message_key,
)
from relay.services.storage.memory_store import MemoryStore
from relay.services.storage.redis_store import RedisStore, create_redis_client

__all__ = [
    "AttachOutcome",
    "SecretStore",
    "StoreError",
    "message_key",
    "MemoryStore",
    "RedisStore",
    "create_redis_client",
]
