"""
Storage clients for the alert engine.

Components:
    kv: Key-value store contract and in-memory implementation
    redis_client: Async Redis client for persisted state and pub/sub
"""

from pureflow.storage.kv import (
    InMemoryKeyValueStore,
    KeyValueStore,
    KeyValueStoreError,
    load_json,
    save_json,
)
from pureflow.storage.redis_client import (
    RedisClient,
    RedisClientError,
    RedisConnectionException,
    RedisOperationError,
)

__all__: list[str] = [
    # Key-value
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "KeyValueStoreError",
    "load_json",
    "save_json",
    # Redis
    "RedisClient",
    "RedisClientError",
    "RedisConnectionException",
    "RedisOperationError",
]
