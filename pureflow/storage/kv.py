"""
Key-value persistence contract.

The engine persists schedule state and delivery tracking summaries through
a narrow string key-value interface. Any durable store satisfies the
contract as long as a read after a write within the same process sees the
written value.

Example:
    >>> store = InMemoryKeyValueStore()
    >>> await store.set_json("scheduled_notifications_v2", {})
    >>> await store.get_json("scheduled_notifications_v2")
    {}
"""

import json
from typing import Any, Dict, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class KeyValueStoreError(Exception):
    """Base exception for key-value store failures."""

    pass


class KeyValueStore(Protocol):
    """
    Protocol for key-value persistence backends.

    Implementations raise KeyValueStoreError (or a subclass) on failure.
    """

    async def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a string value."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        ...


async def load_json(store: KeyValueStore, key: str) -> Optional[Any]:
    """
    Read and decode a JSON value.

    Args:
        store: Backend to read from.
        key: Key to read.

    Returns:
        Decoded value, or None if the key is absent.

    Raises:
        KeyValueStoreError: If the backend fails or the value is not JSON.
    """
    raw = await store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise KeyValueStoreError(f"Stored value for {key} is not valid JSON: {e}") from e


async def save_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Encode a value as JSON and store it."""
    await store.set(key, json.dumps(value, default=str))


class InMemoryKeyValueStore:
    """
    Process-local key-value store.

    Used in tests and when the storage backend is configured as ``memory``.

    Attributes:
        _data: Stored values keyed by name.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def get_json(self, key: str) -> Optional[Any]:
        return await load_json(self, key)

    async def set_json(self, key: str, value: Any) -> None:
        await save_json(self, key, value)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data
