"""
Async Redis client for engine state and the reading feed.

This module provides a Redis client that implements the key-value store
contract used for schedule and delivery tracking persistence, and the
pub/sub subscription used to receive sensor readings.

Key Patterns:
    - Persisted state: `{prefix}:{key}` (string holding JSON)
    - Pub/Sub channels: `updates:readings`, `updates:alerts`

Example:
    >>> from pureflow.config.models import RedisConnectionConfig
    >>> from pureflow.storage.redis_client import RedisClient
    >>>
    >>> client = RedisClient(RedisConnectionConfig(url="redis://localhost:6379"))
    >>> await client.connect()
    >>> await client.set("scheduled_notifications_v2", "{}")
    >>> await client.get("scheduled_notifications_v2")
    '{}'
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from pureflow.config.models import RedisConnectionConfig
from pureflow.models.alerts import Alert
from pureflow.storage.kv import KeyValueStoreError

logger = structlog.get_logger(__name__)


class RedisClientError(KeyValueStoreError):
    """Base exception for Redis client errors."""

    pass


class RedisConnectionException(RedisClientError):
    """Raised when Redis connection fails."""

    pass


class RedisOperationError(RedisClientError):
    """Raised when a Redis operation fails."""

    pass


class RedisClient:
    """
    Async Redis client for engine state.

    Attributes:
        config: Redis connection configuration.
        key_prefix: Prefix applied to every key-value key.
        _pool: Connection pool for efficient connection reuse.
        _client: Redis client instance.
        _connected: Whether the client is connected.

    Example:
        >>> client = RedisClient(config, key_prefix="pureflow")
        >>> await client.connect()
        >>> try:
        ...     await client.set("pureflow_settings", '{"fishpondType": "saltwater"}')
        ... finally:
        ...     await client.disconnect()
    """

    # Pub/sub channels
    CHANNEL_READINGS = "updates:readings"
    CHANNEL_DEVICE_STATUS = "updates:device_status"
    CHANNEL_ALERTS = "updates:alerts"

    def __init__(
        self,
        config: RedisConnectionConfig,
        key_prefix: str = "pureflow",
    ) -> None:
        """
        Initialize the Redis client.

        Args:
            config: Redis connection configuration containing URL, db, and pool settings.
            key_prefix: Prefix for key-value keys. Empty string disables prefixing.
        """
        self.config = config
        self.key_prefix = key_prefix
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None  # type: ignore[type-arg]
        self._connected: bool = False

        logger.info(
            "redis_client_initialized",
            url=config.url,
            db=config.db,
            max_connections=config.max_connections,
        )

    @property
    def is_connected(self) -> bool:
        """Check if the client is connected to Redis."""
        return self._connected and self._client is not None

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Raises:
            RedisConnectionException: If connection fails.
        """
        if self._connected:
            logger.warning("redis_already_connected")
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.config.url,
                db=self.config.db,
                max_connections=self.config.max_connections,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)

            await self._client.ping()
            self._connected = True

            logger.info(
                "redis_connected",
                url=self.config.url,
                db=self.config.db,
            )

        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self._connected = False
            logger.error(
                "redis_connection_failed",
                url=self.config.url,
                error=str(e),
            )
            raise RedisConnectionException(
                f"Failed to connect to Redis at {self.config.url}: {e}"
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis connection and release resources.

        Safe to call multiple times.
        """
        if self._client is not None:
            try:
                await self._client.aclose()
            except RedisError as e:
                logger.warning("redis_close_error", error=str(e))
            finally:
                self._client = None

        if self._pool is not None:
            try:
                await self._pool.aclose()
            except RedisError as e:
                logger.warning("redis_pool_close_error", error=str(e))
            finally:
                self._pool = None

        self._connected = False
        logger.info("redis_disconnected")

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            bool: True if Redis responds to PING, False otherwise.
        """
        if not self._client:
            return False

        try:
            await self._client.ping()
            return True
        except RedisError as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    def _require_connection(self) -> Redis:  # type: ignore[type-arg]
        """
        Ensure client is connected and return the Redis instance.

        Raises:
            RedisConnectionException: If not connected.
        """
        if not self._connected or self._client is None:
            raise RedisConnectionException("Redis client is not connected")
        return self._client

    def _key(self, key: str) -> str:
        """Apply the configured prefix to a key."""
        if not self.key_prefix:
            return key
        return f"{self.key_prefix}:{key}"

    # =========================================================================
    # KEY-VALUE STORE
    # =========================================================================

    async def get(self, key: str) -> Optional[str]:
        """
        Read a string value.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails.
        """
        client = self._require_connection()

        try:
            return await client.get(self._key(key))
        except RedisError as e:
            logger.error("redis_get_failed", key=key, error=str(e))
            raise RedisOperationError(f"Failed to read {key}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        """
        Write a string value.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails.
        """
        client = self._require_connection()

        try:
            await client.set(self._key(key), value)
            logger.debug("redis_key_set", key=key, size=len(value))
        except RedisError as e:
            logger.error("redis_set_failed", key=key, error=str(e))
            raise RedisOperationError(f"Failed to write {key}: {e}") from e

    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            bool: True if the key existed.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails.
        """
        client = self._require_connection()

        try:
            removed = await client.delete(self._key(key))
            return int(removed) > 0
        except RedisError as e:
            logger.error("redis_delete_failed", key=key, error=str(e))
            raise RedisOperationError(f"Failed to delete {key}: {e}") from e

    # =========================================================================
    # PUB/SUB
    # =========================================================================

    async def publish_alert(self, alert: Alert) -> int:
        """
        Publish an alert to subscribers.

        Returns:
            int: Number of subscribers that received the message.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails.
        """
        client = self._require_connection()

        try:
            count = await client.publish(self.CHANNEL_ALERTS, alert.model_dump_json())

            logger.debug(
                "alert_published",
                alert_id=alert.id,
                parameter=alert.parameter,
                subscribers=count,
            )

            return int(count)

        except RedisError as e:
            logger.error(
                "alert_publish_failed",
                alert_id=alert.id,
                error=str(e),
            )
            raise RedisOperationError(f"Failed to publish alert: {e}") from e

    @asynccontextmanager
    async def subscribe(
        self, channels: List[str]
    ) -> AsyncIterator[AsyncIterator[Dict[str, Any]]]:
        """
        Subscribe to Redis pub/sub channels.

        Context manager that yields an async iterator of JSON-decoded
        messages. Messages that are not valid JSON are logged and skipped.

        Args:
            channels: List of channel names to subscribe to.

        Yields:
            AsyncIterator[Dict[str, Any]]: Messages as ``{"channel", "data"}``.

        Raises:
            RedisConnectionException: If not connected.

        Example:
            >>> async with client.subscribe(["updates:readings"]) as messages:
            ...     async for message in messages:
            ...         print(message["data"])
        """
        client = self._require_connection()
        pubsub: PubSub = client.pubsub()

        try:
            await pubsub.subscribe(*channels)

            logger.info("pubsub_subscribed", channels=channels)

            async def message_iterator() -> AsyncIterator[Dict[str, Any]]:
                """Iterate over messages from subscribed channels."""
                async for message in pubsub.listen():
                    if message["type"] == "message":
                        try:
                            data = json.loads(message["data"])
                            yield {
                                "channel": message["channel"],
                                "data": data,
                            }
                        except json.JSONDecodeError as e:
                            logger.warning(
                                "pubsub_message_parse_failed",
                                channel=message["channel"],
                                error=str(e),
                            )

            yield message_iterator()

        finally:
            await pubsub.unsubscribe(*channels)
            await pubsub.aclose()

            logger.info("pubsub_unsubscribed", channels=channels)
