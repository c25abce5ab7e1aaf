"""
Alert engine service.

This service is responsible for:
- Subscribing to Redis pub/sub for sensor reading updates
- Tracking sensor device fetch outcomes for connection alerts
- Evaluating readings against the active pond profile thresholds
- Dispatching alert notifications with remote retry and local fallback
- Keeping the recurring reminders armed
- Persisting delivery health tracking periodically

Environment Variables:
    REDIS_URL: Redis connection URL (default: redis://localhost:6379)
    LOG_LEVEL: Logging level (default: INFO)
    CONFIG_PATH: Path to config directory (default: config)
    FISHPOND_TYPE: Pond profile used when no stored setting exists
    PUSH_SERVER_URL: Push relay base URL (optional)
    PUSH_API_KEY: Push relay API key (optional)
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from pureflow.config.settings import load_threshold_config
from pureflow.engine import AlertEngine, create_engine
from pureflow.models.readings import Reading
from pureflow.notifications.tokens import TokenRegistry
from pureflow.services import ServiceRunner
from pureflow.storage.kv import InMemoryKeyValueStore, KeyValueStore
from pureflow.storage.redis_client import RedisClient

logger = structlog.get_logger(__name__)


# Store key holding the device registration token
PUSH_TOKEN_KEY = "push_token"

# Health persistence and token refresh interval in seconds
MAINTENANCE_INTERVAL = 60


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_reading(data: Any) -> Optional[Reading]:
    """
    Build a Reading from a pub/sub payload.

    Accepts ``{"timestamp": ..., "values": {...}}`` or a flat parameter
    map with an optional ``timestamp`` key. A missing or unparsable
    timestamp means "now".

    Returns:
        Optional[Reading]: None if the payload is not a mapping.
    """
    if not isinstance(data, dict):
        return None

    nested = data.get("values")
    if isinstance(nested, dict):
        values: Dict[str, Any] = dict(nested)
    else:
        values = {k: v for k, v in data.items() if k != "timestamp"}

    timestamp = _parse_timestamp(data.get("timestamp"))
    try:
        if timestamp is None:
            return Reading(values=values)
        return Reading(values=values, timestamp=timestamp)
    except ValidationError as e:
        logger.debug("reading_invalid", error=str(e))
        return None


class AlertEngineService(ServiceRunner):
    """
    Alert evaluation and notification service.

    Attributes:
        store: Key-value store for settings, schedules and health tracking.
        tokens: Device registration token holder.
        engine: Wired alert engine.
    """

    def __init__(self, config_path: str = "config") -> None:
        """Initialize the alert engine service."""
        super().__init__(config_path)
        self.store: Optional[KeyValueStore] = None
        self.tokens: Optional[TokenRegistry] = None
        self.engine: Optional[AlertEngine] = None
        self._maintenance_task: Optional[asyncio.Task] = None

    @property
    def service_name(self) -> str:
        """Return service name."""
        return "alert-engine"

    async def _initialize(self) -> None:
        """Build the engine from configuration and stored settings."""
        if self.config is None or self.redis_client is None:
            raise RuntimeError("Service not properly initialized")

        storage = self.config.features.storage
        if storage.backend == "memory":
            self.store = InMemoryKeyValueStore()
        else:
            self.store = self.redis_client

        threshold_config = await load_threshold_config(
            self.store,
            self.config.thresholds,
            storage.settings_key,
        )

        self.tokens = TokenRegistry(fetcher=self._fetch_token)
        await self.tokens.refresh()

        self.engine = create_engine(
            self.config,
            store=self.store,
            tokens=self.tokens,
            threshold_config=threshold_config,
            publisher=self.redis_client,
        )
        await self.engine.start()

        self.logger.info(
            "alert_engine_initialized",
            profile=threshold_config.profile.value,
            storage_backend=storage.backend,
            remote_push_enabled=self.config.remote_push_enabled,
            has_token=self.tokens.current is not None,
        )

    async def _fetch_token(self) -> Optional[str]:
        if self.store is None:
            return None
        return await self.store.get(PUSH_TOKEN_KEY)

    async def _run(self) -> None:
        """Main service loop - subscribe to readings and process alerts."""
        if self.redis_client is None or self.engine is None:
            raise RuntimeError("Service not properly initialized")

        self._maintenance_task = asyncio.create_task(self._maintenance_loop())

        try:
            channels = [RedisClient.CHANNEL_READINGS, RedisClient.CHANNEL_DEVICE_STATUS]
            async with self.redis_client.subscribe(channels) as messages:
                async for message in messages:
                    if self.shutdown_event.is_set():
                        break

                    try:
                        await self._process_message(message)
                    except Exception as e:
                        self.logger.error(
                            "reading_processing_error",
                            error=str(e),
                        )

        except asyncio.CancelledError:
            self.logger.info("pubsub_cancelled")

        if self._maintenance_task:
            self._maintenance_task.cancel()
            try:
                await self._maintenance_task
            except asyncio.CancelledError:
                pass

    async def _process_message(self, message: Dict[str, Any]) -> None:
        """
        Process a readings or device status message.

        Args:
            message: Pub/sub message containing reading or fetch data.
        """
        if self.engine is None:
            return

        channel = message.get("channel")
        if channel == RedisClient.CHANNEL_DEVICE_STATUS:
            await self._process_device_status(message.get("data"))
            return
        if channel != RedisClient.CHANNEL_READINGS:
            return

        reading = parse_reading(message.get("data"))
        if reading is None:
            self.logger.debug("reading_skipped", reason="payload_not_a_mapping")
            return

        result = await self.engine.process(reading)
        if result.alerts:
            self.logger.info(
                "alerts_dispatched",
                alert_ids=[a.id for a in result.alerts],
                delivered=result.delivered_count,
                fallback_used=sum(1 for o in result.outcomes if o.fallback_used),
                rolled_back=result.rolled_back,
            )

    async def _process_device_status(self, data: Any) -> None:
        """Feed a ``{"success": bool, "error": str}`` fetch report to the engine."""
        if self.engine is None:
            return
        if not isinstance(data, dict) or not isinstance(data.get("success"), bool):
            self.logger.debug("device_status_skipped", reason="invalid_payload")
            return

        error = data.get("error")
        outcome = await self.engine.record_fetch(
            data["success"], str(error) if error is not None else None
        )
        if outcome is not None:
            self.logger.info(
                "device_alert_dispatched",
                delivered=outcome.success,
                fallback_used=outcome.fallback_used,
            )

    async def _maintenance_loop(self) -> None:
        """Periodically persist health tracking and refresh the token."""
        try:
            while not self.shutdown_event.is_set():
                await asyncio.sleep(MAINTENANCE_INTERVAL)

                if self.engine is None or self.tokens is None:
                    continue

                try:
                    await self.tokens.refresh()
                    await self.engine.health_monitor.persist()
                    self.logger.debug(
                        "delivery_health",
                        status=self.engine.health_monitor.get_status_message(),
                    )
                except Exception as e:
                    self.logger.error(
                        "maintenance_error",
                        error=str(e),
                    )

        except asyncio.CancelledError:
            self.logger.debug("maintenance_loop_cancelled")

    async def _cleanup(self) -> None:
        """Stop the engine and log final state."""
        if self.engine is None:
            return

        self.logger.info(
            "cleanup_state",
            active_alerts=len(self.engine.generator.get_active_alerts()),
            health=self.engine.health_monitor.get_status_message(),
        )
        await self.engine.stop()
