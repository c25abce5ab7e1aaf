"""
Alert engine pipeline.

This module wires the detection, delivery, scheduling and health components
into one linear pipeline: evaluate, deduplicate, dispatch, record. Each
stage returns a typed value and the cycle result reports what happened to
every alert.

Key Features:
    - One ``process()`` call per batch of readings
    - Alerts whose delivery failed on every channel are rolled back so the
      next occurrence fires again
    - Delivered alerts optionally published for downstream consumers
    - Device fetch outcomes tracked by ``record_fetch()``; repeated failures
      raise a device-unstable alert
    - ``start()``/``stop()`` own the lifecycle of the background tasks

Example:
    >>> engine = create_engine(AppConfig(), store=InMemoryKeyValueStore())
    >>> await engine.start()
    >>> result = await engine.process([Reading(values={"pH": 9.2})])
    >>> [a.severity for a in result.alerts]
    [<AlertSeverity.CRITICAL: 'critical'>]
    >>> await engine.stop()
"""

import random
from typing import Iterable, List, Optional, Protocol, Union

import structlog
from pydantic import BaseModel, Field

from pureflow.config.models import AppConfig
from pureflow.detection.connection import ConnectionMonitor
from pureflow.detection.dedup import DeduplicationWindow
from pureflow.detection.generator import AlertGenerator
from pureflow.models.alerts import Alert
from pureflow.models.notifications import DeliveryOutcome
from pureflow.models.readings import Reading
from pureflow.models.thresholds import ThresholdConfig
from pureflow.monitoring.health import DeliveryHealthMonitor
from pureflow.notifications.channels.base import LocalNotificationChannel, RemotePushChannel
from pureflow.notifications.channels.local import LogNotificationChannel
from pureflow.notifications.channels.push import HttpPushChannel
from pureflow.notifications.dispatcher import DispatchCancelledError, NotificationDispatcher
from pureflow.notifications.templates import alert_notification
from pureflow.notifications.tokens import TokenRegistry
from pureflow.scheduling.manager import ScheduleManager
from pureflow.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)


class AlertPublisher(Protocol):
    """Downstream sink for delivered alerts."""

    async def publish_alert(self, alert: Alert) -> int:
        ...


class EngineCycleResult(BaseModel):
    """
    Outcome of one processing cycle.

    Attributes:
        alerts: Alerts admitted in this cycle.
        outcomes: Delivery outcome per dispatched alert, in alert order.
        rolled_back: Ids of alerts whose admission was undone.
        resolved: Alerts resolved in this cycle.
    """

    model_config = {"frozen": True}

    alerts: List[Alert] = Field(default_factory=list)
    outcomes: List[DeliveryOutcome] = Field(default_factory=list)
    rolled_back: List[str] = Field(default_factory=list)
    resolved: List[Alert] = Field(default_factory=list)

    @property
    def delivered_count(self) -> int:
        """Number of alerts delivered on some channel."""
        return sum(1 for o in self.outcomes if o.success)


class AlertEngine:
    """
    Runs readings through generation, dispatch and health recording.

    Attributes:
        generator: Alert generator with its deduplication window.
        dispatcher: Notification dispatcher.
        health_monitor: Delivery health monitor shared with the dispatcher.
        schedule_manager: Optional reminder scheduler.
        publisher: Optional sink for delivered alerts.
        connection_monitor: Tracks failed fetches from the sensor device.
    """

    def __init__(
        self,
        generator: AlertGenerator,
        dispatcher: NotificationDispatcher,
        health_monitor: Optional[DeliveryHealthMonitor] = None,
        schedule_manager: Optional[ScheduleManager] = None,
        publisher: Optional[AlertPublisher] = None,
        connection_monitor: Optional[ConnectionMonitor] = None,
    ) -> None:
        self.generator = generator
        self.dispatcher = dispatcher
        self.health_monitor = (
            health_monitor if health_monitor is not None else dispatcher.health_monitor
        )
        self.schedule_manager = schedule_manager
        self.publisher = publisher
        self.connection_monitor = (
            connection_monitor if connection_monitor is not None else ConnectionMonitor()
        )
        self._running = False

    @property
    def dedup_window(self) -> DeduplicationWindow:
        """The generator's deduplication window."""
        return self.generator.dedup_window

    @property
    def is_running(self) -> bool:
        """Check if ``start()`` has been called without ``stop()``."""
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Start the window cleanup, dispatcher and reminder timers."""
        await self.health_monitor.load()
        await self.dedup_window.start()
        await self.dispatcher.start()
        if self.schedule_manager is not None:
            await self.schedule_manager.initialize()
        self._running = True
        logger.info(
            "alert_engine_started",
            scheduling_enabled=self.schedule_manager is not None,
            publishing_enabled=self.publisher is not None,
        )

    async def stop(self) -> None:
        """Stop timers and background tasks and persist health tracking."""
        if self.schedule_manager is not None:
            await self.schedule_manager.destroy()
        await self.dispatcher.stop()
        await self.dedup_window.stop()
        await self.health_monitor.persist()
        self._running = False
        logger.info("alert_engine_stopped")

    def set_threshold_config(self, threshold_config: ThresholdConfig) -> None:
        """Replace the thresholds used for subsequent cycles."""
        self.generator.threshold_config = threshold_config
        logger.info("engine_thresholds_updated", profile=threshold_config.profile.value)

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def process(self, readings: Union[Reading, Iterable[Reading]]) -> EngineCycleResult:
        """
        Process a batch of readings.

        Args:
            readings: A reading or a batch of readings.

        Returns:
            EngineCycleResult: Alerts, delivery outcomes, rollbacks and
                resolutions for this cycle.
        """
        alerts = await self.generator.generate(readings)

        outcomes: List[DeliveryOutcome] = []
        rolled_back: List[str] = []

        for alert in alerts:
            request = alert_notification(alert)
            try:
                outcome = await self.dispatcher.dispatch(request, severity=alert.severity)
            except DispatchCancelledError:
                await self.generator.rollback(alert)
                rolled_back.append(alert.id)
                logger.info("alert_dispatch_cancelled", alert_id=alert.id)
                continue

            outcomes.append(outcome)
            if not outcome.success:
                await self.generator.rollback(alert)
                rolled_back.append(alert.id)
                continue

            await self._publish(alert)

        resolved = self.generator.pop_resolved()

        if alerts or resolved:
            logger.info(
                "engine_cycle_completed",
                alerts=len(alerts),
                delivered=sum(1 for o in outcomes if o.success),
                rolled_back=len(rolled_back),
                resolved=len(resolved),
            )

        return EngineCycleResult(
            alerts=alerts,
            outcomes=outcomes,
            rolled_back=rolled_back,
            resolved=resolved,
        )

    async def record_fetch(
        self,
        success: bool,
        error: Optional[str] = None,
    ) -> Optional[DeliveryOutcome]:
        """
        Record a sensor device fetch outcome.

        Repeated failures raise a device-unstable alert which is dispatched
        like any other alert. An undelivered alert does not start the
        cooldown.

        Args:
            success: Whether the fetch returned data.
            error: Failure description.

        Returns:
            Optional[DeliveryOutcome]: Outcome of the instability alert, or
                None if no alert was raised.
        """
        alert = self.connection_monitor.record_fetch(success, error)
        if alert is None:
            return None

        try:
            outcome = await self.dispatcher.dispatch(
                alert_notification(alert), severity=alert.severity
            )
        except DispatchCancelledError:
            self.connection_monitor.rollback()
            logger.info("alert_dispatch_cancelled", alert_id=alert.id)
            return None

        if not outcome.success:
            self.connection_monitor.rollback()
            return outcome

        await self._publish(alert)
        return outcome

    async def _publish(self, alert: Alert) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher.publish_alert(alert)
        except Exception as e:
            logger.warning("alert_publish_failed", alert_id=alert.id, error=str(e))


def create_engine(
    config: AppConfig,
    store: Optional[KeyValueStore] = None,
    remote_channel: Optional[RemotePushChannel] = None,
    local_channel: Optional[LocalNotificationChannel] = None,
    tokens: Optional[TokenRegistry] = None,
    threshold_config: Optional[ThresholdConfig] = None,
    publisher: Optional[AlertPublisher] = None,
    rng: Optional[random.Random] = None,
    enable_schedules: bool = True,
) -> AlertEngine:
    """
    Factory function to build a fully wired AlertEngine.

    Args:
        config: Application configuration.
        store: Key-value store for schedules and health tracking.
        remote_channel: Remote push channel. Built from the configured push
            relay when omitted and a relay URL is set.
        local_channel: Local channel. Defaults to LogNotificationChannel.
        tokens: Registration token holder.
        threshold_config: Effective thresholds. Defaults to the configured
            profile with overrides.
        publisher: Optional sink for delivered alerts.
        rng: Random generator for message selection.
        enable_schedules: Whether to create a ScheduleManager.

    Returns:
        AlertEngine: A new, not yet started engine.
    """
    settings = config.notifications
    dispatch = settings.dispatch

    if remote_channel is None and config.remote_push_enabled:
        remote_channel = HttpPushChannel(
            base_url=dispatch.push_server_url or "",
            api_key=dispatch.push_api_key,
            timeout_seconds=dispatch.attempt_timeout_seconds,
        )

    window = DeduplicationWindow(
        window_seconds=settings.dedup.window_seconds,
        max_entries=settings.dedup.max_entries_per_signature,
        cleanup_interval_seconds=settings.dedup.cleanup_interval_seconds,
    )
    generator = AlertGenerator(
        dedup_window=window,
        threshold_config=threshold_config or config.thresholds.build(),
        rng=rng,
        harmful_state_min_parameters=config.thresholds.harmful_state_min_parameters,
    )
    connection_monitor = ConnectionMonitor(
        max_failed_fetches=settings.connection.max_failed_fetches,
        cooldown_seconds=settings.connection.cooldown_seconds,
        device_name=settings.connection.device_name,
    )
    health_monitor = DeliveryHealthMonitor(
        window_seconds=settings.health.window_seconds,
        frequent_failure_threshold=settings.health.frequent_failure_threshold,
        max_records=settings.health.max_records,
        store=store,
        storage_key=settings.health.storage_key,
    )
    dispatcher = NotificationDispatcher(
        local_channel=local_channel if local_channel is not None else LogNotificationChannel(),
        remote_channel=remote_channel,
        tokens=tokens,
        health_monitor=health_monitor,
        max_attempts=dispatch.max_attempts,
        backoff_seconds=dispatch.backoff_seconds,
        attempt_timeout_seconds=dispatch.attempt_timeout_seconds,
    )
    schedule_manager = (
        ScheduleManager(dispatcher=dispatcher, store=store, settings=settings.schedules)
        if enable_schedules
        else None
    )

    return AlertEngine(
        generator=generator,
        dispatcher=dispatcher,
        health_monitor=health_monitor,
        schedule_manager=schedule_manager,
        publisher=publisher,
        connection_monitor=connection_monitor,
    )
