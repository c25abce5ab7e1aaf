"""
Notification dispatcher with remote retry and local fallback.

This module provides the NotificationDispatcher class which delivers one
NotificationRequest through an ordered channel chain: remote push first,
then the local in-process channel.

Key Features:
    - Remote attempts bounded by a per-attempt timeout
    - Linear backoff between remote attempts (attempt * backoff_seconds)
    - Local fallback invoked exactly once when remote fails or no token exists
    - Every outcome reported to the DeliveryHealthMonitor with its severity
    - ``stop()`` interrupts a pending backoff for shutdown

Example:
    >>> dispatcher = NotificationDispatcher(
    ...     local_channel=LogNotificationChannel(),
    ...     remote_channel=HttpPushChannel("https://push.example.com"),
    ...     tokens=TokenRegistry("ExponentPushToken[abc]"),
    ...     health_monitor=DeliveryHealthMonitor(),
    ... )
    >>> outcome = await dispatcher.dispatch(request, severity=AlertSeverity.CRITICAL)
    >>> outcome.success, outcome.fallback_used
    (True, False)
"""

import asyncio
from typing import Optional

import structlog

from pureflow.models.alerts import AlertSeverity
from pureflow.models.notifications import (
    DeliveryChannel,
    DeliveryOutcome,
    NotificationRequest,
)
from pureflow.monitoring.health import DeliveryHealthMonitor
from pureflow.notifications.channels.base import LocalNotificationChannel, RemotePushChannel
from pureflow.notifications.tokens import TokenRegistry

logger = structlog.get_logger(__name__)


# Default configuration values
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5
DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 10.0


class DispatchCancelledError(Exception):
    """Raised when the dispatcher is stopped while waiting to retry."""

    pass


class NotificationDispatcher:
    """
    Delivers notifications through remote push with local fallback.

    Delivery is at-least-once: a remote attempt that timed out may still
    have reached the device, and the retry can deliver it again.

    Attributes:
        local_channel: In-process fallback channel.
        remote_channel: Remote push channel, None to always use local.
        tokens: Registration token holder.
        health_monitor: Receives every delivery outcome.
        max_attempts: Remote attempts before falling back.
        backoff_seconds: Backoff unit between remote attempts.
        attempt_timeout_seconds: Upper bound for one remote attempt.
    """

    def __init__(
        self,
        local_channel: LocalNotificationChannel,
        remote_channel: Optional[RemotePushChannel] = None,
        tokens: Optional[TokenRegistry] = None,
        health_monitor: Optional[DeliveryHealthMonitor] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        attempt_timeout_seconds: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            local_channel: Fallback channel.
            remote_channel: Remote push channel.
            tokens: Registration token holder. Defaults to an empty registry.
            health_monitor: Outcome sink. Defaults to a new monitor.
            max_attempts: Remote attempts before falling back.
            backoff_seconds: Attempt N waits N * backoff_seconds before N+1.
            attempt_timeout_seconds: Timeout for one remote attempt.
        """
        self.local_channel = local_channel
        self.remote_channel = remote_channel
        self.tokens = tokens if tokens is not None else TokenRegistry()
        self.health_monitor = (
            health_monitor if health_monitor is not None else DeliveryHealthMonitor()
        )
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self._stopping = asyncio.Event()

        logger.info(
            "notification_dispatcher_initialized",
            remote_enabled=remote_channel is not None,
            max_attempts=self.max_attempts,
            backoff_seconds=backoff_seconds,
            attempt_timeout_seconds=attempt_timeout_seconds,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Allow retries again after a previous stop."""
        self._stopping.clear()

    async def stop(self) -> None:
        """
        Stop the dispatcher.

        Pending backoff waits end with DispatchCancelledError. Requests
        already handed to a channel are not cancelled. The remote channel's
        session is closed if it has one.
        """
        self._stopping.set()
        close = getattr(self.remote_channel, "close", None)
        if close is not None:
            await close()
        logger.info("notification_dispatcher_stopped")

    @property
    def is_stopping(self) -> bool:
        """Check if ``stop()`` has been called."""
        return self._stopping.is_set()

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def dispatch(
        self,
        request: NotificationRequest,
        severity: Optional[AlertSeverity] = None,
    ) -> DeliveryOutcome:
        """
        Deliver one notification.

        Args:
            request: Notification to deliver.
            severity: Severity of the originating alert, reported to the
                health monitor.

        Returns:
            DeliveryOutcome: ``success`` is True if either channel delivered.
                ``fallback_used`` is True whenever the local channel was
                invoked in place of remote push.

        Raises:
            DispatchCancelledError: If the dispatcher was stopped during a
                retry backoff.
        """
        attempts = 0
        remote_error: Optional[str] = None
        token = self.tokens.current

        remote = self.remote_channel
        if request.allows_remote and remote is not None and token:
            success, attempts, message_id, remote_error = await self._send_remote(
                remote, token, request
            )
            if success:
                self.health_monitor.record_delivery(request.id, DeliveryChannel.REMOTE, severity)
                logger.info(
                    "notification_delivered",
                    notification_id=request.id,
                    channel=DeliveryChannel.REMOTE.value,
                    attempts=attempts,
                )
                return DeliveryOutcome(
                    notification_id=request.id,
                    success=True,
                    channel=DeliveryChannel.REMOTE,
                    attempts=attempts,
                    message_id=message_id,
                )

            self.health_monitor.record_failure(
                request.id, DeliveryChannel.REMOTE, remote_error, severity
            )
        elif request.allows_remote:
            logger.debug(
                "remote_push_skipped",
                notification_id=request.id,
                reason="no_token" if remote is not None else "no_remote_channel",
            )

        fallback_used = request.allows_remote
        local_id, local_error = self._send_local(request)

        if local_id is not None:
            self.health_monitor.record_delivery(request.id, DeliveryChannel.LOCAL, severity)
            logger.info(
                "notification_delivered",
                notification_id=request.id,
                channel=DeliveryChannel.LOCAL.value,
                attempts=attempts,
                fallback_used=fallback_used,
            )
            return DeliveryOutcome(
                notification_id=request.id,
                success=True,
                channel=DeliveryChannel.LOCAL,
                fallback_used=fallback_used,
                attempts=attempts,
                message_id=local_id,
                error=remote_error,
            )

        self.health_monitor.record_failure(request.id, DeliveryChannel.LOCAL, local_error, severity)
        logger.error(
            "notification_delivery_failed",
            notification_id=request.id,
            title=request.title,
            category_id=request.category_id,
            severity=severity.value if severity else None,
            remote_attempts=attempts,
            remote_error=remote_error,
            local_error=local_error,
        )
        return DeliveryOutcome(
            notification_id=request.id,
            success=False,
            fallback_used=fallback_used,
            attempts=attempts,
            error=local_error or remote_error,
        )

    async def _send_remote(
        self,
        remote: RemotePushChannel,
        token: str,
        request: NotificationRequest,
    ) -> tuple[bool, int, Optional[str], Optional[str]]:
        """
        Run the remote attempts.

        Returns:
            Tuple of (success, attempts, message_id, last_error).
        """
        last_error: Optional[str] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await asyncio.wait_for(
                    remote.send(token, request),
                    timeout=self.attempt_timeout_seconds,
                )
                if result.success:
                    return True, attempt, result.message_id, None
                last_error = result.error or "remote channel reported failure"
            except asyncio.TimeoutError:
                last_error = f"remote attempt timed out after {self.attempt_timeout_seconds}s"
            except Exception as e:
                last_error = str(e) or type(e).__name__

            logger.warning(
                "remote_attempt_failed",
                notification_id=request.id,
                attempt=attempt,
                max_attempts=self.max_attempts,
                error=last_error,
            )

            if attempt < self.max_attempts:
                await self._backoff(attempt * self.backoff_seconds)

        return False, self.max_attempts, None, last_error

    def _send_local(self, request: NotificationRequest) -> tuple[Optional[str], Optional[str]]:
        """
        Present through the local channel once.

        Returns:
            Tuple of (local_id, error); local_id is None on failure.
        """
        try:
            result = self.local_channel.present(request)
        except Exception as e:
            return None, str(e) or type(e).__name__

        if result is None or result is False:
            return None, "local channel reported failure"
        return str(result), None

    async def _backoff(self, delay: float) -> None:
        """
        Wait between remote attempts.

        Raises:
            DispatchCancelledError: If ``stop()`` is called before the delay
                elapses.
        """
        if self._stopping.is_set():
            raise DispatchCancelledError("Dispatcher stopped before retry")
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise DispatchCancelledError("Dispatcher stopped during retry backoff")


def create_dispatcher(
    local_channel: LocalNotificationChannel,
    remote_channel: Optional[RemotePushChannel] = None,
    tokens: Optional[TokenRegistry] = None,
    health_monitor: Optional[DeliveryHealthMonitor] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    attempt_timeout_seconds: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
) -> NotificationDispatcher:
    """
    Factory function to create a NotificationDispatcher.

    Returns:
        NotificationDispatcher: Configured dispatcher.
    """
    return NotificationDispatcher(
        local_channel=local_channel,
        remote_channel=remote_channel,
        tokens=tokens,
        health_monitor=health_monitor,
        max_attempts=max_attempts,
        backoff_seconds=backoff_seconds,
        attempt_timeout_seconds=attempt_timeout_seconds,
    )
