"""
Delivery health monitoring.

This module provides the DeliveryHealthMonitor class which aggregates
notification delivery outcomes into health and recovery signals for
operators.

Key Features:
    - Bounded ring of DeliveryRecords; only the scoring window counts
    - Success rate, unhealthy and unknown states over the last hour
    - Advisory recovery suggestions, no automatic remediation
    - One-time frequent-failure signal when session errors pass a threshold
    - Persisted tracking summary in the key-value store

Example:
    >>> monitor = DeliveryHealthMonitor()
    >>> monitor.record_delivery("n-1", DeliveryChannel.REMOTE)
    >>> monitor.record_failure("n-2", DeliveryChannel.REMOTE, "timeout")
    >>> monitor.get_health_status().success_rate
    0.5
"""

from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

import structlog

from pureflow.models.alerts import AlertSeverity
from pureflow.models.health import (
    DeliveryHealthReport,
    HealthState,
    RecoverySuggestion,
    SuggestionPriority,
)
from pureflow.models.notifications import DeliveryChannel, DeliveryRecord, DeliveryStatus
from pureflow.storage.kv import KeyValueStore, KeyValueStoreError, load_json, save_json

logger = structlog.get_logger(__name__)


# Default configuration values
DEFAULT_WINDOW_SECONDS = 3600
DEFAULT_FREQUENT_FAILURE_THRESHOLD = 10
DEFAULT_MAX_RECORDS = 1000
DEFAULT_STORAGE_KEY = "notification_health_tracking"
RECENT_ACTIVITY_SIZE = 5
PERSISTED_FAILURES = 3
PERSISTED_ERROR_LENGTH = 100
LOW_SUCCESS_RATE = 0.8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryHealthMonitor:
    """
    Aggregates delivery outcomes into health signals.

    Attributes:
        window: Scoring window for health status.
        frequent_failure_threshold: Session failures that raise the signal.
        store: Optional key-value store for the tracking summary.
        storage_key: Key of the persisted summary.
        _records: Append-only ring of delivery records.
        _errors_in_session: Failures since start or the last clear.
        _frequent_failures_signalled: True once the signal has fired.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        frequent_failure_threshold: int = DEFAULT_FREQUENT_FAILURE_THRESHOLD,
        max_records: int = DEFAULT_MAX_RECORDS,
        store: Optional[KeyValueStore] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.window = timedelta(seconds=window_seconds)
        self.frequent_failure_threshold = frequent_failure_threshold
        self.store = store
        self.storage_key = storage_key
        self._clock = clock or _utcnow
        self._records: Deque[DeliveryRecord] = deque(maxlen=max_records)
        self._errors_in_session = 0
        self._last_error: Optional[str] = None
        self._frequent_failures_signalled = False

    @property
    def errors_in_session(self) -> int:
        """Failures since start or the last clear."""
        return self._errors_in_session

    @property
    def frequent_failures_detected(self) -> bool:
        """Check if the frequent-failure signal has fired."""
        return self._frequent_failures_signalled

    # =========================================================================
    # RECORDING
    # =========================================================================

    def record(self, record: DeliveryRecord) -> DeliveryRecord:
        """Append a delivery record."""
        self._records.append(record)

        if record.status == DeliveryStatus.FAILED:
            self._errors_in_session += 1
            self._last_error = record.error
            logger.debug(
                "delivery_failure_recorded",
                notification_id=record.notification_id,
                channel=record.channel.value,
                error=record.error,
                errors_in_session=self._errors_in_session,
            )
            if (
                self._errors_in_session > self.frequent_failure_threshold
                and not self._frequent_failures_signalled
            ):
                self._frequent_failures_signalled = True
                logger.error(
                    "frequent_delivery_failures",
                    errors_in_session=self._errors_in_session,
                    threshold=self.frequent_failure_threshold,
                    last_error=self._last_error,
                )
        return record

    def record_delivery(
        self,
        notification_id: str,
        channel: DeliveryChannel,
        severity: Optional[AlertSeverity] = None,
    ) -> DeliveryRecord:
        """Record a successful delivery."""
        return self.record(
            DeliveryRecord(
                notification_id=notification_id,
                channel=channel,
                status=DeliveryStatus.DELIVERED,
                severity=severity,
                timestamp=self._clock(),
            )
        )

    def record_failure(
        self,
        notification_id: str,
        channel: DeliveryChannel,
        error: Optional[str],
        severity: Optional[AlertSeverity] = None,
    ) -> DeliveryRecord:
        """Record a failed delivery."""
        return self.record(
            DeliveryRecord(
                notification_id=notification_id,
                channel=channel,
                status=DeliveryStatus.FAILED,
                severity=severity,
                timestamp=self._clock(),
                error=error,
            )
        )

    def _recent(self, now: datetime) -> List[DeliveryRecord]:
        cutoff = now - self.window
        return [r for r in self._records if r.timestamp >= cutoff]

    # =========================================================================
    # DIAGNOSTICS
    # =========================================================================

    def get_health_status(self, now: Optional[datetime] = None) -> DeliveryHealthReport:
        """
        Compute delivery health over the scoring window.

        Returns:
            DeliveryHealthReport: ``unknown`` with no deliveries,
                ``unhealthy`` when failures exceed successes, else ``healthy``.
        """
        now = now or self._clock()
        recent = self._recent(now)
        total = len(recent)
        successful = sum(1 for r in recent if r.is_delivered)
        failed = total - successful

        issues: List[str] = []
        if total == 0:
            status = HealthState.UNKNOWN
            success_rate = None
            issues.append("No notification activity in the last hour")
        else:
            success_rate = successful / total
            status = HealthState.UNHEALTHY if failed > successful else HealthState.HEALTHY
            if successful == 0:
                issues.append("All recent notifications failed")
            elif status == HealthState.UNHEALTHY:
                issues.append("High failure rate in recent notifications")
            elif success_rate < LOW_SUCCESS_RATE:
                issues.append(f"Degraded success rate: {success_rate * 100:.1f}%")

            remote_failed = any(
                r.channel == DeliveryChannel.REMOTE and not r.is_delivered for r in recent
            )
            local_delivered = any(
                r.channel == DeliveryChannel.LOCAL and r.is_delivered for r in recent
            )
            if remote_failed and local_delivered:
                issues.append("Remote push failing; notifications delivered via local fallback")

        if self._frequent_failures_signalled:
            issues.append(f"Frequent delivery failures this session ({self._errors_in_session})")

        return DeliveryHealthReport(
            status=status,
            issues=issues,
            success_rate=success_rate,
            total=total,
            successful=successful,
            failed=failed,
            errors_in_session=self._errors_in_session,
            frequent_failures=self._frequent_failures_signalled,
            last_error=self._last_error,
            recent_activity=list(self._records)[-RECENT_ACTIVITY_SIZE:],
            generated_at=now,
        )

    def get_recovery_suggestions(self, now: Optional[datetime] = None) -> List[RecoverySuggestion]:
        """
        Advisory remediation steps for the current health.

        Returns:
            List[RecoverySuggestion]: Suggestions, highest priority first.
        """
        health = self.get_health_status(now)
        suggestions: List[RecoverySuggestion] = []

        if health.total > 0 and health.successful == 0:
            suggestions.append(
                RecoverySuggestion(
                    issue="All recent notifications failed",
                    action="Check notification service initialization and device registration",
                    priority=SuggestionPriority.HIGH,
                )
            )

        if health.status == HealthState.UNHEALTHY:
            suggestions.append(
                RecoverySuggestion(
                    issue="Notification permissions may be denied",
                    action="Verify app notification permissions in device settings",
                    priority=SuggestionPriority.HIGH,
                )
            )

        recent = self._recent(now or self._clock())
        if any(r.channel == DeliveryChannel.REMOTE and not r.is_delivered for r in recent):
            suggestions.append(
                RecoverySuggestion(
                    issue="Remote push delivery failing",
                    action="Check the push relay URL, API key and registration token",
                    priority=SuggestionPriority.MEDIUM,
                )
            )

        if health.frequent_failures:
            suggestions.append(
                RecoverySuggestion(
                    issue="Frequent delivery failures this session",
                    action="Review recent delivery errors and restart the notification service",
                    priority=SuggestionPriority.MEDIUM,
                )
            )

        return suggestions

    def get_status_message(self, now: Optional[datetime] = None) -> str:
        """One-line operator summary, with the first issue if any."""
        health = self.get_health_status(now)
        summary = "Working normally" if health.status.is_healthy else "Some issues detected"
        message = f"Notifications: {summary}"
        if health.issues:
            message += f" ({health.issues[0]})"
        return message

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _summary(self) -> Dict[str, Any]:
        failures = [r for r in self._records if not r.is_delivered][-PERSISTED_FAILURES:]
        return {
            "errorCount": self._errors_in_session,
            "lastUpdated": self._clock().isoformat(),
            "recentFailures": [
                {
                    "timestamp": r.timestamp.isoformat(),
                    "channel": r.channel.value,
                    "error": (r.error or "")[:PERSISTED_ERROR_LENGTH],
                }
                for r in failures
            ],
        }

    async def persist(self) -> bool:
        """
        Store the tracking summary.

        Returns:
            bool: True if written; failures are logged and swallowed.
        """
        if self.store is None:
            return False
        try:
            await save_json(self.store, self.storage_key, self._summary())
            return True
        except KeyValueStoreError as e:
            logger.warning("health_tracking_persist_failed", error=str(e))
            return False

    async def load(self) -> bool:
        """
        Restore the session error count from the stored summary.

        Returns:
            bool: True if a summary was loaded.
        """
        if self.store is None:
            return False
        try:
            summary = await load_json(self.store, self.storage_key)
        except KeyValueStoreError as e:
            logger.warning("health_tracking_load_failed", error=str(e))
            return False

        if not isinstance(summary, dict):
            return False

        error_count = summary.get("errorCount")
        if isinstance(error_count, int) and error_count >= 0:
            self._errors_in_session = error_count
        failures = summary.get("recentFailures") or []
        if failures and isinstance(failures[-1], dict):
            self._last_error = failures[-1].get("error") or self._last_error

        logger.info("health_tracking_loaded", errors_in_session=self._errors_in_session)
        return True

    async def clear(self) -> None:
        """Forget all records and reset the session counters."""
        self._records.clear()
        self._errors_in_session = 0
        self._last_error = None
        self._frequent_failures_signalled = False
        await self.persist()
        logger.info("health_tracking_cleared")

    def __len__(self) -> int:
        """Return the number of records held."""
        return len(self._records)


def create_health_monitor(
    store: Optional[KeyValueStore] = None,
    window_seconds: float = DEFAULT_WINDOW_SECONDS,
    frequent_failure_threshold: int = DEFAULT_FREQUENT_FAILURE_THRESHOLD,
) -> DeliveryHealthMonitor:
    """Factory function to create a DeliveryHealthMonitor."""
    return DeliveryHealthMonitor(
        window_seconds=window_seconds,
        frequent_failure_threshold=frequent_failure_threshold,
        store=store,
    )
