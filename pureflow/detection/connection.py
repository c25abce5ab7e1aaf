"""
Device connection stability tracking.

The sensor device is polled by an upstream fetcher which reports every
fetch outcome. Consecutive failures are counted and, once they reach the
limit, a single "device unstable" alert is raised. Further alerts wait for
the cooldown to elapse; a successful fetch resets the counter.

Example:
    >>> monitor = ConnectionMonitor(max_failed_fetches=3)
    >>> monitor.record_fetch(False)
    >>> monitor.record_fetch(False)
    >>> alert = monitor.record_fetch(False)
    >>> alert.title
    'Device Unstable - DATM'
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import structlog

from pureflow.detection.signature import build_signature
from pureflow.models.alerts import Alert, AlertSeverity, AlertType

logger = structlog.get_logger(__name__)


# Parameter name used for connection alerts
CONNECTION_PARAMETER = "connection"

# Default configuration values
DEFAULT_MAX_FAILED_FETCHES = 3
DEFAULT_COOLDOWN_SECONDS = 600
DEFAULT_DEVICE_NAME = "DATM"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionMonitor:
    """
    Counts consecutive failed fetches and raises instability alerts.

    Attributes:
        max_failed_fetches: Consecutive failures that mark the device unstable.
        cooldown: Minimum time between two instability alerts.
        device_name: Device name used in alert text.
    """

    def __init__(
        self,
        max_failed_fetches: int = DEFAULT_MAX_FAILED_FETCHES,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        device_name: str = DEFAULT_DEVICE_NAME,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.max_failed_fetches = max(1, max_failed_fetches)
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.device_name = device_name
        self._clock = clock or _utcnow
        self._connected = True
        self._failed_fetches = 0
        self._last_alert_at: Optional[datetime] = None
        self._previous_alert_at: Optional[datetime] = None

    @property
    def is_connected(self) -> bool:
        """Check if the last fetch succeeded."""
        return self._connected

    @property
    def failed_fetches(self) -> int:
        """Consecutive failed fetches since the last success."""
        return self._failed_fetches

    @property
    def is_unstable(self) -> bool:
        """Check if the failure count has reached the limit."""
        return self._failed_fetches >= self.max_failed_fetches

    def record_fetch(self, success: bool, error: Optional[str] = None) -> Optional[Alert]:
        """
        Record one fetch outcome.

        Args:
            success: Whether the fetch returned data.
            error: Failure description, for logging.

        Returns:
            Optional[Alert]: An instability alert when the failure limit is
                reached outside the cooldown, else None.
        """
        if success:
            if not self._connected:
                logger.info(
                    "device_connection_restored",
                    device=self.device_name,
                    failed_fetches=self._failed_fetches,
                )
            self._connected = True
            self._failed_fetches = 0
            return None

        self._connected = False
        self._failed_fetches += 1
        logger.warning(
            "device_fetch_failed",
            device=self.device_name,
            failed_fetches=self._failed_fetches,
            max_failed_fetches=self.max_failed_fetches,
            error=error,
        )

        if not self.is_unstable:
            return None

        now = self._clock()
        if self._last_alert_at is not None and now - self._last_alert_at <= self.cooldown:
            return None

        self._previous_alert_at = self._last_alert_at
        self._last_alert_at = now
        return self._build_alert(now)

    def rollback(self) -> None:
        """Undo the cooldown of an instability alert that was not delivered."""
        self._last_alert_at = self._previous_alert_at

    def _build_alert(self, now: datetime) -> Alert:
        title = f"Device Unstable - {self.device_name}"
        alert = Alert(
            parameter=CONNECTION_PARAMETER,
            type=AlertType.WARNING,
            severity=AlertSeverity.HIGH,
            title=title,
            message=(
                f"{self.device_name} failed to respond {self._failed_fetches} times in a row. "
                "Check the device power and Wi-Fi connection."
            ),
            value=float(self._failed_fetches),
            signature=build_signature(
                CONNECTION_PARAMETER, AlertType.WARNING, title, self.max_failed_fetches
            ),
            timestamp=now,
            first_seen_at=now,
        )
        logger.warning(
            "device_unstable",
            alert_id=alert.id,
            device=self.device_name,
            failed_fetches=self._failed_fetches,
        )
        return alert

    def get_status(self) -> Dict[str, Any]:
        """Current connection state for operators."""
        return {
            "connected": self._connected,
            "failed_fetches": self._failed_fetches,
            "max_failed_fetches": self.max_failed_fetches,
            "last_alert_at": self._last_alert_at.isoformat() if self._last_alert_at else None,
        }

    def reset(self) -> None:
        """Forget all connection state."""
        self._connected = True
        self._failed_fetches = 0
        self._last_alert_at = None
        self._previous_alert_at = None
