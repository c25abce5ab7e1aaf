"""
Alert data models for the water-quality engine.

This module defines alert classification enums and the Alert entity
produced by the alert generator.

Models:
    AlertType: Presentation type (info, warning, error)
    AlertSeverity: Ordinal importance (low, medium, high, critical)
    Alert: Active or resolved alert instance
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from pureflow.models.readings import Direction
from pureflow.models.thresholds import ThresholdBand


class AlertType(str, Enum):
    """
    Alert presentation type.

    Attributes:
        INFO: Informational, e.g. weather updates.
        WARNING: Value outside the safe range.
        ERROR: Value beyond the critical band.
    """

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AlertSeverity(str, Enum):
    """
    Ordinal alert importance.

    Distinct from the evaluation status: a critical status maps to the
    CRITICAL severity, a warning status to MEDIUM, and rain to LOW or HIGH.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more important."""
        return _SEVERITY_RANK[self]

    @property
    def is_urgent(self) -> bool:
        """Check if this severity warrants a high-priority notification."""
        return self in (AlertSeverity.HIGH, AlertSeverity.CRITICAL)


_SEVERITY_RANK = {
    AlertSeverity.LOW: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.HIGH: 3,
    AlertSeverity.CRITICAL: 4,
}


class Alert(BaseModel):
    """
    Alert instance.

    Attributes:
        id: Unique alert identifier (UUID).
        parameter: Parameter that triggered the alert.
        type: Presentation type.
        severity: Ordinal importance.
        title: Short actionable title.
        message: Human readable message.
        value: Reading value at trigger time.
        threshold: Band the value was evaluated against (None for rain).
        signature: Deduplication key.
        direction: Breach direction.
        timestamp: Time of the latest occurrence.
        first_seen_at: Time the alert was first raised.
        occurrence_count: Number of occurrences inside the dedup window.
        resolved_at: Time the underlying reading returned to normal.

    Example:
        >>> alert = Alert(
        ...     parameter="pH",
        ...     type=AlertType.ERROR,
        ...     severity=AlertSeverity.CRITICAL,
        ...     title="pH Too High - 9.20",
        ...     message="pH reading of 9.20 is critical (Safe range: 6.5 - 8.5)",
        ...     value=9.2,
        ...     signature="ph:error:pH Too High - 9.20:9.20",
        ... )
        >>> alert.record_occurrence().occurrence_count
        2
    """

    id: str = Field(default_factory=lambda: str(uuid4()), description="Alert ID")
    parameter: str = Field(..., description="Triggering parameter")
    type: AlertType = Field(..., description="Presentation type")
    severity: AlertSeverity = Field(..., description="Severity")
    title: str = Field(..., description="Alert title")
    message: str = Field(..., description="Alert message")
    value: float = Field(..., description="Value at trigger time")
    threshold: Optional[ThresholdBand] = Field(default=None, description="Evaluated band")
    signature: str = Field(..., description="Deduplication key")
    direction: Direction = Field(default=Direction.NONE)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    first_seen_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    occurrence_count: int = Field(default=1, ge=1)
    resolved_at: Optional[datetime] = Field(default=None)

    @property
    def is_active(self) -> bool:
        """Check if the alert has not been resolved."""
        return self.resolved_at is None

    @property
    def dedup_key(self) -> str:
        """Key identifying the signature/severity pair."""
        return f"{self.signature}|{self.severity.value}"

    def record_occurrence(
        self, timestamp: Optional[datetime] = None, value: Optional[float] = None
    ) -> "Alert":
        """
        Count a repeat occurrence of this alert.

        Args:
            timestamp: Time of the repeat (defaults to now).
            value: Latest value, if it should replace the stored one.

        Returns:
            Alert: New instance with the count incremented.
        """
        update: Dict[str, Any] = {
            "occurrence_count": self.occurrence_count + 1,
            "timestamp": timestamp or datetime.now(timezone.utc),
        }
        if value is not None:
            update["value"] = value
        return self.model_copy(update=update)

    def resolve(self, resolved_at: Optional[datetime] = None) -> "Alert":
        """Return a resolved copy of this alert."""
        return self.model_copy(
            update={"resolved_at": resolved_at or datetime.now(timezone.utc)}
        )
