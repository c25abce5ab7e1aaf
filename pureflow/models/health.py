"""
Delivery health models.

This module defines the diagnostics produced by the delivery health
monitor for operators.

Models:
    HealthState: Overall delivery health (healthy, unhealthy, unknown)
    SuggestionPriority: Priority of a recovery suggestion
    RecoverySuggestion: Advisory remediation step
    DeliveryHealthReport: Health summary over the scoring window
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from pureflow.models.notifications import DeliveryRecord


class HealthState(str, Enum):
    """
    Overall delivery health.

    Attributes:
        HEALTHY: Successful deliveries outnumber failures.
        UNHEALTHY: Failures exceed successes.
        UNKNOWN: No deliveries in the scoring window.
    """

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"

    @property
    def is_healthy(self) -> bool:
        """Check if delivery is in a healthy state."""
        return self == HealthState.HEALTHY


class SuggestionPriority(str, Enum):
    """Priority of a recovery suggestion."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecoverySuggestion(BaseModel):
    """Advisory remediation step. No automatic action is taken."""

    model_config = {"frozen": True, "extra": "forbid"}

    issue: str
    action: str
    priority: SuggestionPriority = SuggestionPriority.MEDIUM


class DeliveryHealthReport(BaseModel):
    """
    Delivery health over the scoring window.

    Attributes:
        status: Overall health state.
        issues: Human readable problems found.
        success_rate: Successful / total, None when total is zero.
        total: Deliveries in the window.
        successful: Delivered records in the window.
        failed: Failed records in the window.
        errors_in_session: Failures since the monitor started or was cleared.
        frequent_failures: True once the session failure threshold was crossed.
        last_error: Most recent failure error text.
        recent_activity: Up to five most recent records.
        generated_at: Report time.

    Example:
        >>> report = monitor.get_health_status()
        >>> if report.status == HealthState.UNHEALTHY:
        ...     print(report.issues)
    """

    model_config = {"frozen": True, "extra": "forbid"}

    status: HealthState
    issues: List[str] = Field(default_factory=list)
    success_rate: Optional[float] = None
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors_in_session: int = 0
    frequent_failures: bool = False
    last_error: Optional[str] = None
    recent_activity: List[DeliveryRecord] = Field(default_factory=list)
    generated_at: datetime

    @property
    def success_rate_percent(self) -> Optional[float]:
        """Success rate as a percentage rounded to one decimal."""
        if self.success_rate is None:
            return None
        return round(self.success_rate * 100, 1)
