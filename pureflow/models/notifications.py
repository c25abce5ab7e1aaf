"""
Notification and delivery models.

Models:
    NotificationPriority: Delivery priority (high, normal)
    ChannelPreference: Preferred channel chain (auto, remote, local)
    DeliveryChannel: Channel that handled a delivery (remote, local)
    DeliveryStatus: Delivery status (delivered, failed)
    NotificationRequest: Ephemeral request to notify the user
    PushResult: Result of one remote push attempt
    DeliveryRecord: One delivery outcome kept by the health monitor
    DeliveryOutcome: Overall result of a dispatch
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from pureflow.models.alerts import AlertSeverity


class NotificationPriority(str, Enum):
    """Delivery priority."""

    HIGH = "high"
    NORMAL = "normal"


class ChannelPreference(str, Enum):
    """
    Preferred channel chain.

    Attributes:
        AUTO: Remote push first, local fallback.
        REMOTE: Same chain as AUTO; kept for callers that state it explicitly.
        LOCAL: Skip the remote channel.
    """

    AUTO = "auto"
    REMOTE = "remote"
    LOCAL = "local"


class DeliveryChannel(str, Enum):
    """Channel that handled a delivery."""

    REMOTE = "remote"
    LOCAL = "local"


class DeliveryStatus(str, Enum):
    """Status of a delivery record."""

    DELIVERED = "delivered"
    FAILED = "failed"


class NotificationRequest(BaseModel):
    """
    Request to notify the user.

    Built from an Alert or a Schedule trigger and never persisted beyond
    delivery bookkeeping.

    Example:
        >>> request = NotificationRequest(title="Test", body="Hello")
        >>> request.priority
        <NotificationPriority.NORMAL: 'normal'>
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(default_factory=lambda: str(uuid4()), description="Notification ID")
    title: str = Field(..., description="Notification title")
    body: str = Field(default="", description="Notification body")
    data: Dict[str, Any] = Field(default_factory=dict, description="Extra payload")
    category_id: str = Field(default="alerts", description="Channel/category identifier")
    priority: NotificationPriority = Field(default=NotificationPriority.NORMAL)
    channel_preference: ChannelPreference = Field(default=ChannelPreference.AUTO)

    @property
    def allows_remote(self) -> bool:
        """Check if the remote channel may be tried."""
        return self.channel_preference != ChannelPreference.LOCAL


class PushResult(BaseModel):
    """Result of one remote push attempt."""

    model_config = {"frozen": True, "extra": "forbid"}

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class DeliveryRecord(BaseModel):
    """
    One delivery outcome.

    Attributes:
        notification_id: Request identifier.
        channel: Channel that was attempted.
        status: Delivered or failed.
        severity: Severity of the originating alert, if any.
        timestamp: Time the outcome was recorded.
        error: Error description for failures.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    notification_id: str
    channel: DeliveryChannel
    status: DeliveryStatus
    severity: Optional[AlertSeverity] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None

    @property
    def is_delivered(self) -> bool:
        """Check if the record is a successful delivery."""
        return self.status == DeliveryStatus.DELIVERED


class DeliveryOutcome(BaseModel):
    """
    Overall result of a dispatch.

    A remote failure followed by a successful local delivery is a success
    with ``fallback_used`` set.

    Attributes:
        notification_id: Request identifier.
        success: True if any channel delivered the notification.
        channel: Channel that delivered it, None on total failure.
        fallback_used: True if the local channel was invoked.
        attempts: Number of remote attempts made.
        message_id: Remote message id or local notification id.
        error: Last error seen, if any.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    notification_id: str
    success: bool
    channel: Optional[DeliveryChannel] = None
    fallback_used: bool = False
    attempts: int = 0
    message_id: Optional[str] = None
    error: Optional[str] = None
