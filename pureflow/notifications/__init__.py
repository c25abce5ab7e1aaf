"""
Notification delivery for the alert engine.

Components:
    dispatcher: NotificationDispatcher with remote retry and local fallback
    channels/: Remote push and local notification channels
    tokens: TokenRegistry for the device registration token
    templates: NotificationRequest builders for alerts and reminders

Example:
    >>> from pureflow.notifications import (
    ...     LogNotificationChannel,
    ...     NotificationDispatcher,
    ...     TokenRegistry,
    ... )
    >>> dispatcher = NotificationDispatcher(
    ...     local_channel=LogNotificationChannel(),
    ...     tokens=TokenRegistry(),
    ... )
"""

from pureflow.notifications.channels import (
    ChannelError,
    HttpPushChannel,
    LocalChannelError,
    LocalNotificationChannel,
    LogNotificationChannel,
    PushChannelError,
    RemotePushChannel,
)
from pureflow.notifications.dispatcher import (
    DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DispatchCancelledError,
    NotificationDispatcher,
    create_dispatcher,
)
from pureflow.notifications.templates import (
    REMINDER_TEMPLATES,
    alert_notification,
    device_unstable_notification,
    forecast_reminder,
    harmful_state_notification,
    monitoring_reminder,
    report_reminder,
)
from pureflow.notifications.tokens import TokenRegistry

__all__ = [
    # Channels
    "ChannelError",
    "HttpPushChannel",
    "LocalChannelError",
    "LocalNotificationChannel",
    "LogNotificationChannel",
    "PushChannelError",
    "RemotePushChannel",
    # Dispatcher
    "DEFAULT_ATTEMPT_TIMEOUT_SECONDS",
    "DEFAULT_BACKOFF_SECONDS",
    "DEFAULT_MAX_ATTEMPTS",
    "DispatchCancelledError",
    "NotificationDispatcher",
    "create_dispatcher",
    # Templates
    "REMINDER_TEMPLATES",
    "alert_notification",
    "device_unstable_notification",
    "forecast_reminder",
    "harmful_state_notification",
    "monitoring_reminder",
    "report_reminder",
    # Tokens
    "TokenRegistry",
]
