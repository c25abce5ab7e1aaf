"""
Notification channels.

Components:
    base: Channel protocols and errors
    push: HttpPushChannel for the push relay
    local: LogNotificationChannel for in-process fallback
"""

from pureflow.notifications.channels.base import (
    ChannelError,
    LocalChannelError,
    LocalNotificationChannel,
    PushChannelError,
    RemotePushChannel,
)
from pureflow.notifications.channels.local import LogNotificationChannel
from pureflow.notifications.channels.push import HttpPushChannel

__all__ = [
    "ChannelError",
    "LocalChannelError",
    "LocalNotificationChannel",
    "PushChannelError",
    "RemotePushChannel",
    "LogNotificationChannel",
    "HttpPushChannel",
]
