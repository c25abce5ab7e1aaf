"""
Notification channel protocols and errors.

The dispatcher talks to two kinds of channel: a remote push channel that
performs network I/O and may be retried, and a local channel that presents
the notification in-process, synchronously and without retry.
"""

from typing import Protocol

from pureflow.models.notifications import NotificationRequest, PushResult


class ChannelError(Exception):
    """Base exception for notification channel failures."""

    pass


class PushChannelError(ChannelError):
    """Raised when a remote push attempt fails."""

    pass


class LocalChannelError(ChannelError):
    """Raised when the local channel cannot present a notification."""

    pass


class RemotePushChannel(Protocol):
    """
    Protocol for remote push channels.

    ``send`` returns a PushResult; a result with ``success=False`` and a
    raised PushChannelError are both counted as a failed attempt.
    """

    async def send(self, token: str, request: NotificationRequest) -> PushResult:
        """Send a notification to the device registered under ``token``."""
        ...


class LocalNotificationChannel(Protocol):
    """Protocol for the on-device fallback channel."""

    def present(self, request: NotificationRequest) -> str:
        """Present a notification and return its local identifier."""
        ...
