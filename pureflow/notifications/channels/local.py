"""
Local notification channel.

Presents notifications in-process: each one is written to the structured
log and kept in a bounded tray that operators and tests can inspect.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional, Tuple
from uuid import uuid4

import structlog

from pureflow.models.notifications import NotificationPriority, NotificationRequest
from pureflow.notifications.channels.base import LocalChannelError

logger = structlog.get_logger(__name__)

DEFAULT_TRAY_SIZE = 100


class LogNotificationChannel:
    """
    Fallback channel that logs notifications.

    Attributes:
        enabled: When False, ``present`` raises LocalChannelError.
        _tray: Recently presented notifications with their ids and times.

    Example:
        >>> channel = LogNotificationChannel()
        >>> notification_id = channel.present(request)
        >>> channel.presented[-1].title
        'Test'
    """

    def __init__(self, tray_size: int = DEFAULT_TRAY_SIZE, enabled: bool = True) -> None:
        self.enabled = enabled
        self._tray: Deque[Tuple[str, datetime, NotificationRequest]] = deque(maxlen=tray_size)

    def present(self, request: NotificationRequest) -> str:
        """
        Present a notification.

        Returns:
            str: Local notification id.

        Raises:
            LocalChannelError: If the channel is disabled.
        """
        if not self.enabled:
            raise LocalChannelError("Local notifications are disabled")

        notification_id = f"local-{uuid4().hex[:12]}"
        self._tray.append((notification_id, datetime.now(timezone.utc), request))

        log = logger.warning if request.priority == NotificationPriority.HIGH else logger.info
        log(
            "local_notification",
            local_id=notification_id,
            notification_id=request.id,
            title=request.title,
            body=request.body,
            category_id=request.category_id,
        )
        return notification_id

    @property
    def presented(self) -> List[NotificationRequest]:
        """Notifications in the tray, oldest first."""
        return [request for _, _, request in self._tray]

    def find(self, notification_id: str) -> Optional[NotificationRequest]:
        """Look up a presented notification by local id."""
        for local_id, _, request in self._tray:
            if local_id == notification_id:
                return request
        return None

    def clear(self) -> None:
        """Empty the tray."""
        self._tray.clear()
