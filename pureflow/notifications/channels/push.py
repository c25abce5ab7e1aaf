"""
HTTP push relay channel.

Sends notifications through the push relay service, which forwards them to
the device's registration token.

Endpoint:
    POST {base_url}/send

Request Format:
    {
        "fcmToken": "<registration token>",
        "title": "🚨 Water Quality Alert",
        "body": "Critical: pH level is 9.20",
        "data": {"type": "water_quality_alert", ...},
        "priority": "high"
    }

Response Format:
    {"success": true, "messageId": "projects/.../messages/123"}
    {"success": false, "error": "...", "message": "Failed to send notification"}
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import structlog

from pureflow.models.notifications import NotificationRequest, PushResult
from pureflow.notifications.channels.base import PushChannelError

logger = structlog.get_logger(__name__)


class HttpPushChannel:
    """
    Async client for the push relay.

    Attributes:
        base_url: Relay base URL without trailing slash.
        api_key: Key sent in the ``x-api-key`` header.
        timeout_seconds: Total timeout per request.

    Example:
        >>> channel = HttpPushChannel("https://push.example.com", api_key="secret")
        >>> result = await channel.send(token, request)
        >>> await channel.close()
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            headers = {"User-Agent": "pureflow-alert-engine/0.1"}
            if self.api_key:
                headers["x-api-key"] = self.api_key
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("push_channel_session_closed", base_url=self.base_url)

    def _build_payload(self, token: str, request: NotificationRequest) -> Dict[str, Any]:
        """Build the relay request body."""
        data = {key: str(value) for key, value in request.data.items()}
        data.setdefault("notificationId", request.id)
        data.setdefault("categoryId", request.category_id)
        return {
            "fcmToken": token,
            "title": request.title,
            "body": request.body,
            "data": data,
            "priority": request.priority.value,
        }

    async def send(self, token: str, request: NotificationRequest) -> PushResult:
        """
        Send one notification through the relay.

        Args:
            token: Device registration token.
            request: Notification to send.

        Returns:
            PushResult: Success with the relay message id.

        Raises:
            PushChannelError: If the relay is unreachable, times out, or
                reports a failure.
        """
        session = await self._ensure_session()
        url = f"{self.base_url}/send"

        try:
            async with session.post(url, json=self._build_payload(token, request)) as response:
                try:
                    body = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = {}
                if not isinstance(body, dict):
                    body = {}

                if response.status >= 400 or not body.get("success", False):
                    error = body.get("error") or body.get("message") or f"HTTP {response.status}"
                    logger.warning(
                        "push_send_rejected",
                        url=url,
                        status=response.status,
                        notification_id=request.id,
                        error=error,
                    )
                    raise PushChannelError(f"Push relay rejected notification: {error}")

                message_id = body.get("messageId")
                logger.debug(
                    "push_sent",
                    notification_id=request.id,
                    message_id=message_id,
                )
                return PushResult(success=True, message_id=message_id)

        except aiohttp.ClientError as e:
            logger.warning("push_client_error", url=url, error=str(e))
            raise PushChannelError(f"Push request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.warning("push_timeout", url=url, timeout=self.timeout_seconds)
            raise PushChannelError(
                f"Push request timeout after {self.timeout_seconds}s"
            ) from e
