"""Tests for notification dispatch, retry and fallback."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pureflow.models.alerts import AlertSeverity
from pureflow.models.health import HealthState
from pureflow.models.notifications import (
    ChannelPreference,
    DeliveryChannel,
    NotificationRequest,
    PushResult,
)
from pureflow.notifications.channels.base import LocalChannelError, PushChannelError
from pureflow.notifications.dispatcher import DispatchCancelledError, NotificationDispatcher
from pureflow.notifications.tokens import TokenRegistry


@pytest.fixture
def request_() -> NotificationRequest:
    return NotificationRequest(title="🚨 Water Quality Alert", body="Critical: pH level is 9.20")


@pytest.fixture
def remote() -> AsyncMock:
    channel = AsyncMock()
    channel.send.return_value = PushResult(success=True, message_id="msg-1")
    return channel


@pytest.fixture
def local() -> MagicMock:
    channel = MagicMock()
    channel.present.return_value = "local-1"
    return channel


def make_dispatcher(local, remote=None, token="device-token", health_monitor=None, **kwargs):
    return NotificationDispatcher(
        local_channel=local,
        remote_channel=remote,
        tokens=TokenRegistry(token),
        health_monitor=health_monitor,
        backoff_seconds=kwargs.pop("backoff_seconds", 0),
        **kwargs,
    )


class TestNotificationDispatcher:
    """Channel chain behaviour."""

    @pytest.mark.asyncio
    async def test_remote_success(self, local, remote, request_):
        dispatcher = make_dispatcher(local, remote)

        outcome = await dispatcher.dispatch(request_, severity=AlertSeverity.CRITICAL)

        assert outcome.success is True
        assert outcome.channel == DeliveryChannel.REMOTE
        assert outcome.fallback_used is False
        assert outcome.attempts == 1
        assert outcome.message_id == "msg-1"
        remote.send.assert_awaited_once_with("device-token", request_)
        local.present.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_once_after_remote_attempts(self, local, remote, request_, health_monitor):
        remote.send.side_effect = PushChannelError("relay unavailable")
        dispatcher = make_dispatcher(local, remote, health_monitor=health_monitor)

        outcome = await dispatcher.dispatch(request_, severity=AlertSeverity.CRITICAL)

        assert outcome.success is True
        assert outcome.channel == DeliveryChannel.LOCAL
        assert outcome.fallback_used is True
        assert outcome.attempts == 3
        assert outcome.error == "relay unavailable"
        assert remote.send.await_count == 3
        local.present.assert_called_once_with(request_)

        health = health_monitor.get_health_status()
        assert health.failed == 1
        assert health.successful == 1

    @pytest.mark.asyncio
    async def test_third_attempt_success_skips_fallback(self, local, remote, request_):
        remote.send.side_effect = [
            PushChannelError("first"),
            PushResult(success=False, error="second"),
            PushResult(success=True, message_id="msg-3"),
        ]
        dispatcher = make_dispatcher(local, remote)

        outcome = await dispatcher.dispatch(request_)

        assert outcome.success is True
        assert outcome.channel == DeliveryChannel.REMOTE
        assert outcome.attempts == 3
        assert outcome.fallback_used is False
        local.present.assert_not_called()

    @pytest.mark.asyncio
    async def test_attempt_timeout(self, local, remote, request_):
        async def slow_send(token, request):
            await asyncio.sleep(1)

        remote.send.side_effect = slow_send
        dispatcher = make_dispatcher(local, remote, max_attempts=1, attempt_timeout_seconds=0.01)

        outcome = await dispatcher.dispatch(request_)

        assert outcome.channel == DeliveryChannel.LOCAL
        assert outcome.fallback_used is True
        assert "timed out" in outcome.error

    @pytest.mark.asyncio
    async def test_no_token_goes_straight_to_local(self, local, remote, request_):
        dispatcher = make_dispatcher(local, remote, token=None)

        outcome = await dispatcher.dispatch(request_)

        assert outcome.channel == DeliveryChannel.LOCAL
        assert outcome.fallback_used is True
        assert outcome.attempts == 0
        remote.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_local_preference_skips_remote(self, local, remote):
        request = NotificationRequest(title="Local only", channel_preference=ChannelPreference.LOCAL)
        dispatcher = make_dispatcher(local, remote)

        outcome = await dispatcher.dispatch(request)

        assert outcome.channel == DeliveryChannel.LOCAL
        assert outcome.fallback_used is False
        remote.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_total_failure(self, local, remote, request_, health_monitor):
        remote.send.side_effect = PushChannelError("relay unavailable")
        local.present.side_effect = LocalChannelError("Local notifications are disabled")
        dispatcher = make_dispatcher(local, remote, health_monitor=health_monitor)

        outcome = await dispatcher.dispatch(request_, severity=AlertSeverity.CRITICAL)

        assert outcome.success is False
        assert outcome.channel is None
        assert outcome.fallback_used is True
        assert outcome.error == "Local notifications are disabled"

        health = health_monitor.get_health_status()
        assert health.failed == 2
        assert health.status == HealthState.UNHEALTHY

    @pytest.mark.asyncio
    async def test_local_returning_none_is_failure(self, local, request_):
        local.present.return_value = None
        dispatcher = make_dispatcher(local, token=None)

        outcome = await dispatcher.dispatch(request_)

        assert outcome.success is False

    @pytest.mark.asyncio
    async def test_stop_interrupts_backoff(self, local, remote, request_):
        remote.send.side_effect = PushChannelError("relay unavailable")
        dispatcher = make_dispatcher(local, remote, backoff_seconds=10)

        task = asyncio.create_task(dispatcher.dispatch(request_))
        await asyncio.sleep(0.05)
        await dispatcher.stop()

        with pytest.raises(DispatchCancelledError):
            await task
        assert remote.send.await_count == 1
        local.present.assert_not_called()
        remote.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_after_stop_allows_retries(self, local, remote, request_):
        remote.send.side_effect = [PushChannelError("once"), PushResult(success=True)]
        dispatcher = make_dispatcher(local, remote)
        await dispatcher.stop()
        await dispatcher.start()

        outcome = await dispatcher.dispatch(request_)

        assert outcome.channel == DeliveryChannel.REMOTE
        assert outcome.attempts == 2

    @pytest.mark.asyncio
    async def test_backoff_grows_linearly(self, local, remote, request_):
        remote.send.side_effect = PushChannelError("relay unavailable")
        dispatcher = make_dispatcher(local, remote, backoff_seconds=0.5)
        dispatcher._backoff = AsyncMock()

        await dispatcher.dispatch(request_)

        delays = [call.args[0] for call in dispatcher._backoff.await_args_list]
        assert delays == [0.5, 1.0]

    def test_keeps_injected_empty_health_monitor(self, local, health_monitor):
        tokens = TokenRegistry()

        dispatcher = NotificationDispatcher(
            local_channel=local,
            tokens=tokens,
            health_monitor=health_monitor,
        )

        assert len(health_monitor) == 0
        assert dispatcher.health_monitor is health_monitor
        assert dispatcher.tokens is tokens


class TestTokenRegistry:
    """Token rotation."""

    @pytest.mark.asyncio
    async def test_refresh_swaps_token(self):
        registry = TokenRegistry("old", fetcher=AsyncMock(return_value="new"))

        assert await registry.refresh() == "new"
        assert registry.current == "new"

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_token(self):
        registry = TokenRegistry("old", fetcher=AsyncMock(side_effect=RuntimeError("offline")))

        assert await registry.refresh() == "old"

    def test_empty_token_clears(self):
        registry = TokenRegistry("old")

        registry.set("")

        assert registry.current is None

    @pytest.mark.asyncio
    async def test_refresh_clears_token_removed_from_store(self):
        fetcher = AsyncMock(side_effect=["tok-1", None])
        registry = TokenRegistry(fetcher=fetcher)

        assert await registry.refresh() == "tok-1"
        assert await registry.refresh() is None
        assert registry.current is None
