"""Tests for delivery health monitoring."""

import json

import pytest

from pureflow.models.health import HealthState, SuggestionPriority
from pureflow.models.notifications import DeliveryChannel
from pureflow.monitoring.health import DeliveryHealthMonitor


class TestDeliveryHealthMonitor:
    """Health status, suggestions and persistence."""

    def test_no_activity_is_unknown(self, health_monitor):
        health = health_monitor.get_health_status()

        assert health.status == HealthState.UNKNOWN
        assert health.success_rate is None
        assert health.issues == ["No notification activity in the last hour"]

    def test_remote_failure_with_local_fallback(self, health_monitor):
        health_monitor.record_failure("n-1", DeliveryChannel.REMOTE, "timeout")
        health_monitor.record_delivery("n-1", DeliveryChannel.LOCAL)

        health = health_monitor.get_health_status()

        assert health.status == HealthState.HEALTHY
        assert health.total == 2
        assert health.successful == 1
        assert health.failed == 1
        assert health.success_rate_percent == 50.0
        assert health.last_error == "timeout"
        assert "Remote push failing; notifications delivered via local fallback" in health.issues

    def test_more_failures_than_successes_is_unhealthy(self, health_monitor):
        health_monitor.record_failure("n-1", DeliveryChannel.REMOTE, "e1")
        health_monitor.record_failure("n-2", DeliveryChannel.LOCAL, "e2")
        health_monitor.record_delivery("n-3", DeliveryChannel.REMOTE)

        health = health_monitor.get_health_status()

        assert health.status == HealthState.UNHEALTHY
        assert "High failure rate in recent notifications" in health.issues

    def test_records_outside_window_are_ignored(self, health_monitor, clock):
        health_monitor.record_failure("n-1", DeliveryChannel.REMOTE, "e1")
        clock.advance(3601)

        health = health_monitor.get_health_status()

        assert health.status == HealthState.UNKNOWN
        assert health.errors_in_session == 1

    def test_recent_activity_keeps_last_five(self, health_monitor):
        for i in range(8):
            health_monitor.record_delivery(f"n-{i}", DeliveryChannel.REMOTE)

        health = health_monitor.get_health_status()

        assert [r.notification_id for r in health.recent_activity] == [f"n-{i}" for i in range(3, 8)]

    def test_all_failed_suggestions(self, health_monitor):
        health_monitor.record_failure("n-1", DeliveryChannel.REMOTE, "e1")
        health_monitor.record_failure("n-1", DeliveryChannel.LOCAL, "e2")

        suggestions = health_monitor.get_recovery_suggestions()

        assert suggestions[0].issue == "All recent notifications failed"
        assert suggestions[0].priority == SuggestionPriority.HIGH
        assert any(s.issue == "Remote push delivery failing" for s in suggestions)

    def test_healthy_has_no_suggestions(self, health_monitor):
        health_monitor.record_delivery("n-1", DeliveryChannel.REMOTE)

        assert health_monitor.get_recovery_suggestions() == []

    def test_frequent_failures_signal(self, clock):
        monitor = DeliveryHealthMonitor(frequent_failure_threshold=3, clock=clock)

        for i in range(3):
            monitor.record_failure(f"n-{i}", DeliveryChannel.REMOTE, "e")
        assert monitor.frequent_failures_detected is False

        monitor.record_failure("n-3", DeliveryChannel.REMOTE, "e")
        assert monitor.frequent_failures_detected is True
        assert monitor.get_health_status().frequent_failures is True

    def test_status_message(self, health_monitor):
        health_monitor.record_delivery("n-1", DeliveryChannel.REMOTE)

        assert health_monitor.get_status_message() == "Notifications: Working normally"

    @pytest.mark.asyncio
    async def test_persist_and_load(self, store, clock):
        monitor = DeliveryHealthMonitor(store=store, clock=clock)
        monitor.record_failure("n-1", DeliveryChannel.REMOTE, "x" * 150)

        assert await monitor.persist() is True

        summary = json.loads(await store.get("notification_health_tracking"))
        assert summary["errorCount"] == 1
        assert len(summary["recentFailures"][0]["error"]) == 100

        restored = DeliveryHealthMonitor(store=store, clock=clock)
        assert await restored.load() is True
        assert restored.errors_in_session == 1

    @pytest.mark.asyncio
    async def test_clear_resets_counters(self, store, clock):
        monitor = DeliveryHealthMonitor(store=store, clock=clock)
        monitor.record_failure("n-1", DeliveryChannel.REMOTE, "e")

        await monitor.clear()

        assert len(monitor) == 0
        assert monitor.errors_in_session == 0
        summary = json.loads(await store.get("notification_health_tracking"))
        assert summary["errorCount"] == 0

    @pytest.mark.asyncio
    async def test_persist_without_store(self, health_monitor):
        assert await health_monitor.persist() is False
