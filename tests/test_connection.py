"""Tests for device connection tracking."""

from pureflow.detection.connection import CONNECTION_PARAMETER, ConnectionMonitor
from pureflow.models.alerts import AlertSeverity, AlertType


def fail(monitor: ConnectionMonitor, times: int):
    return [monitor.record_fetch(False, "timeout") for _ in range(times)]


class TestConnectionMonitor:
    """Failure counting, cooldown and reset."""

    def test_third_failure_raises_alert(self, clock):
        monitor = ConnectionMonitor(clock=clock)

        first, second, third = fail(monitor, 3)

        assert first is None and second is None
        assert third.parameter == CONNECTION_PARAMETER
        assert third.type == AlertType.WARNING
        assert third.severity == AlertSeverity.HIGH
        assert third.title == "Device Unstable - DATM"
        assert third.message.startswith("DATM failed to respond 3 times in a row.")
        assert monitor.is_unstable is True
        assert monitor.is_connected is False

    def test_cooldown_suppresses_repeats(self, clock):
        monitor = ConnectionMonitor(clock=clock)
        fail(monitor, 3)

        clock.advance(600)
        assert monitor.record_fetch(False) is None

        clock.advance(1)
        alert = monitor.record_fetch(False)
        assert alert is not None
        assert alert.value == 5

    def test_success_resets_the_counter(self, clock):
        monitor = ConnectionMonitor(clock=clock)
        fail(monitor, 2)

        assert monitor.record_fetch(True) is None
        assert monitor.failed_fetches == 0
        assert monitor.is_connected is True
        assert fail(monitor, 2) == [None, None]

    def test_cooldown_survives_recovery(self, clock):
        monitor = ConnectionMonitor(max_failed_fetches=1, clock=clock)

        assert monitor.record_fetch(False) is not None
        monitor.record_fetch(True)
        clock.advance(60)

        assert monitor.record_fetch(False) is None

    def test_rollback_reopens_the_cooldown(self, clock):
        monitor = ConnectionMonitor(max_failed_fetches=1, clock=clock)
        monitor.record_fetch(False)

        monitor.rollback()

        assert monitor.record_fetch(False) is not None

    def test_signature_is_stable(self, clock):
        monitor = ConnectionMonitor(max_failed_fetches=1, cooldown_seconds=1, clock=clock)

        first = monitor.record_fetch(False)
        clock.advance(2)
        second = monitor.record_fetch(False)

        assert first.signature == second.signature
        assert first.id != second.id

    def test_status_and_reset(self, clock):
        monitor = ConnectionMonitor(device_name="Pond 1", clock=clock)
        fail(monitor, 3)

        status = monitor.get_status()
        assert status == {
            "connected": False,
            "failed_fetches": 3,
            "max_failed_fetches": 3,
            "last_alert_at": "2026-10-18T12:00:00+00:00",
        }

        monitor.reset()
        assert monitor.get_status()["last_alert_at"] is None
        assert monitor.is_connected is True
