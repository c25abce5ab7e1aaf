"""Tests for the deduplication window."""

import asyncio

import pytest

from pureflow.detection.dedup import DeduplicationWindow
from pureflow.models.alerts import AlertSeverity

SIGNATURE = "ph:error:pH Too High - 9.20:9.20"


class TestDeduplicationWindow:
    """Admission, expiry and cleanup."""

    @pytest.mark.asyncio
    async def test_repeat_is_suppressed(self, window):
        assert await window.try_admit(SIGNATURE, AlertSeverity.CRITICAL) is True
        assert await window.try_admit(SIGNATURE, AlertSeverity.CRITICAL) is False

    @pytest.mark.asyncio
    async def test_severity_is_part_of_the_key(self, window):
        assert await window.try_admit(SIGNATURE, AlertSeverity.CRITICAL) is True
        assert await window.try_admit(SIGNATURE, AlertSeverity.MEDIUM) is True

        assert len(window._entries[SIGNATURE]) == 2

    @pytest.mark.asyncio
    async def test_firing_expires_after_window(self, window, clock):
        await window.try_admit(SIGNATURE, AlertSeverity.CRITICAL)

        clock.advance(299)
        assert window.can_fire(SIGNATURE, AlertSeverity.CRITICAL) is False

        clock.advance(2)
        assert window.can_fire(SIGNATURE, AlertSeverity.CRITICAL) is True
        assert SIGNATURE not in window

    def test_remove_reopens_the_pair(self, window):
        window.record(SIGNATURE, AlertSeverity.CRITICAL)

        assert window.remove(SIGNATURE, AlertSeverity.CRITICAL) is True
        assert window.can_fire(SIGNATURE, AlertSeverity.CRITICAL) is True
        assert window.remove(SIGNATURE, AlertSeverity.CRITICAL) is False

    def test_remove_leaves_other_severities(self, window):
        window.record(SIGNATURE, AlertSeverity.CRITICAL)
        window.record(SIGNATURE, AlertSeverity.MEDIUM)

        window.remove(SIGNATURE, AlertSeverity.CRITICAL)

        assert window.can_fire(SIGNATURE, AlertSeverity.MEDIUM) is False

    def test_history_is_capped(self, clock):
        window = DeduplicationWindow(max_entries=10, clock=clock)

        for _ in range(15):
            window.record(SIGNATURE, AlertSeverity.LOW)

        assert len(window._entries[SIGNATURE]) == 10

    def test_unreadable_state_fails_open(self, window):
        window._entries[SIGNATURE] = ["not-a-firing"]  # type: ignore[list-item]

        assert window.can_fire(SIGNATURE, AlertSeverity.CRITICAL) is True
        assert SIGNATURE not in window

    def test_cleanup_removes_expired_signatures(self, window, clock):
        window.record(SIGNATURE, AlertSeverity.CRITICAL)
        window.record("other", AlertSeverity.LOW)
        clock.advance(200)
        window.record("fresh", AlertSeverity.LOW)

        clock.advance(150)
        removed = window.cleanup()

        assert removed == 2
        assert len(window) == 1
        assert "fresh" in window

    @pytest.mark.asyncio
    async def test_start_and_stop_cleanup_task(self, window):
        await window.start()
        await window.start()
        assert window.is_running is True

        await window.stop()
        assert window.is_running is False

    @pytest.mark.asyncio
    async def test_run_cleanup_takes_the_lock(self, window, clock):
        window.record(SIGNATURE, AlertSeverity.CRITICAL)
        clock.advance(301)

        assert await window.run_cleanup() == 1

    @pytest.mark.asyncio
    async def test_concurrent_admission_admits_once(self, window):
        results = await asyncio.gather(
            *(window.try_admit(SIGNATURE, AlertSeverity.CRITICAL) for _ in range(20))
        )

        assert results.count(True) == 1
        assert len(window._entries[SIGNATURE]) == 1

    def test_empty_window_is_falsy_but_usable(self, clock):
        window = DeduplicationWindow(window_seconds=30, clock=clock)

        assert len(window) == 0
        assert window.can_fire(SIGNATURE, AlertSeverity.LOW) is True
