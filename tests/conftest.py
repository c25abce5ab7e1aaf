"""Shared fixtures for the alert engine tests."""

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from pureflow.detection.dedup import DeduplicationWindow
from pureflow.detection.generator import AlertGenerator
from pureflow.models.thresholds import default_threshold_config
from pureflow.monitoring.health import DeliveryHealthMonitor
from pureflow.notifications.channels.local import LogNotificationChannel
from pureflow.storage.kv import InMemoryKeyValueStore


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


async def sleep_forever(delay: float) -> None:
    """Timer sleep that never returns until cancelled."""
    await asyncio.Event().wait()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def threshold_config():
    return default_threshold_config()


@pytest.fixture
def window(clock) -> DeduplicationWindow:
    return DeduplicationWindow(window_seconds=300, clock=clock)


@pytest.fixture
def generator(window, threshold_config) -> AlertGenerator:
    return AlertGenerator(
        dedup_window=window,
        threshold_config=threshold_config,
        rng=random.Random(7),
    )


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def local_channel() -> LogNotificationChannel:
    return LogNotificationChannel()


@pytest.fixture
def health_monitor(clock) -> DeliveryHealthMonitor:
    return DeliveryHealthMonitor(clock=clock)
