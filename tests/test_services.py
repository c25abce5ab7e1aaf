"""Tests for the alert engine service helpers."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from pureflow.engine import EngineCycleResult
from pureflow.services.alert_engine import AlertEngineService, parse_reading
from pureflow.storage.redis_client import RedisClient


class TestParseReading:
    """Pub/sub payload parsing."""

    def test_nested_values(self):
        reading = parse_reading(
            {"timestamp": "2026-10-18T12:00:00Z", "values": {"pH": 9.2, "isRaining": 1}}
        )

        assert reading.numeric("pH") == 9.2
        assert reading.numeric("isRaining") == 1.0
        assert reading.timestamp == datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def test_flat_map(self):
        reading = parse_reading({"pH": 7.2, "temperature": 28.0})

        assert reading.numeric("temperature") == 28.0
        assert reading.timestamp.tzinfo is not None

    def test_naive_timestamp_is_utc(self):
        reading = parse_reading({"timestamp": "2026-10-18T12:00:00", "pH": 7.0})

        assert reading.timestamp.tzinfo == timezone.utc

    def test_bad_timestamp_means_now(self):
        reading = parse_reading({"timestamp": "yesterday", "pH": 7.0})

        assert reading is not None
        assert "timestamp" not in reading.values

    @pytest.mark.parametrize("payload", [None, "pH=7", [1, 2]])
    def test_non_mapping_is_skipped(self, payload):
        assert parse_reading(payload) is None


class TestAlertEngineService:
    """Message routing."""

    @pytest.mark.asyncio
    async def test_processes_readings_channel_only(self):
        service = AlertEngineService(config_path="config")
        service.engine = AsyncMock()
        service.engine.process.return_value = EngineCycleResult()

        await service._process_message({"channel": "updates:other", "data": {"pH": 9.2}})
        service.engine.process.assert_not_awaited()

        await service._process_message(
            {"channel": RedisClient.CHANNEL_READINGS, "data": {"values": {"pH": 9.2}}}
        )
        service.engine.process.assert_awaited_once()
        reading = service.engine.process.await_args.args[0]
        assert reading.numeric("pH") == 9.2

    @pytest.mark.asyncio
    async def test_device_status_feeds_fetch_tracking(self):
        service = AlertEngineService(config_path="config")
        service.engine = AsyncMock()
        service.engine.record_fetch.return_value = None

        await service._process_message(
            {"channel": RedisClient.CHANNEL_DEVICE_STATUS, "data": {"success": False, "error": "timeout"}}
        )
        await service._process_message(
            {"channel": RedisClient.CHANNEL_DEVICE_STATUS, "data": {"success": "yes"}}
        )

        service.engine.record_fetch.assert_awaited_once_with(False, "timeout")
        service.engine.process.assert_not_awaited()

    def test_service_name(self):
        assert AlertEngineService().service_name == "alert-engine"
