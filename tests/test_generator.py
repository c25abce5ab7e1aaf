"""Tests for alert generation."""

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from pureflow.detection.dedup import DeduplicationWindow
from pureflow.detection.generator import HARMFUL_STATE_PARAMETER, AlertGenerator
from pureflow.models.alerts import AlertSeverity, AlertType
from pureflow.models.readings import Reading
from pureflow.models.thresholds import FishpondType, default_threshold_config


def reading(clock, **values) -> Reading:
    return Reading(values=values, timestamp=clock())


class TestAlertGenerator:
    """Threshold alerts, rain alerts and resolution."""

    @pytest.mark.asyncio
    async def test_critical_ph_raises_one_alert(self, generator, clock):
        alerts = await generator.generate([reading(clock, pH=9.2)])

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.parameter == "pH"
        assert alert.type == AlertType.ERROR
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.title == "pH Too High - 9.20"
        assert alert.signature == "ph:error:pH Too High - 9.20:9.20"
        assert alert.message.startswith("pH reading of 9.20 is critical")
        assert alert.threshold is not None and alert.threshold.max == 8.5

    @pytest.mark.asyncio
    async def test_normal_reading_raises_nothing(self, generator, clock):
        alerts = await generator.generate(
            [reading(clock, pH=7.2, temperature=28.0, turbidity=10, salinity=2)]
        )

        assert alerts == []
        assert generator.get_active_alerts() == []

    @pytest.mark.asyncio
    async def test_warning_maps_to_medium(self, generator, clock):
        alerts = await generator.generate([reading(clock, temperature=31)])

        assert alerts[0].type == AlertType.WARNING
        assert alerts[0].severity == AlertSeverity.MEDIUM

    @pytest.mark.asyncio
    async def test_repeat_counts_occurrence(self, generator, clock):
        first = await generator.generate([reading(clock, pH=9.2)])
        clock.advance(30)
        second = await generator.generate([reading(clock, pH=9.2)])

        assert second == []
        active = generator.get_active_alert(first[0].signature, AlertSeverity.CRITICAL)
        assert active.occurrence_count == 2
        assert active.id == first[0].id

    @pytest.mark.asyncio
    async def test_repeat_fires_again_after_window(self, generator, clock):
        await generator.generate([reading(clock, pH=9.2)])
        clock.advance(301)

        alerts = await generator.generate([reading(clock, pH=9.2)])

        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_return_to_normal_resolves(self, generator, clock, window):
        [alert] = await generator.generate([reading(clock, pH=9.2)])
        clock.advance(10)

        await generator.generate([reading(clock, pH=7.2)])

        resolved = generator.pop_resolved()
        assert [a.id for a in resolved] == [alert.id]
        assert resolved[0].resolved_at == clock()
        assert alert.signature not in window
        assert generator.pop_resolved() == []

    @pytest.mark.asyncio
    async def test_non_numeric_values_are_ignored(self, generator, clock):
        alerts = await generator.generate([reading(clock, pH="abc", temperature=None)])

        assert alerts == []

    @pytest.mark.asyncio
    async def test_batch_is_processed_oldest_first(self, generator, clock):
        newer = reading(clock, pH=7.2)
        older = Reading(values={"pH": 9.2}, timestamp=clock() - timedelta(seconds=60))

        await generator.generate([newer, older])

        assert len(generator.pop_resolved()) == 1
        assert generator.get_active_alerts() == []

    @pytest.mark.asyncio
    async def test_heavy_rain_raises_high_info_alert(self, generator, clock):
        alerts = await generator.generate([reading(clock, isRaining=2)])

        assert len(alerts) == 1
        assert alerts[0].type == AlertType.INFO
        assert alerts[0].severity == AlertSeverity.HIGH
        assert alerts[0].title == "Weather Update: Heavy Rain Detected"

    @pytest.mark.asyncio
    async def test_light_rain_is_low_severity(self, generator, clock):
        alerts = await generator.generate([reading(clock, isRaining=1)])

        assert alerts[0].severity == AlertSeverity.LOW

    @pytest.mark.asyncio
    async def test_rain_stopping_resolves_and_rearms(self, generator, clock):
        [rain] = await generator.generate([reading(clock, isRaining=2)])

        assert await generator.generate([reading(clock, isRaining=0)]) == []
        assert [a.id for a in generator.pop_resolved()] == [rain.id]

        again = await generator.generate([reading(clock, isRaining=2)])
        assert len(again) == 1

    @pytest.mark.asyncio
    async def test_unknown_rain_level_is_ignored(self, generator, clock):
        assert await generator.generate([reading(clock, isRaining=5)]) == []

    @pytest.mark.asyncio
    async def test_rollback_lets_the_alert_fire_again(self, generator, clock):
        [alert] = await generator.generate([reading(clock, pH=9.2)])

        assert await generator.rollback(alert) is True
        assert generator.get_active_alerts() == []

        again = await generator.generate([reading(clock, pH=9.2)])
        assert len(again) == 1

    @pytest.mark.asyncio
    async def test_threshold_config_override(self, generator, clock):
        saltwater = default_threshold_config(FishpondType.SALTWATER)

        alerts = await generator.generate(
            [reading(clock, salinity=30)],
            threshold_config=saltwater,
        )

        assert alerts == []

    @pytest.mark.asyncio
    async def test_active_alerts_sorted_by_severity(self, generator, clock):
        await generator.generate([reading(clock, pH=9.2, temperature=31, isRaining=1)])

        severities = [a.severity for a in generator.get_active_alerts()]

        # pH, the pH+temperature harmful state, temperature, rain
        assert severities == [
            AlertSeverity.CRITICAL,
            AlertSeverity.CRITICAL,
            AlertSeverity.MEDIUM,
            AlertSeverity.LOW,
        ]

    @pytest.mark.asyncio
    async def test_concurrent_batches_admit_once(self, generator, clock):
        results = await asyncio.gather(
            *(generator.generate([reading(clock, pH=9.2)]) for _ in range(10))
        )

        admitted = [alert for alerts in results for alert in alerts]
        assert len(admitted) == 1
        active = generator.get_active_alert(admitted[0].signature, AlertSeverity.CRITICAL)
        assert active.occurrence_count == 10

    @pytest.mark.asyncio
    async def test_mixed_naive_and_aware_timestamps(self, generator, clock):
        naive = Reading(values={"pH": 9.2}, timestamp=datetime(2026, 10, 18, 11, 0))

        await generator.generate([reading(clock, pH=7.2), naive])

        assert naive.timestamp.tzinfo is timezone.utc
        assert len(generator.pop_resolved()) == 1
        assert generator.get_active_alerts() == []

    @pytest.mark.asyncio
    async def test_generate_uses_the_given_window(self, generator, clock):
        other = DeduplicationWindow(window_seconds=300, clock=clock)

        [alert] = await generator.generate([reading(clock, pH=9.2)], dedup_window=other)

        assert alert.signature in other
        assert alert.signature not in generator.dedup_window


class TestAlertGeneratorConstruction:
    """Injected collaborators."""

    def test_keeps_injected_empty_window(self, clock):
        window = DeduplicationWindow(window_seconds=42, clock=clock)

        generator = AlertGenerator(dedup_window=window)

        assert len(window) == 0
        assert generator.dedup_window is window


class TestHarmfulState:
    """Aggregate alert over several breached parameters."""

    @pytest.mark.asyncio
    async def test_two_breaches_raise_aggregate_alert(self, generator, clock):
        alerts = await generator.generate([reading(clock, pH=9.2, temperature=31)])

        harmful = [a for a in alerts if a.parameter == HARMFUL_STATE_PARAMETER]
        assert len(alerts) == 3
        assert len(harmful) == 1
        assert harmful[0].title == "Harmful Water State - pH, Temperature"
        assert harmful[0].severity == AlertSeverity.CRITICAL
        assert harmful[0].type == AlertType.ERROR
        assert harmful[0].value == 2
        assert "pH 9.20" in harmful[0].message
        assert "Temperature 31.0°C" in harmful[0].message

    @pytest.mark.asyncio
    async def test_warnings_only_are_high_severity(self, generator, clock):
        alerts = await generator.generate([reading(clock, temperature=31, turbidity=60)])

        [harmful] = [a for a in alerts if a.parameter == HARMFUL_STATE_PARAMETER]
        assert harmful.severity == AlertSeverity.HIGH

    @pytest.mark.asyncio
    async def test_single_breach_has_no_aggregate(self, generator, clock):
        alerts = await generator.generate([reading(clock, pH=9.2, temperature=28)])

        assert [a.parameter for a in alerts] == ["pH"]

    @pytest.mark.asyncio
    async def test_aggregate_is_deduplicated(self, generator, clock):
        await generator.generate([reading(clock, pH=9.2, temperature=31)])
        clock.advance(30)

        assert await generator.generate([reading(clock, pH=9.2, temperature=31)]) == []

    @pytest.mark.asyncio
    async def test_recovery_resolves_aggregate(self, generator, clock):
        alerts = await generator.generate([reading(clock, pH=9.2, temperature=31)])
        [harmful] = [a for a in alerts if a.parameter == HARMFUL_STATE_PARAMETER]
        generator.pop_resolved()

        await generator.generate([reading(clock, pH=9.2, temperature=28)])

        assert [a.id for a in generator.pop_resolved()] == [alerts[1].id, harmful.id]

    @pytest.mark.asyncio
    async def test_new_parameter_set_replaces_aggregate(self, generator, clock):
        first = await generator.generate([reading(clock, pH=9.2, temperature=31)])
        [old] = [a for a in first if a.parameter == HARMFUL_STATE_PARAMETER]

        second = await generator.generate([reading(clock, pH=9.2, temperature=31, turbidity=60)])

        [new] = [a for a in second if a.parameter == HARMFUL_STATE_PARAMETER]
        assert new.title == "Harmful Water State - pH, Temperature, Turbidity"
        assert old.id in [a.id for a in generator.pop_resolved()]
        active = [a for a in generator.get_active_alerts() if a.parameter == HARMFUL_STATE_PARAMETER]
        assert [a.id for a in active] == [new.id]

    @pytest.mark.asyncio
    async def test_aggregate_can_be_disabled(self, window, threshold_config, clock):
        generator = AlertGenerator(
            dedup_window=window,
            threshold_config=threshold_config,
            rng=random.Random(7),
            harmful_state_min_parameters=None,
        )

        alerts = await generator.generate([reading(clock, pH=9.2, temperature=31)])

        assert len(alerts) == 2
