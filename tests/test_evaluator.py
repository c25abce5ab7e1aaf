"""Tests for threshold evaluation and signatures."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from pureflow.detection.evaluator import ThresholdEvaluator
from pureflow.detection.signature import build_signature
from pureflow.models.alerts import AlertType
from pureflow.models.readings import Direction, ParameterStatus, Reading
from pureflow.models.thresholds import FishpondType, default_threshold_config


@pytest.fixture
def evaluator() -> ThresholdEvaluator:
    return ThresholdEvaluator()


class TestThresholdEvaluator:
    """Classification against the freshwater profile."""

    @pytest.mark.parametrize(
        "parameter,value,status,direction",
        [
            ("pH", 6.5, ParameterStatus.NORMAL, Direction.NONE),
            ("pH", 8.5, ParameterStatus.NORMAL, Direction.NONE),
            ("pH", 6.4, ParameterStatus.WARNING, Direction.LOW),
            ("pH", 8.6, ParameterStatus.WARNING, Direction.HIGH),
            ("pH", 5.9, ParameterStatus.CRITICAL, Direction.LOW),
            ("pH", 9.2, ParameterStatus.CRITICAL, Direction.HIGH),
            ("temperature", 25, ParameterStatus.WARNING, Direction.LOW),
            ("temperature", 36, ParameterStatus.CRITICAL, Direction.HIGH),
            ("turbidity", 62, ParameterStatus.WARNING, Direction.HIGH),
            ("turbidity", 120, ParameterStatus.CRITICAL, Direction.HIGH),
            ("salinity", 7, ParameterStatus.WARNING, Direction.HIGH),
        ],
    )
    def test_classification(self, evaluator, threshold_config, parameter, value, status, direction):
        result = evaluator.evaluate(parameter, value, threshold_config)

        assert result is not None
        assert result.status == status
        assert result.direction == direction

    def test_in_range_values_are_normal(self, evaluator, threshold_config):
        for parameter, values in {
            "pH": [6.5, 7.0, 7.2, 8.0, 8.5],
            "temperature": [26, 28.1, 30],
            "turbidity": [0, 10, 49.9, 50],
            "salinity": [0, 2.5, 5],
        }.items():
            for value in values:
                result = evaluator.evaluate(parameter, value, threshold_config)
                assert result.status == ParameterStatus.NORMAL, (parameter, value)

    def test_near_boundary_flag_on_small_breach(self, evaluator, threshold_config):
        near = evaluator.evaluate("pH", 8.6, threshold_config)
        far = evaluator.evaluate("temperature", 25, threshold_config)

        assert near.near_boundary is True
        assert far.near_boundary is False

    def test_parameter_lookup_is_case_insensitive(self, evaluator, threshold_config):
        result = evaluator.evaluate("PH", 9.2, threshold_config)

        assert result.status == ParameterStatus.CRITICAL

    @pytest.mark.parametrize("value", [None, "abc", True, math.nan, math.inf, [1]])
    def test_non_numeric_values_are_skipped(self, evaluator, threshold_config, value):
        assert evaluator.evaluate("pH", value, threshold_config) is None

    def test_numeric_strings_are_accepted(self, evaluator, threshold_config):
        result = evaluator.evaluate("pH", "9.2", threshold_config)

        assert result.status == ParameterStatus.CRITICAL

    def test_unknown_parameter_is_skipped(self, evaluator, threshold_config):
        assert evaluator.evaluate("dissolvedOxygen", 3.0, threshold_config) is None

    def test_missing_config_is_skipped(self, evaluator):
        assert evaluator.evaluate("pH", 9.2, None) is None

    def test_evaluation_is_pure(self, evaluator, threshold_config):
        first = evaluator.evaluate("pH", 6.4, threshold_config)
        second = evaluator.evaluate("pH", 6.4, threshold_config)

        assert first == second

    def test_approach_warnings_are_opt_in(self, evaluator, threshold_config):
        approach = threshold_config.model_copy(update={"warn_on_approach": True})

        assert evaluator.evaluate("pH", 6.7, threshold_config).status == ParameterStatus.NORMAL

        result = evaluator.evaluate("pH", 6.7, approach)
        assert result.status == ParameterStatus.WARNING
        assert result.direction == Direction.LOW
        assert result.near_boundary is True

    def test_zero_lower_bound_has_no_low_approach(self, evaluator, threshold_config):
        approach = threshold_config.model_copy(update={"warn_on_approach": True})

        assert evaluator.evaluate("turbidity", 0.1, approach).status == ParameterStatus.NORMAL
        assert evaluator.evaluate("turbidity", 49.8, approach).status == ParameterStatus.WARNING

    def test_evaluate_reading_skips_missing_parameters(self, evaluator, threshold_config):
        reading = Reading(values={"pH": 9.2, "temperature": 28.0, "turbidity": "n/a"})

        results = evaluator.evaluate_reading(reading, threshold_config)

        assert {r.parameter for r in results} == {"pH", "temperature"}

    def test_saltwater_profile(self, evaluator):
        config = default_threshold_config(FishpondType.SALTWATER)

        assert evaluator.evaluate("salinity", 30, config).status == ParameterStatus.NORMAL
        assert evaluator.evaluate("salinity", 12, config).status == ParameterStatus.WARNING
        assert evaluator.evaluate("pH", 7.2, config).status == ParameterStatus.WARNING


class TestBuildSignature:
    """Deduplication key format."""

    def test_format(self):
        signature = build_signature("pH", AlertType.ERROR, "pH Too High - 9.20", 9.2)

        assert signature == "ph:error:pH Too High - 9.20:9.20"

    def test_value_is_rounded(self):
        title = "pH Too High - 9.20"

        assert build_signature("pH", AlertType.ERROR, title, 9.204) == build_signature(
            "pH", AlertType.ERROR, title, 9.2
        )

    def test_negative_zero_is_normalised(self):
        signature = build_signature("temperature", "warning", "t", -0.001)

        assert signature.endswith(":0.00")


class TestReadingTimestamp:
    """Capture time normalisation."""

    def test_naive_timestamp_is_utc(self):
        reading = Reading(values={"pH": 7.0}, timestamp=datetime(2026, 10, 18, 6, 30))

        assert reading.timestamp == datetime(2026, 10, 18, 6, 30, tzinfo=timezone.utc)

    def test_aware_timestamp_is_kept(self):
        manila = timezone(timedelta(hours=8))
        reading = Reading(values={"pH": 7.0}, timestamp=datetime(2026, 10, 18, 14, 30, tzinfo=manila))

        assert reading.timestamp.utcoffset() == timedelta(hours=8)

    def test_naive_and_aware_timestamps_sort_together(self):
        aware = Reading(values={}, timestamp=datetime(2026, 10, 18, 7, 0, tzinfo=timezone.utc))
        naive = Reading(values={}, timestamp=datetime(2026, 10, 18, 6, 0))

        assert sorted([aware, naive], key=lambda r: r.timestamp) == [naive, aware]
