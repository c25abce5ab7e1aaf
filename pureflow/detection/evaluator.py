"""
Threshold evaluator for water-quality parameters.

This module provides the ThresholdEvaluator class which classifies a single
parameter value as normal, warning or critical against its ThresholdBand.

Key Features:
    - Critical band checked before the safe range
    - Near-boundary flag for breaches within the parameter's margins
    - Optional approach warnings for in-range values close to min/max
    - Non-numeric and unconfigured inputs are skipped, never alerted

Example:
    >>> evaluator = ThresholdEvaluator()
    >>> result = evaluator.evaluate("pH", 9.2, default_threshold_config())
    >>> result.status, result.direction
    (<ParameterStatus.CRITICAL: 'critical'>, <Direction.HIGH: 'high'>)
"""

import math
from typing import Any, List, Optional

import structlog

from pureflow.models.readings import (
    Direction,
    EvaluationResult,
    ParameterStatus,
    Reading,
)
from pureflow.models.thresholds import ThresholdBand, ThresholdConfig

logger = structlog.get_logger(__name__)


def _as_number(value: Any) -> Optional[float]:
    """Coerce a reading value to float, or None if it is not a usable number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class ThresholdEvaluator:
    """
    Classifies parameter values against threshold bands.

    Evaluation order:
    1. Critical band: below ``critical.min`` or above ``critical.max``
    2. Safe range: below ``min`` or above ``max`` is a warning
    3. Approach warnings, only when ``config.warn_on_approach`` is set
    4. Otherwise normal

    Attributes:
        None - this is a stateless evaluator.

    Example:
        >>> evaluator = ThresholdEvaluator()
        >>> config = default_threshold_config()
        >>> evaluator.evaluate("pH", 6.5, config).status
        <ParameterStatus.NORMAL: 'normal'>
        >>> evaluator.evaluate("pH", 6.4, config).status
        <ParameterStatus.WARNING: 'warning'>
        >>> evaluator.evaluate("pH", 5.9, config).status
        <ParameterStatus.CRITICAL: 'critical'>
    """

    def evaluate(
        self,
        parameter: str,
        value: Any,
        config: Optional[ThresholdConfig],
    ) -> Optional[EvaluationResult]:
        """
        Evaluate one parameter value.

        Args:
            parameter: Parameter name (case-insensitive).
            value: Reported value; anything non-numeric is skipped.
            config: Threshold configuration.

        Returns:
            Optional[EvaluationResult]: The classification, or None when the
                value is not numeric or the parameter has no thresholds.
        """
        number = _as_number(value)
        if number is None:
            logger.debug("evaluation_skipped_non_numeric", parameter=parameter)
            return None

        band = config.get(parameter) if config is not None else None
        if band is None:
            logger.debug("evaluation_skipped_no_threshold", parameter=parameter)
            return None

        return self._classify(
            parameter,
            number,
            band,
            warn_on_approach=config.warn_on_approach,
        )

    def evaluate_reading(
        self,
        reading: Reading,
        config: Optional[ThresholdConfig],
        parameters: Optional[List[str]] = None,
    ) -> List[EvaluationResult]:
        """
        Evaluate every configured parameter present in a reading.

        Args:
            reading: Sensor sample.
            config: Threshold configuration.
            parameters: Parameters to evaluate. Defaults to every parameter
                in the config.

        Returns:
            List[EvaluationResult]: Results for the numeric values found.
        """
        if config is None:
            return []

        names = parameters if parameters is not None else list(config.parameters.keys())
        results: List[EvaluationResult] = []
        for name in names:
            result = self.evaluate(name, reading.raw(name), config)
            if result is not None:
                results.append(result)
        return results

    def _classify(
        self,
        parameter: str,
        value: float,
        band: ThresholdBand,
        warn_on_approach: bool = False,
    ) -> EvaluationResult:
        """Apply the band checks in order."""
        critical = band.critical

        if critical.min is not None and value < critical.min:
            return EvaluationResult(
                parameter=parameter,
                value=value,
                status=ParameterStatus.CRITICAL,
                direction=Direction.LOW,
            )
        if critical.max is not None and value > critical.max:
            return EvaluationResult(
                parameter=parameter,
                value=value,
                status=ParameterStatus.CRITICAL,
                direction=Direction.HIGH,
            )

        if value < band.min:
            return EvaluationResult(
                parameter=parameter,
                value=value,
                status=ParameterStatus.WARNING,
                direction=Direction.LOW,
                near_boundary=band.min - value <= band.near_margin_low,
            )
        if value > band.max:
            return EvaluationResult(
                parameter=parameter,
                value=value,
                status=ParameterStatus.WARNING,
                direction=Direction.HIGH,
                near_boundary=value - band.max <= band.near_margin_high,
            )

        if warn_on_approach:
            # A zero lower bound cannot be approached from inside the range
            if band.min != 0 and value <= band.min + band.near_margin_low:
                return EvaluationResult(
                    parameter=parameter,
                    value=value,
                    status=ParameterStatus.WARNING,
                    direction=Direction.LOW,
                    near_boundary=True,
                )
            if value >= band.max - band.near_margin_high:
                return EvaluationResult(
                    parameter=parameter,
                    value=value,
                    status=ParameterStatus.WARNING,
                    direction=Direction.HIGH,
                    near_boundary=True,
                )

        return EvaluationResult(
            parameter=parameter,
            value=value,
            status=ParameterStatus.NORMAL,
            direction=Direction.NONE,
        )


def create_evaluator() -> ThresholdEvaluator:
    """
    Factory function to create a ThresholdEvaluator.

    Returns:
        ThresholdEvaluator: A new evaluator instance.
    """
    return ThresholdEvaluator()
