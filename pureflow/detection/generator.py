"""
Alert generator for sensor reading batches.

This module provides the AlertGenerator class which turns readings into
actionable alerts: it evaluates thresholds, builds titles, messages and
signatures, consults the deduplication window and tracks active alerts.

Key Features:
    - One window transaction per batch, so a signature/severity pair is
      admitted at most once per batch
    - Suppressed repeats increment the active alert's occurrence count
    - Rain indicator handled by a small state machine (0 none, 1 light, 2 heavy)
    - One aggregate harmful-state alert when several parameters breach in
      the same reading
    - Parameters returning to normal resolve their alerts and clear their
      window entries
    - Rollback of an alert whose delivery failed

Example:
    >>> generator = AlertGenerator(
    ...     dedup_window=DeduplicationWindow(),
    ...     threshold_config=default_threshold_config(),
    ... )
    >>> alerts = await generator.generate([Reading(values={"pH": 9.2})])
    >>> alerts[0].severity
    <AlertSeverity.CRITICAL: 'critical'>
"""

import random
from typing import Dict, Iterable, List, Optional, Sequence, Union

import structlog

from pureflow.detection.dedup import DeduplicationWindow
from pureflow.detection.evaluator import ThresholdEvaluator
from pureflow.detection.messages import (
    build_message,
    build_title,
    harmful_state_message,
    harmful_state_title,
    rain_message,
    rain_title,
)
from pureflow.detection.signature import build_signature
from pureflow.models.alerts import Alert, AlertSeverity, AlertType
from pureflow.models.readings import (
    MONITORED_PARAMETERS,
    PARAMETER_RAINING,
    Direction,
    EvaluationResult,
    ParameterStatus,
    Reading,
)
from pureflow.models.thresholds import ThresholdConfig, default_threshold_config

logger = structlog.get_logger(__name__)


# Status to (type, severity) for threshold breaches
STATUS_CLASSIFICATION = {
    ParameterStatus.CRITICAL: (AlertType.ERROR, AlertSeverity.CRITICAL),
    ParameterStatus.WARNING: (AlertType.WARNING, AlertSeverity.MEDIUM),
}

# Rain level to severity; level 0 means no rain and never alerts
RAIN_SEVERITY = {
    1: AlertSeverity.LOW,
    2: AlertSeverity.HIGH,
}

# Parameter name used for the aggregate alert over several breaches
HARMFUL_STATE_PARAMETER = "harmful_state"

DEFAULT_HARMFUL_STATE_MIN_PARAMETERS = 2


def _is_breach(result: EvaluationResult, config: ThresholdConfig) -> bool:
    """Check if a result lies outside the safe range, not just close to it."""
    band = config.get(result.parameter)
    if band is None or result.status == ParameterStatus.CRITICAL:
        return True
    return not band.min <= result.value <= band.max


class AlertGenerator:
    """
    Generates alerts from sensor readings.

    Attributes:
        evaluator: ThresholdEvaluator for parameter classification.
        dedup_window: Default DeduplicationWindow.
        threshold_config: Default ThresholdConfig.
        parameters: Parameters evaluated against thresholds.
        harmful_state_min_parameters: Breaches per reading that raise the
            aggregate harmful-state alert.
        _active: Active alerts keyed by signature and severity.
        _resolved: Alerts resolved since the last ``pop_resolved`` call.

    Example:
        >>> generator = AlertGenerator(dedup_window=window, rng=random.Random(7))
        >>> alerts = await generator.generate(readings)
        >>> resolved = generator.pop_resolved()
    """

    def __init__(
        self,
        evaluator: Optional[ThresholdEvaluator] = None,
        dedup_window: Optional[DeduplicationWindow] = None,
        threshold_config: Optional[ThresholdConfig] = None,
        parameters: Sequence[str] = MONITORED_PARAMETERS,
        rng: Optional[random.Random] = None,
        harmful_state_min_parameters: Optional[int] = DEFAULT_HARMFUL_STATE_MIN_PARAMETERS,
    ) -> None:
        """
        Initialize the AlertGenerator.

        Args:
            evaluator: Threshold evaluator. Defaults to a new instance.
            dedup_window: Window used when ``generate`` is not given one.
            threshold_config: Thresholds used when ``generate`` is not given
                any. Defaults to the freshwater profile.
            parameters: Parameters evaluated against thresholds.
            rng: Random generator for message pool selection.
            harmful_state_min_parameters: Breached parameters in one reading
                that raise the aggregate harmful-state alert. None disables it.
        """
        self.evaluator = evaluator if evaluator is not None else ThresholdEvaluator()
        self.dedup_window = dedup_window if dedup_window is not None else DeduplicationWindow()
        self.threshold_config = threshold_config or default_threshold_config()
        self.parameters = tuple(parameters)
        self._rng = rng or random.Random()
        self.harmful_state_min_parameters = harmful_state_min_parameters
        self._active: Dict[str, Alert] = {}
        self._resolved: List[Alert] = []

    async def generate(
        self,
        readings: Union[Reading, Iterable[Reading]],
        threshold_config: Optional[ThresholdConfig] = None,
        dedup_window: Optional[DeduplicationWindow] = None,
    ) -> List[Alert]:
        """
        Generate new alerts for a batch of readings.

        Readings are processed oldest first inside one window transaction.

        Args:
            readings: A reading or a batch of readings.
            threshold_config: Thresholds for this batch.
            dedup_window: Window for this batch.

        Returns:
            List[Alert]: Newly admitted alerts. Suppressed repeats are not
                returned; they update the active alert instead.
        """
        config = threshold_config if threshold_config is not None else self.threshold_config
        window = dedup_window if dedup_window is not None else self.dedup_window
        batch = [readings] if isinstance(readings, Reading) else list(readings)
        batch.sort(key=lambda r: r.timestamp)

        new_alerts: List[Alert] = []

        async with window.transaction():
            self._prune_expired(window)

            for reading in batch:
                evaluated = False
                breaches: List[EvaluationResult] = []

                for parameter in self.parameters:
                    result = self.evaluator.evaluate(parameter, reading.raw(parameter), config)
                    if result is None:
                        continue
                    evaluated = True
                    if not result.is_alerting:
                        self._resolve_parameter(parameter, window, reading)
                        continue
                    if _is_breach(result, config):
                        breaches.append(result)

                    candidate = self._build_threshold_alert(result, config, reading)
                    admitted = self._admit(candidate, window)
                    if admitted is not None:
                        new_alerts.append(admitted)

                if evaluated:
                    harmful = self._process_harmful_state(breaches, reading, window)
                    if harmful is not None:
                        new_alerts.append(harmful)

                rain_alert = self._process_rain(reading, window)
                if rain_alert is not None:
                    new_alerts.append(rain_alert)

        if new_alerts:
            logger.info(
                "alerts_generated",
                count=len(new_alerts),
                readings=len(batch),
                alert_ids=[a.id for a in new_alerts],
            )
        return new_alerts

    # =========================================================================
    # ALERT CONSTRUCTION
    # =========================================================================

    def _build_threshold_alert(
        self,
        result: EvaluationResult,
        config: ThresholdConfig,
        reading: Reading,
    ) -> Alert:
        """Build a candidate alert for a threshold breach."""
        alert_type, severity = STATUS_CLASSIFICATION[result.status]
        band = config.get(result.parameter)
        title = build_title(result.parameter, result.value, result.status, result.direction)
        message = build_message(
            result.parameter,
            result.value,
            result.status,
            result.direction,
            band=band,
            rng=self._rng,
        )

        return Alert(
            parameter=result.parameter,
            type=alert_type,
            severity=severity,
            title=title,
            message=message,
            value=result.value,
            threshold=band,
            signature=build_signature(result.parameter, alert_type, title, result.value),
            direction=result.direction,
            timestamp=reading.timestamp,
            first_seen_at=reading.timestamp,
        )

    def _process_rain(
        self,
        reading: Reading,
        window: DeduplicationWindow,
    ) -> Optional[Alert]:
        """
        Apply the rain state machine to a reading.

        Level 0 resolves active rain alerts. Levels 1 and 2 raise low and
        high severity weather alerts. Other values are ignored.
        """
        value = reading.numeric(PARAMETER_RAINING)
        if value is None:
            return None
        if value != int(value) or int(value) not in (0, 1, 2):
            logger.debug("rain_value_ignored", value=value)
            return None

        level = int(value)
        if level == 0:
            self._resolve_parameter(PARAMETER_RAINING, window, reading)
            return None

        title = rain_title(level)
        candidate = Alert(
            parameter=PARAMETER_RAINING,
            type=AlertType.INFO,
            severity=RAIN_SEVERITY[level],
            title=title,
            message=rain_message(level),
            value=float(level),
            signature=build_signature(PARAMETER_RAINING, AlertType.INFO, title, level),
            direction=Direction.NONE,
            timestamp=reading.timestamp,
            first_seen_at=reading.timestamp,
        )
        return self._admit(candidate, window)

    def _process_harmful_state(
        self,
        breaches: List[EvaluationResult],
        reading: Reading,
        window: DeduplicationWindow,
    ) -> Optional[Alert]:
        """
        Raise or resolve the aggregate alert for one reading.

        Fewer breaches than ``harmful_state_min_parameters`` resolve any
        active aggregate alert. A new set of breached parameters resolves
        the aggregate alert for the previous set.
        """
        if self.harmful_state_min_parameters is None:
            return None
        if len(breaches) < self.harmful_state_min_parameters:
            self._resolve_parameter(HARMFUL_STATE_PARAMETER, window, reading)
            return None

        critical = any(r.status == ParameterStatus.CRITICAL for r in breaches)
        severity = AlertSeverity.CRITICAL if critical else AlertSeverity.HIGH
        title = harmful_state_title([r.parameter for r in breaches])
        candidate = Alert(
            parameter=HARMFUL_STATE_PARAMETER,
            type=AlertType.ERROR,
            severity=severity,
            title=title,
            message=harmful_state_message([(r.parameter, r.value) for r in breaches]),
            value=float(len(breaches)),
            signature=build_signature(HARMFUL_STATE_PARAMETER, AlertType.ERROR, title, len(breaches)),
            direction=Direction.NONE,
            timestamp=reading.timestamp,
            first_seen_at=reading.timestamp,
        )

        self._resolve_parameter(
            HARMFUL_STATE_PARAMETER, window, reading, keep_key=candidate.dedup_key
        )
        return self._admit(candidate, window)

    # =========================================================================
    # DEDUPLICATION AND STATE
    # =========================================================================

    def _admit(self, candidate: Alert, window: DeduplicationWindow) -> Optional[Alert]:
        """
        Admit a candidate or count it against the active alert.

        Must be called while holding the window transaction.

        Returns:
            Optional[Alert]: The candidate if admitted, else None.
        """
        key = candidate.dedup_key

        if window.can_fire(candidate.signature, candidate.severity):
            window.record(candidate.signature, candidate.severity)
            self._active[key] = candidate
            logger.info(
                "alert_triggered",
                alert_id=candidate.id,
                parameter=candidate.parameter,
                severity=candidate.severity.value,
                value=candidate.value,
                title=candidate.title,
            )
            return candidate

        previous = self._active.get(key)
        if previous is None:
            logger.debug(
                "alert_suppressed",
                signature=candidate.signature,
                severity=candidate.severity.value,
            )
            return None

        updated = previous.record_occurrence(candidate.timestamp, candidate.value)
        self._active[key] = updated
        logger.debug(
            "alert_occurrence_recorded",
            alert_id=updated.id,
            occurrence_count=updated.occurrence_count,
        )
        return None

    def _resolve_parameter(
        self,
        parameter: str,
        window: DeduplicationWindow,
        reading: Reading,
        keep_key: Optional[str] = None,
    ) -> List[Alert]:
        """
        Resolve active alerts for a parameter and clear their window entries.

        The alert whose dedup key equals ``keep_key`` stays active.
        """
        wanted = parameter.lower()
        resolved: List[Alert] = []

        for key, alert in list(self._active.items()):
            if alert.parameter.lower() != wanted or key == keep_key:
                continue
            del self._active[key]
            window.remove(alert.signature, alert.severity)
            closed = alert.resolve(reading.timestamp)
            resolved.append(closed)

            logger.info(
                "alert_resolved",
                alert_id=alert.id,
                parameter=alert.parameter,
                occurrence_count=alert.occurrence_count,
            )

        self._resolved.extend(resolved)
        return resolved

    def _prune_expired(self, window: DeduplicationWindow) -> None:
        """Drop active alerts whose window entry has expired."""
        for key, alert in list(self._active.items()):
            if window.can_fire(alert.signature, alert.severity):
                del self._active[key]

    async def rollback(self, alert: Alert, dedup_window: Optional[DeduplicationWindow] = None) -> bool:
        """
        Undo the admission of an alert whose delivery failed.

        The window entry is removed so the next occurrence fires again.

        Returns:
            bool: True if a window entry was removed.
        """
        window = dedup_window if dedup_window is not None else self.dedup_window
        async with window.transaction():
            removed = window.remove(alert.signature, alert.severity)
            active = self._active.get(alert.dedup_key)
            if active is not None and active.id == alert.id:
                del self._active[alert.dedup_key]

        logger.info(
            "alert_rolled_back",
            alert_id=alert.id,
            signature=alert.signature,
            window_entry_removed=removed,
        )
        return removed

    def get_active_alerts(self) -> List[Alert]:
        """Return the active alerts, most severe first."""
        return sorted(
            self._active.values(),
            key=lambda a: (-a.severity.rank, a.first_seen_at),
        )

    def get_active_alert(self, signature: str, severity: AlertSeverity) -> Optional[Alert]:
        """Return the active alert for a signature/severity pair."""
        return self._active.get(f"{signature}|{severity.value}")

    def pop_resolved(self) -> List[Alert]:
        """Return and forget the alerts resolved since the last call."""
        resolved, self._resolved = self._resolved, []
        return resolved

    def clear_state(self) -> None:
        """Forget active and resolved alerts. The window is not touched."""
        self._active.clear()
        self._resolved.clear()
        logger.info("generator_state_cleared")


def create_alert_generator(
    dedup_window: DeduplicationWindow,
    threshold_config: Optional[ThresholdConfig] = None,
    rng: Optional[random.Random] = None,
    harmful_state_min_parameters: Optional[int] = DEFAULT_HARMFUL_STATE_MIN_PARAMETERS,
) -> AlertGenerator:
    """
    Factory function to create an AlertGenerator.

    Returns:
        AlertGenerator: A new generator sharing the given window.
    """
    return AlertGenerator(
        dedup_window=dedup_window,
        threshold_config=threshold_config,
        rng=rng,
        harmful_state_min_parameters=harmful_state_min_parameters,
    )
