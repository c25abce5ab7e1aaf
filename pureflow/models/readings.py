"""
Sensor reading and evaluation models.

This module defines the raw sensor sample consumed by the engine and the
derived evaluation result produced by the threshold evaluator.

Models:
    ParameterStatus: Evaluation status (normal, warning, critical)
    Direction: Breach direction (low, high, none)
    Reading: One sensor sample with a capture timestamp
    EvaluationResult: Result of evaluating one parameter value
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

# Parameter names as published by the sensor feed
PARAMETER_PH = "pH"
PARAMETER_TEMPERATURE = "temperature"
PARAMETER_TURBIDITY = "turbidity"
PARAMETER_SALINITY = "salinity"
PARAMETER_RAINING = "isRaining"

MONITORED_PARAMETERS = (
    PARAMETER_PH,
    PARAMETER_TEMPERATURE,
    PARAMETER_TURBIDITY,
    PARAMETER_SALINITY,
)


class ParameterStatus(str, Enum):
    """
    Threshold evaluation status.

    Attributes:
        NORMAL: Value inside the safe range.
        WARNING: Value outside the safe range but inside the critical band.
        CRITICAL: Value beyond the critical band.
    """

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def is_alerting(self) -> bool:
        """Check if this status should produce an alert."""
        return self != ParameterStatus.NORMAL


class Direction(str, Enum):
    """Direction of a threshold breach."""

    LOW = "low"
    HIGH = "high"
    NONE = "none"


class Reading(BaseModel):
    """
    One sensor sample.

    Values are kept as received; numeric validation happens at evaluation
    time so a single bad field never discards the whole sample.

    Attributes:
        values: Mapping of parameter name to reported value.
        timestamp: Capture time of the sample.

    Example:
        >>> reading = Reading(values={"pH": 9.2, "temperature": 28.1})
        >>> reading.numeric("ph")
        9.2
    """

    model_config = {"frozen": True, "extra": "forbid"}

    values: Dict[str, Any] = Field(
        default_factory=dict,
        description="Parameter name to reported value",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Capture timestamp",
    )

    @field_validator("timestamp", mode="after")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def raw(self, parameter: str) -> Any:
        """Return the raw value for a parameter, matching names case-insensitively."""
        if parameter in self.values:
            return self.values[parameter]
        wanted = parameter.lower()
        for name, value in self.values.items():
            if name.lower() == wanted:
                return value
        return None

    def numeric(self, parameter: str) -> Optional[float]:
        """
        Return a parameter value as a float.

        Args:
            parameter: Parameter name (case-insensitive).

        Returns:
            Optional[float]: The value, or None if missing, boolean, NaN,
                infinite, or not convertible to a number.
        """
        value = self.raw(parameter)
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return number


class EvaluationResult(BaseModel):
    """
    Result of evaluating one parameter value against its thresholds.

    Attributes:
        parameter: Parameter name as configured.
        value: Numeric value that was evaluated.
        status: Evaluation status.
        direction: Breach direction.
        near_boundary: True when a warning breach lies within the
            parameter's near-boundary margin.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    parameter: str = Field(..., description="Parameter name")
    value: float = Field(..., description="Evaluated value")
    status: ParameterStatus = Field(..., description="Evaluation status")
    direction: Direction = Field(default=Direction.NONE, description="Breach direction")
    near_boundary: bool = Field(
        default=False,
        description="Breach is within the near-boundary margin",
    )

    @property
    def is_alerting(self) -> bool:
        """Check if this result should produce an alert."""
        return self.status.is_alerting
