"""
Threshold configuration models.

This module defines per-parameter safe ranges and critical bands, along with
the documented default profiles for freshwater and saltwater ponds.

Models:
    FishpondType: Threshold profile selector
    CriticalBand: Absolute bounds beyond which a value is critical
    ThresholdBand: Safe range, critical band and near-boundary margins
    ThresholdConfig: Thresholds for all monitored parameters

Example:
    >>> config = default_threshold_config(FishpondType.FRESHWATER)
    >>> config.get("PH").max
    8.5
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_NEAR_MARGIN_LOW = 0.3
DEFAULT_NEAR_MARGIN_HIGH = 0.5


class FishpondType(str, Enum):
    """Threshold profile selector."""

    FRESHWATER = "freshwater"
    SALTWATER = "saltwater"


class CriticalBand(BaseModel):
    """
    Absolute bounds for critical status.

    Either bound may be omitted, in which case that side never goes critical.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    min: Optional[float] = Field(default=None, description="Critical lower bound")
    max: Optional[float] = Field(default=None, description="Critical upper bound")


class ThresholdBand(BaseModel):
    """
    Thresholds for one parameter.

    Attributes:
        min: Lower bound of the safe range.
        max: Upper bound of the safe range.
        critical: Wider absolute bounds for critical status.
        unit: Display unit used when formatting values.
        near_margin_low: Margin below ``min`` treated as a near-boundary breach.
        near_margin_high: Margin above ``max`` treated as a near-boundary breach.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    min: float = Field(..., description="Safe range lower bound")
    max: float = Field(..., description="Safe range upper bound")
    critical: CriticalBand = Field(default_factory=CriticalBand)
    unit: str = Field(default="", description="Display unit")
    near_margin_low: float = Field(default=DEFAULT_NEAR_MARGIN_LOW, ge=0)
    near_margin_high: float = Field(default=DEFAULT_NEAR_MARGIN_HIGH, ge=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "ThresholdBand":
        """Ensure the safe range is ordered and inside the critical band."""
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        if self.critical.min is not None and self.critical.min > self.min:
            raise ValueError(
                f"critical.min ({self.critical.min}) must not exceed min ({self.min})"
            )
        if self.critical.max is not None and self.critical.max < self.max:
            raise ValueError(
                f"critical.max ({self.critical.max}) must not be below max ({self.max})"
            )
        return self


class ThresholdConfig(BaseModel):
    """
    Thresholds for all monitored parameters.

    Attributes:
        profile: Profile the thresholds were derived from.
        parameters: Mapping of parameter name to ThresholdBand.
        warn_on_approach: Also warn for values inside the safe range that sit
            within the near-boundary margins of ``min``/``max``.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    profile: FishpondType = Field(default=FishpondType.FRESHWATER)
    parameters: Dict[str, ThresholdBand] = Field(default_factory=dict)
    warn_on_approach: bool = Field(default=False)

    def get(self, parameter: str) -> Optional[ThresholdBand]:
        """Look up the band for a parameter, case-insensitively."""
        band = self.parameters.get(parameter)
        if band is not None:
            return band
        wanted = parameter.lower()
        for name, candidate in self.parameters.items():
            if name.lower() == wanted:
                return candidate
        return None

    def with_overrides(self, overrides: Dict[str, ThresholdBand]) -> "ThresholdConfig":
        """Return a copy with some parameter bands replaced."""
        merged = dict(self.parameters)
        merged.update(overrides)
        return self.model_copy(update={"parameters": merged})


DEFAULT_PROFILES: Dict[FishpondType, Dict[str, ThresholdBand]] = {
    FishpondType.FRESHWATER: {
        "pH": ThresholdBand(min=6.5, max=8.5, critical=CriticalBand(min=6.0, max=9.0)),
        "temperature": ThresholdBand(
            min=26, max=30, unit="°C", critical=CriticalBand(min=20, max=35)
        ),
        "turbidity": ThresholdBand(
            min=0, max=50, unit="NTU", critical=CriticalBand(max=100)
        ),
        "salinity": ThresholdBand(min=0, max=5, unit="ppt", critical=CriticalBand(max=10)),
    },
    FishpondType.SALTWATER: {
        "pH": ThresholdBand(min=7.5, max=8.5, critical=CriticalBand(min=7.0, max=9.0)),
        "temperature": ThresholdBand(
            min=24, max=30, unit="°C", critical=CriticalBand(min=20, max=33)
        ),
        "turbidity": ThresholdBand(
            min=0, max=60, unit="NTU", critical=CriticalBand(max=100)
        ),
        "salinity": ThresholdBand(
            min=15, max=35, unit="ppt", critical=CriticalBand(min=10, max=40)
        ),
    },
}


def default_threshold_config(
    profile: FishpondType = FishpondType.FRESHWATER,
) -> ThresholdConfig:
    """
    Build the documented default thresholds for a profile.

    Args:
        profile: Freshwater or saltwater.

    Returns:
        ThresholdConfig: Default thresholds for the profile.
    """
    return ThresholdConfig(profile=profile, parameters=dict(DEFAULT_PROFILES[profile]))
