"""
Pydantic models for application configuration.

This module defines all configuration models that are validated when loading
YAML configuration files. The models provide sensible defaults so that a
minimal configuration directory still yields a working engine.

Configuration files:
    - config/thresholds.yaml: Threshold profile and per-parameter overrides
    - config/notifications.yaml: Deduplication, dispatch, schedule and health
    - config/features.yaml: Logging and storage settings

Example:
    >>> from pureflow.config.models import AppConfig
    >>> config = AppConfig()
    >>> config.thresholds.build().get("pH").max
    8.5
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from pureflow.models.thresholds import (
    FishpondType,
    ThresholdBand,
    ThresholdConfig,
    default_threshold_config,
)


# =============================================================================
# ENUMS
# =============================================================================


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# THRESHOLD CONFIGURATION
# =============================================================================


class ThresholdsSettings(BaseModel):
    """Threshold profile selection and overrides."""

    model_config = {"frozen": True, "extra": "forbid"}

    profile: FishpondType = Field(
        default=FishpondType.FRESHWATER,
        description="Default threshold profile",
    )
    overrides: Dict[str, ThresholdBand] = Field(
        default_factory=dict,
        description="Per-parameter bands replacing the profile defaults",
    )
    warn_on_approach: bool = Field(
        default=False,
        description="Warn for in-range values close to min/max",
    )
    harmful_state_min_parameters: Optional[int] = Field(
        default=2,
        description="Breached parameters in one reading that raise the harmful-state alert; null disables it",
        ge=1,
    )

    def build(self, profile: Optional[FishpondType] = None) -> ThresholdConfig:
        """
        Build the effective ThresholdConfig.

        Args:
            profile: Profile to use instead of the configured one.

        Returns:
            ThresholdConfig: Profile defaults with overrides applied.
        """
        base = default_threshold_config(profile or self.profile)
        config = base.with_overrides(self.overrides)
        return config.model_copy(update={"warn_on_approach": self.warn_on_approach})


# =============================================================================
# NOTIFICATION CONFIGURATION
# =============================================================================


class DedupSettings(BaseModel):
    """Deduplication window settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    window_seconds: float = Field(
        default=300,
        description="Suppression window for a signature/severity pair",
        gt=0,
    )
    max_entries_per_signature: int = Field(
        default=10,
        description="Firing history kept per signature",
        ge=1,
    )
    cleanup_interval_seconds: float = Field(
        default=60,
        description="Interval of the background cleanup task",
        gt=0,
    )


class DispatchSettings(BaseModel):
    """Notification dispatch settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_attempts: int = Field(
        default=3,
        description="Remote push attempts before falling back",
        ge=1,
    )
    backoff_seconds: float = Field(
        default=0.5,
        description="Backoff unit; attempt N waits N * backoff_seconds",
        ge=0,
    )
    attempt_timeout_seconds: float = Field(
        default=10,
        description="Upper bound for one remote attempt",
        gt=0,
    )
    push_server_url: Optional[str] = Field(
        default=None,
        description="Push relay base URL; remote push is disabled when unset",
    )
    push_api_key: Optional[str] = Field(
        default=None,
        description="API key sent in the x-api-key header",
    )

    @field_validator("push_server_url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Strip trailing slashes and require an http(s) scheme."""
        if v is None or v == "":
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"push_server_url must be an http(s) URL: {v}")
        return v.rstrip("/")


class DailyReminderTime(BaseModel):
    """Time of day for a daily reminder."""

    model_config = {"frozen": True, "extra": "forbid"}

    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)


class ScheduleSettings(BaseModel):
    """Recurring reminder settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    forecast_reminder: DailyReminderTime = Field(
        default_factory=lambda: DailyReminderTime(hour=22, minute=0),
        description="Daily forecast reminder time",
    )
    report_reminder: DailyReminderTime = Field(
        default_factory=lambda: DailyReminderTime(hour=20, minute=0),
        description="Daily report reminder time",
    )
    monitoring_interval_hours: float = Field(
        default=6,
        description="Interval of the monitoring reminder",
        gt=0,
    )
    storage_key: str = Field(
        default="scheduled_notifications_v2",
        description="Key-value store key for persisted schedules",
    )


class HealthSettings(BaseModel):
    """Delivery health monitor settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    window_seconds: float = Field(
        default=3600,
        description="Scoring window for success rate",
        gt=0,
    )
    frequent_failure_threshold: int = Field(
        default=10,
        description="Session failures that trigger the frequent-failure signal",
        ge=1,
    )
    max_records: int = Field(
        default=1000,
        description="Ring buffer capacity",
        ge=10,
    )
    storage_key: str = Field(
        default="notification_health_tracking",
        description="Key-value store key for the persisted summary",
    )


class ConnectionSettings(BaseModel):
    """Sensor device connection monitoring settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_failed_fetches: int = Field(
        default=3,
        description="Consecutive failed fetches that mark the device unstable",
        ge=1,
    )
    cooldown_seconds: float = Field(
        default=600,
        description="Minimum time between two instability alerts",
        gt=0,
    )
    device_name: str = Field(
        default="DATM",
        description="Device name used in alert text",
    )


class NotificationsConfig(BaseModel):
    """Complete notifications configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    dedup: DedupSettings = Field(default_factory=DedupSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    schedules: ScheduleSettings = Field(default_factory=ScheduleSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)
    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)


# =============================================================================
# FEATURES CONFIGURATION
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(
        default=LogFormat.JSON,
        description="Log output format",
    )
    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Default log level",
    )


class StorageSettings(BaseModel):
    """Key-value storage settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    backend: str = Field(
        default="redis",
        description="Key-value backend: redis or memory",
    )
    key_prefix: str = Field(
        default="pureflow",
        description="Prefix applied to every stored key",
    )
    settings_key: str = Field(
        default="pureflow_settings",
        description="Key holding user settings (fishpond type)",
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Ensure backend is one of the supported stores."""
        if v not in ("redis", "memory"):
            raise ValueError(f"Unsupported storage backend: {v}")
        return v


class FeaturesConfig(BaseModel):
    """Complete features configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    storage: StorageSettings = Field(
        default_factory=StorageSettings,
        description="Storage configuration",
    )


# =============================================================================
# CONNECTION CONFIGURATION
# =============================================================================


class RedisConnectionConfig(BaseModel):
    """Redis connection configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
    )
    db: int = Field(
        default=0,
        description="Redis database number",
        ge=0,
    )
    max_connections: int = Field(
        default=10,
        description="Maximum connection pool size",
        ge=1,
    )
    socket_timeout: int = Field(
        default=5,
        description="Socket timeout in seconds",
        ge=1,
    )


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class AppConfig(BaseModel):
    """
    Root application configuration.

    Aggregates all configuration sections into a single validated object.

    Example:
        >>> config = AppConfig()
        >>> config.notifications.dispatch.max_attempts
        3
    """

    model_config = {"frozen": True, "extra": "forbid"}

    thresholds: ThresholdsSettings = Field(
        default_factory=ThresholdsSettings,
        description="Threshold configuration",
    )
    notifications: NotificationsConfig = Field(
        default_factory=NotificationsConfig,
        description="Notification configuration",
    )
    features: FeaturesConfig = Field(
        default_factory=FeaturesConfig,
        description="Feature flags and settings",
    )
    redis: RedisConnectionConfig = Field(
        default_factory=RedisConnectionConfig,
        description="Redis connection config",
    )
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application log level",
    )

    @model_validator(mode="after")
    def validate_config(self) -> "AppConfig":
        """Validate cross-section consistency."""
        dispatch = self.notifications.dispatch
        if dispatch.push_api_key and not dispatch.push_server_url:
            raise ValueError("push_api_key is set but push_server_url is missing")
        return self

    @property
    def remote_push_enabled(self) -> bool:
        """Check if a push relay is configured."""
        return self.notifications.dispatch.push_server_url is not None
