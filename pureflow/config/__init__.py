"""
Configuration management for the alert engine.

This module handles loading and validating configuration from YAML files.
All configuration values are validated using Pydantic models to ensure
type safety and catch configuration errors early.

The configuration system supports:
- Threshold profile selection and per-parameter overrides
- Deduplication, dispatch, schedule and health settings
- Logging and storage settings

Configuration is loaded from YAML files in the config/ directory:
    - thresholds.yaml: Threshold profile and overrides (optional)
    - notifications.yaml: Notification engine settings
    - features.yaml: Logging and storage settings

Environment variables can override settings:
    - REDIS_URL: Redis connection URL
    - LOG_LEVEL: Application log level
    - FISHPOND_TYPE: Threshold profile
    - PUSH_SERVER_URL / PUSH_API_KEY: Push relay

Example:
    >>> from pureflow.config import load_config
    >>> config = load_config()
    >>> thresholds = config.thresholds.build()

Modules:
    loader: Configuration file loading utilities
    models: Pydantic models for configuration validation
    settings: Threshold selection from stored user settings
"""

from pureflow.config.loader import ConfigLoadError, ConfigLoader, load_config
from pureflow.config.models import (
    # Enums
    LogFormat,
    LogLevel,
    # Threshold config
    ThresholdsSettings,
    # Notification config
    DailyReminderTime,
    DedupSettings,
    DispatchSettings,
    ConnectionSettings,
    HealthSettings,
    NotificationsConfig,
    ScheduleSettings,
    # Features config
    FeaturesConfig,
    LoggingConfig,
    StorageSettings,
    # Connection config
    RedisConnectionConfig,
    # Root config
    AppConfig,
)
from pureflow.config.settings import load_threshold_config, read_fishpond_type

__all__: list[str] = [
    # Loader
    "load_config",
    "ConfigLoader",
    "ConfigLoadError",
    # Settings
    "load_threshold_config",
    "read_fishpond_type",
    # Enums
    "LogFormat",
    "LogLevel",
    # Threshold config
    "ThresholdsSettings",
    # Notification config
    "DailyReminderTime",
    "DedupSettings",
    "DispatchSettings",
    "ConnectionSettings",
    "HealthSettings",
    "NotificationsConfig",
    "ScheduleSettings",
    # Features config
    "FeaturesConfig",
    "LoggingConfig",
    "StorageSettings",
    # Connection config
    "RedisConnectionConfig",
    # Root config
    "AppConfig",
]
