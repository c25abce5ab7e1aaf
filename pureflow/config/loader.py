"""
Configuration loader for YAML-based application configuration.

This module provides utilities to load and validate configuration from YAML
files. All configuration is validated using Pydantic models to ensure type
safety and catch configuration errors early.

Configuration files expected:
    - config/notifications.yaml: Deduplication, dispatch, schedules, health
    - config/features.yaml: Logging and storage settings
    - config/thresholds.yaml: Threshold profile and overrides (optional;
      the documented default ranges apply when it is absent)

Environment variables override:
    - REDIS_URL: Redis connection URL
    - LOG_LEVEL: Application log level
    - FISHPOND_TYPE: Threshold profile (freshwater or saltwater)
    - PUSH_SERVER_URL: Push relay base URL
    - PUSH_API_KEY: Push relay API key

Example:
    >>> from pureflow.config.loader import load_config
    >>> config = load_config("config")
    >>> print(config.notifications.dedup.window_seconds)
    300.0
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import ValidationError

from pureflow.config.models import (
    AppConfig,
    FeaturesConfig,
    LogLevel,
    NotificationsConfig,
    RedisConnectionConfig,
    ThresholdsSettings,
)
from pureflow.models.thresholds import FishpondType

logger = structlog.get_logger(__name__)


class ConfigLoadError(Exception):
    """
    Raised when configuration loading fails.

    Attributes:
        message: Error message describing what went wrong.
        file_path: Path to the file that caused the error, if applicable.
        cause: Original exception that caused the error, if any.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with file path if available."""
        if self.file_path:
            return f"{self.message} (file: {self.file_path})"
        return self.message


class ConfigLoader:
    """
    Loads and validates application configuration from YAML files.

    Attributes:
        config_dir: Path to the configuration directory.

    Example:
        >>> loader = ConfigLoader("config")
        >>> config = loader.load()
    """

    def __init__(self, config_dir: Path | str = "config"):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Path to the directory containing YAML config files.

        Raises:
            ConfigLoadError: If config directory does not exist.
        """
        self.config_dir = Path(config_dir)
        if not self.config_dir.exists():
            raise ConfigLoadError(
                f"Configuration directory not found: {self.config_dir}",
                file_path=self.config_dir,
            )
        if not self.config_dir.is_dir():
            raise ConfigLoadError(
                f"Configuration path is not a directory: {self.config_dir}",
                file_path=self.config_dir,
            )

    def _load_yaml(self, filename: str, required: bool = True) -> Dict[str, Any]:
        """
        Load a YAML file from the config directory.

        Args:
            filename: Name of YAML file (e.g., 'notifications.yaml').
            required: Raise if the file is missing. Optional files that are
                missing or empty load as an empty dict.

        Returns:
            Dict containing parsed YAML content.

        Raises:
            ConfigLoadError: If a required file is missing or empty, or the
                file is not valid YAML.
        """
        file_path = self.config_dir / filename
        if not file_path.exists():
            if not required:
                logger.info("optional_config_missing", file=str(file_path))
                return {}
            raise ConfigLoadError(
                f"Configuration file not found: {file_path}",
                file_path=file_path,
            )

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e
        except OSError as e:
            raise ConfigLoadError(
                f"Error reading {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e

        if data is None:
            if not required:
                return {}
            raise ConfigLoadError(
                f"Configuration file is empty: {file_path}",
                file_path=file_path,
            )
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Configuration root must be a mapping: {file_path}",
                file_path=file_path,
            )
        return data

    def _load_thresholds(self) -> ThresholdsSettings:
        """
        Load threshold settings from thresholds.yaml.

        FISHPOND_TYPE overrides the configured profile.

        Returns:
            ThresholdsSettings: Validated threshold settings.

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml("thresholds.yaml", required=False)
        section = dict(data.get("thresholds", {}) or {})

        profile_env = os.getenv("FISHPOND_TYPE")
        if profile_env:
            section["profile"] = profile_env.lower()

        try:
            return ThresholdsSettings(**section)
        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid threshold configuration: {e}",
                file_path=self.config_dir / "thresholds.yaml",
                cause=e,
            ) from e

    def _load_notifications(self) -> NotificationsConfig:
        """
        Load notification settings from notifications.yaml.

        PUSH_SERVER_URL and PUSH_API_KEY override the dispatch section.

        Returns:
            NotificationsConfig: Validated notification settings.

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml("notifications.yaml")
        section = dict(data.get("notifications", {}) or {})

        dispatch = dict(section.get("dispatch", {}) or {})
        push_url = os.getenv("PUSH_SERVER_URL")
        if push_url:
            dispatch["push_server_url"] = push_url
        push_key = os.getenv("PUSH_API_KEY")
        if push_key:
            dispatch["push_api_key"] = push_key
        section["dispatch"] = dispatch

        try:
            return NotificationsConfig(**section)
        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid notification configuration: {e}",
                file_path=self.config_dir / "notifications.yaml",
                cause=e,
            ) from e

    def _load_features(self) -> FeaturesConfig:
        """
        Load feature settings from features.yaml.

        Returns:
            FeaturesConfig: Validated feature settings.

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml("features.yaml")
        section = data.get("features", {}) or {}

        try:
            return FeaturesConfig(**section)
        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid features configuration: {e}",
                file_path=self.config_dir / "features.yaml",
                cause=e,
            ) from e

    def _load_redis_connection(self) -> RedisConnectionConfig:
        """
        Load Redis connection config from environment.

        Returns:
            RedisConnectionConfig: Redis connection settings.
        """
        redis_url = os.getenv("REDIS_URL", "redis://localhost:6379")
        return RedisConnectionConfig(url=redis_url)

    def _get_log_level(self, default: LogLevel) -> LogLevel:
        """
        Get log level from environment.

        Args:
            default: Level to use when LOG_LEVEL is unset or invalid.

        Returns:
            LogLevel: Configured log level.
        """
        level_str = os.getenv("LOG_LEVEL")
        if not level_str:
            return default
        try:
            return LogLevel(level_str.upper())
        except ValueError:
            return default

    def load(self) -> AppConfig:
        """
        Load and validate all configuration files.

        Returns:
            AppConfig: Validated application configuration.

        Raises:
            ConfigLoadError: If any configuration is invalid or missing.

        Example:
            >>> loader = ConfigLoader("config")
            >>> config = loader.load()
            >>> print(config.thresholds.profile)
        """
        try:
            thresholds = self._load_thresholds()
            notifications = self._load_notifications()
            features = self._load_features()
            redis = self._load_redis_connection()
            log_level = self._get_log_level(features.logging.level)

            config = AppConfig(
                thresholds=thresholds,
                notifications=notifications,
                features=features,
                redis=redis,
                log_level=log_level,
            )

            logger.debug(
                "config_loaded",
                config_dir=str(self.config_dir),
                profile=thresholds.profile.value,
                remote_push_enabled=config.remote_push_enabled,
            )
            return config

        except ConfigLoadError:
            raise
        except ValidationError as e:
            raise ConfigLoadError(
                f"Configuration validation failed: {e}",
                cause=e,
            ) from e


def load_config(config_dir: Path | str = "config") -> AppConfig:
    """
    Convenience function to load application configuration.

    Args:
        config_dir: Path to configuration directory (default: 'config').

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigLoadError: If configuration loading fails.

    Example:
        >>> from pureflow.config import load_config
        >>> config = load_config()
    """
    loader = ConfigLoader(config_dir)
    return loader.load()


def parse_fishpond_type(value: Any) -> Optional[FishpondType]:
    """Parse a fishpond type string, returning None when unrecognised."""
    if not isinstance(value, str):
        return None
    try:
        return FishpondType(value.strip().lower())
    except ValueError:
        return None
