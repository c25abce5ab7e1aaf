"""Tests for configuration loading and stored settings."""

import json
from pathlib import Path

import pytest

from pureflow.config import (
    AppConfig,
    ConfigLoadError,
    ConfigLoader,
    ThresholdsSettings,
    load_config,
    load_threshold_config,
    read_fishpond_type,
)
from pureflow.models.thresholds import FishpondType
from pureflow.storage.kv import InMemoryKeyValueStore

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config"

ENV_VARS = ("REDIS_URL", "LOG_LEVEL", "FISHPOND_TYPE", "PUSH_SERVER_URL", "PUSH_API_KEY")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_dir(tmp_path) -> Path:
    (tmp_path / "notifications.yaml").write_text("notifications:\n  dedup:\n    window_seconds: 120\n")
    (tmp_path / "features.yaml").write_text("features:\n  storage:\n    backend: memory\n")
    return tmp_path


class TestConfigLoader:
    """YAML loading and environment overrides."""

    def test_repository_config_loads(self):
        config = load_config(REPO_CONFIG)

        assert isinstance(config, AppConfig)
        assert config.thresholds.profile == FishpondType.FRESHWATER
        assert config.notifications.dedup.window_seconds == 300
        assert config.notifications.schedules.forecast_reminder.hour == 22
        assert config.remote_push_enabled is False

    def test_missing_thresholds_file_uses_defaults(self, config_dir):
        config = ConfigLoader(config_dir).load()

        assert config.thresholds.profile == FishpondType.FRESHWATER
        assert config.notifications.dedup.window_seconds == 120
        assert config.notifications.dispatch.max_attempts == 3
        assert config.features.storage.backend == "memory"

    def test_environment_overrides(self, config_dir, monkeypatch):
        monkeypatch.setenv("FISHPOND_TYPE", "SALTWATER")
        monkeypatch.setenv("PUSH_SERVER_URL", "https://push.example.com/")
        monkeypatch.setenv("PUSH_API_KEY", "secret")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = ConfigLoader(config_dir).load()

        assert config.thresholds.profile == FishpondType.SALTWATER
        assert config.notifications.dispatch.push_server_url == "https://push.example.com"
        assert config.notifications.dispatch.push_api_key == "secret"
        assert config.remote_push_enabled is True
        assert config.redis.url == "redis://cache:6379"
        assert config.log_level.value == "DEBUG"

    def test_threshold_overrides(self, config_dir):
        (config_dir / "thresholds.yaml").write_text(
            "thresholds:\n"
            "  overrides:\n"
            "    temperature:\n"
            "      min: 25\n"
            "      max: 31\n"
            "      critical:\n"
            "        min: 20\n"
            "        max: 35\n"
        )

        thresholds = ConfigLoader(config_dir).load().thresholds.build()

        assert thresholds.get("temperature").max == 31
        assert thresholds.get("pH").max == 8.5

    def test_missing_required_file(self, tmp_path):
        with pytest.raises(ConfigLoadError, match="not found"):
            ConfigLoader(tmp_path).load()

    def test_unknown_key_is_rejected(self, config_dir):
        (config_dir / "notifications.yaml").write_text("notifications:\n  bogus: 1\n")

        with pytest.raises(ConfigLoadError):
            ConfigLoader(config_dir).load()

    def test_invalid_yaml(self, config_dir):
        (config_dir / "features.yaml").write_text("features: [unclosed\n")

        with pytest.raises(ConfigLoadError, match="Invalid YAML"):
            ConfigLoader(config_dir).load()

    def test_api_key_without_url_is_rejected(self, config_dir, monkeypatch):
        monkeypatch.setenv("PUSH_API_KEY", "secret")

        with pytest.raises(ConfigLoadError):
            ConfigLoader(config_dir).load()


class TestStoredSettings:
    """Pond profile selection from the key-value store."""

    @pytest.mark.asyncio
    async def test_reads_fishpond_type(self):
        store = InMemoryKeyValueStore({"pureflow_settings": json.dumps({"fishpondType": "saltwater"})})

        assert await read_fishpond_type(store) == FishpondType.SALTWATER

    @pytest.mark.asyncio
    async def test_unreadable_settings_fall_back(self):
        store = InMemoryKeyValueStore({"pureflow_settings": "{not json"})

        assert await read_fishpond_type(store) is None

        config = await load_threshold_config(store, ThresholdsSettings())
        assert config.profile == FishpondType.FRESHWATER

    @pytest.mark.asyncio
    async def test_stored_profile_wins(self):
        store = InMemoryKeyValueStore({"pureflow_settings": json.dumps({"fishpondType": "saltwater"})})

        config = await load_threshold_config(store, ThresholdsSettings())

        assert config.profile == FishpondType.SALTWATER
        assert config.get("pH").min == 7.5

    @pytest.mark.asyncio
    async def test_unknown_profile_is_ignored(self):
        store = InMemoryKeyValueStore({"pureflow_settings": json.dumps({"fishpondType": "brackish"})})

        assert await read_fishpond_type(store) is None
