"""
Threshold selection from stored user settings.

The user's settings record names the pond profile (freshwater or
saltwater). The record is a slowly changing external input that may be
missing or stale at startup, so every failure falls back to the configured
profile.

Example:
    >>> thresholds = await load_threshold_config(store, config.thresholds)
    >>> thresholds.profile
    <FishpondType.SALTWATER: 'saltwater'>
"""

from typing import Optional

import structlog

from pureflow.config.loader import parse_fishpond_type
from pureflow.config.models import ThresholdsSettings
from pureflow.models.thresholds import FishpondType, ThresholdConfig
from pureflow.storage.kv import KeyValueStore, KeyValueStoreError, load_json

logger = structlog.get_logger(__name__)

DEFAULT_SETTINGS_KEY = "pureflow_settings"


async def read_fishpond_type(
    store: KeyValueStore,
    settings_key: str = DEFAULT_SETTINGS_KEY,
) -> Optional[FishpondType]:
    """
    Read the pond profile from the settings record.

    Returns:
        Optional[FishpondType]: The stored profile, or None if the record is
            missing, unreadable or names an unknown profile.
    """
    try:
        record = await load_json(store, settings_key)
    except KeyValueStoreError as e:
        logger.warning("settings_read_failed", key=settings_key, error=str(e))
        return None

    if not isinstance(record, dict):
        return None
    return parse_fishpond_type(record.get("fishpondType"))


async def load_threshold_config(
    store: Optional[KeyValueStore],
    settings: ThresholdsSettings,
    settings_key: str = DEFAULT_SETTINGS_KEY,
) -> ThresholdConfig:
    """
    Build the effective thresholds for the stored pond profile.

    Args:
        store: Settings store, or None to use the configured profile.
        settings: Threshold settings with overrides.
        settings_key: Key of the settings record.

    Returns:
        ThresholdConfig: Thresholds for the stored profile, or for the
            configured profile when the record is unavailable.
    """
    profile = None
    if store is not None:
        profile = await read_fishpond_type(store, settings_key)

    config = settings.build(profile)
    logger.info(
        "thresholds_loaded",
        profile=config.profile.value,
        from_settings=profile is not None,
        parameters=sorted(config.parameters.keys()),
    )
    return config
