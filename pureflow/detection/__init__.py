"""
Alert detection for the water-quality engine.

This module contains threshold evaluation, signature construction,
deduplication and alert generation.

Components:
    evaluator: ThresholdEvaluator for parameter classification
    signature: build_signature for deduplication keys
    dedup: DeduplicationWindow for repeat suppression
    messages: Titles, value formatting and message pools
    generator: AlertGenerator for reading batches
    connection: ConnectionMonitor for device fetch failures

Example:
    >>> from pureflow.detection import AlertGenerator, DeduplicationWindow
    >>>
    >>> window = DeduplicationWindow(window_seconds=300)
    >>> generator = AlertGenerator(dedup_window=window)
    >>> alerts = await generator.generate(readings)
"""

from pureflow.detection.evaluator import ThresholdEvaluator, create_evaluator
from pureflow.detection.signature import build_signature
from pureflow.detection.dedup import (
    DEFAULT_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_WINDOW_SECONDS,
    DeduplicationWindow,
    create_dedup_window,
)
from pureflow.detection.messages import (
    MESSAGE_POOLS,
    build_message,
    build_title,
    format_value,
    pick_message,
)
from pureflow.detection.generator import (
    HARMFUL_STATE_PARAMETER,
    AlertGenerator,
    create_alert_generator,
)
from pureflow.detection.connection import CONNECTION_PARAMETER, ConnectionMonitor

__all__ = [
    # Evaluator
    "ThresholdEvaluator",
    "create_evaluator",
    # Signature
    "build_signature",
    # Dedup
    "DeduplicationWindow",
    "create_dedup_window",
    "DEFAULT_WINDOW_SECONDS",
    "DEFAULT_MAX_ENTRIES",
    "DEFAULT_CLEANUP_INTERVAL_SECONDS",
    # Messages
    "MESSAGE_POOLS",
    "build_message",
    "build_title",
    "format_value",
    "pick_message",
    # Generator
    "AlertGenerator",
    "create_alert_generator",
    "HARMFUL_STATE_PARAMETER",
    # Connection
    "ConnectionMonitor",
    "CONNECTION_PARAMETER",
]
