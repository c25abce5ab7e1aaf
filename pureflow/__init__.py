"""
PureFlow Alert Engine.

Alert evaluation and notification dispatch for aquaculture water-quality
monitoring.

This package provides:
- Data models for readings, thresholds, alerts, notifications and schedules
- Threshold evaluation, alert generation and deduplication
- Notification dispatch with remote push, retry and local fallback
- Recurring reminder scheduling that survives restarts
- Delivery health tracking
- Configuration management and storage clients
"""

__version__ = "0.1.0"
