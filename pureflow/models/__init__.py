"""
Shared Pydantic data models for the alert engine.

Modules:
    readings: Sensor readings and evaluation results
    thresholds: Threshold bands and default profiles
    alerts: Alert types, severities and instances
    notifications: Notification requests and delivery records
    schedules: Recurring reminder schedules
    health: Delivery health diagnostics

Example:
    >>> from pureflow.models import Reading, Alert, AlertSeverity
    >>> from pureflow.models import NotificationRequest, DeliveryOutcome
"""

# Reading models
from pureflow.models.readings import (
    MONITORED_PARAMETERS,
    PARAMETER_PH,
    PARAMETER_RAINING,
    PARAMETER_SALINITY,
    PARAMETER_TEMPERATURE,
    PARAMETER_TURBIDITY,
    Direction,
    EvaluationResult,
    ParameterStatus,
    Reading,
)

# Threshold models
from pureflow.models.thresholds import (
    DEFAULT_PROFILES,
    CriticalBand,
    FishpondType,
    ThresholdBand,
    ThresholdConfig,
    default_threshold_config,
)

# Alert models
from pureflow.models.alerts import (
    Alert,
    AlertSeverity,
    AlertType,
)

# Notification models
from pureflow.models.notifications import (
    ChannelPreference,
    DeliveryChannel,
    DeliveryOutcome,
    DeliveryRecord,
    DeliveryStatus,
    NotificationPriority,
    NotificationRequest,
    PushResult,
)

# Schedule models
from pureflow.models.schedules import (
    FORECAST_REMINDER_ID,
    KNOWN_REMINDER_IDS,
    MONITORING_REMINDER_ID,
    REPORT_REMINDER_ID,
    IntervalTrigger,
    Schedule,
    ScheduleType,
    TimeOfDayTrigger,
)

# Health models
from pureflow.models.health import (
    DeliveryHealthReport,
    HealthState,
    RecoverySuggestion,
    SuggestionPriority,
)

__all__ = [
    # Readings
    "MONITORED_PARAMETERS",
    "PARAMETER_PH",
    "PARAMETER_RAINING",
    "PARAMETER_SALINITY",
    "PARAMETER_TEMPERATURE",
    "PARAMETER_TURBIDITY",
    "Direction",
    "EvaluationResult",
    "ParameterStatus",
    "Reading",
    # Thresholds
    "DEFAULT_PROFILES",
    "CriticalBand",
    "FishpondType",
    "ThresholdBand",
    "ThresholdConfig",
    "default_threshold_config",
    # Alerts
    "Alert",
    "AlertSeverity",
    "AlertType",
    # Notifications
    "ChannelPreference",
    "DeliveryChannel",
    "DeliveryOutcome",
    "DeliveryRecord",
    "DeliveryStatus",
    "NotificationPriority",
    "NotificationRequest",
    "PushResult",
    # Schedules
    "FORECAST_REMINDER_ID",
    "KNOWN_REMINDER_IDS",
    "MONITORING_REMINDER_ID",
    "REPORT_REMINDER_ID",
    "IntervalTrigger",
    "Schedule",
    "ScheduleType",
    "TimeOfDayTrigger",
    # Health
    "DeliveryHealthReport",
    "HealthState",
    "RecoverySuggestion",
    "SuggestionPriority",
]
