"""
Notification request templates.

Builds NotificationRequests from alerts and from reminder schedule types.

Example:
    >>> request = alert_notification(alert)
    >>> request.title
    '🚨 Water Quality Alert'
    >>> request.body
    'Critical: pH level is 9.20'
"""

from typing import Any, Dict

from pureflow.detection.connection import CONNECTION_PARAMETER
from pureflow.detection.generator import HARMFUL_STATE_PARAMETER
from pureflow.detection.messages import display_name, format_value
from pureflow.models.alerts import Alert, AlertSeverity, AlertType
from pureflow.models.notifications import NotificationPriority, NotificationRequest
from pureflow.models.schedules import ScheduleType

CATEGORY_ALERTS = "alerts"
CATEGORY_REMINDERS = "reminders"
CATEGORY_WEATHER = "weather"
CATEGORY_DEVICE = "device"


def alert_notification(alert: Alert) -> NotificationRequest:
    """
    Build the notification for an alert.

    Water-quality alerts use the "Water Quality Alert" title with a
    severity-specific emoji; weather alerts reuse the alert title. Harmful
    state and device connection alerts have their own templates.
    """
    if alert.parameter == HARMFUL_STATE_PARAMETER:
        return harmful_state_notification(alert)
    if alert.parameter == CONNECTION_PARAMETER:
        return device_unstable_notification(alert)

    data: Dict[str, Any] = {
        "type": "weather_alert" if alert.type == AlertType.INFO else "water_quality_alert",
        "alertId": alert.id,
        "parameter": alert.parameter,
        "value": alert.value,
        "severity": alert.severity.value,
        "signature": alert.signature,
    }
    priority = NotificationPriority.HIGH if alert.severity.is_urgent else NotificationPriority.NORMAL

    if alert.type == AlertType.INFO:
        return NotificationRequest(
            title=alert.title,
            body=alert.message,
            data=data,
            category_id=CATEGORY_WEATHER,
            priority=priority,
        )

    critical = alert.severity == AlertSeverity.CRITICAL
    emoji = "🚨" if critical else "⚠️"
    level = "Critical" if critical else "Warning"
    return NotificationRequest(
        title=f"{emoji} Water Quality Alert",
        body=f"{level}: {display_name(alert.parameter)} level is {format_value(alert.parameter, alert.value)}",
        data=data,
        category_id=CATEGORY_ALERTS,
        priority=priority,
    )


def harmful_state_notification(alert: Alert) -> NotificationRequest:
    """Summary notification for several parameters in breach at once."""
    return NotificationRequest(
        title="🚨 Harmful Water Conditions",
        body=alert.message,
        data={
            "type": "harmful_state_alert",
            "alertId": alert.id,
            "parameterCount": int(alert.value),
            "severity": alert.severity.value,
            "signature": alert.signature,
        },
        category_id=CATEGORY_ALERTS,
        priority=NotificationPriority.HIGH,
    )


def device_unstable_notification(alert: Alert) -> NotificationRequest:
    """Notification for repeated failed fetches from the sensor device."""
    return NotificationRequest(
        title="📡 Device Connection Unstable",
        body=alert.message,
        data={
            "type": "device_unstable",
            "alertId": alert.id,
            "failedFetches": int(alert.value),
        },
        category_id=CATEGORY_DEVICE,
        priority=NotificationPriority.HIGH,
    )


def forecast_reminder() -> NotificationRequest:
    """Evening reminder to review tomorrow's water-quality forecast."""
    return NotificationRequest(
        title="🔮 Forecast Reminder",
        body="Check tomorrow's water quality forecast and plan pond care ahead.",
        data={"type": ScheduleType.FORECAST_REMINDER.value},
        category_id=CATEGORY_REMINDERS,
    )


def report_reminder() -> NotificationRequest:
    """Daily reminder to review the water-quality report."""
    return NotificationRequest(
        title="📊 Daily Report Ready",
        body="Review today's water quality report for trends and anomalies.",
        data={"type": ScheduleType.REPORT_REMINDER.value},
        category_id=CATEGORY_REMINDERS,
    )


def monitoring_reminder() -> NotificationRequest:
    """Periodic reminder to check pond conditions."""
    return NotificationRequest(
        title="⏰ Monitoring Reminder",
        body="Time to check your pond's readings and sensor status.",
        data={"type": ScheduleType.MONITORING_REMINDER.value},
        category_id=CATEGORY_REMINDERS,
    )


REMINDER_TEMPLATES = {
    ScheduleType.FORECAST_REMINDER: forecast_reminder,
    ScheduleType.REPORT_REMINDER: report_reminder,
    ScheduleType.MONITORING_REMINDER: monitoring_reminder,
}
