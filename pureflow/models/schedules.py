"""
Schedule models for recurring reminders.

Models:
    ScheduleType: Logical reminder kind
    TimeOfDayTrigger: Fires daily at a fixed hour and minute
    IntervalTrigger: Fires every N hours
    Schedule: Persisted recurring notification trigger
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from pureflow.models.notifications import NotificationRequest

FORECAST_REMINDER_ID = "forecast_reminder"
REPORT_REMINDER_ID = "report_reminder"
MONITORING_REMINDER_ID = "monitoring_reminder"

KNOWN_REMINDER_IDS = (FORECAST_REMINDER_ID, REPORT_REMINDER_ID, MONITORING_REMINDER_ID)


class ScheduleType(str, Enum):
    """Logical reminder kind."""

    FORECAST_REMINDER = "forecast_reminder"
    REPORT_REMINDER = "report_reminder"
    MONITORING_REMINDER = "monitoring_reminder"
    CUSTOM = "custom"


class TimeOfDayTrigger(BaseModel):
    """Daily trigger at a fixed local hour and minute."""

    model_config = {"frozen": True, "extra": "forbid"}

    kind: Literal["time_of_day"] = "time_of_day"
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    def next_after(self, now: datetime) -> datetime:
        """
        Next firing time strictly after ``now``.

        Today if the time of day is still ahead, otherwise tomorrow.
        """
        candidate = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate


class IntervalTrigger(BaseModel):
    """Repeating trigger every ``hours`` hours."""

    model_config = {"frozen": True, "extra": "forbid"}

    kind: Literal["interval"] = "interval"
    hours: float = Field(..., gt=0)

    def next_after(self, now: datetime) -> datetime:
        """Next firing time, one interval from ``now``."""
        return now + timedelta(hours=self.hours)


ScheduleTrigger = Union[TimeOfDayTrigger, IntervalTrigger]


class Schedule(BaseModel):
    """
    Persisted recurring notification trigger.

    Attributes:
        id: Logical reminder id.
        type: Reminder kind.
        trigger: Time-of-day or interval trigger.
        active: False once cancelled.
        created_at: Creation time.
        request: Notification sent on each firing.
        last_fired_at: Time of the most recent firing.
    """

    model_config = {"extra": "forbid"}

    id: str = Field(..., description="Logical reminder id")
    type: ScheduleType = Field(..., description="Reminder kind")
    trigger: ScheduleTrigger = Field(..., discriminator="kind")
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request: NotificationRequest
    last_fired_at: Optional[datetime] = None

    def next_fire_time(self, now: datetime) -> datetime:
        """Next firing time after ``now``."""
        return self.trigger.next_after(now)
