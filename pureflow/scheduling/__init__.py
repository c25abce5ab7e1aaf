"""
Recurring reminder scheduling.

Components:
    manager: ScheduleManager for persisted, restart-safe reminder timers

Example:
    >>> from pureflow.scheduling import ScheduleManager
    >>>
    >>> manager = ScheduleManager(dispatcher=dispatcher, store=store)
    >>> await manager.initialize()
"""

from pureflow.scheduling.manager import (
    DAILY_REMINDER_IDS,
    ScheduleManager,
    create_schedule_manager,
    next_fire_time,
)

__all__ = [
    "DAILY_REMINDER_IDS",
    "ScheduleManager",
    "create_schedule_manager",
    "next_fire_time",
]
