"""
Recurring reminder scheduling.

This module provides the ScheduleManager class which keeps the recurring
reminders (forecast, report, monitoring and custom schedules) armed as
asyncio timer tasks and persists their state in the key-value store so they
survive restarts.

Key Features:
    - One timer per schedule id; arming always cancels the previous timer
    - Persisted schedule map, restored and re-armed by ``initialize()``
    - Cancellation stops the timer and persists the inactive flag before
      acknowledging
    - Firing errors are logged and never retract the schedule
    - Persistence errors degrade to in-memory operation with a warning

Example:
    >>> manager = ScheduleManager(dispatcher=dispatcher, store=store)
    >>> await manager.initialize()
    >>> manager.are_daily_reminders_active()
    True
    >>> await manager.cancel_notification(FORECAST_REMINDER_ID)
    True
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

import structlog
from pydantic import ValidationError

from pureflow.config.models import ScheduleSettings
from pureflow.models.notifications import DeliveryOutcome, NotificationRequest
from pureflow.models.schedules import (
    FORECAST_REMINDER_ID,
    KNOWN_REMINDER_IDS,
    MONITORING_REMINDER_ID,
    REPORT_REMINDER_ID,
    IntervalTrigger,
    Schedule,
    ScheduleTrigger,
    ScheduleType,
    TimeOfDayTrigger,
)
from pureflow.notifications.dispatcher import DispatchCancelledError, NotificationDispatcher
from pureflow.notifications.templates import REMINDER_TEMPLATES
from pureflow.storage.kv import KeyValueStore, KeyValueStoreError, load_json, save_json

logger = structlog.get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]

DAILY_REMINDER_IDS = (FORECAST_REMINDER_ID, REPORT_REMINDER_ID)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def next_fire_time(schedule: Schedule, now: Optional[datetime] = None) -> datetime:
    """
    Next firing time of a schedule.

    Time-of-day triggers fire today if the time is still ahead, otherwise
    tomorrow. Interval triggers fire one interval from ``now``.
    """
    return schedule.next_fire_time(now or _local_now())


class ScheduleManager:
    """
    Keeps recurring reminders armed and persisted.

    States per schedule id: unscheduled, active, cancelled. Scheduling an
    id that already exists replaces it.

    Attributes:
        dispatcher: Delivers each firing.
        store: Optional key-value store for the schedule map.
        settings: Reminder times, interval and storage key.
        _schedules: Known schedules keyed by id.
        _timers: Live timer task per schedule id.
        _lock: Serializes state changes.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        store: Optional[KeyValueStore] = None,
        settings: Optional[ScheduleSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        """
        Initialize the manager.

        Args:
            dispatcher: Dispatcher used for every firing.
            store: Persistence backend. None keeps schedules in memory only.
            settings: Schedule settings. Defaults to ScheduleSettings().
            clock: Returns the current timezone-aware local time.
            sleep: Awaitable sleep used by timers.
        """
        self.dispatcher = dispatcher
        self.store = store
        self.settings = settings if settings is not None else ScheduleSettings()
        self._clock = clock or _local_now
        self._sleep = sleep or asyncio.sleep
        self._schedules: Dict[str, Schedule] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if ``initialize()`` has completed."""
        return self._initialized

    @property
    def armed_ids(self) -> List[str]:
        """Ids with a live timer task, sorted."""
        return sorted(sid for sid, task in self._timers.items() if not task.done())

    def get_schedule(self, schedule_id: str) -> Optional[Schedule]:
        """Look up a schedule by id."""
        return self._schedules.get(schedule_id)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> None:
        """
        Restore persisted schedules and arm the reminders.

        Known reminder ids that are missing or inactive are created again;
        active schedules are re-armed. Safe to call repeatedly: each id ends
        with exactly one timer.
        """
        async with self._lock:
            persisted = await self._load()
            self._schedules.update(persisted)

            for schedule_id in KNOWN_REMINDER_IDS:
                existing = self._schedules.get(schedule_id)
                if existing is None or not existing.active:
                    self._create(self._default_schedule(schedule_id))
                else:
                    self._arm(schedule_id)

            for schedule_id, schedule in self._schedules.items():
                if schedule_id not in KNOWN_REMINDER_IDS and schedule.active:
                    self._arm(schedule_id)

            await self._persist()
            self._initialized = True

        logger.info(
            "schedules_initialized",
            restored=len(persisted),
            armed=self.armed_ids,
        )

    async def destroy(self) -> None:
        """Cancel every timer and forget in-memory state."""
        async with self._lock:
            for schedule_id in list(self._timers):
                await self._stop_timer(schedule_id)
            self._schedules.clear()
            self._initialized = False
        logger.info("schedules_destroyed")

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    async def schedule_daily_reminders(self) -> List[Schedule]:
        """
        Schedule the daily forecast and report reminders.

        Returns:
            List[Schedule]: The forecast and report schedules.
        """
        async with self._lock:
            created = [self._create(self._default_schedule(sid)) for sid in DAILY_REMINDER_IDS]
            await self._persist()
        return created

    async def schedule_monitoring_reminders(
        self,
        interval_hours: Optional[float] = None,
    ) -> Schedule:
        """
        Schedule the periodic monitoring reminder.

        Args:
            interval_hours: Hours between reminders. Defaults to the
                configured interval.
        """
        async with self._lock:
            schedule = self._create(
                self._default_schedule(MONITORING_REMINDER_ID, interval_hours=interval_hours)
            )
            await self._persist()
        return schedule

    async def schedule_custom(
        self,
        schedule_id: str,
        trigger: ScheduleTrigger,
        request: NotificationRequest,
    ) -> Schedule:
        """
        Schedule a custom recurring notification.

        Args:
            schedule_id: Id of the schedule; an existing one is replaced.
            trigger: Time-of-day or interval trigger.
            request: Notification sent on each firing.
        """
        schedule = Schedule(
            id=schedule_id,
            type=ScheduleType.CUSTOM,
            trigger=trigger,
            request=request,
            created_at=self._clock(),
        )
        async with self._lock:
            self._create(schedule)
            await self._persist()
        return schedule

    async def cancel_notification(self, schedule_id: str) -> bool:
        """
        Cancel a schedule.

        The timer is stopped and the inactive flag persisted before this
        returns.

        Returns:
            bool: False if the id is unknown.
        """
        async with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None:
                return False

            await self._stop_timer(schedule_id)
            schedule.active = False
            await self._persist()

        logger.info("schedule_cancelled", schedule_id=schedule_id)
        return True

    async def reschedule_all(self) -> None:
        """Cancel every schedule, then schedule the daily and monitoring reminders."""
        async with self._lock:
            for schedule_id in list(self._timers):
                await self._stop_timer(schedule_id)
            for schedule in self._schedules.values():
                schedule.active = False

            for schedule_id in KNOWN_REMINDER_IDS:
                self._create(self._default_schedule(schedule_id))
            await self._persist()

        logger.info("schedules_rescheduled", armed=self.armed_ids)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_schedules_status(self) -> Dict[str, Dict[str, Any]]:
        """Per-schedule state for diagnostics."""
        now = self._clock()
        status: Dict[str, Dict[str, Any]] = {}
        for schedule_id, schedule in self._schedules.items():
            status[schedule_id] = {
                "type": schedule.type.value,
                "active": schedule.active,
                "armed": schedule_id in self.armed_ids,
                "next_fire_time": (
                    schedule.next_fire_time(now).isoformat() if schedule.active else None
                ),
                "last_fired_at": (
                    schedule.last_fired_at.isoformat() if schedule.last_fired_at else None
                ),
            }
        return status

    def are_daily_reminders_active(self) -> bool:
        """Check that both daily reminders exist and are active."""
        return all(
            sid in self._schedules and self._schedules[sid].active for sid in DAILY_REMINDER_IDS
        )

    async def fire_now(self, schedule_id: str) -> Optional[DeliveryOutcome]:
        """
        Dispatch a schedule's notification immediately.

        The timer is left untouched.

        Returns:
            Optional[DeliveryOutcome]: None if the id is unknown or the
                dispatch did not complete.
        """
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            return None
        return await self._fire(schedule)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _default_schedule(
        self,
        schedule_id: str,
        interval_hours: Optional[float] = None,
    ) -> Schedule:
        schedule_type = ScheduleType(schedule_id)
        trigger: ScheduleTrigger
        if schedule_type == ScheduleType.FORECAST_REMINDER:
            at = self.settings.forecast_reminder
            trigger = TimeOfDayTrigger(hour=at.hour, minute=at.minute)
        elif schedule_type == ScheduleType.REPORT_REMINDER:
            at = self.settings.report_reminder
            trigger = TimeOfDayTrigger(hour=at.hour, minute=at.minute)
        else:
            trigger = IntervalTrigger(hours=interval_hours or self.settings.monitoring_interval_hours)

        return Schedule(
            id=schedule_id,
            type=schedule_type,
            trigger=trigger,
            request=REMINDER_TEMPLATES[schedule_type](),
            created_at=self._clock(),
        )

    def _create(self, schedule: Schedule) -> Schedule:
        """Store a schedule and arm it. Caller holds the lock."""
        self._schedules[schedule.id] = schedule
        self._arm(schedule.id)
        logger.info(
            "schedule_created",
            schedule_id=schedule.id,
            type=schedule.type.value,
            trigger=schedule.trigger.kind,
            next_fire_time=schedule.next_fire_time(self._clock()).isoformat(),
        )
        return schedule

    def _arm(self, schedule_id: str) -> None:
        """Start the timer for a schedule, cancelling any previous one."""
        previous = self._timers.pop(schedule_id, None)
        if previous is not None and not previous.done():
            previous.cancel()
        self._timers[schedule_id] = asyncio.create_task(
            self._timer_loop(schedule_id),
            name=f"schedule:{schedule_id}",
        )

    async def _stop_timer(self, schedule_id: str) -> None:
        task = self._timers.pop(schedule_id, None)
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _timer_loop(self, schedule_id: str) -> None:
        try:
            while True:
                schedule = self._schedules.get(schedule_id)
                if schedule is None or not schedule.active:
                    return

                now = self._clock()
                delay = (schedule.next_fire_time(now) - now).total_seconds()
                await self._sleep(max(0.0, delay))

                schedule = self._schedules.get(schedule_id)
                if schedule is None or not schedule.active:
                    return
                await self._fire(schedule)

        except asyncio.CancelledError:
            logger.debug("schedule_timer_cancelled", schedule_id=schedule_id)

    async def _fire(self, schedule: Schedule) -> Optional[DeliveryOutcome]:
        """Dispatch one firing; errors are logged and the schedule stays armed."""
        request = schedule.request.model_copy(update={"id": str(uuid4())})
        outcome: Optional[DeliveryOutcome] = None

        try:
            outcome = await self.dispatcher.dispatch(request)
        except DispatchCancelledError:
            logger.info("schedule_fire_cancelled", schedule_id=schedule.id)
        except Exception as e:
            logger.error("schedule_fire_error", schedule_id=schedule.id, error=str(e))

        schedule.last_fired_at = self._clock()
        logger.info(
            "schedule_fired",
            schedule_id=schedule.id,
            notification_id=request.id,
            delivered=outcome.success if outcome else False,
        )
        await self._persist()
        return outcome

    async def _load(self) -> Dict[str, Schedule]:
        if self.store is None:
            return {}
        try:
            raw = await load_json(self.store, self.settings.storage_key)
        except KeyValueStoreError as e:
            logger.warning("schedules_load_failed", error=str(e))
            return {}

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            logger.warning("schedules_load_failed", error="persisted schedules are not a mapping")
            return {}

        schedules: Dict[str, Schedule] = {}
        for schedule_id, payload in raw.items():
            try:
                schedules[schedule_id] = Schedule.model_validate(payload)
            except ValidationError as e:
                logger.warning(
                    "persisted_schedule_invalid",
                    schedule_id=schedule_id,
                    error=str(e),
                )
        return schedules

    async def _persist(self) -> None:
        if self.store is None:
            return
        payload = {sid: s.model_dump(mode="json") for sid, s in self._schedules.items()}
        try:
            await save_json(self.store, self.settings.storage_key, payload)
        except KeyValueStoreError as e:
            logger.warning("schedules_persist_failed", error=str(e))


def create_schedule_manager(
    dispatcher: NotificationDispatcher,
    store: Optional[KeyValueStore] = None,
    settings: Optional[ScheduleSettings] = None,
) -> ScheduleManager:
    """Factory function to create a ScheduleManager."""
    return ScheduleManager(dispatcher=dispatcher, store=store, settings=settings)
