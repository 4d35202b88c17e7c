"""
MealMate - Notification Scheduler.

Turns meal-planning intent into OS-level local reminders and keeps the
local index in step with what is actually scheduled.

Two reminder classes:
- Meal reminders: one per planned meal, at the meal's reminder time on its
  planned calendar date. Indexed by meal id.
- Planning reminders: one per meal type, 30 minutes before that type's
  planning time tomorrow, nudging the user to plan. Indexed by meal type.

Reminders are a best-effort enhancement. Nothing in this module raises to
the caller because of the notification facility: an unsupported device,
a denied permission or a facility error means "no reminder", logged.
"""

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Callable

from mealmate.dates import parse_clock_time
from mealmate.models import (
    DEFAULT_MEAL_TIMES,
    MEAL_TYPES,
    DeepLink,
    Meal,
    MealType,
    NotificationSettings,
    ScheduledReminder,
)
from mealmate.notifications.facility import (
    NotificationContent,
    NotificationFacility,
    PendingNotification,
    UnknownNotificationError,
)
from mealmate.notifications.index import ReminderIndex

logger = logging.getLogger(__name__)

MEAL_EMOJIS: dict[MealType, str] = {
    "breakfast": "🍳",
    "lunch": "🍽️",
    "dinner": "🍝",
    "snack": "🍎",
}

# Planning reminders fire this long before the meal time
PLANNING_LEAD = timedelta(minutes=30)


def local_timezone() -> tzinfo:
    return datetime.now().astimezone().tzinfo


def reminder_instant(day: date, reminder_time: str, tz: tzinfo) -> datetime:
    """Wall-clock `reminder_time` on `day` in `tz`."""
    return datetime.combine(day, parse_clock_time(reminder_time), tzinfo=tz)


def format_notification_time(value: str) -> str:
    """Format "HH:MM" for display, e.g. "18:05" -> "6:05 PM"."""
    parsed = parse_clock_time(value)
    period = "PM" if parsed.hour >= 12 else "AM"
    hours = parsed.hour % 12 or 12
    return f"{hours}:{parsed.minute:02d} {period}"


def default_notification_times() -> dict[MealType, str]:
    return dict(DEFAULT_MEAL_TIMES)


def handle_notification_response(data: dict[str, Any] | None) -> DeepLink:
    """Map a tapped notification's payload to a navigation target."""
    data = data or {}
    meal_type = data.get("mealType")
    return DeepLink(
        screen=data.get("screen") or "home",
        meal_id=data.get("mealId"),
        meal_type=meal_type if meal_type in MEAL_TYPES else None,
    )


class NotificationScheduler:
    """
    Schedules, replaces and cancels local reminders.

    Constructed once at startup and handed to the planner. State lives in
    the injected ReminderIndex; the clock and timezone are injectable so
    scheduling decisions are reproducible.
    """

    def __init__(
        self,
        facility: NotificationFacility,
        index: ReminderIndex,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.facility = facility
        self.index = index
        self.tz = tz or local_timezone()
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._initialized = False

    def now(self) -> datetime:
        return self._clock()

    async def initialize(self) -> bool:
        """
        Check device support and permission once.

        A False result is not cached, so a later grant is picked up.
        """
        if self._initialized:
            return True
        try:
            if not await self.facility.is_supported():
                logger.info("Notifications only work on physical devices")
                return False
            if not await self.facility.request_permission():
                logger.info("Notification permissions not granted")
                return False
        except Exception as e:
            logger.error(f"Error initializing notifications: {e}")
            return False
        self._initialized = True
        return True

    async def _schedule(self, content: NotificationContent, trigger: datetime | None) -> str | None:
        try:
            return await self.facility.schedule(content, trigger)
        except Exception as e:
            logger.error(f"Error scheduling notification '{content.title}': {e}")
            return None

    async def _cancel_handle(self, handle: str) -> None:
        try:
            await self.facility.cancel(handle)
        except UnknownNotificationError:
            logger.debug(f"Notification {handle} already gone")
        except Exception as e:
            logger.error(f"Error cancelling notification {handle}: {e}")

    # =========================================================================
    # Meal reminders
    # =========================================================================

    async def schedule_meal_notification(self, meal: Meal, reminder_time: str | None = None) -> str | None:
        """
        Schedule the reminder for a planned meal.

        Time of day: `reminder_time`, else the meal's own override, else the
        default for its meal type. Returns the OS handle, or None when the
        reminder instant is not in the future, the meal has no usable planned
        date, or notifications are unavailable.

        If an identical reminder (same meal, same instant) is already indexed,
        its handle is returned and nothing new is scheduled. Any other
        reminder indexed for the meal is cancelled first.
        """
        if not meal.id:
            logger.warning("Cannot schedule a reminder for an unsaved meal")
            return None
        day = meal.planned_day
        if day is None:
            logger.warning(f"Meal {meal.id} has no usable planned date, no reminder")
            return None

        time_of_day = reminder_time or meal.reminder_time or DEFAULT_MEAL_TIMES[meal.meal_type]
        scheduled_time = reminder_instant(day, time_of_day, self.tz)
        now = self.now()
        if scheduled_time <= now:
            logger.info(f"Cannot schedule notification for past time {scheduled_time}")
            return None

        if not await self.initialize():
            return None

        async with self.index.edit_meal_reminders() as reminders:
            current = None
            for existing in [r for r in reminders if r.meal_id == meal.id]:
                if current is None and existing.scheduled_time == scheduled_time:
                    current = existing
                    continue
                # At most one live reminder per meal
                await self._cancel_handle(existing.notification_id)
                reminders.remove(existing)
            if current is not None:
                return current.notification_id

            content = NotificationContent(
                title=f"{MEAL_EMOJIS[meal.meal_type]} Meal Reminder",
                body=f"Time for {meal.meal_type}: {meal.display_name}",
                data={"mealId": meal.id, "mealType": meal.meal_type, "screen": "meal-detail"},
                category="meal-reminder",
            )
            handle = await self._schedule(content, scheduled_time)
            if handle is None:
                return None

            reminders.append(
                ScheduledReminder(
                    id=f"{meal.id}_{int(now.timestamp() * 1000)}",
                    meal_id=meal.id,
                    title=meal.display_name,
                    meal_type=meal.meal_type,
                    scheduled_time=scheduled_time,
                    notification_id=handle,
                )
            )

        logger.info(f"Scheduled notification for {meal.meal_type} at {scheduled_time}")
        return handle

    async def cancel_meal_notification(self, meal_id: str) -> None:
        """Cancel and forget every reminder indexed for a meal."""
        async with self.index.edit_meal_reminders() as reminders:
            stale = [r for r in reminders if r.meal_id == meal_id]
            for reminder in stale:
                await self._cancel_handle(reminder.notification_id)
            reminders[:] = [r for r in reminders if r.meal_id != meal_id]

        if stale:
            logger.info(f"Cancelled {len(stale)} notification(s) for meal {meal_id}")

    async def update_meal_notification(self, meal: Meal, reminder_time: str | None = None) -> str | None:
        """Replace a meal's reminder: cancel everything for it, then schedule afresh."""
        await self.cancel_meal_notification(meal.id)
        return await self.schedule_meal_notification(meal, reminder_time)

    async def cancel_all_meal_notifications(self) -> None:
        """Cancel every meal reminder and clear the meal index."""
        async with self.index.edit_meal_reminders() as reminders:
            for reminder in reminders:
                await self._cancel_handle(reminder.notification_id)
            count = len(reminders)
            reminders.clear()
        logger.info(f"Cancelled all meal notifications ({count})")

    async def live_handles(self, meal_id: str) -> list[str]:
        return [r.notification_id for r in await self.index.reminders_for(meal_id)]

    # =========================================================================
    # Planning reminders
    # =========================================================================

    async def schedule_planning_reminders(self, settings: NotificationSettings) -> dict[str, str]:
        """
        Replace the daily planning nudges for tomorrow.

        Existing planning reminders are always cancelled first. New ones are
        scheduled only when notifications and planning reminders are on,
        per meal type unless that type is opted out. Returns meal type ->
        handle for what was scheduled.
        """
        await self.cancel_planning_reminders()

        if not settings.enabled or not settings.planning_reminders:
            logger.info("Planning reminders are disabled in settings")
            return {}
        if not await self.initialize():
            return {}

        now = self.now()
        tomorrow = now.date() + timedelta(days=1)
        scheduled: dict[str, str] = {}

        for meal_type in MEAL_TYPES:
            if not settings.planning_enabled_for(meal_type):
                logger.debug(f"{meal_type} planning reminders are disabled")
                continue

            trigger = reminder_instant(tomorrow, settings.planning_times[meal_type], self.tz) - PLANNING_LEAD
            if trigger <= now:
                continue

            content = NotificationContent(
                title=f"{MEAL_EMOJIS[meal_type]} Plan Your {meal_type.capitalize()}",
                body=f"Time to plan your {meal_type} for tomorrow! Tap to open MealMate and add a meal.",
                data={"screen": "plan", "mealType": meal_type},
            )
            handle = await self._schedule(content, trigger)
            if handle is None:
                continue
            scheduled[meal_type] = handle
            logger.info(f"Scheduled {meal_type} planning reminder for {trigger}")

        async with self.index.edit_planning_reminders() as reminders:
            reminders.update(scheduled)
        return scheduled

    async def cancel_planning_reminders(self) -> None:
        async with self.index.edit_planning_reminders() as reminders:
            for meal_type, handle in reminders.items():
                await self._cancel_handle(handle)
                logger.debug(f"Cancelled {meal_type} planning reminder")
            reminders.clear()

    async def send_test_planning_reminder(self, meal_type: MealType) -> str | None:
        """Deliver a planning nudge immediately."""
        if not await self.initialize():
            return None
        content = NotificationContent(
            title=f"{MEAL_EMOJIS.get(meal_type, '🍽️')} Plan Your {meal_type.capitalize()}",
            body=f"Time to plan your {meal_type}! Tap to open MealMate and add a meal.",
            data={"screen": "plan", "mealType": meal_type},
        )
        return await self._schedule(content, None)

    async def get_scheduled_notifications(self) -> list[PendingNotification]:
        try:
            return await self.facility.list_scheduled()
        except Exception as e:
            logger.error(f"Error listing scheduled notifications: {e}")
            return []
