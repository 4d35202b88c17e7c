"""
MealMate - Meal Planning Reconciler.

The single place where meal writes and reminder state meet. Every
operation persists first, then derives the reminder delta:

    Unplanned       is_planned=False          -> no reminder
    Planned-future  reminder instant > now    -> exactly one reminder
    Planned-past    reminder instant <= now   -> no reminder, meal kept

Store and validation errors propagate to the caller. Reminder failures
are logged and absorbed here; they never fail a meal write.
"""

import logging
from datetime import date

from pydantic import ValidationError

from mealmate.dates import canonical_planned_date
from mealmate.db.meals import MealStore
from mealmate.errors import InvalidMealError, MealNotFoundError
from mealmate.models import (
    MEAL_TYPES,
    Meal,
    MealType,
    NotificationSettings,
)
from mealmate.notifications.scheduler import NotificationScheduler
from mealmate.notifications.settings import SettingsStore

logger = logging.getLogger(__name__)

# Fields a planned copy takes from the target slot rather than the source meal
_SLOT_FIELDS = {"id", "user_id", "is_planned", "planned_date", "meal_type", "date", "created_at", "favorite"}


class MealPlanner:
    """Orchestrates meal CRUD and keeps reminders consistent with it."""

    def __init__(self, store: MealStore, scheduler: NotificationScheduler, settings_store: SettingsStore):
        self.store = store
        self.scheduler = scheduler
        self.settings_store = settings_store

    # =========================================================================
    # Reminder delta
    # =========================================================================

    def _reminder_time(self, meal: Meal, settings: NotificationSettings) -> str:
        return meal.reminder_time or settings.for_meal_type(meal.meal_type).time

    async def _sync_reminder(self, meal: Meal, replace: bool) -> str | None:
        """
        Bring a meal's reminder in line with its current fields.

        replace=False is for brand-new meals (nothing to cancel). Returns the
        live handle, or None if the meal should have no reminder.
        """
        try:
            settings = await self.settings_store.load()
            if not meal.is_planned or not settings.reminders_enabled_for(meal.meal_type):
                if replace:
                    await self.scheduler.cancel_meal_notification(meal.id)
                return None

            reminder_time = self._reminder_time(meal, settings)
            if replace:
                return await self.scheduler.update_meal_notification(meal, reminder_time)
            return await self.scheduler.schedule_meal_notification(meal, reminder_time)
        except Exception as e:
            logger.error(f"Error syncing reminder for meal {meal.id}: {e}")
            return None

    # =========================================================================
    # Meal operations
    # =========================================================================

    async def create_meal(self, meal: Meal) -> str:
        """Persist a new meal; schedule its reminder if it is planned for the future."""
        meal.check_planning()
        meal_id = await self.store.create(meal)
        if meal.is_planned:
            await self._sync_reminder(meal.model_copy(update={"id": meal_id}), replace=False)
        return meal_id

    async def update_meal(self, meal_id: str, changes: dict) -> Meal:
        """
        Apply a partial update and return the stored meal.

        The merged result is validated before anything is written. The
        reminder is then replaced (or cancelled) based on the re-fetched
        document, so its time and text always follow the stored meal.
        """
        if "id" in changes:
            raise InvalidMealError("A meal's id cannot be changed")

        current = await self.store.get_by_id(meal_id)
        if current is None:
            raise MealNotFoundError(meal_id)
        try:
            merged = Meal.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidMealError(str(e)) from e
        merged.check_planning()

        await self.store.update(meal_id, changes)

        updated = await self.store.get_by_id(meal_id)
        if updated is None:
            raise MealNotFoundError(meal_id)
        await self._sync_reminder(updated, replace=True)
        return updated

    async def toggle_favorite(self, meal_id: str) -> bool:
        """
        Flip `favorite` and return the new value.

        Read-then-write; a concurrent toggle elsewhere is last-write-wins.
        Planning fields and reminders are untouched.
        """
        current = await self.store.get_by_id(meal_id)
        if current is None:
            raise MealNotFoundError(meal_id)
        new_value = not current.favorite
        await self.store.update(meal_id, {"favorite": new_value})
        logger.info(f"Set favorite={new_value} on meal {meal_id}")
        return new_value

    async def delete_meal(self, meal_id: str) -> None:
        """Cancel the meal's reminders, then delete the document."""
        try:
            await self.scheduler.cancel_meal_notification(meal_id)
        except Exception as e:
            logger.error(f"Error cancelling notification for meal {meal_id}: {e}")
        await self.store.delete(meal_id)

    async def plan_existing_meal(self, source: Meal, day: date | str, meal_type: MealType, user_id: str) -> str:
        """
        Plan a recipe onto a (day, meal type) slot.

        Creates a new, independent meal document copying the source's
        descriptive fields. The source meal is not modified, so the same
        recipe can be planned onto any number of slots.
        """
        if meal_type not in MEAL_TYPES:
            raise InvalidMealError(f"Unknown meal type: {meal_type!r}")
        try:
            planned_date = canonical_planned_date(day)
        except ValueError as e:
            raise InvalidMealError(str(e)) from e

        planned = Meal.model_validate(
            {
                **source.model_dump(exclude=_SLOT_FIELDS),
                "user_id": user_id,
                "is_planned": True,
                "planned_date": planned_date,
                "date": planned_date,
                "meal_type": meal_type,
            }
        )
        meal_id = await self.create_meal(planned)
        logger.info(f"Planned '{source.display_name}' for {meal_type} on {planned_date[:10]} as meal {meal_id}")
        return meal_id

    # =========================================================================
    # Startup / resync
    # =========================================================================

    async def reschedule_planned_meals(self, user_id: str) -> int:
        """
        Re-derive every planned meal's reminder from the store.

        Safe to repeat: each meal's reminder is replaced, never duplicated.
        Returns how many meals ended up with a live reminder.
        """
        meals = await self.store.list_planned_by_user(user_id)
        live = 0
        for meal in meals:
            if await self._sync_reminder(meal, replace=True):
                live += 1
        logger.info(f"Rescheduled reminders for {live}/{len(meals)} planned meals")
        return live

    async def start(self, user_id: str) -> None:
        """
        App-start sequence for a signed-in user.

        Backfills missing favorite flags (so favorite queries are complete),
        rebuilds meal reminders, then rolls planning reminders forward.
        """
        patched = await self.store.ensure_favorite_field(user_id)
        if patched:
            logger.info(f"Backfilled favorite on {patched} meals")
        await self.reschedule_planned_meals(user_id)
        await self.scheduler.schedule_planning_reminders(await self.settings_store.load())

    # =========================================================================
    # Settings toggles
    # =========================================================================

    async def load_settings(self) -> NotificationSettings:
        return await self.settings_store.load()

    async def set_notifications_enabled(self, enabled: bool, user_id: str | None = None) -> NotificationSettings:
        """
        Global switch. Turning off cancels every meal and planning reminder;
        turning on with a user_id rebuilds them.
        """
        settings = await self.settings_store.load()
        settings.enabled = enabled
        await self.settings_store.save(settings)

        if not enabled:
            await self.scheduler.cancel_all_meal_notifications()
            await self.scheduler.cancel_planning_reminders()
        elif user_id:
            await self.reschedule_planned_meals(user_id)
            await self.scheduler.schedule_planning_reminders(settings)
        return settings

    async def set_meal_type_reminder(
        self,
        meal_type: MealType,
        enabled: bool | None = None,
        time: str | None = None,
        user_id: str | None = None,
    ) -> NotificationSettings:
        """
        Change one meal type's reminder toggle and/or time.

        With a user_id, that user's planned meals of this type are
        rescheduled so their reminders follow the new setting.
        """
        settings = await self.settings_store.load()
        current = settings.for_meal_type(meal_type)
        try:
            settings.meal_types[meal_type] = current.model_validate(
                {
                    "enabled": current.enabled if enabled is None else enabled,
                    "time": current.time if time is None else time,
                }
            )
        except ValidationError as e:
            raise InvalidMealError(str(e)) from e
        await self.settings_store.save(settings)

        if user_id:
            for meal in await self.store.list_planned_by_user(user_id):
                if meal.meal_type == meal_type:
                    await self._sync_reminder(meal, replace=True)
        return settings

    async def set_planning_reminders(self, enabled: bool) -> NotificationSettings:
        settings = await self.settings_store.load()
        settings.planning_reminders = enabled
        await self.settings_store.save(settings)

        if enabled:
            await self.scheduler.schedule_planning_reminders(settings)
        else:
            await self.scheduler.cancel_planning_reminders()
        return settings
