"""
MealMate - Local reminder index.

Two device-local indexes, each stored as one JSON blob:

- meal reminders: list of ScheduledReminder, many entries per meal allowed
  in storage but at most one live after any scheduler operation
- planning reminders: meal type -> OS handle

Both are read-modify-written whole. The edit context managers hold an
in-process lock for the duration of the edit so concurrent coroutines
cannot interleave a read and a write.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from pydantic import TypeAdapter, ValidationError

from mealmate.models import ScheduledReminder
from mealmate.storage import LocalStorage

logger = logging.getLogger(__name__)

MEAL_NOTIFICATIONS_KEY = "meal_notifications"
PLANNING_REMINDERS_KEY = "meal_planning_reminders"

_reminder_list = TypeAdapter(list[ScheduledReminder])


class ReminderIndex:
    """Persisted meal-id -> reminder and meal-type -> handle indexes."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self._lock = asyncio.Lock()

    # =========================================================================
    # Meal reminders
    # =========================================================================

    async def _read_meal_reminders(self) -> list[ScheduledReminder]:
        stored = await self.storage.get_item(MEAL_NOTIFICATIONS_KEY)
        if not stored:
            return []
        try:
            return _reminder_list.validate_json(stored)
        except ValidationError as e:
            logger.error(f"Error reading meal notification index, resetting: {e}")
            return []

    async def _write_meal_reminders(self, reminders: list[ScheduledReminder]) -> None:
        if reminders:
            await self.storage.set_item(MEAL_NOTIFICATIONS_KEY, _reminder_list.dump_json(reminders).decode())
        else:
            await self.storage.remove_item(MEAL_NOTIFICATIONS_KEY)

    async def meal_reminders(self) -> list[ScheduledReminder]:
        async with self._lock:
            return await self._read_meal_reminders()

    async def reminders_for(self, meal_id: str) -> list[ScheduledReminder]:
        return [r for r in await self.meal_reminders() if r.meal_id == meal_id]

    @asynccontextmanager
    async def edit_meal_reminders(self) -> AsyncIterator[list[ScheduledReminder]]:
        """
        Lock, load and yield the full reminder list; write it back on exit.

        Mutate the yielded list in place. Nothing is written if the block raises.
        """
        async with self._lock:
            reminders = await self._read_meal_reminders()
            yield reminders
            await self._write_meal_reminders(reminders)

    # =========================================================================
    # Planning reminders
    # =========================================================================

    async def _read_planning_reminders(self) -> dict[str, str]:
        stored = await self.storage.get_item(PLANNING_REMINDERS_KEY)
        if not stored:
            return {}
        try:
            data = json.loads(stored)
        except json.JSONDecodeError as e:
            logger.error(f"Error reading planning reminder index, resetting: {e}")
            return {}
        return {k: v for k, v in data.items() if v} if isinstance(data, dict) else {}

    async def planning_reminders(self) -> dict[str, str]:
        async with self._lock:
            return await self._read_planning_reminders()

    @asynccontextmanager
    async def edit_planning_reminders(self) -> AsyncIterator[dict[str, str]]:
        async with self._lock:
            reminders = await self._read_planning_reminders()
            yield reminders
            if reminders:
                await self.storage.set_item(PLANNING_REMINDERS_KEY, json.dumps(reminders))
            else:
                await self.storage.remove_item(PLANNING_REMINDERS_KEY)
