"""
MealMate - Notification settings persistence.

Settings are loaded from device storage on every scheduling decision;
defaults are used when nothing has been saved yet or the saved blob is
unreadable.
"""

import logging

from pydantic import ValidationError

from mealmate.models import NotificationSettings
from mealmate.storage import LocalStorage

logger = logging.getLogger(__name__)

SETTINGS_KEY = "notification_settings"


class SettingsStore:
    """Load/save NotificationSettings under a single storage key."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    async def load(self) -> NotificationSettings:
        stored = await self.storage.get_item(SETTINGS_KEY)
        if not stored:
            return NotificationSettings()
        try:
            return NotificationSettings.model_validate_json(stored)
        except ValidationError as e:
            logger.error(f"Error loading notification settings, using defaults: {e}")
            return NotificationSettings()

    async def save(self, settings: NotificationSettings) -> None:
        await self.storage.set_item(SETTINGS_KEY, settings.model_dump_json())
