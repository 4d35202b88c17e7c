"""
MealMate - Data Models.

Pydantic models for meal documents and device-local reminder state.
"""

from mealmate.models.entities import (
    DEFAULT_MEAL_TIMES,
    MEAL_TYPES,
    DeepLink,
    Meal,
    MealType,
    MealTypeReminder,
    NotificationSettings,
    ScheduledReminder,
    changes_to_record,
)

__all__ = [
    "DEFAULT_MEAL_TIMES",
    "MEAL_TYPES",
    "DeepLink",
    "Meal",
    "MealType",
    "MealTypeReminder",
    "NotificationSettings",
    "ScheduledReminder",
    "changes_to_record",
]
