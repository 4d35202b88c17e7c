"""
MealMate - Entity Models.

Meal maps to a document in the `meals` table. ScheduledReminder and
NotificationSettings are device-local and never written to the store.
"""

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from mealmate.dates import is_valid_clock_time, normalize_planned_date, parse_day
from mealmate.errors import InvalidMealError

MealType = Literal["breakfast", "lunch", "dinner", "snack"]

MEAL_TYPES: tuple[MealType, ...] = ("breakfast", "lunch", "dinner", "snack")

DEFAULT_MEAL_TIMES: dict[MealType, str] = {
    "breakfast": "08:00",
    "lunch": "12:00",
    "dinner": "18:00",
    "snack": "15:00",
}


def _check_clock_time(value: str | None) -> str | None:
    if value is not None and not is_valid_clock_time(value):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return value


# =============================================================================
# Meal
# =============================================================================


class Meal(BaseModel):
    """
    A recipe/meal entry owned by a user.

    The store carries two legacy name columns, `title` and `name`. The model
    keeps a single `display_name`; see from_record/to_record for the mapping.
    """

    id: str | None = None
    user_id: str
    display_name: str = ""
    description: str = ""
    image: str = ""
    ingredients: list[str] = Field(default_factory=list)
    cooking_time: int | float | None = None  # minutes
    servings: int | float | None = None
    calories: int | float | None = None
    meal_type: MealType = "breakfast"
    favorite: bool = False
    is_planned: bool = False
    planned_date: str | None = None
    reminder_time: str | None = None  # per-meal override of the type's time
    date: str | None = None  # record timestamp, not the planned date
    created_at: str | None = None

    @field_validator("description", "image", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("ingredients", mode="before")
    @classmethod
    def none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("favorite", "is_planned", mode="before")
    @classmethod
    def none_to_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("meal_type", mode="before")
    @classmethod
    def default_meal_type(cls, value: Any) -> Any:
        return "breakfast" if value in (None, "") else value

    @field_validator("cooking_time", "servings", "calories", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("planned_date", mode="before")
    @classmethod
    def canonicalize_planned_date(cls, value: Any) -> Any:
        return normalize_planned_date(value)

    check_reminder_time = field_validator("reminder_time")(_check_clock_time)

    @property
    def planned_day(self) -> dt.date | None:
        """Calendar date of planned_date, or None if unset/unparseable."""
        return parse_day(self.planned_date)

    def check_planning(self) -> None:
        """Raise InvalidMealError if a planned meal lacks a usable date."""
        if not self.is_planned:
            return
        if not self.planned_date:
            raise InvalidMealError("A planned meal needs a planned date")
        if self.planned_day is None:
            raise InvalidMealError(f"Invalid planned date: {self.planned_date!r}")

    @classmethod
    def from_record(cls, record: dict) -> "Meal":
        """
        Build a Meal from a stored document.

        `title` is authoritative when both legacy name columns are set;
        `name` is the fallback. Unknown columns are ignored.
        """
        data = dict(record)
        title = data.pop("title", None) or ""
        name = data.pop("name", None) or ""
        data.setdefault("display_name", title or name)
        return cls.model_validate(data)

    def to_record(self) -> dict:
        """Serialize for the store (without id), writing both name columns."""
        record = self.model_dump(exclude={"id", "display_name"})
        record["title"] = self.display_name
        record["name"] = self.display_name
        return record


def changes_to_record(changes: dict) -> dict:
    """
    Translate a partial Meal update into store columns.

    display_name fans out to both legacy name columns; id is never written.
    """
    record = {k: v for k, v in changes.items() if k not in ("id", "display_name")}
    if "planned_date" in record:
        record["planned_date"] = normalize_planned_date(record["planned_date"])
    if "display_name" in changes:
        record["title"] = changes["display_name"]
        record["name"] = changes["display_name"]
    return record


# =============================================================================
# Local reminder state
# =============================================================================


class ScheduledReminder(BaseModel):
    """An entry in the local meal-reminder index."""

    id: str  # f"{meal_id}_{epoch_millis}"
    meal_id: str
    title: str = ""
    meal_type: MealType
    scheduled_time: dt.datetime
    notification_id: str  # OS handle, needed to cancel


class MealTypeReminder(BaseModel):
    """Reminder toggle and time-of-day for one meal type."""

    enabled: bool = True
    time: str = "12:00"

    check_time = field_validator("time")(_check_clock_time)


def _default_meal_type_reminders() -> dict[MealType, MealTypeReminder]:
    return {
        "breakfast": MealTypeReminder(enabled=True, time="08:00"),
        "lunch": MealTypeReminder(enabled=True, time="12:00"),
        "dinner": MealTypeReminder(enabled=True, time="18:00"),
        "snack": MealTypeReminder(enabled=False, time="15:00"),
    }


class NotificationSettings(BaseModel):
    """
    User notification preferences, persisted to device storage.

    `meal_types` drives reminders for planned meals. Planning reminders
    have their own times (`planning_times`) and opt-outs
    (`planning_disabled`); the two are configured independently.
    """

    enabled: bool = True
    meal_types: dict[MealType, MealTypeReminder] = Field(default_factory=_default_meal_type_reminders)
    planning_reminders: bool = True
    planning_times: dict[MealType, str] = Field(default_factory=lambda: dict(DEFAULT_MEAL_TIMES))
    planning_disabled: set[MealType] = Field(default_factory=set)

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy_layout(cls, data: Any) -> Any:
        """
        Accept the app's older flat layout.

        Older builds stored `{"breakfast": {"enabled", "time"}, ...,
        "planningReminders": bool, "breakfastTime": "07:30",
        "breakfastEnabled": false}` at the top level.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        meal_types = dict(data.get("meal_types") or {})
        planning_times = dict(data.get("planning_times") or {})
        planning_disabled = set(data.get("planning_disabled") or ())
        for meal_type in MEAL_TYPES:
            if isinstance(data.get(meal_type), dict):
                meal_types.setdefault(meal_type, data.pop(meal_type))
            if f"{meal_type}Time" in data:
                planning_times.setdefault(meal_type, data.pop(f"{meal_type}Time"))
            if data.pop(f"{meal_type}Enabled", True) is False:
                planning_disabled.add(meal_type)
        if "planningReminders" in data:
            data.setdefault("planning_reminders", data.pop("planningReminders"))

        defaults = _default_meal_type_reminders()
        for meal_type in MEAL_TYPES:
            current = meal_types.get(meal_type)
            if current is None:
                meal_types[meal_type] = defaults[meal_type]
            elif isinstance(current, dict):
                meal_types[meal_type] = {**defaults[meal_type].model_dump(), **current}
            planning_times.setdefault(meal_type, DEFAULT_MEAL_TIMES[meal_type])
        data["meal_types"] = meal_types
        data["planning_times"] = planning_times
        data["planning_disabled"] = planning_disabled
        return data

    @field_validator("planning_times")
    @classmethod
    def check_planning_times(cls, value: dict[MealType, str]) -> dict[MealType, str]:
        for time_value in value.values():
            _check_clock_time(time_value)
        return value

    def for_meal_type(self, meal_type: MealType) -> MealTypeReminder:
        return self.meal_types[meal_type]

    def reminders_enabled_for(self, meal_type: MealType) -> bool:
        """True if planned-meal reminders should fire for this meal type."""
        return self.enabled and self.for_meal_type(meal_type).enabled

    def planning_enabled_for(self, meal_type: MealType) -> bool:
        return self.enabled and self.planning_reminders and meal_type not in self.planning_disabled


class DeepLink(BaseModel):
    """Where a tapped notification should take the user."""

    screen: str
    meal_id: str | None = None
    meal_type: MealType | None = None
