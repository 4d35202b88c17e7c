"""
MealMate - Planning queries.

Pure functions over a snapshot of a user's meals, used by the weekly
planner. Nothing here touches the store.

Days are matched as calendar-date values after parsing planned_date, so
"2026-03-01T12:00:00.000Z" and "2026-03-01" land on the same day.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from mealmate.dates import require_day
from mealmate.models import Meal, MealType

DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class WeekDay:
    """One cell of the horizontal date picker."""

    date: str  # YYYY-MM-DD
    day_name: str
    day_number: int
    is_today: bool


def meals_for_date(meals: Iterable[Meal], day: date | str) -> list[Meal]:
    """Planned meals whose planned calendar date is `day`."""
    target = require_day(day)
    return [meal for meal in meals if meal.is_planned and meal.planned_day == target]


def meals_for_date_and_type(meals: Iterable[Meal], day: date | str, meal_type: MealType) -> list[Meal]:
    return [meal for meal in meals_for_date(meals, day) if meal.meal_type == meal_type]


def week_dates(start: date | None = None, length: int = 7, today: date | None = None) -> list[WeekDay]:
    """Consecutive days from `start` (default today) for the planner header."""
    today = today or date.today()
    start = start or today
    days = []
    for offset in range(length):
        current = start + timedelta(days=offset)
        days.append(
            WeekDay(
                date=current.isoformat(),
                day_name=DAY_NAMES[current.weekday()],
                day_number=current.day,
                is_today=current == today,
            )
        )
    return days


@dataclass(frozen=True)
class PlanningSnapshot:
    """
    A point-in-time view of a user's planned meals.

    Rebuild it whenever new data arrives; it never changes in place.
    """

    meals: tuple[Meal, ...] = ()

    @classmethod
    def from_meals(cls, meals: Iterable[Meal]) -> "PlanningSnapshot":
        return cls(meals=tuple(meal for meal in meals if meal.is_planned))

    def for_date(self, day: date | str) -> list[Meal]:
        return meals_for_date(self.meals, day)

    def for_slot(self, day: date | str, meal_type: MealType) -> list[Meal]:
        return meals_for_date_and_type(self.meals, day, meal_type)

    def is_slot_taken(self, day: date | str, meal_type: MealType) -> bool:
        """True if something is already planned for this (day, meal type)."""
        return bool(self.for_slot(day, meal_type))

    def week(self, start: date | None = None, length: int = 7, today: date | None = None) -> list[tuple[WeekDay, list[Meal]]]:
        """Each day of the week with its planned meals."""
        return [(day, self.for_date(day.date)) for day in week_dates(start, length, today)]
