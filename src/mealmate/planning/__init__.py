"""
MealMate - Meal planning.

MealPlanner keeps meal documents and their reminders consistent;
the query helpers answer "what is planned for this day/slot".
"""

from mealmate.planning.queries import (
    PlanningSnapshot,
    WeekDay,
    meals_for_date,
    meals_for_date_and_type,
    week_dates,
)
from mealmate.planning.reconciler import MealPlanner

__all__ = [
    "MealPlanner",
    "PlanningSnapshot",
    "WeekDay",
    "meals_for_date",
    "meals_for_date_and_type",
    "week_dates",
]
