"""
MealMate - Database access.

Meal documents live in the Supabase `meals` table.
"""

from mealmate.db.adapter import DatabaseAdapter
from mealmate.db.client import get_client
from mealmate.db.meals import MealStore

__all__ = [
    "DatabaseAdapter",
    "MealStore",
    "get_client",
]
