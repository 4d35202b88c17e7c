"""
MealMate - Error types.

Store and validation errors propagate to the caller, which must show them.
Upload and notification failures never surface as exceptions; they are
logged and absorbed where they happen.
"""


class MealMateError(Exception):
    """Base class for MealMate errors."""


class StoreError(MealMateError):
    """The document store rejected or failed a read/write."""


class MealNotFoundError(StoreError):
    """No meal document exists for the given id."""

    def __init__(self, meal_id: str):
        super().__init__(f"Meal not found: {meal_id}")
        self.meal_id = meal_id


class InvalidMealError(MealMateError, ValueError):
    """Meal data violates a planning invariant (e.g. planned without a date)."""
