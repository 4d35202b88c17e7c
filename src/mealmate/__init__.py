"""
MealMate - Meal planning core.

Meal records in a remote document store, planned onto calendar slots,
with local reminder notifications kept consistent with the plan.
"""

__version__ = "1.0.0"
