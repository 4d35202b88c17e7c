"""
MealMate - Meal Record Store.

Typed CRUD over the `meals` table. Every list query is scoped by user_id.
Writes are single-document; the store is assumed atomic per document.

Local `file://` photos are resolved to hosted URLs before writing. A
failed upload keeps the local reference and the write still goes through.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable

import httpx
from postgrest.exceptions import APIError

from mealmate.dates import require_day
from mealmate.db.adapter import DatabaseAdapter
from mealmate.errors import MealNotFoundError, StoreError
from mealmate.models import Meal, MealType, changes_to_record
from mealmate.uploads import ImageUploader, is_local_uri

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_millis(moment: datetime) -> str:
    """Format like JavaScript's toISOString(): 2026-01-01T17:30:00.000Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MealStore:
    """Meal documents in the remote store."""

    def __init__(
        self,
        db: DatabaseAdapter,
        uploader: ImageUploader | None = None,
        table: str = "meals",
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.db = db
        self.uploader = uploader
        self.table_name = table
        self._clock = clock

    def _table(self) -> Any:
        return self.db.table(self.table_name)

    async def _execute(self, query: Any, action: str) -> list[dict]:
        try:
            result = query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Failed to {action}: {e}")
            raise StoreError(f"Failed to {action}") from e
        return result.data or []

    async def _resolve_image(self, image: str | None) -> str | None:
        """Swap a local photo for its hosted URL, keeping the original on failure."""
        if not is_local_uri(image) or self.uploader is None:
            return image
        uploaded = await self.uploader.upload(image)
        if not uploaded:
            logger.warning(f"Image upload failed, keeping local reference {image}")
            return image
        return uploaded

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, meal: Meal) -> str:
        """Insert a new meal and return its store-assigned id."""
        record = meal.to_record()
        record["image"] = await self._resolve_image(record.get("image"))
        record["favorite"] = bool(meal.favorite)
        record["created_at"] = _iso_millis(self._clock())

        rows = await self._execute(self._table().insert(record), "create meal")
        if not rows or not rows[0].get("id"):
            raise StoreError("Store did not return an id for the new meal")
        meal_id = rows[0]["id"]
        logger.info(f"Created meal {meal_id} for user {meal.user_id}")
        return meal_id

    async def get_by_id(self, meal_id: str) -> Meal | None:
        rows = await self._execute(
            self._table().select("*").eq("id", meal_id).limit(1),
            f"load meal {meal_id}",
        )
        return Meal.from_record(rows[0]) if rows else None

    async def update(self, meal_id: str, changes: dict) -> None:
        """
        Apply a partial update to one meal.

        Raises MealNotFoundError if no document has this id.
        """
        record = changes_to_record(changes)
        if "image" in record:
            record["image"] = await self._resolve_image(record["image"])
        if not record:
            return

        rows = await self._execute(
            self._table().update(record).eq("id", meal_id),
            f"update meal {meal_id}",
        )
        if not rows:
            raise MealNotFoundError(meal_id)

    async def delete(self, meal_id: str) -> None:
        """Delete one meal. Deleting a missing meal is a no-op."""
        rows = await self._execute(
            self._table().delete().eq("id", meal_id),
            f"delete meal {meal_id}",
        )
        if not rows:
            logger.debug(f"Delete of meal {meal_id} matched nothing")

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_by_user(self, user_id: str) -> list[Meal]:
        rows = await self._execute(
            self._table().select("*").eq("user_id", user_id),
            f"list meals for user {user_id}",
        )
        return [Meal.from_record(row) for row in rows]

    async def list_planned_by_user(
        self,
        user_id: str,
        start: date | str | None = None,
        end: date | str | None = None,
    ) -> list[Meal]:
        """
        Planned meals for a user.

        When both bounds are given, keeps meals whose planned calendar date
        falls inside [start, end] inclusive. Giving only one bound raises
        ValueError.
        """
        if (start is None) != (end is None):
            raise ValueError("start and end must be given together")

        rows = await self._execute(
            self._table().select("*").eq("user_id", user_id).eq("is_planned", True),
            f"list planned meals for user {user_id}",
        )
        meals = [Meal.from_record(row) for row in rows]

        if start is not None:
            start_day, end_day = require_day(start), require_day(end)
            meals = [
                meal for meal in meals
                if meal.planned_day is not None and start_day <= meal.planned_day <= end_day
            ]
        return meals

    async def list_favorites(self, user_id: str) -> list[Meal]:
        rows = await self._execute(
            self._table().select("*").eq("user_id", user_id).eq("favorite", True),
            f"list favorites for user {user_id}",
        )
        return [Meal.from_record(row) for row in rows]

    async def list_by_type_and_date(self, user_id: str, meal_type: MealType, day: date | str) -> list[Meal]:
        """Meals of one type planned on one calendar day (range query on planned_date)."""
        day_str = require_day(day).isoformat()
        rows = await self._execute(
            self._table()
            .select("*")
            .eq("user_id", user_id)
            .eq("meal_type", meal_type)
            .gte("planned_date", f"{day_str}T00:00:00.000Z")
            .lte("planned_date", f"{day_str}T23:59:59.999Z"),
            f"list {meal_type} meals on {day_str}",
        )
        return [Meal.from_record(row) for row in rows]

    # =========================================================================
    # Migration
    # =========================================================================

    async def ensure_favorite_field(self, user_id: str) -> int:
        """
        Backfill favorite=false on a user's meals that lack the field.

        A missing favorite never matches an equality filter, so this must run
        before list_favorites is trusted. Idempotent; returns rows patched.
        """
        rows = await self._execute(
            self._table().select("id").eq("user_id", user_id).is_("favorite", "null"),
            f"scan favorites for user {user_id}",
        )
        for row in rows:
            logger.info(f"Backfilling favorite field on meal {row['id']}")
            await self._execute(
                self._table().update({"favorite": False}).eq("id", row["id"]),
                f"backfill favorite on meal {row['id']}",
            )
        return len(rows)
