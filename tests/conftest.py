"""
Pytest configuration and fixtures for MealMate tests.

The meal store runs against FakeDatabase, an in-memory stand-in for the
Supabase query builder. Reminders go to LocalNotificationFacility with a
fixed clock in UTC.
"""

import copy
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from postgrest.exceptions import APIError

# Set test environment before importing mealmate modules
os.environ["MEALMATE_ENV"] = "development"

from mealmate.db.meals import MealStore
from mealmate.notifications import (
    LocalNotificationFacility,
    NotificationScheduler,
    ReminderIndex,
    SettingsStore,
)
from mealmate.planning import MealPlanner
from mealmate.storage import MemoryStorage

# Sunday 2026-10-18, 09:00 UTC
NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)
USER_ID = "user-1"


# ---------------------------------------------------------------------------
# In-memory PostgREST-style table
# ---------------------------------------------------------------------------


class FakeResult:
    def __init__(self, data: list[dict]):
        self.data = data
        self.count = len(data)


class FakeQuery:
    """Chainable query over a FakeTable; evaluated on execute()."""

    def __init__(self, table: "FakeTable", op: str, payload=None):
        self.table = table
        self.op = op
        self.payload = payload
        self.filters = []
        self.columns = "*"
        self._limit = None

    def select(self, columns: str = "*", **kwargs) -> "FakeQuery":
        self.columns = columns
        return self

    def eq(self, field, value):
        self.filters.append(lambda row: row.get(field) == value)
        return self

    def gte(self, field, value):
        self.filters.append(lambda row: row.get(field) is not None and row[field] >= value)
        return self

    def lte(self, field, value):
        self.filters.append(lambda row: row.get(field) is not None and row[field] <= value)
        return self

    def is_(self, field, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(field) is None)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def order(self, field, desc=False):
        return self

    def _matches(self) -> list[dict]:
        return [row for row in self.table.rows if all(f(row) for f in self.filters)]

    def _project(self, row: dict) -> dict:
        if self.columns == "*":
            return copy.deepcopy(row)
        return {c: row.get(c) for c in self.columns.split(",")}

    def execute(self) -> FakeResult:
        self.table.calls.append(self.op)
        if self.table.fail:
            raise APIError({"message": "store unavailable", "code": "503"})

        if self.op == "select":
            rows = [self._project(row) for row in self._matches()]
            return FakeResult(rows[: self._limit] if self._limit else rows)

        if self.op == "insert":
            records = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for record in records:
                row = {"id": str(uuid.uuid4()), **copy.deepcopy(record)}
                self.table.rows.append(row)
                created.append(copy.deepcopy(row))
            return FakeResult(created)

        if self.op == "update":
            updated = []
            for row in self._matches():
                row.update(copy.deepcopy(self.payload))
                updated.append(copy.deepcopy(row))
            return FakeResult(updated)

        if self.op == "delete":
            removed = self._matches()
            self.table.rows = [row for row in self.table.rows if row not in removed]
            return FakeResult(removed)

        raise AssertionError(f"unexpected op {self.op}")


class FakeTable:
    def __init__(self):
        self.rows: list[dict] = []
        self.calls: list[str] = []
        self.fail = False

    def select(self, columns: str = "*", **kwargs) -> FakeQuery:
        return FakeQuery(self, "select").select(columns)

    def insert(self, payload) -> FakeQuery:
        return FakeQuery(self, "insert", payload)

    def update(self, payload) -> FakeQuery:
        return FakeQuery(self, "update", payload)

    def delete(self) -> FakeQuery:
        return FakeQuery(self, "delete")


class FakeDatabase:
    """Satisfies DatabaseAdapter with in-memory tables."""

    def __init__(self):
        self.tables: dict[str, FakeTable] = {}

    def table(self, name: str) -> FakeTable:
        return self.tables.setdefault(name, FakeTable())

    def rows(self, name: str = "meals") -> list[dict]:
        return self.table(name).rows


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def facility():
    return LocalNotificationFacility()


@pytest.fixture
def reminder_index(storage):
    return ReminderIndex(storage)


@pytest.fixture
def settings_store(storage):
    return SettingsStore(storage)


@pytest.fixture
def scheduler(facility, reminder_index, clock):
    return NotificationScheduler(facility, reminder_index, tz=timezone.utc, clock=clock)


@pytest.fixture
def store(fake_db, clock):
    return MealStore(fake_db, clock=clock)


@pytest.fixture
def planner(store, scheduler, settings_store):
    return MealPlanner(store, scheduler, settings_store)


@pytest.fixture
def sample_meal_record():
    """A stored meal document as the app writes it."""
    return {
        "user_id": USER_ID,
        "title": "Pancakes",
        "name": "Pancakes",
        "description": "Fluffy buttermilk pancakes",
        "image": "https://res.cloudinary.com/demo/pancakes.jpg",
        "ingredients": ["flour", "milk", "eggs"],
        "cooking_time": 25,
        "servings": 4,
        "calories": 350,
        "meal_type": "breakfast",
        "favorite": False,
        "is_planned": False,
        "planned_date": None,
        "date": "2026-10-01T08:00:00.000Z",
    }
