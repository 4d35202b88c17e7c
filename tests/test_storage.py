"""
Tests for device-local storage and the settings store on top of it.
"""

import asyncio
import json

from mealmate.models import NotificationSettings
from mealmate.notifications import SettingsStore
from mealmate.storage import JsonFileStorage, MemoryStorage


def _run(coro):
    return asyncio.run(coro)


class TestJsonFileStorage:
    def test_missing_file_reads_empty(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "storage.json")
        assert _run(storage.get_item("anything")) is None

    def test_set_get_remove(self, tmp_path):
        path = tmp_path / "nested" / "storage.json"
        storage = JsonFileStorage(path)

        _run(storage.set_item("a", "1"))
        _run(storage.set_item("b", "2"))
        assert _run(storage.get_item("a")) == "1"
        assert json.loads(path.read_text()) == {"a": "1", "b": "2"}

        _run(storage.remove_item("a"))
        assert _run(storage.get_item("a")) is None
        assert _run(storage.get_item("b")) == "2"

    def test_survives_new_instance(self, tmp_path):
        path = tmp_path / "storage.json"
        _run(JsonFileStorage(path).set_item("key", "value"))
        assert _run(JsonFileStorage(path).get_item("key")) == "value"

    def test_no_temp_file_left_behind(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "storage.json")
        _run(storage.set_item("key", "value"))
        assert [p.name for p in tmp_path.iterdir()] == ["storage.json"]

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("{truncated")
        storage = JsonFileStorage(path)

        assert _run(storage.get_item("key")) is None
        _run(storage.set_item("key", "value"))
        assert json.loads(path.read_text()) == {"key": "value"}

    def test_non_object_treated_as_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("[1, 2, 3]")
        assert _run(JsonFileStorage(path).get_item("key")) is None


class TestSettingsStore:
    def test_defaults_when_nothing_saved(self):
        assert _run(SettingsStore(MemoryStorage()).load()) == NotificationSettings()

    def test_save_then_load(self):
        store = SettingsStore(MemoryStorage())
        settings = NotificationSettings(enabled=False, planning_disabled={"dinner"})
        _run(store.save(settings))
        assert _run(store.load()) == settings

    def test_unreadable_blob_gives_defaults(self):
        storage = MemoryStorage({"notification_settings": "{oops"})
        assert _run(SettingsStore(storage).load()) == NotificationSettings()

    def test_legacy_blob_migrated(self):
        legacy = json.dumps({"enabled": True, "lunch": {"enabled": False, "time": "12:30"}})
        settings = _run(SettingsStore(MemoryStorage({"notification_settings": legacy})).load())
        assert settings.for_meal_type("lunch").enabled is False
        assert settings.for_meal_type("lunch").time == "12:30"
        assert settings.for_meal_type("dinner").enabled is True
