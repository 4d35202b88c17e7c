"""
Tests for NotificationScheduler.

Clock is fixed at 2026-10-18 09:00 UTC and reminders are computed in UTC.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from mealmate.models import Meal, NotificationSettings
from mealmate.notifications import (
    LocalNotificationFacility,
    NotificationContent,
    NotificationError,
    NotificationScheduler,
    ReminderIndex,
    default_notification_times,
    format_notification_time,
    handle_notification_response,
)
from mealmate.storage import MemoryStorage

from conftest import NOW, TODAY, TOMORROW, USER_ID


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


def _planned(meal_id="meal-1", day=TOMORROW, meal_type="lunch", **overrides) -> Meal:
    return Meal(
        id=meal_id,
        user_id=USER_ID,
        display_name="Chicken salad",
        meal_type=meal_type,
        is_planned=True,
        planned_date=f"{day.isoformat()}T12:00:00.000Z",
        **overrides,
    )


class TestScheduleMealNotification:
    def test_default_time_for_meal_type(self, scheduler, facility):
        handle = _run(scheduler.schedule_meal_notification(_planned()))

        assert handle is not None
        pending = facility.pending[handle]
        assert pending.trigger == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        assert pending.content.data == {"mealId": "meal-1", "mealType": "lunch", "screen": "meal-detail"}
        assert pending.content.body == "Time for lunch: Chicken salad"

    def test_explicit_time_wins(self, scheduler, facility):
        handle = _run(scheduler.schedule_meal_notification(_planned(reminder_time="11:00"), reminder_time="12:45"))
        assert facility.pending[handle].trigger == datetime(2026, 10, 19, 12, 45, tzinfo=timezone.utc)

    def test_meal_override_beats_type_default(self, scheduler, facility):
        handle = _run(scheduler.schedule_meal_notification(_planned(reminder_time="11:00")))
        assert facility.pending[handle].trigger.hour == 11

    def test_indexes_the_reminder(self, scheduler):
        handle = _run(scheduler.schedule_meal_notification(_planned()))
        assert _run(scheduler.live_handles("meal-1")) == [handle]

    def test_past_instant_is_noop(self, scheduler, facility):
        """Today's breakfast (08:00) has already passed at 09:00."""
        assert _run(scheduler.schedule_meal_notification(_planned(day=TODAY, meal_type="breakfast"))) is None
        assert facility.pending == {}
        assert _run(scheduler.live_handles("meal-1")) == []

    def test_exactly_now_is_not_future(self, scheduler):
        meal = _planned(day=TODAY)
        assert _run(scheduler.schedule_meal_notification(meal, reminder_time="09:00")) is None

    def test_later_today_is_scheduled(self, scheduler):
        assert _run(scheduler.schedule_meal_notification(_planned(day=TODAY, meal_type="dinner"))) is not None

    def test_same_instant_not_duplicated(self, scheduler, facility):
        first = _run(scheduler.schedule_meal_notification(_planned()))
        second = _run(scheduler.schedule_meal_notification(_planned()))
        assert first == second
        assert len(facility.pending) == 1

    def test_unsaved_meal_is_noop(self, scheduler):
        assert _run(scheduler.schedule_meal_notification(_planned(meal_id=None))) is None

    def test_missing_date_is_noop(self, scheduler):
        meal = Meal(id="meal-1", user_id=USER_ID, meal_type="lunch", is_planned=True)
        assert _run(scheduler.schedule_meal_notification(meal)) is None


class TestFacilityUnavailable:
    """Reminders silently degrade; nothing raises."""

    def _scheduler(self, facility, clock):
        return NotificationScheduler(facility, ReminderIndex(MemoryStorage()), tz=timezone.utc, clock=clock)

    def test_not_a_device(self, clock):
        scheduler = self._scheduler(LocalNotificationFacility(supported=False), clock)
        assert _run(scheduler.schedule_meal_notification(_planned())) is None
        assert _run(scheduler.live_handles("meal-1")) == []

    def test_permission_denied(self, clock):
        scheduler = self._scheduler(LocalNotificationFacility(permission_granted=False), clock)
        assert _run(scheduler.schedule_meal_notification(_planned())) is None

    def test_schedule_error_swallowed(self, clock):
        facility = AsyncMock()
        facility.is_supported.return_value = True
        facility.request_permission.return_value = True
        facility.schedule.side_effect = NotificationError("boom")
        scheduler = self._scheduler(facility, clock)

        assert _run(scheduler.schedule_meal_notification(_planned())) is None
        assert _run(scheduler.live_handles("meal-1")) == []

    def test_cancel_error_swallowed_and_index_cleared(self, scheduler, facility):
        _run(scheduler.schedule_meal_notification(_planned()))
        facility.cancel = AsyncMock(side_effect=RuntimeError("platform exploded"))

        _run(scheduler.cancel_meal_notification("meal-1"))
        assert _run(scheduler.live_handles("meal-1")) == []

    def test_list_error_returns_empty(self, clock):
        facility = AsyncMock()
        facility.list_scheduled.side_effect = RuntimeError("nope")
        assert _run(self._scheduler(facility, clock).get_scheduled_notifications()) == []


class TestCancelAndUpdate:
    def test_cancel_removes_only_that_meal(self, scheduler, facility):
        _run(scheduler.schedule_meal_notification(_planned()))
        _run(scheduler.schedule_meal_notification(_planned(meal_id="meal-2")))

        _run(scheduler.cancel_meal_notification("meal-1"))

        assert _run(scheduler.live_handles("meal-1")) == []
        assert len(_run(scheduler.live_handles("meal-2"))) == 1
        assert len(facility.pending) == 1

    def test_new_time_replaces_previous_reminder(self, scheduler, facility):
        first = _run(scheduler.schedule_meal_notification(_planned()))
        second = _run(scheduler.schedule_meal_notification(_planned(), reminder_time="13:00"))

        assert _run(scheduler.live_handles("meal-1")) == [second]
        assert first not in facility.pending
        assert list(facility.pending) == [second]

    def test_stale_index_entries_all_cancelled(self, scheduler, facility, storage):
        """Older builds could leave several entries per meal; one survives a schedule."""
        stale = [_run(facility.schedule(NotificationContent(title="old", body="old"), NOW + timedelta(hours=h)))
                 for h in (1, 2)]
        storage.items["meal_notifications"] = json.dumps(
            [
                {"id": f"meal-1_{i}", "meal_id": "meal-1", "meal_type": "lunch",
                 "scheduled_time": (NOW + timedelta(hours=i + 1)).isoformat(), "notification_id": handle}
                for i, handle in enumerate(stale)
            ]
        )

        handle = _run(scheduler.schedule_meal_notification(_planned()))

        assert _run(scheduler.live_handles("meal-1")) == [handle]
        assert list(facility.pending) == [handle]

    def test_cancel_tolerates_already_fired_handle(self, scheduler, facility):
        _run(scheduler.schedule_meal_notification(_planned()))
        facility.fire_due(NOW + timedelta(days=2))

        _run(scheduler.cancel_meal_notification("meal-1"))
        assert _run(scheduler.live_handles("meal-1")) == []

    def test_cancel_unknown_meal_is_noop(self, scheduler):
        _run(scheduler.cancel_meal_notification("nothing-here"))

    def test_update_replaces(self, scheduler, facility):
        old = _run(scheduler.schedule_meal_notification(_planned()))
        new = _run(scheduler.update_meal_notification(_planned(day=TOMORROW + timedelta(days=1))))

        assert new != old
        assert old not in facility.pending
        assert _run(scheduler.live_handles("meal-1")) == [new]
        assert facility.pending[new].trigger == datetime(2026, 10, 20, 12, 0, tzinfo=timezone.utc)

    def test_update_to_past_leaves_nothing(self, scheduler, facility):
        _run(scheduler.schedule_meal_notification(_planned()))
        assert _run(scheduler.update_meal_notification(_planned(day=TODAY, meal_type="breakfast"))) is None
        assert _run(scheduler.live_handles("meal-1")) == []
        assert facility.pending == {}

    def test_cancel_all(self, scheduler, facility, storage):
        _run(scheduler.schedule_meal_notification(_planned()))
        _run(scheduler.schedule_meal_notification(_planned(meal_id="meal-2", meal_type="dinner")))

        _run(scheduler.cancel_all_meal_notifications())

        assert facility.pending == {}
        assert "meal_notifications" not in storage.items

    def test_index_survives_restart(self, facility, storage, clock):
        """A new scheduler over the same storage still sees and cancels old reminders."""
        first = NotificationScheduler(facility, ReminderIndex(storage), tz=timezone.utc, clock=clock)
        handle = _run(first.schedule_meal_notification(_planned()))

        second = NotificationScheduler(facility, ReminderIndex(storage), tz=timezone.utc, clock=clock)
        assert _run(second.live_handles("meal-1")) == [handle]
        _run(second.cancel_meal_notification("meal-1"))
        assert handle not in facility.pending

    def test_corrupt_index_treated_as_empty(self, scheduler, storage):
        storage.items["meal_notifications"] = "{not json"
        assert _run(scheduler.live_handles("meal-1")) == []
        assert _run(scheduler.schedule_meal_notification(_planned())) is not None

    def test_concurrent_schedules_keep_every_entry(self, scheduler):
        async def schedule_many():
            await asyncio.gather(*(scheduler.schedule_meal_notification(_planned(meal_id=f"m{i}")) for i in range(5)))

        _run(schedule_many())
        reminders = _run(scheduler.index.meal_reminders())
        assert sorted(r.meal_id for r in reminders) == [f"m{i}" for i in range(5)]


class TestPlanningReminders:
    def test_schedules_tomorrow_thirty_minutes_early(self, scheduler, facility):
        handles = _run(scheduler.schedule_planning_reminders(NotificationSettings()))

        assert set(handles) == {"breakfast", "lunch", "dinner", "snack"}
        assert facility.pending[handles["breakfast"]].trigger == datetime(2026, 10, 19, 7, 30, tzinfo=timezone.utc)
        assert facility.pending[handles["dinner"]].trigger == datetime(2026, 10, 19, 17, 30, tzinfo=timezone.utc)
        assert facility.pending[handles["lunch"]].content.data == {"screen": "plan", "mealType": "lunch"}
        assert facility.pending[handles["lunch"]].content.title.endswith("Plan Your Lunch")

    def test_uses_planning_times_not_meal_type_times(self, scheduler, facility):
        settings = NotificationSettings()
        settings.meal_types["lunch"].time = "13:00"
        settings.planning_times["lunch"] = "11:00"

        handles = _run(scheduler.schedule_planning_reminders(settings))
        assert facility.pending[handles["lunch"]].trigger == datetime(2026, 10, 19, 10, 30, tzinfo=timezone.utc)

    def test_opted_out_type_skipped(self, scheduler):
        handles = _run(scheduler.schedule_planning_reminders(NotificationSettings(planning_disabled={"snack"})))
        assert "snack" not in handles

    def test_rescheduling_replaces(self, scheduler, facility):
        _run(scheduler.schedule_planning_reminders(NotificationSettings()))
        second = _run(scheduler.schedule_planning_reminders(NotificationSettings()))

        assert len(facility.pending) == 4
        assert set(facility.pending) == set(second.values())
        assert _run(scheduler.index.planning_reminders()) == second

    def test_disabled_cancels_existing(self, scheduler, facility):
        _run(scheduler.schedule_planning_reminders(NotificationSettings()))
        assert _run(scheduler.schedule_planning_reminders(NotificationSettings(planning_reminders=False))) == {}
        assert facility.pending == {}
        assert _run(scheduler.index.planning_reminders()) == {}

    def test_globally_disabled(self, scheduler, facility):
        assert _run(scheduler.schedule_planning_reminders(NotificationSettings(enabled=False))) == {}
        assert facility.pending == {}

    def test_independent_of_meal_reminders(self, scheduler, facility):
        meal_handle = _run(scheduler.schedule_meal_notification(_planned()))
        _run(scheduler.schedule_planning_reminders(NotificationSettings()))
        _run(scheduler.cancel_planning_reminders())
        assert list(facility.pending) == [meal_handle]

    def test_test_reminder_delivered_immediately(self, scheduler, facility):
        _run(scheduler.send_test_planning_reminder("dinner"))
        assert facility.pending == {}
        assert facility.delivered[-1].content.data == {"screen": "plan", "mealType": "dinner"}


class TestHelpers:
    def test_format_notification_time(self):
        assert format_notification_time("08:00") == "8:00 AM"
        assert format_notification_time("12:30") == "12:30 PM"
        assert format_notification_time("00:05") == "12:05 AM"
        assert format_notification_time("18:05") == "6:05 PM"

    def test_default_times(self):
        assert default_notification_times() == {
            "breakfast": "08:00",
            "lunch": "12:00",
            "dinner": "18:00",
            "snack": "15:00",
        }

    def test_meal_reminder_deep_link(self):
        link = handle_notification_response({"mealId": "meal-1", "mealType": "lunch", "screen": "meal-detail"})
        assert link.screen == "meal-detail"
        assert link.meal_id == "meal-1"
        assert link.meal_type == "lunch"

    def test_planning_reminder_deep_link(self):
        link = handle_notification_response({"screen": "plan", "mealType": "brunch"})
        assert link.screen == "plan"
        assert link.meal_id is None
        assert link.meal_type is None

    def test_empty_payload(self):
        assert handle_notification_response(None).screen == "home"
