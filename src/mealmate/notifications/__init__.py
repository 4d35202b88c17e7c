"""
MealMate - Local reminders.

Provides:
- NotificationScheduler: meal and planning reminders
- ReminderIndex: persisted handle indexes
- SettingsStore: user notification preferences
- NotificationFacility: the platform notification API
"""

from mealmate.notifications.facility import (
    LocalNotificationFacility,
    NotificationContent,
    NotificationError,
    NotificationFacility,
    PendingNotification,
    UnknownNotificationError,
)
from mealmate.notifications.index import ReminderIndex
from mealmate.notifications.scheduler import (
    NotificationScheduler,
    default_notification_times,
    format_notification_time,
    handle_notification_response,
)
from mealmate.notifications.settings import SettingsStore

__all__ = [
    "LocalNotificationFacility",
    "NotificationContent",
    "NotificationError",
    "NotificationFacility",
    "NotificationScheduler",
    "PendingNotification",
    "ReminderIndex",
    "SettingsStore",
    "UnknownNotificationError",
    "default_notification_times",
    "format_notification_time",
    "handle_notification_response",
]
