"""
MealMate - OS notification facility.

The scheduler only needs schedule/cancel/list from the platform. The
protocol below is that surface; LocalNotificationFacility is an
in-process implementation used by the CLI and tests, which also lets a
caller "fire" due notifications.
"""

import uuid
from datetime import datetime
from typing import Any, Protocol

from pydantic import BaseModel, Field

from mealmate.errors import MealMateError


class NotificationError(MealMateError):
    """The notification facility failed or is unavailable."""


class UnknownNotificationError(NotificationError):
    """The facility does not recognize a handle (already fired or cancelled)."""


class NotificationContent(BaseModel):
    """What the user sees, plus the deep-link payload."""

    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
    sound: str = "default"
    category: str | None = None


class PendingNotification(BaseModel):
    handle: str
    content: NotificationContent
    trigger: datetime | None = None  # None = deliver immediately


class NotificationFacility(Protocol):
    """Platform local-notification API."""

    async def is_supported(self) -> bool:
        """False on simulators and other non-physical devices."""
        ...

    async def request_permission(self) -> bool:
        """Ask for (or confirm) permission. True if granted."""
        ...

    async def schedule(self, content: NotificationContent, trigger: datetime | None) -> str:
        """Schedule a notification and return its handle."""
        ...

    async def cancel(self, handle: str) -> None:
        """Cancel one scheduled notification. Raises UnknownNotificationError."""
        ...

    async def list_scheduled(self) -> list[PendingNotification]: ...


class LocalNotificationFacility:
    """In-process notification queue."""

    def __init__(self, supported: bool = True, permission_granted: bool = True):
        self.supported = supported
        self.permission_granted = permission_granted
        self.pending: dict[str, PendingNotification] = {}
        self.delivered: list[PendingNotification] = []

    async def is_supported(self) -> bool:
        return self.supported

    async def request_permission(self) -> bool:
        return self.permission_granted

    async def schedule(self, content: NotificationContent, trigger: datetime | None) -> str:
        if not self.supported or not self.permission_granted:
            raise NotificationError("Notifications are not available")
        notification = PendingNotification(handle=str(uuid.uuid4()), content=content, trigger=trigger)
        if trigger is None:
            self.delivered.append(notification)
        else:
            self.pending[notification.handle] = notification
        return notification.handle

    async def cancel(self, handle: str) -> None:
        if self.pending.pop(handle, None) is None:
            raise UnknownNotificationError(f"Unknown notification handle: {handle}")

    async def list_scheduled(self) -> list[PendingNotification]:
        return sorted(self.pending.values(), key=lambda n: n.trigger)

    def fire_due(self, now: datetime) -> list[PendingNotification]:
        """Deliver every pending notification whose trigger is at or before `now`."""
        due = [n for n in self.pending.values() if n.trigger <= now]
        for notification in due:
            del self.pending[notification.handle]
        self.delivered.extend(due)
        return due
