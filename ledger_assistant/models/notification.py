"""
User Notifications

Transient failures are communicated as lightweight, dismissible
notices. They never end the session.
"""

from datetime import datetime
from enum import Enum
from typing import Callable
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger_assistant.models.transaction import utc_now


class NotificationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    notification_id: UUID = Field(default_factory=uuid4)
    level: NotificationLevel
    message: str
    created_at: datetime = Field(default_factory=utc_now)


Notifier = Callable[[Notification], None]


class NotificationCenter:
    """
    Collects notifications until the presentation layer shows them.

    Usage:
        center = NotificationCenter()
        center.warning("Saved locally only")
        for note in center.drain():
            ...
    """

    def __init__(self):
        self._pending: list[Notification] = []

    def __call__(self, notification: Notification) -> None:
        self._pending.append(notification)

    def info(self, message: str) -> None:
        self(Notification(level=NotificationLevel.INFO, message=message))

    def warning(self, message: str) -> None:
        self(Notification(level=NotificationLevel.WARNING, message=message))

    def error(self, message: str) -> None:
        self(Notification(level=NotificationLevel.ERROR, message=message))

    @property
    def pending(self) -> list[Notification]:
        return list(self._pending)

    def dismiss(self, notification_id: UUID) -> None:
        self._pending = [
            n for n in self._pending if n.notification_id != notification_id
        ]

    def drain(self) -> list[Notification]:
        """Return and clear all pending notifications."""
        drained, self._pending = self._pending, []
        return drained
