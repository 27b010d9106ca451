"""Transient, dismissible notifications for non-blocking failures."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.engine.models import utcnow


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    id: int
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=utcnow)


class NotificationCenter:
    """
    Collects notifications for the interactive surface.

    Listeners are called synchronously on every push; the surface renders and
    dismisses them on its own schedule.
    """

    def __init__(self, max_items: int = 50):
        self.max_items = max_items
        self._items: list[Notification] = []
        self._ids = itertools.count(1)
        self._listeners: list[Callable[[Notification], None]] = []

    def subscribe(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def push(self, message: str, level: NotificationLevel = NotificationLevel.INFO) -> Notification:
        note = Notification(id=next(self._ids), level=level, message=message)
        self._items.append(note)
        del self._items[: -self.max_items]
        for listener in self._listeners:
            listener(note)
        return note

    def error(self, message: str) -> Notification:
        return self.push(message, NotificationLevel.ERROR)

    def dismiss(self, note_id: int) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.id != note_id]
        return len(self._items) != before

    def clear(self) -> None:
        self._items.clear()

    @property
    def active(self) -> list[Notification]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
