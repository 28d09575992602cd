"""Fire-and-forget alert delivery."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Callable, Optional

from .models import Notification

logger = logging.getLogger(__name__)

REMINDER_TITLE = "Mindful Ping"
TEST_TITLE = "Mindful Ping Test"
LIMIT_TITLE = "Mindful Ping - daily limit reached"

Listener = Callable[[Notification], None]


def format_minutes(seconds: float) -> str:
    minutes = round(seconds / 60.0, 1)
    text = f"{minutes:g}"
    return f"{text} minute{'' if minutes == 1 else 's'}"


class NotificationCenter:
    """Keeps recently shown alerts and forwards them to listeners.

    Listener failures are logged and never reach the caller, since alerts
    are raised from inside the timing state machine.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        *,
        history_size: int = 50,
    ) -> None:
        self._clock = clock or datetime.now
        self._history: deque[Notification] = deque(maxlen=history_size)
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def recent(self) -> list[Notification]:
        with self._lock:
            return list(self._history)

    def reminder(self, resource_key: str, seconds: float) -> Notification:
        message = (
            f"You've been browsing {resource_key} for {format_minutes(seconds)}. "
            "Time for a mindful break?"
        )
        return self.show("reminder", REMINDER_TITLE, message, resource_key=resource_key)

    def test(self) -> Notification:
        return self.show(
            "test",
            TEST_TITLE,
            "Test successful! Mindful browsing reminders are working.",
        )

    def limit_reached(self, resource_key: str, limit_minutes: int) -> Notification:
        message = (
            f"You've reached your daily limit of {limit_minutes} minute"
            f"{'' if limit_minutes == 1 else 's'} on {resource_key}."
        )
        return self.show("limit", LIMIT_TITLE, message, resource_key=resource_key)

    def show(
        self,
        kind: str,
        title: str,
        message: str,
        *,
        resource_key: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            kind=kind,
            title=title,
            message=message,
            created_at=self._clock(),
            resource_key=resource_key,
        )
        with self._lock:
            self._history.append(notification)
            listeners = list(self._listeners)
        logger.info("Notification (%s): %s", kind, message)
        for listener in listeners:
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed for %s alert.", kind)
        return notification
