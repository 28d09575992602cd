"""Consumer side of the per-subject activity signal.

The producer (an input listener inside the page) polls locally, reports
``inactive`` once idle time crosses the configured threshold and ``active``
on the next qualifying input. Reports may arrive late or twice, so only
genuine transitions are forwarded. Reports for removed subjects are
dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .models import ActivityState
from .state import SchedulerState

logger = logging.getLogger(__name__)

TransitionHandler = Callable[[int], None]
InactiveHandler = Callable[[int, Optional[float]], None]
VisibilityHandler = Callable[[int, bool], None]


class ActivitySignals:
    def __init__(
        self,
        state: SchedulerState,
        clock: Callable[[], datetime],
        *,
        on_active: TransitionHandler,
        on_inactive: InactiveHandler,
        on_visibility: VisibilityHandler,
    ) -> None:
        self._state = state
        self._clock = clock
        self._on_active = on_active
        self._on_inactive = on_inactive
        self._on_visibility = on_visibility

    def report_active(self, subject_id: int) -> bool:
        """Record input on ``subject_id``; returns True on an inactive->active change."""
        with self._state.lock:
            if self._state.is_removed(subject_id):
                return False
            now = self._clock()
            entry = self._entry(subject_id)
            entry.last_activity_at = now
            entry.reported_at = now
            if entry.is_active:
                return False
            entry.is_active = True
            logger.info("User became active on subject %s", subject_id)
            self._on_active(subject_id)
            return True

    def report_inactive(self, subject_id: int, idle_ms: Optional[float] = None) -> bool:
        with self._state.lock:
            if self._state.is_removed(subject_id):
                return False
            now = self._clock()
            entry = self._entry(subject_id)
            entry.reported_at = now
            if not entry.is_active:
                return False
            entry.is_active = False
            if idle_ms is not None and entry.last_activity_at is None:
                entry.last_activity_at = now - timedelta(milliseconds=idle_ms)
            logger.info(
                "User inactive on subject %s for %s min",
                subject_id,
                round((idle_ms or 0) / 60000),
            )
            self._on_inactive(subject_id, idle_ms)
            return True

    def report_status(
        self,
        subject_id: int,
        is_active: bool,
        last_activity_at: Optional[datetime] = None,
    ) -> None:
        """Periodic heartbeat from the producer.

        Only refreshes what ``getStatus`` shows; transitions come exclusively
        from :meth:`report_active` and :meth:`report_inactive`.
        """
        with self._state.lock:
            if self._state.is_removed(subject_id):
                return
            entry = self._entry(subject_id)
            entry.reported_at = self._clock()
            if last_activity_at is not None:
                entry.last_activity_at = last_activity_at
            entry.reported_active = is_active

    def report_visibility(self, subject_id: int, visible: bool) -> None:
        with self._state.lock:
            if self._state.is_removed(subject_id):
                return
            if visible:
                entry = self._entry(subject_id)
                entry.last_activity_at = entry.reported_at = self._clock()
            self._on_visibility(subject_id, visible)

    def _entry(self, subject_id: int) -> ActivityState:
        entry = self._state.activity.get(subject_id)
        if entry is None:
            entry = self._state.activity[subject_id] = ActivityState()
        return entry
