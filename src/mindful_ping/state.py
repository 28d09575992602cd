"""Mutable state shared by the focus arbiter, session timer and activity source."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from .config import TrackerSettings
from .models import ActivityState, Session, Subject


@dataclass(slots=True)
class SchedulerState:
    """Everything the timing state machine mutates.

    Handlers hold ``lock`` for their whole body, which makes each event a
    non-preemptible reaction even when timers fire on other threads.
    """

    settings: TrackerSettings
    window_focused: bool = True
    focused_subject: Optional[int] = None
    session: Optional[Session] = None
    subjects: dict[int, Subject] = field(default_factory=dict)
    activity: dict[int, ActivityState] = field(default_factory=dict)
    paused: set[int] = field(default_factory=set)
    removed: set[int] = field(default_factory=set)
    lock: threading.RLock = field(default_factory=threading.RLock)

    @property
    def current_subject(self) -> Optional[int]:
        return self.session.subject_id if self.session else None

    def subject(self, subject_id: int) -> Subject:
        entry = self.subjects.get(subject_id)
        if entry is None:
            entry = self.subjects[subject_id] = Subject(subject_id)
        return entry

    def is_removed(self, subject_id: int) -> bool:
        """Subject ids are never reused, so late events for these are dropped."""
        return subject_id in self.removed

    def is_paused(self, subject_id: int) -> bool:
        return subject_id in self.paused and not self.settings.track_inactive_time

    def can_accumulate(self, subject_id: int) -> bool:
        """True when ``subject_id`` may own the live session right now."""
        return (
            self.settings.enabled
            and self.window_focused
            and self.focused_subject == subject_id
            and not self.is_paused(subject_id)
        )

    def forget(self, subject_id: int) -> None:
        self.subjects.pop(subject_id, None)
        self.activity.pop(subject_id, None)
        self.paused.discard(subject_id)
        self.removed.add(subject_id)
        if self.focused_subject == subject_id:
            self.focused_subject = None
