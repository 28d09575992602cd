"""Decides which single subject, if any, accumulates time."""

from __future__ import annotations

import logging
from typing import Optional

from .activity import ActivitySignals
from .normalization import extract_resource_key
from .notifications import NotificationCenter
from .scheduler import Scheduler
from .state import SchedulerState
from .store import AggregationStore
from .timer import SessionTimer

logger = logging.getLogger(__name__)


class FocusArbiter:
    """Turns focus, window and activity events into session start/stop calls.

    The most recent focus-establishing event wins. Every handler re-checks
    subject identity against the live session before touching it, so late
    events for a subject that lost focus are ignored.
    """

    def __init__(
        self,
        state: SchedulerState,
        scheduler: Scheduler,
        store: AggregationStore,
        notifier: NotificationCenter,
    ) -> None:
        self.state = state
        self.timer = SessionTimer(state, scheduler, store, notifier)
        self.activity = ActivitySignals(
            state,
            scheduler.now,
            on_active=self.on_user_active,
            on_inactive=self.on_user_inactive,
            on_visibility=self.on_visibility_changed,
        )

    def on_focus_candidate(self, subject_id: int, url: Optional[str] = None) -> bool:
        """Grant focus to ``subject_id``; returns True if a session started."""
        with self.state.lock:
            if self.state.is_removed(subject_id):
                logger.debug("Ignoring focus for removed subject %s", subject_id)
                return False
            subject = self.state.subject(subject_id)
            if url is not None:
                # A live session keeps the key it started with, so the old
                # page is still credited when it stops below.
                subject.resource_key = extract_resource_key(url)
            self.state.focused_subject = subject_id

            settings = self.state.settings
            if not settings.enabled or not self.state.window_focused:
                return False
            if self.state.is_paused(subject_id):
                # Nobody is attending to the previous subject either.
                self.timer.stop()
                logger.debug("Subject %s is paused; not starting a session.", subject_id)
                return False

            self.timer.stop()
            self.timer.start(subject_id)
            return True

    def on_window_blur(self) -> None:
        with self.state.lock:
            self.state.window_focused = False
            self.timer.stop()
            logger.info("Window lost focus; pausing timing.")

    def on_window_focus(self, active_subject_id: Optional[int] = None) -> bool:
        with self.state.lock:
            self.state.window_focused = True
            logger.info("Window gained focus; resuming timing.")
            target = active_subject_id
            if target is None:
                target = self.state.focused_subject
            if target is None:
                return False
            return self.on_focus_candidate(target)

    def on_subject_removed(self, subject_id: int) -> None:
        with self.state.lock:
            if self.state.current_subject == subject_id:
                self.timer.stop()
            self.state.forget(subject_id)
            logger.info("Cleaned up state for removed subject %s", subject_id)

    # ``state.paused`` always mirrors the latest signals; whether a pause
    # suppresses accounting is decided by ``state.is_paused``.

    def on_user_active(self, subject_id: int) -> None:
        with self.state.lock:
            if subject_id not in self.state.paused:
                return
            self.state.paused.discard(subject_id)
            if subject_id != self.state.focused_subject:
                return
            logger.info("User active again on subject %s", subject_id)
            self._resume(subject_id)

    def on_user_inactive(self, subject_id: int, idle_ms: Optional[float] = None) -> None:
        with self.state.lock:
            if subject_id != self.state.focused_subject:
                return
            self.state.paused.add(subject_id)
            self._enforce_pause(subject_id)

    def on_visibility_changed(self, subject_id: int, visible: bool) -> None:
        with self.state.lock:
            if visible:
                if subject_id in self.state.paused:
                    self.state.paused.discard(subject_id)
                    self._resume(subject_id)
                return
            self.state.paused.add(subject_id)
            self._enforce_pause(subject_id)

    def apply_inactivity_setting(self) -> None:
        """Re-evaluate the focused subject after ``track_inactive_time`` changed."""
        with self.state.lock:
            subject_id = self.state.focused_subject
            if subject_id is None:
                return
            if self.state.is_paused(subject_id):
                self._enforce_pause(subject_id)
            else:
                self._resume(subject_id)

    def set_enabled(self, enabled: bool) -> None:
        with self.state.lock:
            self.state.settings.enabled = enabled
            if enabled:
                if self.state.focused_subject is not None:
                    self.on_focus_candidate(self.state.focused_subject)
            else:
                self.timer.stop()

    def restart_current(self) -> None:
        """Restart the live session, e.g. after the interval changed."""
        with self.state.lock:
            subject_id = self.state.current_subject
            if subject_id is None:
                return
            self.timer.stop()
            if self.state.can_accumulate(subject_id):
                self.timer.start(subject_id)

    def shutdown(self) -> int:
        with self.state.lock:
            return self.timer.stop()

    def _enforce_pause(self, subject_id: int) -> None:
        if not self.state.is_paused(subject_id):
            return
        if self.state.current_subject == subject_id:
            self.timer.stop()
        logger.info("Paused timing for inactive subject %s", subject_id)

    def _resume(self, subject_id: int) -> None:
        if self.state.session is not None:
            return
        if self.state.can_accumulate(subject_id):
            self.timer.start(subject_id)
