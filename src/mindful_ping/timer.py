"""The session timer bound to the focused subject."""

from __future__ import annotations

import logging
from datetime import datetime
from functools import partial

from .models import Session
from .notifications import NotificationCenter
from .scheduler import Scheduler
from .state import SchedulerState
from .store import AggregationStore, StorageError

logger = logging.getLogger(__name__)

# Sessions this short are tab flicker, not attention.
MIN_RECORDED_SECONDS = 5


class SessionTimer:
    """Starts, stops and renews the single live :class:`Session`.

    Callers must hold ``state.lock``; only the expiry callback acquires it
    itself because the scheduler invokes it from outside any handler.
    """

    def __init__(
        self,
        state: SchedulerState,
        scheduler: Scheduler,
        store: AggregationStore,
        notifier: NotificationCenter,
    ) -> None:
        self._state = state
        self._scheduler = scheduler
        self._store = store
        self._notifier = notifier

    def now(self) -> datetime:
        return self._scheduler.now()

    def start(self, subject_id: int) -> Session:
        live = self._state.session
        if live is not None:
            if live.subject_id == subject_id:
                return live
            self.stop()

        subject = self._state.subject(subject_id)
        interval = int(self._state.settings.reminder_interval_seconds)
        session = Session(
            subject_id=subject_id,
            resource_key=subject.resource_key,
            started_at=self.now(),
            planned_duration_seconds=interval,
        )
        session.handle = self._scheduler.schedule(interval, partial(self._fired, session))
        self._state.session = session
        logger.info(
            "Started timing subject %s (%s), reminder in %ss",
            subject_id,
            session.resource_key,
            interval,
        )
        return session

    def stop(self) -> int:
        """End the live session and return the seconds committed for it."""
        session = self._state.session
        if session is None:
            return 0
        self._state.session = None
        if session.handle is not None:
            session.handle.cancel()
            session.handle = None

        now = self.now()
        elapsed = session.elapsed_seconds(now)
        logger.info(
            "Stopped timing subject %s (%s) after %ss",
            session.subject_id,
            session.resource_key,
            elapsed,
        )
        if elapsed <= MIN_RECORDED_SECONDS:
            return 0
        return self._commit(session.resource_key, elapsed, now)

    def on_expire(self, subject_id: int) -> None:
        """Credit a full interval, raise the reminder and renew if still focused."""
        session = self._state.session
        if session is None or session.subject_id != subject_id:
            logger.debug("Ignoring expiry for subject %s; it is no longer live.", subject_id)
            return
        self._state.session = None
        if session.handle is not None:
            session.handle.cancel()
            session.handle = None

        planned = session.planned_duration_seconds
        self._commit(session.resource_key, planned, self.now())
        self._notifier.reminder(session.resource_key, planned)

        if self._state.can_accumulate(subject_id):
            logger.info("Restarting timer for subject %s (%s)", subject_id, session.resource_key)
            self.start(subject_id)

    def cancel(self) -> None:
        """Drop the live session without committing anything."""
        session = self._state.session
        self._state.session = None
        if session is not None and session.handle is not None:
            session.handle.cancel()
            session.handle = None

    def _fired(self, session: Session) -> None:
        with self._state.lock:
            if self._state.session is not session:
                # Stopped or replaced after the callback was already due;
                # stop() has credited its time.
                logger.debug("Stale expiry for subject %s ignored.", session.subject_id)
                return
            session.handle = None
            self.on_expire(session.subject_id)

    def _commit(self, resource_key: str, seconds: int, at_time: datetime) -> int:
        try:
            self._store.commit(resource_key, seconds, at_time)
        except StorageError:
            logger.exception("Dropping %ss for %s; commit failed.", seconds, resource_key)
            return 0
        return seconds
