"""Composition root and control plane for the attention tracker."""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, assert_never

from pydantic import ValidationError

from .arbiter import FocusArbiter
from .activity import ActivitySignals
from .config import TrackerSettings, load_settings, save_settings
from .db import Database
from .export import render_csv
from .messages import (
    ClearAllData,
    ControlRequest,
    ExportRange,
    GetStatsForDay,
    GetStatsToday,
    GetStatus,
    InvalidRequestError,
    SendTestReminder,
    SetReminderInterval,
    ToggleTracking,
    UpdateActivitySettings,
    UpdateRetention,
    UpdateTimeLimits,
    clean_limits,
    failure,
    parse_request,
)
from .models import DayStats
from .notifications import NotificationCenter
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .state import SchedulerState
from .store import AggregationStore, StorageError

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 24 * 60 * 60


class TrackerService:
    """Owns the tracker's components and answers control-plane requests."""

    def __init__(
        self,
        db_path: Path,
        *,
        scheduler: Optional[Scheduler] = None,
        notifier: Optional[NotificationCenter] = None,
    ) -> None:
        self.db_path = Path(db_path)
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()
        self.notifier = notifier or NotificationCenter(self.scheduler.now)
        self.database = Database(self.db_path)
        self.settings: TrackerSettings = load_settings(self.database)
        self.store = AggregationStore(
            self.database, self.settings, self.notifier, self.scheduler.now
        )
        self.state = SchedulerState(self.settings)
        self.arbiter = FocusArbiter(self.state, self.scheduler, self.store, self.notifier)
        self._cleanup_handle: Optional[TimerHandle] = None
        self._closed = False

    @property
    def activity(self) -> ActivitySignals:
        return self.arbiter.activity

    def start(self) -> None:
        """Apply retention once and keep applying it daily."""
        logger.info("Tracker started; writing to %s", self.db_path)
        self._run_cleanup()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._cleanup_handle is not None:
            self._cleanup_handle.cancel()
            self._cleanup_handle = None
        self.arbiter.shutdown()
        self.scheduler.cancel_all()
        self.database.close()
        logger.info("Tracker stopped.")

    # Control plane -----------------------------------------------------

    def dispatch(self, payload: object) -> Dict[str, Any]:
        """Validate and handle a raw message, always returning a result."""
        try:
            request = parse_request(payload)
        except ValidationError as exc:
            details = exc.errors(include_url=False, include_context=False)
            return failure("invalid request", details=details)
        return self.handle(request)

    def handle(self, request: ControlRequest) -> Dict[str, Any]:
        try:
            return self._handle(request)
        except InvalidRequestError as exc:
            return failure(str(exc))
        except StorageError as exc:
            logger.exception("Storage failure while handling %s", request.action)
            return failure(str(exc))

    def _handle(self, request: ControlRequest) -> Dict[str, Any]:
        match request:
            case ToggleTracking(enabled=enabled):
                return self.toggle_tracking(enabled)
            case GetStatus():
                return self.get_status()
            case SetReminderInterval(interval=interval):
                return self.set_reminder_interval(interval)
            case SendTestReminder():
                return self.send_test_reminder()
            case GetStatsForDay(date=day):
                return {"success": True, "stats": self.get_stats_for_day(day)}
            case GetStatsToday():
                return {"success": True, "stats": self.get_stats_today()}
            case UpdateActivitySettings():
                return self.update_activity_settings(
                    request.track_inactive_time, request.inactivity_threshold
                )
            case UpdateTimeLimits():
                return self.update_time_limits(
                    request.daily_time_limits, request.time_limit_enabled
                )
            case UpdateRetention():
                return self.update_retention(
                    request.data_retention_days, cleanup_now=request.cleanup_old_data
                )
            case ExportRange():
                return {
                    "success": True,
                    "data": self.export_range(request.start_date, request.end_date),
                }
            case ClearAllData():
                return self.clear_all_data()
            case _:
                assert_never(request)

    def toggle_tracking(self, enabled: bool) -> Dict[str, Any]:
        self.arbiter.set_enabled(enabled)
        self._persist("enabled")
        status = "enabled" if enabled else "disabled"
        logger.info("Tracking %s", status)
        return {"success": True, "status": status}

    def get_status(self) -> Dict[str, Any]:
        state = self.state
        with state.lock:
            current = state.current_subject
            focused = state.focused_subject
            activity = state.activity.get(focused) if focused is not None else None
            is_paused = state.is_paused(focused) if focused is not None else False
            session = state.session
            return {
                "enabled": self.settings.enabled,
                "interval": self.settings.reminder_interval_seconds,
                "current_subject": current,
                "current_resource": session.resource_key if session else None,
                "session_started_at": session.started_at.isoformat() if session else None,
                "focused_subject": focused,
                "window_focused": state.window_focused,
                "track_inactive_time": self.settings.track_inactive_time,
                "inactivity_threshold_seconds": self.settings.inactivity_threshold_seconds,
                "is_paused": is_paused,
                "activity_status": activity.to_dict(is_paused=is_paused) if activity else None,
            }

    def set_reminder_interval(self, seconds: int) -> Dict[str, Any]:
        if seconds <= 0:
            raise InvalidRequestError("interval must be a positive number of seconds")
        self.settings.reminder_interval_seconds = int(seconds)
        self._persist("reminder_interval_seconds")
        self.arbiter.restart_current()
        return {"success": True, "interval": self.settings.reminder_interval_seconds}

    def send_test_reminder(self) -> Dict[str, Any]:
        with self.state.lock:
            session = self.state.session
            if session is not None:
                self.notifier.reminder(session.resource_key, session.planned_duration_seconds)
            else:
                self.notifier.test()
        return {"success": True}

    def get_stats_for_day(self, day: date) -> Dict[str, Any]:
        return self._read_day(day).to_dict()

    def get_stats_today(self) -> Dict[str, Any]:
        return self.get_stats_for_day(self.scheduler.now().date())

    def read_range(self, start: date, end: date) -> Dict[str, DayStats]:
        if end < start:
            raise InvalidRequestError("end date must be on or after start date")
        return self.store.read_range(start, end)

    def update_activity_settings(
        self, track_inactive_time: bool, threshold_minutes: float
    ) -> Dict[str, Any]:
        if threshold_minutes <= 0:
            raise InvalidRequestError("inactivity threshold must be positive")
        with self.state.lock:
            self.settings.track_inactive_time = track_inactive_time
            self.settings.inactivity_threshold_seconds = int(round(threshold_minutes * 60))
            self.arbiter.apply_inactivity_setting()
        self._persist("track_inactive_time", "inactivity_threshold_seconds")
        return {
            "success": True,
            "track_inactive_time": self.settings.track_inactive_time,
            "inactivity_threshold_seconds": self.settings.inactivity_threshold_seconds,
        }

    def update_time_limits(self, limits: Mapping[str, int], enabled: bool) -> Dict[str, Any]:
        try:
            cleaned = clean_limits(limits)
        except ValueError as exc:
            raise InvalidRequestError(str(exc)) from exc
        self.settings.daily_limits = cleaned
        self.settings.time_limit_enabled = enabled
        self._persist("daily_limits", "time_limit_enabled")
        return {"success": True, "daily_limits": dict(cleaned), "time_limit_enabled": enabled}

    def update_retention(self, days: int, *, cleanup_now: bool = False) -> Dict[str, Any]:
        if days < 1:
            raise InvalidRequestError("retention must be at least one day")
        self.settings.retention_days = int(days)
        self._persist("retention_days")
        removed: list[str] = []
        if cleanup_now:
            removed = self.store.prune(self.settings.retention_days)
        return {"success": True, "retention_days": days, "removed_days": removed}

    def export_range(self, start: date, end: date) -> str:
        return render_csv(self.read_range(start, end))

    def clear_all_data(self) -> Dict[str, Any]:
        self.store.clear_all()
        return {"success": True}

    # Helpers -------------------------------------------------------------

    def _read_day(self, day: date) -> DayStats:
        try:
            return self.store.read_day(day)
        except StorageError:
            logger.exception("Could not read stats for %s", day)
            return DayStats()

    def _persist(self, *names: str) -> None:
        try:
            save_settings(self.database, self.settings, *names)
        except sqlite3.Error:
            logger.exception("Could not persist settings %s", ", ".join(names))

    def _run_cleanup(self) -> None:
        if self._closed:
            return
        try:
            self.store.prune(self.settings.retention_days)
        except StorageError:
            logger.exception("Scheduled retention cleanup failed.")
        self._cleanup_handle = self.scheduler.schedule(
            CLEANUP_INTERVAL_SECONDS, self._run_cleanup
        )
