"""FastAPI application exposing the tracker's control plane and event intake."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Literal, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from .messages import (
    InvalidRequestError,
    SetReminderInterval,
    ToggleTracking,
    UpdateActivitySettings,
    UpdateRetention,
    UpdateTimeLimits,
)
from .paths import get_db_path
from .service import TrackerService
from .store import StorageError

logger = logging.getLogger(__name__)


class FocusEvent(BaseModel):
    subject_id: int
    url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class WindowFocusEvent(BaseModel):
    subject_id: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class SubjectRemovedEvent(BaseModel):
    subject_id: int

    model_config = ConfigDict(extra="forbid")


class ActivityEvent(BaseModel):
    subject_id: int
    type: Literal[
        "user-active",
        "user-inactive",
        "activity-status",
        "page-focus",
        "page-visible",
        "page-blur",
        "page-hidden",
    ]
    idle_ms: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    last_activity_at: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    service: Optional[TrackerService] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    tracker = service or TrackerService(Path(db_path or get_db_path()))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        tracker.start()
        try:
            yield
        finally:
            tracker.close()

    app = FastAPI(title="Mindful Ping", version="0.3.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.tracker = tracker

    @app.post("/api/control")
    def control(request: Request, payload: Any = Body(...)) -> Dict[str, Any]:
        return request.app.state.tracker.dispatch(payload)

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return request.app.state.tracker.get_status()

    @app.post("/api/tracking")
    def toggle_tracking(payload: ToggleTracking, request: Request) -> Dict[str, Any]:
        return request.app.state.tracker.toggle_tracking(payload.enabled)

    @app.put("/api/settings/interval")
    def set_interval(payload: SetReminderInterval, request: Request) -> Dict[str, Any]:
        return _call(request.app.state.tracker.set_reminder_interval, payload.interval)

    @app.put("/api/settings/activity")
    def update_activity(payload: UpdateActivitySettings, request: Request) -> Dict[str, Any]:
        return _call(
            request.app.state.tracker.update_activity_settings,
            payload.track_inactive_time,
            payload.inactivity_threshold,
        )

    @app.put("/api/settings/limits")
    def update_limits(payload: UpdateTimeLimits, request: Request) -> Dict[str, Any]:
        return _call(
            request.app.state.tracker.update_time_limits,
            payload.daily_time_limits,
            payload.time_limit_enabled,
        )

    @app.put("/api/settings/retention")
    def update_retention(payload: UpdateRetention, request: Request) -> Dict[str, Any]:
        return _call(
            request.app.state.tracker.update_retention,
            payload.data_retention_days,
            cleanup_now=payload.cleanup_old_data,
        )

    @app.post("/api/notifications/test")
    def test_notification(request: Request) -> Dict[str, Any]:
        return request.app.state.tracker.send_test_reminder()

    @app.get("/api/notifications")
    def notifications(request: Request) -> Dict[str, Any]:
        recent = request.app.state.tracker.notifier.recent()
        return {"notifications": [item.to_dict() for item in recent]}

    @app.get("/api/stats")
    def stats(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format. Defaults to today.",
        ),
    ) -> Dict[str, Any]:
        tracker: TrackerService = request.app.state.tracker
        target_day = _parse_date(date) if date else tracker.scheduler.now().date()
        return {
            "date": target_day.isoformat(),
            "stats": tracker.get_stats_for_day(target_day),
        }

    @app.get("/api/stats/today")
    def stats_today(request: Request) -> Dict[str, Any]:
        tracker: TrackerService = request.app.state.tracker
        return {
            "date": tracker.scheduler.now().date().isoformat(),
            "stats": tracker.get_stats_today(),
        }

    @app.get("/api/export")
    def export(
        request: Request,
        start: str = Query(description="Start date in YYYY-MM-DD format (inclusive)."),
        end: str = Query(description="End date in YYYY-MM-DD format (inclusive)."),
    ) -> Response:
        start_day = _parse_date(start)
        end_day = _parse_date(end)
        csv_text = _call(request.app.state.tracker.export_range, start_day, end_day)
        filename = f"mindfulping-data-{start_day.isoformat()}-to-{end_day.isoformat()}.csv"
        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.delete("/api/data")
    def clear_data(request: Request) -> Dict[str, Any]:
        return _call(request.app.state.tracker.clear_all_data)

    @app.post("/api/events/focus")
    def focus_event(payload: FocusEvent, request: Request) -> Dict[str, Any]:
        started = request.app.state.tracker.arbiter.on_focus_candidate(
            payload.subject_id, payload.url
        )
        return {"success": True, "started": started}

    @app.post("/api/events/window-blur")
    def window_blur(request: Request) -> Dict[str, Any]:
        request.app.state.tracker.arbiter.on_window_blur()
        return {"success": True}

    @app.post("/api/events/window-focus")
    def window_focus(payload: WindowFocusEvent, request: Request) -> Dict[str, Any]:
        started = request.app.state.tracker.arbiter.on_window_focus(payload.subject_id)
        return {"success": True, "started": started}

    @app.post("/api/events/subject-removed")
    def subject_removed(payload: SubjectRemovedEvent, request: Request) -> Dict[str, Any]:
        request.app.state.tracker.arbiter.on_subject_removed(payload.subject_id)
        return {"success": True}

    @app.post("/api/events/activity")
    def activity_event(payload: ActivityEvent, request: Request) -> Dict[str, Any]:
        signals = request.app.state.tracker.activity
        subject_id = payload.subject_id
        match payload.type:
            case "user-active":
                signals.report_active(subject_id)
            case "user-inactive":
                signals.report_inactive(subject_id, payload.idle_ms)
            case "activity-status":
                if payload.is_active is None:
                    raise HTTPException(status_code=400, detail="is_active is required")
                signals.report_status(subject_id, payload.is_active, payload.last_activity_at)
            case "page-focus" | "page-visible":
                signals.report_visibility(subject_id, True)
            case "page-blur" | "page-hidden":
                signals.report_visibility(subject_id, False)
        return {"success": True}

    return app


def _call(func, *args: Any, **kwargs: Any) -> Any:
    try:
        return func(*args, **kwargs)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Storage failure in %s", getattr(func, "__name__", func))
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
