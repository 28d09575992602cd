"""Domain models for tracked attention."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .scheduler import TimerHandle

UNKNOWN_RESOURCE = "unknown"


@dataclass(slots=True)
class Subject:
    """A trackable focus target, e.g. a single browser tab."""

    subject_id: int
    resource_key: str = UNKNOWN_RESOURCE


@dataclass(slots=True, eq=False)
class Session:
    """The single live interval accumulating time for the focused subject.

    Sessions compare by identity so that expiry callbacks can tell whether
    they still belong to the live session.
    """

    subject_id: int
    resource_key: str
    started_at: datetime
    planned_duration_seconds: int
    handle: Optional[TimerHandle] = None

    def elapsed_seconds(self, now: datetime) -> int:
        return max(int((now - self.started_at).total_seconds()), 0)


@dataclass(slots=True)
class ActivityState:
    """Last reported activity for a subject."""

    is_active: bool = True
    last_activity_at: Optional[datetime] = None
    reported_at: Optional[datetime] = None
    reported_active: Optional[bool] = None

    def to_dict(self, *, is_paused: bool = False) -> dict[str, Any]:
        return {
            "is_active": self.is_active,
            "last_activity_at": (
                self.last_activity_at.isoformat() if self.last_activity_at else None
            ),
            "reported_at": self.reported_at.isoformat() if self.reported_at else None,
            "reported_active": self.reported_active,
            "is_paused": is_paused,
        }


@dataclass(slots=True)
class DayStats:
    """Aggregated seconds for a single day."""

    daily: dict[str, int] = field(default_factory=dict)
    hourly: dict[str, dict[int, int]] = field(default_factory=dict)
    daily_sessions: dict[str, int] = field(default_factory=dict)
    hourly_sessions: dict[str, dict[int, int]] = field(default_factory=dict)

    @property
    def total_seconds(self) -> int:
        return sum(self.daily.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily": dict(self.daily),
            "hourly": {
                resource: {str(hour): seconds for hour, seconds in hours.items()}
                for resource, hours in self.hourly.items()
            },
        }


@dataclass(slots=True)
class Notification:
    """A transient alert handed to the display collaborator."""

    kind: str
    title: str
    message: str
    created_at: datetime
    resource_key: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "resource_key": self.resource_key,
        }
