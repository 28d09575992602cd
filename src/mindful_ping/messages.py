"""Control-plane requests understood by the tracker service.

Each request is a pydantic model tagged by its ``action`` field; raw payloads
are parsed with :func:`parse_request` into exactly one of them.
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .normalization import normalize_limit_key


class InvalidRequestError(ValueError):
    """The request was rejected; tracker state is unchanged."""


def clean_limits(limits: Mapping[str, int]) -> dict[str, int]:
    """Normalize limit domains; every limit must be at least one minute."""
    cleaned: dict[str, int] = {}
    for domain, minutes in limits.items():
        key = normalize_limit_key(domain)
        if not key:
            raise ValueError("limit domains must not be empty")
        if int(minutes) < 1:
            raise ValueError(f"limit for {key} must be at least one minute")
        cleaned[key] = int(minutes)
    return cleaned


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ToggleTracking(_Request):
    action: Literal["toggle"] = "toggle"
    enabled: bool


class GetStatus(_Request):
    action: Literal["getStatus"] = "getStatus"


class SetReminderInterval(_Request):
    action: Literal["setInterval"] = "setInterval"
    interval: int = Field(gt=0, description="Reminder interval in seconds.")


class SendTestReminder(_Request):
    action: Literal["testNotification"] = "testNotification"


class GetStatsForDay(_Request):
    action: Literal["getStatsForDate"] = "getStatsForDate"
    date: dt.date


class GetStatsToday(_Request):
    action: Literal["getTodayStats"] = "getTodayStats"


class UpdateActivitySettings(_Request):
    action: Literal["updateActivitySettings"] = "updateActivitySettings"
    track_inactive_time: bool = Field(alias="trackInactiveTime")
    inactivity_threshold: float = Field(
        alias="inactivityThreshold", gt=0, description="Threshold in minutes."
    )


class UpdateTimeLimits(_Request):
    action: Literal["updateTimeLimits"] = "updateTimeLimits"
    daily_time_limits: dict[str, int] = Field(alias="dailyTimeLimits", default_factory=dict)
    time_limit_enabled: bool = Field(alias="timeLimitEnabled")

    @field_validator("daily_time_limits")
    @classmethod
    def _clean_limits(cls, value: dict[str, int]) -> dict[str, int]:
        return clean_limits(value)


class UpdateRetention(_Request):
    action: Literal["updateDataSettings"] = "updateDataSettings"
    data_retention_days: int = Field(alias="dataRetentionDays", ge=1)
    cleanup_old_data: bool = Field(alias="cleanupOldData", default=False)


class ExportRange(_Request):
    action: Literal["exportData"] = "exportData"
    start_date: dt.date = Field(alias="startDate")
    end_date: dt.date = Field(alias="endDate")


class ClearAllData(_Request):
    action: Literal["clearAllData"] = "clearAllData"


ControlRequest = Annotated[
    Union[
        ToggleTracking,
        GetStatus,
        SetReminderInterval,
        SendTestReminder,
        GetStatsForDay,
        GetStatsToday,
        UpdateActivitySettings,
        UpdateTimeLimits,
        UpdateRetention,
        ExportRange,
        ClearAllData,
    ],
    Field(discriminator="action"),
]

_adapter: TypeAdapter[ControlRequest] = TypeAdapter(ControlRequest)


def parse_request(payload: object) -> ControlRequest:
    """Validate a raw message; raises ``pydantic.ValidationError``."""
    return _adapter.validate_python(payload)


def failure(error: str, *, details: Optional[list] = None) -> dict:
    result: dict = {"success": False, "error": error}
    if details:
        result["details"] = details
    return result
