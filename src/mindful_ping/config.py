"""Configuration models and helpers for the attention tracker."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Mapping, Optional

from .db import Database, fetch_settings, upsert_settings
from .normalization import normalize_limit_key

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TrackerSettings:
    """Persisted tracker configuration.

    One instance is shared by the engine and the store; updates mutate it in
    place and are written back through :func:`save_settings`.
    """

    enabled: bool = True
    reminder_interval_seconds: int = 600
    track_inactive_time: bool = False
    inactivity_threshold_seconds: int = 300
    daily_limits: dict[str, int] = field(default_factory=dict)
    time_limit_enabled: bool = False
    retention_days: int = 30

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "TrackerSettings":
        known = {f.name for f in fields(cls)}
        settings = cls(**{key: value for key, value in values.items() if key in known})
        settings.daily_limits = {
            normalize_limit_key(key): int(minutes)
            for key, minutes in dict(settings.daily_limits).items()
            if normalize_limit_key(key)
        }
        return settings

    def to_mapping(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def inactivity_threshold_minutes(self) -> float:
        return self.inactivity_threshold_seconds / 60.0

    def limit_minutes_for(self, resource_key: str) -> Optional[int]:
        """Return the daily limit for ``resource_key`` when limits are active."""
        if not self.time_limit_enabled or not self.daily_limits:
            return None
        minutes = self.daily_limits.get(normalize_limit_key(resource_key))
        if not minutes or minutes <= 0:
            return None
        return minutes


def load_settings(database: Database) -> TrackerSettings:
    """Load persisted settings, writing defaults for any missing key."""
    defaults = TrackerSettings().to_mapping()
    with database.transaction() as conn:
        stored = fetch_settings(conn)
        missing = {key: value for key, value in defaults.items() if key not in stored}
        if missing:
            upsert_settings(conn, missing)
            logger.info("Initialized default settings: %s", ", ".join(sorted(missing)))
    return TrackerSettings.from_mapping({**defaults, **stored})


def save_settings(database: Database, settings: TrackerSettings, *names: str) -> None:
    """Persist the named fields (or every field when none are given)."""
    values = settings.to_mapping()
    if names:
        values = {name: values[name] for name in names}
    with database.transaction() as conn:
        upsert_settings(conn, values)
    logger.debug("Persisted settings: %s", ", ".join(sorted(values)))
