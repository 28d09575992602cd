"""Aggregation of committed seconds into per-day and per-hour buckets."""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from .config import TrackerSettings
from .db import (
    DATE_FMT,
    Database,
    delete_all_usage,
    delete_usage_before,
    fetch_daily_usage,
    fetch_hourly_usage,
    increment_usage,
)
from .models import DayStats
from .notifications import NotificationCenter

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A persistence call failed; the operation had no effect."""


def day_key(value: date | datetime) -> str:
    return value.strftime(DATE_FMT)


class AggregationStore:
    """Durable (day, resource) and (day, resource, hour) accumulators."""

    def __init__(
        self,
        database: Database,
        settings: TrackerSettings,
        notifier: NotificationCenter,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._database = database
        self._settings = settings
        self._notifier = notifier
        self._clock = clock

    def commit(self, resource_key: str, seconds: int, at_time: Optional[datetime] = None) -> int:
        """Add ``seconds`` for ``resource_key`` and return the new daily total.

        Buckets are chosen from ``at_time`` (the commit moment), so an
        interval spanning midnight is credited to the later day.
        """
        if seconds <= 0:
            raise ValueError("seconds must be positive")
        moment = at_time or self._clock()
        day = day_key(moment)
        try:
            with self._database.transaction() as conn:
                previous = increment_usage(conn, day, resource_key, moment.hour, seconds)
        except sqlite3.Error as exc:
            raise StorageError(f"could not record {seconds}s for {resource_key}") from exc

        total = previous + seconds
        logger.info("Saved %ss for %s (total %s: %ss)", seconds, resource_key, day, total)
        self._check_limit(resource_key, previous, total)
        return total

    def _check_limit(self, resource_key: str, previous: int, total: int) -> None:
        limit_minutes = self._settings.limit_minutes_for(resource_key)
        if limit_minutes is None:
            return
        limit_seconds = limit_minutes * 60
        # Only the commit that crosses the line alerts; totals never decrease
        # within a day, so this fires once per (resource, day).
        if previous < limit_seconds <= total:
            self._notifier.limit_reached(resource_key, limit_minutes)

    def read_day(self, day: date) -> DayStats:
        return self.read_range(day, day).get(day_key(day), DayStats())

    def read_range(self, start: date, end: date) -> dict[str, DayStats]:
        """Return stats keyed by day for ``start <= day <= end``."""
        if end < start:
            raise ValueError("end date must be on or after start date")
        start_key, end_key = day_key(start), day_key(end)
        try:
            with self._database.reading() as conn:
                daily_rows = fetch_daily_usage(conn, start_key, end_key)
                hourly_rows = fetch_hourly_usage(conn, start_key, end_key)
        except sqlite3.Error as exc:
            raise StorageError(f"could not read usage for {start_key}..{end_key}") from exc

        stats: defaultdict[str, DayStats] = defaultdict(DayStats)
        for row in daily_rows:
            entry = stats[row["day"]]
            entry.daily[row["resource"]] = int(row["seconds"])
            entry.daily_sessions[row["resource"]] = int(row["sessions"])
        for row in hourly_rows:
            entry = stats[row["day"]]
            entry.hourly.setdefault(row["resource"], {})[int(row["hour"])] = int(row["seconds"])
            entry.hourly_sessions.setdefault(row["resource"], {})[int(row["hour"])] = int(
                row["sessions"]
            )
        return dict(sorted(stats.items()))

    def prune(self, retention_days: int, today: Optional[date] = None) -> list[str]:
        """Delete buckets strictly older than ``today - retention_days``."""
        if retention_days < 1:
            raise ValueError("retention_days must be at least 1")
        reference = today or self._clock().date()
        cutoff = day_key(reference - timedelta(days=retention_days))
        try:
            with self._database.transaction() as conn:
                removed = delete_usage_before(conn, cutoff)
        except sqlite3.Error as exc:
            raise StorageError("could not prune old usage") from exc
        if removed:
            logger.info("Pruned %d day(s) older than %s", len(removed), cutoff)
        return removed

    def clear_all(self) -> None:
        try:
            with self._database.transaction() as conn:
                delete_all_usage(conn)
        except sqlite3.Error as exc:
            raise StorageError("could not clear usage data") from exc
        logger.info("Cleared all usage data.")
