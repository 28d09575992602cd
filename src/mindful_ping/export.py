"""CSV export of aggregated usage."""

from __future__ import annotations

import csv
import io
from typing import Mapping

from .models import DayStats

CSV_HEADER = (
    "Date",
    "Resource",
    "TimeSpent(min)",
    "TimeSpent(sec)",
    "Hour",
    "SessionCount",
)


def format_minutes(seconds: int) -> str:
    return f"{seconds / 60:.1f}"


def render_csv(stats_by_day: Mapping[str, DayStats]) -> str:
    """Render one daily row per resource followed by its hourly rows."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for day in sorted(stats_by_day):
        stats = stats_by_day[day]
        resources = sorted(stats.daily.items(), key=lambda item: (-item[1], item[0]))
        for resource, seconds in resources:
            writer.writerow(
                [
                    day,
                    resource,
                    format_minutes(seconds),
                    seconds,
                    "",
                    stats.daily_sessions.get(resource, 0),
                ]
            )
            hours = stats.hourly.get(resource, {})
            sessions = stats.hourly_sessions.get(resource, {})
            for hour in sorted(hours):
                writer.writerow(
                    [
                        day,
                        resource,
                        format_minutes(hours[hour]),
                        hours[hour],
                        f"{hour}:00",
                        sessions.get(hour, 0),
                    ]
                )
    return buffer.getvalue()
