"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

from .models import DayStats
from .store import AggregationStore


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, store: AggregationStore) -> None:
        self.store = store

    def print_daily_summary(self, day: date) -> None:
        stats = self.store.read_day(day)
        if not stats.daily:
            print("No browsing time recorded for the selected day.")
            return

        print(f"Summary for {day.isoformat()}")
        print("-" * 40)
        print(f"Tracked time: {format_duration(stats.total_seconds)}")
        print()

        print("Top sites:")
        for resource, seconds in top_resources(stats)[:10]:
            share = round(seconds / stats.total_seconds * 100)
            print(f"  {resource[:30]:<30} {format_duration(seconds)} {share:>4}%")

        hours = aggregate_by_hour(stats.hourly.values())
        if hours:
            print()
            print("By hour:")
            for hour, seconds in sorted(hours.items()):
                print(f"  {hour:>2}:00  {format_duration(seconds)}")


def top_resources(stats: DayStats) -> list[tuple[str, int]]:
    return sorted(stats.daily.items(), key=lambda item: (-item[1], item[0]))


def aggregate_by_hour(per_resource: Iterable[dict[int, int]]) -> dict[int, int]:
    totals: defaultdict[int, int] = defaultdict(int)
    for hours in per_resource:
        for hour, seconds in hours.items():
            if 0 <= hour < 24:
                totals[hour] += seconds
    return dict(totals)


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
