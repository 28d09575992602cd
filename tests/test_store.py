from datetime import date, datetime

import pytest

from mindful_ping.store import StorageError


def _limit_alerts(service):
    return [n for n in service.notifier.recent() if n.kind == "limit"]


def test_commits_around_midnight_land_on_separate_days(service):
    store = service.store
    store.commit("example.com", 30, datetime(2024, 3, 4, 23, 59, 58))
    store.commit("example.com", 45, datetime(2024, 3, 5, 0, 0, 2))

    assert store.read_day(date(2024, 3, 4)).daily == {"example.com": 30}
    assert store.read_day(date(2024, 3, 5)).daily == {"example.com": 45}
    assert store.read_day(date(2024, 3, 4)).hourly == {"example.com": {23: 30}}
    assert store.read_day(date(2024, 3, 5)).hourly == {"example.com": {0: 45}}


def test_commit_accumulates_daily_and_hourly_buckets(service):
    store = service.store
    assert store.commit("a.example", 100, datetime(2024, 3, 4, 9, 10)) == 100
    assert store.commit("a.example", 50, datetime(2024, 3, 4, 9, 50)) == 150
    assert store.commit("a.example", 20, datetime(2024, 3, 4, 14, 0)) == 170
    store.commit("b.example", 5 * 60, datetime(2024, 3, 4, 14, 5))

    stats = store.read_day(date(2024, 3, 4))
    assert stats.daily == {"a.example": 170, "b.example": 300}
    assert stats.hourly["a.example"] == {9: 150, 14: 20}
    assert stats.daily_sessions["a.example"] == 3
    assert stats.hourly_sessions["a.example"] == {9: 2, 14: 1}
    assert stats.total_seconds == 470
    assert stats.to_dict()["hourly"]["b.example"] == {"14": 300}


def test_commit_rejects_non_positive_seconds(service):
    with pytest.raises(ValueError):
        service.store.commit("a.example", 0)


def test_read_day_without_data_is_empty(service):
    stats = service.store.read_day(date(2020, 1, 1))
    assert stats.daily == {}
    assert stats.hourly == {}


def test_read_range_is_inclusive_and_sorted(service):
    store = service.store
    for day in (6, 2, 4, 8):
        store.commit("a.example", 60, datetime(2024, 3, day, 12))

    stats = store.read_range(date(2024, 3, 2), date(2024, 3, 6))

    assert list(stats) == ["2024-03-02", "2024-03-04", "2024-03-06"]
    with pytest.raises(ValueError):
        store.read_range(date(2024, 3, 6), date(2024, 3, 2))


def test_prune_removes_only_days_older_than_retention(service):
    store = service.store
    today = date(2024, 3, 4)
    store.commit("a.example", 60, datetime(2024, 2, 2, 10))
    store.commit("a.example", 60, datetime(2024, 2, 3, 10))
    store.commit("a.example", 60, datetime(2024, 3, 4, 10))

    removed = store.prune(30, today=today)

    assert removed == ["2024-02-02"]
    remaining = store.read_range(date(2024, 1, 1), today)
    assert list(remaining) == ["2024-02-03", "2024-03-04"]


def test_prune_defaults_to_clock_today(service):
    store = service.store
    store.commit("a.example", 60, datetime(2023, 12, 1, 10))

    assert store.prune(30) == ["2023-12-01"]
    assert store.prune(30) == []


def test_limit_alert_fires_once_per_day(service):
    service.update_time_limits({"https://www.Example.com/feed": 1}, True)
    store = service.store

    store.commit("example.com", 30, datetime(2024, 3, 4, 9))
    assert _limit_alerts(service) == []

    store.commit("www.example.com", 40, datetime(2024, 3, 4, 9, 5))
    store.commit("example.com", 40, datetime(2024, 3, 4, 9, 10))
    alerts = _limit_alerts(service)
    assert len(alerts) == 1
    assert alerts[0].resource_key == "example.com"

    store.commit("example.com", 60, datetime(2024, 3, 5, 9))
    assert len(_limit_alerts(service)) == 2


def test_limits_are_ignored_while_disabled(service):
    service.update_time_limits({"example.com": 1}, False)
    service.store.commit("example.com", 120, datetime(2024, 3, 4, 9))

    assert _limit_alerts(service) == []


def test_clear_all_removes_every_bucket(service):
    store = service.store
    store.commit("a.example", 60, datetime(2024, 3, 1, 10))
    store.commit("b.example", 60, datetime(2024, 3, 4, 10))

    store.clear_all()

    assert store.read_range(date(2024, 1, 1), date(2024, 12, 31)) == {}


def test_closed_database_raises_storage_error(service):
    service.database.close()

    with pytest.raises(StorageError):
        service.store.commit("a.example", 60)
    with pytest.raises(StorageError):
        service.store.read_day(date(2024, 3, 4))
