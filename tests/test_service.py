from datetime import datetime

from mindful_ping.scheduler import ManualScheduler
from mindful_ping.service import CLEANUP_INTERVAL_SECONDS, TrackerService

from conftest import START


def test_defaults_are_persisted_on_first_open(db_path, scheduler):
    tracker = TrackerService(db_path, scheduler=scheduler)
    try:
        settings = tracker.settings
        assert settings.enabled is True
        assert settings.reminder_interval_seconds == 600
        assert settings.track_inactive_time is False
        assert settings.inactivity_threshold_seconds == 300
        assert settings.daily_limits == {}
        assert settings.time_limit_enabled is False
        assert settings.retention_days == 30
    finally:
        tracker.close()

    reopened = TrackerService(db_path, scheduler=scheduler)
    try:
        with reopened.database.reading() as conn:
            keys = {row["key"] for row in conn.execute("SELECT key FROM settings")}
    finally:
        reopened.close()
    assert "reminder_interval_seconds" in keys
    assert "retention_days" in keys


def test_settings_survive_reopen(db_path):
    first = TrackerService(db_path, scheduler=ManualScheduler(START))
    assert first.dispatch({"action": "setInterval", "interval": 900})["success"]
    assert first.dispatch({"action": "toggle", "enabled": False})["status"] == "disabled"
    first.dispatch(
        {
            "action": "updateActivitySettings",
            "trackInactiveTime": True,
            "inactivityThreshold": 2.5,
        }
    )
    first.dispatch(
        {
            "action": "updateTimeLimits",
            "dailyTimeLimits": {"www.YouTube.com": 30},
            "timeLimitEnabled": True,
        }
    )
    first.dispatch({"action": "updateDataSettings", "dataRetentionDays": 7})
    first.close()

    second = TrackerService(db_path, scheduler=ManualScheduler(START))
    try:
        settings = second.settings
        assert settings.reminder_interval_seconds == 900
        assert settings.enabled is False
        assert settings.track_inactive_time is True
        assert settings.inactivity_threshold_seconds == 150
        assert settings.daily_limits == {"youtube.com": 30}
        assert settings.time_limit_enabled is True
        assert settings.retention_days == 7
    finally:
        second.close()


def test_status_reports_live_session(service, scheduler):
    service.arbiter.on_focus_candidate(5, "https://example.com/a")

    status = service.dispatch({"action": "getStatus"})

    assert status["enabled"] is True
    assert status["interval"] == 600
    assert status["current_subject"] == 5
    assert status["current_resource"] == "example.com"
    assert status["session_started_at"] == START.isoformat()
    assert status["is_paused"] is False
    assert status["activity_status"] is None


def test_status_includes_activity_of_focused_subject(service, scheduler):
    service.arbiter.on_focus_candidate(5, "https://example.com/a")
    service.activity.report_inactive(5, 400_000)

    status = service.get_status()

    assert status["current_subject"] is None
    assert status["is_paused"] is True
    assert status["activity_status"]["is_active"] is False
    assert status["activity_status"]["is_paused"] is True


def test_set_interval_rejects_non_positive(service):
    result = service.dispatch({"action": "setInterval", "interval": 0})

    assert result["success"] is False
    assert result["error"] == "invalid request"
    assert service.settings.reminder_interval_seconds == 600


def test_unknown_action_is_rejected(service):
    result = service.dispatch({"action": "launchRockets"})

    assert result["success"] is False
    assert result["details"]


def test_extra_fields_are_rejected(service):
    result = service.dispatch({"action": "getStatus", "verbose": True})

    assert result["success"] is False


def test_invalid_limits_are_rejected(service):
    result = service.dispatch(
        {
            "action": "updateTimeLimits",
            "dailyTimeLimits": {"example.com": 0},
            "timeLimitEnabled": True,
        }
    )

    assert result["success"] is False
    assert service.settings.daily_limits == {}


def test_test_notification_without_session(service):
    assert service.dispatch({"action": "testNotification"}) == {"success": True}

    latest = service.notifier.recent()[-1]
    assert latest.kind == "test"


def test_test_notification_does_not_commit(service, scheduler):
    service.arbiter.on_focus_candidate(1, "https://example.com/")
    scheduler.advance(120)
    session = service.state.session

    service.dispatch({"action": "testNotification"})

    latest = service.notifier.recent()[-1]
    assert latest.kind == "reminder"
    assert latest.resource_key == "example.com"
    assert service.state.session is session
    assert service.get_stats_today()["daily"] == {}


def test_stats_actions(service):
    service.store.commit("example.com", 90, datetime(2024, 3, 4, 10, 30))

    today = service.dispatch({"action": "getTodayStats"})
    by_date = service.dispatch({"action": "getStatsForDate", "date": "2024-03-04"})

    assert today == {
        "success": True,
        "stats": {"daily": {"example.com": 90}, "hourly": {"example.com": {"10": 90}}},
    }
    assert by_date == today


def test_stats_for_bad_date_is_rejected(service):
    result = service.dispatch({"action": "getStatsForDate", "date": "yesterday"})

    assert result["success"] is False


def test_export_action_returns_csv(service):
    service.store.commit("example.com", 90, datetime(2024, 3, 4, 10, 30))

    result = service.dispatch(
        {"action": "exportData", "startDate": "2024-03-01", "endDate": "2024-03-04"}
    )

    assert result["success"] is True
    assert result["data"].splitlines()[1] == "2024-03-04,example.com,1.5,90,,1"


def test_export_with_reversed_range_fails(service):
    result = service.dispatch(
        {"action": "exportData", "startDate": "2024-03-04", "endDate": "2024-03-01"}
    )

    assert result == {"success": False, "error": "end date must be on or after start date"}


def test_retention_update_with_cleanup(service):
    service.store.commit("example.com", 90, datetime(2024, 2, 20, 10))
    service.store.commit("example.com", 90, datetime(2024, 3, 3, 10))

    result = service.dispatch(
        {"action": "updateDataSettings", "dataRetentionDays": 7, "cleanupOldData": True}
    )

    assert result["removed_days"] == ["2024-02-20"]
    assert service.settings.retention_days == 7


def test_clear_all_data_action(service):
    service.store.commit("example.com", 90, datetime(2024, 3, 4, 10))

    assert service.dispatch({"action": "clearAllData"}) == {"success": True}
    assert service.get_stats_today()["daily"] == {}


def test_enabling_inactive_tracking_resumes_paused_subject(service, scheduler):
    service.arbiter.on_focus_candidate(1, "https://example.com/")
    service.activity.report_inactive(1, 300_000)
    assert service.state.session is None

    service.update_activity_settings(True, 5)

    assert service.state.session is not None
    assert service.state.session.started_at == START


def test_start_prunes_and_reschedules_daily(db_path, scheduler):
    tracker = TrackerService(db_path, scheduler=scheduler)
    try:
        tracker.store.commit("old.example", 60, datetime(2024, 1, 1, 10))
        tracker.start()
        assert tracker.store.read_day(datetime(2024, 1, 1).date()).daily == {}

        assert len(scheduler.pending) == 1
        tracker.store.commit("old.example", 60, datetime(2024, 2, 3, 10))
        scheduler.advance(CLEANUP_INTERVAL_SECONDS)
        assert tracker.store.read_day(datetime(2024, 2, 3).date()).daily == {}
        assert len(scheduler.pending) == 1
    finally:
        tracker.close()
    assert scheduler.pending == []


def test_close_commits_live_session(db_path, scheduler):
    tracker = TrackerService(db_path, scheduler=scheduler)
    tracker.arbiter.on_focus_candidate(1, "https://example.com/")
    scheduler.advance(42)
    tracker.close()
    tracker.close()

    reopened = TrackerService(db_path, scheduler=scheduler)
    try:
        assert reopened.get_stats_today()["daily"] == {"example.com": 42}
    finally:
        reopened.close()
