from datetime import datetime

import pytest

from mindful_ping.scheduler import ManualScheduler
from mindful_ping.service import TrackerService

START = datetime(2024, 3, 4, 9, 0, 0)


@pytest.fixture
def scheduler():
    return ManualScheduler(START)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "usage.sqlite3"


@pytest.fixture
def service(db_path, scheduler):
    tracker = TrackerService(db_path, scheduler=scheduler)
    yield tracker
    tracker.close()


@pytest.fixture
def arbiter(service):
    return service.arbiter


def daily_totals(service, day=None):
    """Seconds per resource for ``day`` (defaults to the simulated today)."""
    target = day or service.scheduler.now().date()
    return service.store.read_day(target).daily
