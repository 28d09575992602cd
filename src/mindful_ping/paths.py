"""Where the tracker keeps its database and log file."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "MindfulPing"
DB_FILENAME = "usage.sqlite3"
LOG_FILENAME = "mindful-ping.log"


def _dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=APP_NAME, roaming=True)


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    return _ensure(Path(_dirs().user_data_path))


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME


def get_log_path() -> Path:
    """Rotating log file; kept apart from the database on platforms that split them."""
    return _ensure(Path(_dirs().user_log_path)) / LOG_FILENAME
