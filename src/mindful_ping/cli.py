"""Command-line interface for the attention tracker."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import typer

from .logging_setup import configure_logging
from .messages import InvalidRequestError
from .paths import get_db_path, get_log_path
from .service import TrackerService
from .store import StorageError

app = typer.Typer(help="Mindful browsing reminders and per-site time tracking.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        True, "--log-file/--no-log-file", help="Also write logs to the data directory."
    ),
) -> None:
    configure_logging(verbose, get_log_path() if log_file else None)


@contextmanager
def _tracker(db_path: Optional[Path]) -> Iterator[TrackerService]:
    tracker = TrackerService(db_path or get_db_path())
    try:
        yield tracker
    finally:
        tracker.close()


def _parse_day(value: str, option: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise typer.BadParameter("expected YYYY-MM-DD", param_hint=option) from exc


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the interactive API docs in your default browser.",
    ),
) -> None:
    """Run the tracker service until interrupted."""
    from .server_runner import run_dashboard

    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        open_browser=open_browser,
        log_level="debug" if logging.getLogger().isEnabledFor(logging.DEBUG) else "info",
    )


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the usage SQLite database.",
    ),
) -> None:
    """Print a per-site summary for a specific day."""
    from .reporting import SummaryPrinter

    target = _parse_day(date, "--date") if date else datetime.now().date()
    with _tracker(db_path) as tracker:
        SummaryPrinter(tracker.store).print_daily_summary(target)


@app.command()
def export(
    start: str = typer.Option(..., "--start", help="First day (YYYY-MM-DD), inclusive."),
    end: str = typer.Option(..., "--end", help="Last day (YYYY-MM-DD), inclusive."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", path_type=Path, help="Write CSV here instead of stdout."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Export daily and hourly totals as CSV."""
    start_day = _parse_day(start, "--start")
    end_day = _parse_day(end, "--end")
    with _tracker(db_path) as tracker:
        try:
            csv_text = tracker.export_range(start_day, end_day)
        except (InvalidRequestError, StorageError) as exc:
            typer.echo(f"Export failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
    if output is None:
        typer.echo(csv_text, nl=False)
        return
    output.write_text(csv_text, encoding="utf-8", newline="")
    typer.echo(f"Wrote {output}")


@app.command()
def prune(
    days: Optional[int] = typer.Option(
        None, "--days", min=1, help="Retention in days; saved as the new setting when given."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Delete totals older than the retention window."""
    with _tracker(db_path) as tracker:
        retention = days or tracker.settings.retention_days
        result = tracker.update_retention(retention, cleanup_now=True)
    typer.echo(f"Removed {len(result['removed_days'])} day(s) older than {retention} days.")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting all recorded data."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Delete every recorded total."""
    if not yes:
        typer.confirm("Clear ALL recorded browsing data? This cannot be undone.", abort=True)
    with _tracker(db_path) as tracker:
        tracker.clear_all_data()
    typer.echo("All data cleared.")
