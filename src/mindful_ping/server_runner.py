"""Run the tracker API under uvicorn."""

from __future__ import annotations

import logging
import socket
import threading
import time
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    open_browser: bool = False,
    log_level: str = "info",
) -> None:
    """Serve the tracker until interrupted, optionally opening the API docs."""
    app = create_app(db_path=db_path or get_db_path())

    if open_browser:
        threading.Thread(
            target=open_docs_when_listening, args=(host, port), daemon=True
        ).start()

    logger.info("Serving tracker API on http://%s:%s", host, port)
    # log_config=None keeps uvicorn on the root handlers (stderr and log file).
    uvicorn.run(app, host=host, port=port, log_level=log_level, log_config=None)


def open_docs_when_listening(host: str, port: int, timeout: float = 10.0) -> bool:
    """Open ``/docs`` once ``host:port`` accepts connections."""
    deadline = time.monotonic() + timeout
    while not _is_listening(host, port):
        if time.monotonic() >= deadline:
            logger.warning("API on %s:%s did not come up; not opening docs.", host, port)
            return False
        time.sleep(0.2)

    url = f"http://{host}:{port}/docs"
    try:
        webbrowser.open(url)
    except Exception:
        logger.exception("Failed to launch browser for %s", url)
        return False
    return True


def _is_listening(host: str, port: int) -> bool:
    try:
        with socket.create_connection((host, port), timeout=0.5):
            return True
    except OSError:
        return False
