"""Single-shot timer scheduling with cancellable handles."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after a delay; the returned handle cancels it."""

    def schedule(self, delay_seconds: float, callback: Callback) -> TimerHandle: ...

    def now(self) -> datetime: ...

    def cancel_all(self) -> None: ...


class ThreadingScheduler:
    """Schedules callbacks on daemon ``threading.Timer`` threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timers: set[threading.Timer] = set()

    def now(self) -> datetime:
        return datetime.now()

    def schedule(self, delay_seconds: float, callback: Callback) -> TimerHandle:
        timer: threading.Timer

        def _run() -> None:
            with self._lock:
                self._timers.discard(timer)
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback failed.")

        timer = threading.Timer(max(delay_seconds, 0.0), _run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return _ThreadingHandle(self, timer)

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def _forget(self, timer: threading.Timer) -> None:
        with self._lock:
            self._timers.discard(timer)


class _ThreadingHandle:
    def __init__(self, scheduler: ThreadingScheduler, timer: threading.Timer) -> None:
        self._scheduler = scheduler
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()
        self._scheduler._forget(self._timer)


class ManualScheduler:
    """Simulated clock for deterministic tests and embedding.

    Time only moves through :meth:`advance`; due callbacks fire in order with
    the clock set to their due time.
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2024, 1, 1, 9, 0, 0)
        self._queue: list[tuple[datetime, int, _ManualHandle]] = []
        self._counter = itertools.count()

    def now(self) -> datetime:
        return self._now

    def schedule(self, delay_seconds: float, callback: Callback) -> TimerHandle:
        due = self._now + timedelta(seconds=max(delay_seconds, 0.0))
        handle = _ManualHandle(callback, due)
        heapq.heappush(self._queue, (due, next(self._counter), handle))
        return handle

    @property
    def pending(self) -> list["_ManualHandle"]:
        return [handle for _, _, handle in sorted(self._queue) if not handle.cancelled]

    def cancel_all(self) -> None:
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()

    def advance(self, seconds: float) -> None:
        target = self._now + timedelta(seconds=seconds)
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            handle.callback()
        self._now = target


class _ManualHandle:
    def __init__(self, callback: Callback, due: datetime) -> None:
        self.callback = callback
        self.due = due
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
