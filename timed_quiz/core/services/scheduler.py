"""Tick drivers that call an attempt's one-second callback."""

from __future__ import annotations

from collections.abc import Callable
import logging
from threading import Event, Lock, Thread
from typing import Protocol

from timed_quiz.constants.quiz_constants import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class TickScheduler(Protocol):
    """Invokes a callback once per interval until stopped."""

    def start(self, callback: TickCallback) -> None: ...

    def stop(self) -> None: ...


class ManualScheduler:
    """Scheduler driven explicitly, for simulated time."""

    def __init__(self) -> None:
        self._callback: TickCallback | None = None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    def is_running(self) -> bool:
        return self._callback is not None

    def advance(self, ticks: int = 1) -> int:
        """Fire up to ``ticks`` callbacks; returns how many actually fired."""
        fired = 0
        for _ in range(ticks):
            if self._callback is None:
                break
            self._callback()
            fired += 1
        return fired


class ThreadingScheduler:
    """Background daemon thread that ticks every ``interval`` seconds."""

    def __init__(self, interval: float = TICK_INTERVAL_SECONDS, name: str = "QuizAttemptTimer") -> None:
        self._interval = interval
        self._name = name
        self._stop_event = Event()
        self._thread: Thread | None = None
        self._lock = Lock()

    def start(self, callback: TickCallback) -> None:
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("Scheduler already started.")
            stop_event = Event()
            self._stop_event = stop_event

            def run_timer() -> None:
                while not stop_event.wait(self._interval):
                    try:
                        callback()
                    except Exception:
                        logger.exception("Tick callback failed; stopping timer")
                        stop_event.set()

            self._thread = Thread(target=run_timer, name=self._name, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            self._stop_event.set()
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()
