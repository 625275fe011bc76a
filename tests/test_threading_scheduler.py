from __future__ import annotations

from threading import Barrier, Event, Thread
import time

import pytest

from conftest import make_quiz, mcq
from timed_quiz.core.services.attempt_session import AttemptSession, AttemptState, SubmitReason
from timed_quiz.core.services.scheduler import ThreadingScheduler

SUBMITTERS = 8


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_scheduler_ticks_until_stopped():
    scheduler = ThreadingScheduler(interval=0.001)
    ticked = Event()
    scheduler.start(ticked.set)
    try:
        assert ticked.wait(2.0)
        assert scheduler.is_running()
        with pytest.raises(RuntimeError):
            scheduler.start(ticked.set)
    finally:
        scheduler.stop()
    assert not scheduler.is_running()


def test_failing_callback_stops_timer():
    scheduler = ThreadingScheduler(interval=0.001)
    calls: list[int] = []

    def callback() -> None:
        calls.append(1)
        raise RuntimeError("boom")

    scheduler.start(callback)
    assert _wait_for(lambda: not scheduler.is_running())
    time.sleep(0.02)
    assert len(calls) == 1


def test_threaded_expiry_submits_attempt(store):
    quiz = make_quiz([mcq(1)])
    session = AttemptSession(store, ThreadingScheduler(interval=0.001), student_key="student-1")
    session.start(quiz, 0)

    assert _wait_for(lambda: session.state is AttemptState.SUBMITTED)
    assert session.submit_reason is SubmitReason.TIME_EXPIRED
    assert store.count_attempts(quiz.id, "student-1") == 1


def test_concurrent_submits_save_once(store):
    quiz = make_quiz([mcq(1), mcq(2)])
    session = AttemptSession(store, ThreadingScheduler(interval=0.001), student_key="student-1")
    session.start(quiz, 0)
    session.select_option(0, 1)

    barrier = Barrier(SUBMITTERS)
    results: list[object] = []

    def submit() -> None:
        barrier.wait()
        results.append(session.submit())

    threads = [Thread(target=submit) for _ in range(SUBMITTERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5.0)

    assert _wait_for(lambda: session.state is AttemptState.SUBMITTED)
    assert len(results) == SUBMITTERS
    assert sum(1 for result in results if result is not None) <= 1
    assert store.count_attempts(quiz.id, "student-1") == 1
    assert store.get_analytics(quiz.id).attempts == 1
