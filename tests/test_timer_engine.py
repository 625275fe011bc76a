from __future__ import annotations

import pytest

from timed_quiz.core.services.scheduler import ManualScheduler
from timed_quiz.core.services.timer_engine import TickOutcome, TimerEngine


def test_whole_attempt_expires_after_duration():
    engine = TimerEngine(total_seconds=60, question_budgets=[0, 0])
    outcomes = [engine.tick(0).outcome for _ in range(60)]
    assert outcomes[:59] == [TickOutcome.RUNNING] * 59
    assert outcomes[59] is TickOutcome.EXPIRED
    assert engine.seconds_left == 0
    assert not engine.is_running()


def test_question_budget_advances_to_next_question():
    engine = TimerEngine(total_seconds=60, question_budgets=[3, 5])
    assert engine.tick(0).outcome is TickOutcome.RUNNING
    assert engine.tick(0).outcome is TickOutcome.RUNNING
    result = engine.tick(0)
    assert result.outcome is TickOutcome.ADVANCE
    assert result.question_index == 1
    assert result.question_seconds_left == 5


def test_last_question_budget_forces_expiry():
    engine = TimerEngine(total_seconds=60, question_budgets=[0, 2])
    engine.tick(1)
    assert engine.tick(1).outcome is TickOutcome.EXPIRED


def test_whole_attempt_timeout_wins_tie():
    engine = TimerEngine(total_seconds=2, question_budgets=[2, 10])
    engine.tick(0)
    assert engine.tick(0).outcome is TickOutcome.EXPIRED


def test_zero_budget_never_advances():
    engine = TimerEngine(total_seconds=100, question_budgets=[0, 0])
    for _ in range(50):
        assert engine.tick(0).outcome is TickOutcome.RUNNING
    assert engine.question_seconds_left(0) == 0


def test_only_active_question_counter_ticks():
    engine = TimerEngine(total_seconds=100, question_budgets=[10, 10])
    engine.tick(0)
    engine.tick(0)
    engine.tick(1)
    assert engine.question_seconds_left(0) == 8
    assert engine.question_seconds_left(1) == 9
    engine.tick(0)
    assert engine.question_seconds_left(0) == 7
    assert engine.seconds_left == 96


def test_exhausted_question_advances_again_when_revisited():
    engine = TimerEngine(total_seconds=100, question_budgets=[1, 0])
    assert engine.tick(0).outcome is TickOutcome.ADVANCE
    assert engine.tick(0).outcome is TickOutcome.ADVANCE


def test_stopped_engine_does_not_count_down():
    engine = TimerEngine(total_seconds=10, question_budgets=[0])
    engine.stop()
    assert engine.tick(0).outcome is TickOutcome.EXPIRED
    assert engine.seconds_left == 10


def test_duration_must_be_positive():
    with pytest.raises(ValueError):
        TimerEngine(total_seconds=0, question_budgets=[0])


def test_manual_scheduler_stops_firing_after_stop():
    scheduler = ManualScheduler()
    calls: list[int] = []

    def callback() -> None:
        calls.append(1)
        if len(calls) == 3:
            scheduler.stop()

    scheduler.start(callback)
    assert scheduler.advance(10) == 3
    assert not scheduler.is_running()
