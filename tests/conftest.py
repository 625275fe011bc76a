"""Shared fixtures for the quiz attempt tests."""

from __future__ import annotations

import pytest

from timed_quiz.core.models import (
    AnalyticsDelta,
    AttemptRecord,
    QuestionType,
    Quiz,
    QuizQuestion,
    QuizStatus,
)
from timed_quiz.core.services.result_store import InMemoryResultStore


def mcq(correct_index: int, time_sec: int = 0, prompt: str = "Pick one") -> QuizQuestion:
    return QuizQuestion(
        question_type=QuestionType.MCQ,
        prompt_html=prompt,
        options=["A", "B", "C", "D"],
        correct_index=correct_index,
        max_marks=1,
        question_time_sec=time_sec,
    )


def theory(max_marks: int = 5, time_sec: int = 0, prompt: str = "Explain") -> QuizQuestion:
    return QuizQuestion(
        question_type=QuestionType.THEORY,
        prompt_html=prompt,
        max_marks=max_marks,
        question_time_sec=time_sec,
        model_answer="Model answer",
    )


def make_quiz(questions: list[QuizQuestion], **overrides) -> Quiz:
    values = dict(
        id="quiz-1",
        class_id="class-1",
        teacher_id="teacher-1",
        title="Unit Quiz",
        questions=questions,
        duration_min=1,
        attempt_limit=1,
        anti_cheat_enabled=False,
        accepting_attempts=True,
        status=QuizStatus.PUBLISHED,
    )
    values.update(overrides)
    return Quiz(**values)


class FlakyResultStore(InMemoryResultStore):
    """Result store whose first ``failures`` saves raise."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures
        self.save_calls = 0

    def save_attempt(self, record: AttemptRecord, delta: AnalyticsDelta, quiz: Quiz | None = None) -> str:
        self.save_calls += 1
        if self.save_calls <= self.failures:
            raise ConnectionError("database unavailable")
        return super().save_attempt(record, delta, quiz)


@pytest.fixture
def scenario_quiz() -> Quiz:
    """Two mcq questions (keys 1 and 2) and one 5-mark theory question."""
    return make_quiz([mcq(1), mcq(2), theory(5)])


@pytest.fixture
def store() -> InMemoryResultStore:
    return InMemoryResultStore()
