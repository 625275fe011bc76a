"""Result aggregation contract and an in-memory implementation.

The document database that stores attempts in production is an external
collaborator. ``ResultAggregator`` is the boundary the attempt session talks
to; ``InMemoryResultStore`` keeps everything in process for the HTTP server,
the desktop window and tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime
from threading import Lock
from typing import Any, Protocol
from uuid import uuid4

from timed_quiz.constants.quiz_constants import (
    FIRST_QUIZ_BADGE,
    QUIZ_MASTER_BADGE,
    QUIZ_MASTER_THRESHOLD,
    QUIZ_SUBMISSION_POINTS,
)
from timed_quiz.core.models import (
    AnalyticsDelta,
    AttemptRecord,
    AttemptScore,
    QuestionStat,
    Quiz,
    QuizAnalytics,
    StudentProgress,
    TheoryGradingUpdate,
)


class ResultAggregator(Protocol):
    """Persists a sealed attempt together with its analytics contribution."""

    def save_attempt(self, record: AttemptRecord, delta: AnalyticsDelta, quiz: Quiz | None = None) -> str:
        """Store both atomically and return the new attempt id.

        ``quiz`` is the version the attempt was taken on; grading validates
        marks against it rather than against later edits.
        """
        ...


def build_attempt_record(
    quiz: Quiz,
    attempt_no: int,
    answers: Sequence[Any],
    score: AttemptScore,
    submitted_at: datetime,
    student_key: str | None = None,
    violations: int = 0,
) -> AttemptRecord:
    return AttemptRecord(
        quiz_id=quiz.id,
        class_id=quiz.class_id,
        teacher_id=quiz.teacher_id,
        attempt_no=attempt_no,
        answers=list(answers),
        mcq_score=score.mcq_score,
        theory_score=0,
        final_score=score.mcq_score,
        theory_pending=score.theory_pending,
        total_gradable=score.total_gradable,
        total_theory_possible=score.total_theory_possible,
        total_possible=score.total_possible,
        submitted_at=submitted_at,
        student_key=student_key,
        violations=violations,
    )


def build_analytics_delta(quiz: Quiz, score: AttemptScore) -> AnalyticsDelta:
    # Every question counts one more response; theory questions never add correct.
    return AnalyticsDelta(
        quiz_id=quiz.id,
        class_id=quiz.class_id,
        teacher_id=quiz.teacher_id,
        score=score.mcq_score,
        total_gradable=score.total_gradable,
        question_increments=[QuestionStat(correct=s.correct, total=1) for s in score.question_scores],
    )


def _badges_for(progress: StudentProgress) -> list[str]:
    badges: list[str] = []
    if progress.quiz_count >= 1:
        badges.append(FIRST_QUIZ_BADGE)
    if progress.quiz_count >= QUIZ_MASTER_THRESHOLD:
        badges.append(QUIZ_MASTER_BADGE)
    return badges


class InMemoryResultStore:
    """Thread-safe store for attempts, analytics and student progress."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._attempts: dict[str, AttemptRecord] = {}
        self._analytics: dict[str, QuizAnalytics] = {}
        self._progress: dict[tuple[str, str], StudentProgress] = {}
        self._attempt_quizzes: dict[str, Quiz] = {}

    def save_attempt(self, record: AttemptRecord, delta: AnalyticsDelta, quiz: Quiz | None = None) -> str:
        with self._lock:
            attempt_id = uuid4().hex
            self._attempts[attempt_id] = record
            if quiz is not None:
                self._attempt_quizzes[attempt_id] = quiz

            analytics = self._analytics.get(delta.quiz_id)
            if analytics is None:
                analytics = QuizAnalytics(
                    quiz_id=delta.quiz_id,
                    class_id=delta.class_id,
                    teacher_id=delta.teacher_id,
                )
                self._analytics[delta.quiz_id] = analytics
            analytics.apply(delta)

            if record.student_key is not None:
                self._record_progress(record.class_id, record.student_key)
            return attempt_id

    def _record_progress(self, class_id: str, student_key: str) -> None:
        key = (class_id, student_key)
        progress = self._progress.get(key)
        if progress is None:
            progress = StudentProgress(class_id=class_id, student_key=student_key)
            self._progress[key] = progress
        progress.points += QUIZ_SUBMISSION_POINTS
        progress.quiz_count += 1
        progress.badges = _badges_for(progress)

    def get_attempt(self, attempt_id: str) -> AttemptRecord:
        with self._lock:
            try:
                return self._attempts[attempt_id]
            except KeyError:
                raise KeyError(f"Unknown attempt {attempt_id}") from None

    def quiz_for_attempt(self, attempt_id: str) -> Quiz | None:
        """The quiz version an attempt was taken on, if it was recorded."""
        with self._lock:
            return self._attempt_quizzes.get(attempt_id)

    def attempts_for_quiz(self, quiz_id: str) -> list[tuple[str, AttemptRecord]]:
        with self._lock:
            return [(aid, r) for aid, r in self._attempts.items() if r.quiz_id == quiz_id]

    def count_attempts(self, quiz_id: str, student_key: str) -> int:
        with self._lock:
            return sum(
                1
                for r in self._attempts.values()
                if r.quiz_id == quiz_id and r.student_key == student_key
            )

    def get_analytics(self, quiz_id: str) -> QuizAnalytics | None:
        with self._lock:
            analytics = self._analytics.get(quiz_id)
            if analytics is None:
                return None
            return replace(
                analytics,
                question_stats=[replace(s) for s in analytics.question_stats],
            )

    def get_progress(self, class_id: str, student_key: str) -> StudentProgress | None:
        with self._lock:
            progress = self._progress.get((class_id, student_key))
            return None if progress is None else replace(progress, badges=list(progress.badges))

    def apply_theory_grading(self, attempt_id: str, update: TheoryGradingUpdate) -> AttemptRecord:
        """Write teacher marks onto a sealed attempt; answers are never touched."""
        with self._lock:
            record = self._attempts.get(attempt_id)
            if record is None:
                raise KeyError(f"Unknown attempt {attempt_id}")
            updated = replace(
                record,
                theory_marks=dict(update.theory_marks),
                theory_score=update.theory_score,
                final_score=update.final_score,
                theory_pending=update.theory_pending,
                reviewed_by=update.reviewed_by,
            )
            self._attempts[attempt_id] = updated
            return updated
