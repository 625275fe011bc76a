from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import make_quiz, mcq, theory
from timed_quiz.core.errors import GradingError
from timed_quiz.core.quiz_manager import QuizManager
from timed_quiz.core.services.scheduler import ManualScheduler


@pytest.fixture
def quiz_manager() -> QuizManager:
    manager = QuizManager(scheduler_factory=ManualScheduler)
    manager.save_quiz(make_quiz([mcq(1), mcq(2), theory(5)]))
    return manager


def _submit(manager: QuizManager, student_key: str = "student-1") -> str:
    manager.start_attempt(student_key, "quiz-1")
    manager.select_option(student_key, 0, 1)
    manager.submit_attempt(student_key)
    return manager.get_session(student_key).attempt_id


def test_grading_uses_quiz_version_of_attempt(quiz_manager):
    attempt_id = _submit(quiz_manager)
    quiz_manager.save_quiz(make_quiz([mcq(1), mcq(2), mcq(3)]))

    graded = quiz_manager.grade_theory(attempt_id, {2: 4})

    assert graded.theory_score == 4
    assert graded.final_score == 5
    assert graded.theory_pending is False


def test_grading_keeps_original_marks_limit(quiz_manager):
    attempt_id = _submit(quiz_manager)
    quiz_manager.save_quiz(make_quiz([mcq(1), mcq(2), theory(10)]))

    with pytest.raises(GradingError):
        quiz_manager.grade_theory(attempt_id, {2: 8})


def test_save_results_writes_named_csv(quiz_manager, tmp_path):
    attempt_id = _submit(quiz_manager)
    with pytest.raises(ValueError, match="Theory grading is pending"):
        quiz_manager.save_results("quiz-1", tmp_path)

    quiz_manager.grade_theory(attempt_id, {2: 3})
    path = quiz_manager.save_results(
        "quiz-1",
        tmp_path,
        class_names={"class-1": "Grade 7"},
        now=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
    )

    assert path == tmp_path / "quiz-results-Grade_7-quiz-1-2024-05-01T09-30-00+00-00.csv"
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert lines[1].startswith("Grade 7,Unit Quiz,1,student-1,1,")


def test_save_results_without_attempts_fails(quiz_manager, tmp_path):
    with pytest.raises(ValueError, match="No quiz attempts to export."):
        quiz_manager.save_results("quiz-1", tmp_path)
