from __future__ import annotations

import csv
from datetime import datetime, timezone
import io

import pytest

from conftest import make_quiz, mcq, theory
from timed_quiz.core.models import AttemptRecord
from timed_quiz.core.quiz_exporter import build_results_csv, results_filename, save_results_to_file

SUBMITTED_AT = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def _record(theory_pending: bool, student_key: str = "student-1") -> AttemptRecord:
    return AttemptRecord(
        quiz_id="quiz-1",
        class_id="class-1",
        teacher_id="teacher-1",
        attempt_no=1,
        answers=[1, "text"],
        mcq_score=1,
        theory_score=0 if theory_pending else 4,
        final_score=1 if theory_pending else 5,
        theory_pending=theory_pending,
        total_gradable=1,
        total_theory_possible=5,
        total_possible=6,
        submitted_at=SUBMITTED_AT,
        student_key=student_key,
    )


def test_export_refuses_pending_theory_grading():
    quiz = make_quiz([mcq(1), theory()])
    with pytest.raises(ValueError, match="Theory grading is pending"):
        build_results_csv({quiz.id: quiz}, [_record(theory_pending=False), _record(theory_pending=True)])


def test_export_writes_graded_rows():
    quiz = make_quiz([mcq(1), theory()], quiz_number=3)
    document = build_results_csv({quiz.id: quiz}, [_record(theory_pending=False)], {"class-1": "Grade 7"})
    rows = list(csv.DictReader(io.StringIO(document)))
    assert len(rows) == 1
    assert rows[0]["className"] == "Grade 7"
    assert rows[0]["quizTitle"] == "Unit Quiz"
    assert rows[0]["quizNumber"] == "3"
    assert rows[0]["finalScore"] == "5"
    assert rows[0]["theoryPending"] == "No"
    assert rows[0]["submittedAt"] == "2024-05-01T09:30:00+00:00"


def test_results_filename_is_sanitized():
    name = results_filename("Grade 7/B", 2, datetime(2024, 5, 1, 9, 30, 5))
    assert name == "quiz-results-Grade_7_B-quiz-2-2024-05-01T09-30-05.csv"
    assert results_filename(None, None, datetime(2024, 5, 1)) == "quiz-results-all-classes-2024-05-01T00-00-00.csv"


def test_save_results_to_file(tmp_path):
    quiz = make_quiz([mcq(1)])
    record = _record(theory_pending=False)
    target = tmp_path / "exports" / "results.csv"
    save_results_to_file(target, {quiz.id: quiz}, [record])
    assert target.read_text(encoding="utf-8").startswith("className,quizTitle")
    with pytest.raises(ValueError, match="No quiz attempts to export."):
        save_results_to_file(target, {quiz.id: quiz}, [])
