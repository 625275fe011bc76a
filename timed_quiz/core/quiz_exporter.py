"""Utilities for exporting submitted attempt results to CSV."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import csv
from datetime import datetime
import io
from pathlib import Path
import re

from timed_quiz.core.models import AttemptRecord, Quiz

RESULT_COLUMNS = (
    "className",
    "quizTitle",
    "quizNumber",
    "studentKey",
    "attemptNo",
    "submittedAt",
    "mcqScore",
    "theoryScore",
    "finalScore",
    "totalPossible",
    "theoryPending",
)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def build_results_csv(
    quizzes: Mapping[str, Quiz],
    attempts: Sequence[AttemptRecord],
    class_names: Mapping[str, str] | None = None,
) -> str:
    """Serialize attempts as CSV; refuses while theory grading is pending."""
    class_names = class_names or {}
    for record in attempts:
        quiz = quizzes.get(record.quiz_id)
        if quiz is not None and quiz.has_theory_questions() and record.theory_pending:
            raise ValueError(
                "Theory grading is pending for some submissions. "
                "Export after all theory marks are saved."
            )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(RESULT_COLUMNS)
    for record in attempts:
        quiz = quizzes.get(record.quiz_id)
        writer.writerow(
            [
                class_names.get(record.class_id, record.class_id),
                quiz.title if quiz is not None else record.quiz_id,
                quiz.quiz_number if quiz is not None else "",
                record.student_key or "",
                record.attempt_no,
                record.submitted_at.isoformat(),
                record.mcq_score,
                record.theory_score,
                record.final_score,
                record.total_possible,
                "Yes" if record.theory_pending else "No",
            ]
        )
    return buffer.getvalue()


def results_filename(class_name: str | None, quiz_number: int | None, now: datetime) -> str:
    class_suffix = f"-{_UNSAFE_FILENAME_CHARS.sub('_', class_name)}" if class_name else "-all-classes"
    quiz_suffix = f"-quiz-{quiz_number}" if quiz_number is not None else ""
    stamp = now.isoformat(timespec="seconds").replace(":", "-")
    return f"quiz-results{class_suffix}{quiz_suffix}-{stamp}.csv"


def save_results_to_file(
    file_path: Path,
    quizzes: Mapping[str, Quiz],
    attempts: Sequence[AttemptRecord],
    class_names: Mapping[str, str] | None = None,
) -> None:
    """Write the results CSV to disk, creating parent folders as needed."""
    if not attempts:
        raise ValueError("No quiz attempts to export.")

    document = build_results_csv(quizzes, attempts, class_names)
    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(document, encoding="utf-8")
