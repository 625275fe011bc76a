"""Pure scoring rules for quiz attempts.

Multiple-choice answers are graded automatically; theory answers contribute
nothing until a teacher saves marks for them via :func:`grade_theory`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from timed_quiz.core.errors import GradingError
from timed_quiz.core.models import (
    AttemptRecord,
    AttemptScore,
    QuestionScore,
    Quiz,
    QuizQuestion,
    TheoryGradingUpdate,
)


def score_question(question: QuizQuestion, answer: Any) -> QuestionScore:
    """Return the automatic grade contribution of ``answer``."""
    if question.is_theory:
        return QuestionScore(correct=0, total=0)
    is_number = isinstance(answer, int) and not isinstance(answer, bool)
    correct = 1 if is_number and answer == question.correct_index else 0
    return QuestionScore(correct=correct, total=1)


def total_gradable(quiz: Quiz) -> int:
    return sum(1 for q in quiz.questions if q.is_mcq)


def total_theory_possible(quiz: Quiz) -> int:
    return sum(q.max_marks for q in quiz.questions if q.is_theory)


def total_possible(quiz: Quiz) -> int:
    return total_gradable(quiz) + total_theory_possible(quiz)


def score_answers(quiz: Quiz, answers: Sequence[Any]) -> AttemptScore:
    """Score every question of ``quiz`` against the sealed ``answers``."""
    question_scores = [
        score_question(question, answers[i] if i < len(answers) else None)
        for i, question in enumerate(quiz.questions)
    ]
    return AttemptScore(
        mcq_score=sum(s.correct for s in question_scores),
        total_gradable=total_gradable(quiz),
        total_theory_possible=total_theory_possible(quiz),
        total_possible=total_possible(quiz),
        theory_pending=quiz.has_theory_questions(),
        question_scores=question_scores,
    )


def grade_theory(
    quiz: Quiz,
    record: AttemptRecord,
    marks: Mapping[int, float],
    reviewed_by: str | None = None,
) -> TheoryGradingUpdate:
    """Validate teacher marks and compute the resulting score fields.

    Marks already saved on ``record`` are kept unless ``marks`` overrides them.
    """
    theory_marks = dict(record.theory_marks)
    for raw_index, value in marks.items():
        index = int(raw_index)
        if not 0 <= index < quiz.question_count or not quiz.questions[index].is_theory:
            raise GradingError(f"Q{index + 1} is not a theory question.")
        maximum = quiz.questions[index].max_marks
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= maximum:
            raise GradingError(f"Invalid marks for Q{index + 1}. Use 0 to {maximum}.")
        theory_marks[index] = value

    theory_score = sum(theory_marks.values())
    pending = any(
        question.is_theory and i not in theory_marks
        for i, question in enumerate(quiz.questions)
    )
    return TheoryGradingUpdate(
        theory_marks=theory_marks,
        theory_score=theory_score,
        final_score=record.mcq_score + theory_score,
        theory_pending=pending,
        reviewed_by=reviewed_by,
    )
