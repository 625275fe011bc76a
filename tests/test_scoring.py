from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import make_quiz, mcq, theory
from timed_quiz.core.errors import GradingError
from timed_quiz.core.models import QuestionScore
from timed_quiz.core.scoring import (
    grade_theory,
    score_answers,
    score_question,
    total_gradable,
    total_possible,
    total_theory_possible,
)
from timed_quiz.core.services.result_store import build_attempt_record


def test_mcq_scores_exact_numeric_match_only():
    question = mcq(2)
    assert score_question(question, 2) == QuestionScore(correct=1, total=1)
    assert score_question(question, 3) == QuestionScore(correct=0, total=1)
    assert score_question(question, None) == QuestionScore(correct=0, total=1)
    assert score_question(question, "2") == QuestionScore(correct=0, total=1)


def test_boolean_answer_never_matches():
    assert score_question(mcq(1), True) == QuestionScore(correct=0, total=1)


def test_theory_is_excluded_from_automatic_scoring():
    assert score_question(theory(5), "anything") == QuestionScore(correct=0, total=0)


def test_totals(scenario_quiz):
    assert total_gradable(scenario_quiz) == 2
    assert total_theory_possible(scenario_quiz) == 5
    assert total_possible(scenario_quiz) == 7


def test_total_possible_counts_mcq_plus_theory_marks():
    quiz = make_quiz([mcq(1), theory(3), theory(10), mcq(4), mcq(2)])
    assert total_possible(quiz) == 3 + 3 + 10


def test_score_answers_scenario(scenario_quiz):
    score = score_answers(scenario_quiz, [1, 3, "x"])
    assert score.mcq_score == 1
    assert score.total_possible == 7
    assert score.theory_pending is True
    assert [s.correct for s in score.question_scores] == [1, 0, 0]


def test_scoring_is_idempotent(scenario_quiz):
    answers = [1, 2, "text"]
    assert score_answers(scenario_quiz, answers) == score_answers(scenario_quiz, answers)


def test_mcq_only_quiz_is_not_pending():
    quiz = make_quiz([mcq(1)])
    assert score_answers(quiz, [None]).theory_pending is False


def _record(quiz, answers):
    score = score_answers(quiz, answers)
    return build_attempt_record(quiz, 1, answers, score, datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_grade_theory_keeps_final_equal_to_sum(scenario_quiz):
    record = _record(scenario_quiz, [1, 3, "x"])
    update = grade_theory(scenario_quiz, record, {2: 4})
    assert update.theory_score == 4
    assert update.final_score == record.mcq_score + 4 == 5
    assert update.theory_pending is False
    assert update.theory_marks == {2: 4}


def test_grade_theory_partial_marks_stay_pending():
    quiz = make_quiz([theory(5), theory(5)])
    record = _record(quiz, ["a", "b"])
    update = grade_theory(quiz, record, {0: 2})
    assert update.theory_pending is True
    assert update.final_score == 2


@pytest.mark.parametrize("marks", [{2: 6}, {2: -1}, {0: 1}, {9: 1}])
def test_grade_theory_rejects_invalid_marks(scenario_quiz, marks):
    record = _record(scenario_quiz, [1, 3, "x"])
    with pytest.raises(GradingError):
        grade_theory(scenario_quiz, record, marks)
