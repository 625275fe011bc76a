from __future__ import annotations

import pytest

from conftest import make_quiz, mcq, theory
from timed_quiz.core.errors import QuizValidationError
from timed_quiz.core.models import QuestionType, QuizQuestion, QuizStatus
from timed_quiz.core.services.quiz_repository import QuizRepository, validate_questions


def _draft(quiz_id="quiz-1", quiz_number=1, questions=None, class_id="class-1"):
    return make_quiz(
        questions or [mcq(2), theory()],
        id=quiz_id,
        quiz_number=quiz_number,
        class_id=class_id,
        status=QuizStatus.DRAFT,
        accepting_attempts=False,
    )


def test_publish_opens_quiz_for_attempts():
    repository = QuizRepository()
    repository.save_quiz(_draft())
    published = repository.publish("quiz-1")
    assert published.status is QuizStatus.PUBLISHED
    assert published.accepting_attempts is True
    assert repository.get_quiz("quiz-1") is published


def test_accepting_requires_published_quiz():
    repository = QuizRepository()
    repository.save_quiz(_draft())
    with pytest.raises(QuizValidationError, match="Publish quiz first."):
        repository.set_accepting_attempts("quiz-1", True)
    repository.publish("quiz-1")
    assert repository.set_accepting_attempts("quiz-1", False).accepting_attempts is False


def test_archived_quizzes_are_hidden_and_restorable():
    repository = QuizRepository()
    repository.save_quiz(_draft("quiz-b", quiz_number=2))
    repository.save_quiz(_draft("quiz-a", quiz_number=1))
    repository.save_quiz(_draft("quiz-other", class_id="class-2"))
    repository.archive("quiz-b")
    assert [q.id for q in repository.quizzes_for_class("class-1")] == ["quiz-a"]

    restored = repository.restore("quiz-b")
    assert restored.status is QuizStatus.DRAFT
    assert [q.id for q in repository.quizzes_for_class("class-1")] == ["quiz-a", "quiz-b"]
    with pytest.raises(QuizValidationError):
        repository.restore("quiz-a")


def test_saved_versions_do_not_leak_into_earlier_copies():
    repository = QuizRepository()
    original = repository.save_quiz(_draft())
    repository.save_quiz(_draft(questions=[mcq(3)]))
    assert original.questions[0].correct_index == 2
    assert repository.get_quiz("quiz-1").questions[0].correct_index == 3


def test_unknown_quiz_raises_key_error():
    repository = QuizRepository()
    with pytest.raises(KeyError):
        repository.get_quiz("missing")
    assert not repository.has_quiz("missing")


def test_drafts_only_need_a_question():
    repository = QuizRepository()
    blank = QuizQuestion(question_type=QuestionType.MCQ, prompt_html="", options=["", "", "", ""])
    repository.save_quiz(_draft(questions=[blank]))
    with pytest.raises(QuizValidationError, match="Q1: prompt is required."):
        repository.publish("quiz-1")
    with pytest.raises(QuizValidationError, match="Add at least one question."):
        repository.save_quiz(make_quiz([], status=QuizStatus.DRAFT))


@pytest.mark.parametrize(
    "question, message",
    [
        (QuizQuestion(QuestionType.MCQ, "Pick", ["A", "", "C", "D"], 1), "Q1: all 4 MCQ options are required."),
        (QuizQuestion(QuestionType.MCQ, "Pick", ["A", "B", "C", "D"], 5), "Q1: MCQ correct index must be 1-4."),
        (QuizQuestion(QuestionType.MCQ, "Pick", ["A", "B", "C", "D"], 1, max_marks=2), "Q1: MCQ marks must remain 1."),
        (QuizQuestion(QuestionType.THEORY, "Explain", max_marks=0), "Q1: short question marks must be >= 1."),
    ],
)
def test_strict_validation_messages(question, message):
    with pytest.raises(QuizValidationError) as excinfo:
        validate_questions([question])
    assert str(excinfo.value) == message
