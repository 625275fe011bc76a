"""Service for storing quizzes and managing their publication lifecycle."""

from __future__ import annotations

from dataclasses import replace

from timed_quiz.constants.quiz_constants import MCQ_MARKS, MCQ_OPTION_COUNT
from timed_quiz.core.errors import QuizValidationError
from timed_quiz.core.models import Quiz, QuizQuestion, QuizStatus


class QuizRepository:
    """Holds quiz definitions keyed by id.

    Stored quizzes are replaced rather than mutated, so a session that started
    against one version keeps seeing that version.
    """

    def __init__(self) -> None:
        self._quizzes: dict[str, Quiz] = {}

    def save_quiz(self, quiz: Quiz) -> Quiz:
        """Store a quiz (new or edited); drafts only need at least one question."""
        validate_questions(quiz.questions, strict=quiz.status is QuizStatus.PUBLISHED)
        stored = replace(quiz, questions=[self._prepare_question(q) for q in quiz.questions])
        self._quizzes[quiz.id] = stored
        return stored

    def get_quiz(self, quiz_id: str) -> Quiz:
        try:
            return self._quizzes[quiz_id]
        except KeyError:
            raise KeyError(f"Unknown quiz {quiz_id}") from None

    def has_quiz(self, quiz_id: str) -> bool:
        return quiz_id in self._quizzes

    def quizzes_for_class(self, class_id: str) -> list[Quiz]:
        """Quizzes visible to students of a class (archived ones are hidden)."""
        return sorted(
            (q for q in self._quizzes.values() if q.class_id == class_id and q.status is not QuizStatus.ARCHIVED),
            key=lambda q: q.quiz_number,
        )

    # --- Lifecycle ---

    def publish(self, quiz_id: str) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        validate_questions(quiz.questions, strict=True)
        return self._store(replace(quiz, status=QuizStatus.PUBLISHED, accepting_attempts=True))

    def unpublish(self, quiz_id: str) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        return self._store(replace(quiz, status=QuizStatus.DRAFT, accepting_attempts=False))

    def set_accepting_attempts(self, quiz_id: str, accepting: bool) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        if accepting and quiz.status is not QuizStatus.PUBLISHED:
            raise QuizValidationError("Publish quiz first.")
        return self._store(replace(quiz, accepting_attempts=accepting))

    def archive(self, quiz_id: str) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        return self._store(replace(quiz, status=QuizStatus.ARCHIVED, accepting_attempts=False))

    def restore(self, quiz_id: str) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        if quiz.status is not QuizStatus.ARCHIVED:
            raise QuizValidationError("Only archived quizzes can be restored.")
        return self._store(replace(quiz, status=QuizStatus.DRAFT))

    def _store(self, quiz: Quiz) -> Quiz:
        self._quizzes[quiz.id] = quiz
        return quiz

    @staticmethod
    def _prepare_question(question: QuizQuestion) -> QuizQuestion:
        """Normalise text fields before storage."""
        return replace(
            question,
            prompt_html=question.prompt_html.strip(),
            options=[option.strip() for option in question.options],
            question_time_sec=max(0, question.question_time_sec),
        )


def validate_questions(questions: list[QuizQuestion], strict: bool = True) -> None:
    """Raise QuizValidationError when questions are not ready to be attempted."""
    if not questions:
        raise QuizValidationError("Add at least one question.")
    if not strict:
        return
    for number, question in enumerate(questions, start=1):
        if not question.prompt_html.strip():
            raise QuizValidationError(f"Q{number}: prompt is required.")
        if question.is_mcq:
            if len(question.options) != MCQ_OPTION_COUNT or any(not o.strip() for o in question.options):
                raise QuizValidationError(f"Q{number}: all {MCQ_OPTION_COUNT} MCQ options are required.")
            if question.correct_index is None or not 1 <= question.correct_index <= MCQ_OPTION_COUNT:
                raise QuizValidationError(f"Q{number}: MCQ correct index must be 1-{MCQ_OPTION_COUNT}.")
            if question.max_marks != MCQ_MARKS:
                raise QuizValidationError(f"Q{number}: MCQ marks must remain {MCQ_MARKS}.")
        elif question.max_marks < 1:
            raise QuizValidationError(f"Q{number}: short question marks must be >= 1.")
