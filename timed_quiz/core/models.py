"""Domain models for quizzes, attempts and analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from timed_quiz.constants.quiz_constants import (
    DEFAULT_ATTEMPT_LIMIT,
    DEFAULT_DURATION_MINUTES,
    DEFAULT_THEORY_MARKS,
    MCQ_MARKS,
    MCQ_OPTION_COUNT,
)


class QuestionType(str, Enum):
    MCQ = "mcq"
    THEORY = "theory"


class QuizStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def _normalize_correct_index(raw: Any) -> int:
    """Map a stored answer key to 1..4, accepting legacy 0-based keys."""
    if isinstance(raw, bool):
        return 1
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return 1
    if not number.is_integer():
        return 1
    value = int(number)
    if 1 <= value <= MCQ_OPTION_COUNT:
        return value
    if 0 <= value < MCQ_OPTION_COUNT:
        return value + 1
    return 1


def _as_int(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


@dataclass(slots=True)
class QuizQuestion:
    """Multiple-choice or short-answer (theory) question."""

    question_type: QuestionType
    prompt_html: str
    options: list[str] = field(default_factory=list)
    correct_index: int | None = None  # 1-based, mcq only
    max_marks: int = MCQ_MARKS
    question_time_sec: int = 0  # 0 = no per-question limit
    model_answer: str = ""
    image_data_url: str = ""
    image_name: str = ""

    @property
    def is_mcq(self) -> bool:
        return self.question_type is QuestionType.MCQ

    @property
    def is_theory(self) -> bool:
        return self.question_type is QuestionType.THEORY

    @property
    def time_budget_seconds(self) -> int:
        return max(0, self.question_time_sec)

    @classmethod
    def from_document(cls, raw: dict[str, Any]) -> "QuizQuestion":
        """Build a question from a stored document, normalising legacy shapes."""
        question_type = (
            QuestionType.THEORY if raw.get("type") == QuestionType.THEORY.value else QuestionType.MCQ
        )
        raw_options = raw.get("options")
        options = [str(o or "") for o in raw_options] if isinstance(raw_options, list) else []
        options = (options[:MCQ_OPTION_COUNT] + [""] * MCQ_OPTION_COUNT)[:MCQ_OPTION_COUNT]
        if question_type is QuestionType.MCQ:
            max_marks = MCQ_MARKS
        else:
            parsed = _as_int(raw.get("maxMarks"), 0)
            max_marks = parsed if parsed > 0 else DEFAULT_THEORY_MARKS
        return cls(
            question_type=question_type,
            prompt_html=raw.get("promptHtml") or raw.get("text") or "",
            options=options,
            correct_index=_normalize_correct_index(raw.get("correctIndex")),
            max_marks=max_marks,
            question_time_sec=max(0, _as_int(raw.get("questionTimeSec"), 0)),
            model_answer=raw.get("theoryAnswer") or "",
            image_data_url=raw.get("imageDataUrl") or "",
            image_name=raw.get("imageName") or "",
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "type": self.question_type.value,
            "promptHtml": self.prompt_html,
            "options": list(self.options),
            "correctIndex": self.correct_index,
            "theoryAnswer": self.model_answer,
            "imageDataUrl": self.image_data_url,
            "imageName": self.image_name,
            "questionTimeSec": self.question_time_sec,
            "maxMarks": self.max_marks,
        }


@dataclass(slots=True)
class Quiz:
    """A quiz definition as stored by the teacher portal."""

    id: str
    class_id: str
    teacher_id: str
    title: str
    questions: list[QuizQuestion]
    quiz_number: int = 1
    duration_min: int = DEFAULT_DURATION_MINUTES
    attempt_limit: int = DEFAULT_ATTEMPT_LIMIT
    anti_cheat_enabled: bool = False
    accepting_attempts: bool = False
    status: QuizStatus = QuizStatus.DRAFT

    @property
    def total_seconds(self) -> int:
        return max(1, self.duration_min) * 60

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def has_theory_questions(self) -> bool:
        return any(q.is_theory for q in self.questions)

    @classmethod
    def from_document(cls, quiz_id: str, raw: dict[str, Any]) -> "Quiz":
        try:
            status = QuizStatus(raw.get("status") or QuizStatus.DRAFT.value)
        except ValueError:
            status = QuizStatus.DRAFT
        return cls(
            id=quiz_id,
            class_id=raw.get("classId", ""),
            teacher_id=raw.get("teacherId", ""),
            title=raw.get("title", ""),
            quiz_number=_as_int(raw.get("quizNumber"), 1),
            duration_min=_as_int(raw.get("durationMin"), 0) or DEFAULT_DURATION_MINUTES,
            attempt_limit=_as_int(raw.get("attemptLimit"), 0) or DEFAULT_ATTEMPT_LIMIT,
            anti_cheat_enabled=bool(raw.get("antiCheatEnabled")),
            accepting_attempts=bool(raw.get("acceptingAttempts")),
            status=status,
            questions=[QuizQuestion.from_document(q) for q in raw.get("questions") or []],
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "classId": self.class_id,
            "teacherId": self.teacher_id,
            "title": self.title,
            "quizNumber": self.quiz_number,
            "durationMin": self.duration_min,
            "attemptLimit": self.attempt_limit,
            "antiCheatEnabled": self.anti_cheat_enabled,
            "acceptingAttempts": self.accepting_attempts,
            "status": self.status.value,
            "questions": [q.to_document() for q in self.questions],
        }


@dataclass(slots=True)
class QuestionScore:
    """Automatic grade contribution of one answer."""

    correct: int
    total: int


@dataclass(slots=True)
class AttemptScore:
    """Automatic scoring of a sealed set of answers."""

    mcq_score: int
    total_gradable: int
    total_theory_possible: int
    total_possible: int
    theory_pending: bool
    question_scores: list[QuestionScore]


@dataclass(slots=True)
class AttemptRecord:
    """Persisted result of a submitted attempt."""

    quiz_id: str
    class_id: str
    teacher_id: str
    attempt_no: int
    answers: list[Any]
    mcq_score: int
    theory_score: float
    final_score: float
    theory_pending: bool
    total_gradable: int
    total_theory_possible: int
    total_possible: int
    submitted_at: datetime
    student_key: str | None = None
    violations: int = 0
    theory_marks: dict[int, float] = field(default_factory=dict)
    reviewed_by: str | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "quizId": self.quiz_id,
            "classId": self.class_id,
            "teacherId": self.teacher_id,
            "attemptNo": self.attempt_no,
            "answers": list(self.answers),
            "mcqScore": self.mcq_score,
            "theoryScore": self.theory_score,
            "finalScore": self.final_score,
            "theoryPending": self.theory_pending,
            "totalGradable": self.total_gradable,
            "totalTheoryPossible": self.total_theory_possible,
            "totalPossible": self.total_possible,
            "submittedAt": self.submitted_at.isoformat(),
        }
        if self.student_key is not None:
            document["studentKey"] = self.student_key
        if self.violations:
            document["violations"] = self.violations
        if self.theory_marks:
            document["theoryMarks"] = {str(k): v for k, v in self.theory_marks.items()}
        if self.reviewed_by is not None:
            document["reviewedBy"] = self.reviewed_by
        return document


@dataclass(slots=True)
class QuestionStat:
    """Running per-question totals across all attempts of a quiz."""

    correct: int = 0
    total: int = 0


@dataclass(slots=True)
class AnalyticsDelta:
    """Incremental analytics contribution of a single attempt."""

    quiz_id: str
    class_id: str
    teacher_id: str
    score: int
    total_gradable: int
    question_increments: list[QuestionStat]


@dataclass(slots=True)
class QuizAnalytics:
    """Accumulated analytics for one quiz."""

    quiz_id: str
    class_id: str
    teacher_id: str
    attempts: int = 0
    total_score: int = 0
    total_gradable: int = 0
    question_stats: list[QuestionStat] = field(default_factory=list)

    def apply(self, delta: AnalyticsDelta) -> None:
        """Add one attempt's contribution without recomputing past attempts."""
        if len(self.question_stats) < len(delta.question_increments):
            missing = len(delta.question_increments) - len(self.question_stats)
            self.question_stats.extend(QuestionStat() for _ in range(missing))
        for stat, increment in zip(self.question_stats, delta.question_increments):
            stat.correct += increment.correct
            stat.total += increment.total
        self.attempts += 1
        self.total_score += delta.score
        self.total_gradable = delta.total_gradable


@dataclass(slots=True)
class TheoryGradingUpdate:
    """Teacher-awarded theory marks applied to a sealed attempt."""

    theory_marks: dict[int, float]
    theory_score: float
    final_score: float
    theory_pending: bool
    reviewed_by: str | None = None


@dataclass(slots=True)
class StudentProgress:
    """Per-class gamification totals for a student."""

    class_id: str
    student_key: str
    points: int = 0
    quiz_count: int = 0
    badges: list[str] = field(default_factory=list)
