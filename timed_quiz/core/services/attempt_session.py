"""State machine for a single student's timed quiz attempt."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging
from threading import RLock
from typing import Any

from timed_quiz.constants.quiz_constants import VIOLATION_WARNING_TEMPLATE
from timed_quiz.core.errors import (
    AttemptLimitExceeded,
    PersistenceFailure,
    QuizNotAccepting,
    QuizValidationError,
)
from timed_quiz.core.models import AnalyticsDelta, AttemptRecord, Quiz, QuizQuestion
from timed_quiz.core.scoring import score_answers
from timed_quiz.core.services.anti_cheat import AntiCheatMonitor, SignalSource, ViolationNotice
from timed_quiz.core.services.result_store import (
    ResultAggregator,
    build_analytics_delta,
    build_attempt_record,
)
from timed_quiz.core.services.scheduler import TickScheduler
from timed_quiz.core.services.timer_engine import TickOutcome, TimerEngine

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"


class SubmitReason(str, Enum):
    MANUAL = "manual"
    TIME_EXPIRED = "time_expired"
    ANTI_CHEAT = "anti_cheat"


@dataclass(slots=True)
class AttemptSnapshot:
    """Read-only view of a session for the UI and HTTP layers."""

    state: AttemptState
    quiz_id: str | None
    attempt_no: int
    current_index: int
    question_count: int
    answers: list[Any]
    locked: list[bool]
    violations: int
    seconds_left: int
    question_seconds_left: int
    has_question_timer: bool
    warning: str | None
    submit_reason: SubmitReason | None
    attempt_id: str | None
    last_error: str | None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttemptSession:
    """Owns one in-progress attempt and orchestrates its collaborators.

    Timer ticks, anti-cheat callbacks and the student's submit button can all
    request submission; only the first request while ``IN_PROGRESS`` has any
    effect. Persistence happens after the answers are sealed, so a failed save
    leaves the session in ``SUBMITTING`` until :meth:`retry_save` succeeds.
    """

    def __init__(
        self,
        result_aggregator: ResultAggregator,
        scheduler: TickScheduler,
        signal_source: SignalSource | None = None,
        student_key: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
        on_change: Callable[[AttemptSnapshot], None] | None = None,
    ) -> None:
        self._lock = RLock()
        self._aggregator = result_aggregator
        self._scheduler = scheduler
        self._signal_source = signal_source
        self._student_key = student_key
        self._clock = clock
        self._on_change = on_change

        self._state = AttemptState.NOT_STARTED
        self._quiz: Quiz | None = None
        self._attempt_no = 0
        self._current_index = 0
        self._answers: list[Any] = []
        self._locked: list[bool] = []
        self._timer: TimerEngine | None = None
        self._monitor: AntiCheatMonitor | None = None
        self._warning: str | None = None

        self._submit_reason: SubmitReason | None = None
        self._record: AttemptRecord | None = None
        self._delta: AnalyticsDelta | None = None
        self._attempt_id: str | None = None
        self._saving = False
        self._last_error: str | None = None

    # --- Lifecycle ---

    def start(self, quiz: Quiz, prior_attempt_count: int) -> None:
        with self._lock:
            if self._state is not AttemptState.NOT_STARTED:
                raise RuntimeError("Attempt has already been started.")
            if prior_attempt_count >= quiz.attempt_limit:
                raise AttemptLimitExceeded(quiz.attempt_limit, prior_attempt_count)
            if not quiz.accepting_attempts:
                raise QuizNotAccepting(quiz.id)
            if not quiz.questions:
                raise QuizValidationError("Quiz has no questions.")

            count = quiz.question_count
            self._quiz = quiz
            self._attempt_no = prior_attempt_count + 1
            self._current_index = 0
            self._answers = [None] * count
            self._locked = [False] * count
            self._timer = TimerEngine(
                quiz.total_seconds,
                [q.time_budget_seconds for q in quiz.questions],
            )
            if quiz.anti_cheat_enabled:
                if self._signal_source is None:
                    logger.warning("Quiz %s has anti-cheat enabled but no signal source", quiz.id)
                else:
                    self._monitor = AntiCheatMonitor(
                        self._signal_source,
                        on_limit_reached=self._submit_for_violations,
                        on_violation=self._record_violation,
                    )
                    self._monitor.attach()
            self._state = AttemptState.IN_PROGRESS
            self._scheduler.start(self.tick)
            logger.info(
                "Started attempt %d of quiz %s for %s",
                self._attempt_no,
                quiz.id,
                self._student_key or "anonymous student",
            )
        self._notify()

    def abandon(self) -> None:
        """Stop timers and listeners without saving anything."""
        with self._lock:
            if self._state is AttemptState.IN_PROGRESS:
                self._state = AttemptState.ABANDONED
                logger.info("Abandoned attempt %d of quiz %s", self._attempt_no, self._quiz_id())
            self._release_resources()
        self._notify()

    def dispose(self) -> None:
        self.abandon()

    def __enter__(self) -> "AttemptSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # --- Answers and navigation ---

    def select_option(self, question_index: int, option_index: int) -> bool:
        """Record a one-time multiple-choice selection; returns False if locked."""
        with self._lock:
            if self._state is not AttemptState.IN_PROGRESS:
                return False
            question = self._question_at(question_index)
            if not question.is_mcq:
                raise ValueError(f"Q{question_index + 1} is not a multiple-choice question.")
            if not 1 <= option_index <= len(question.options):
                raise ValueError(f"Option must be between 1 and {len(question.options)}.")
            if self._locked[question_index]:
                return False
            self._answers[question_index] = option_index
            self._locked[question_index] = True
        self._notify()
        return True

    def set_theory_text(self, question_index: int, text: str) -> None:
        with self._lock:
            if self._state is not AttemptState.IN_PROGRESS:
                return
            question = self._question_at(question_index)
            if not question.is_theory:
                raise ValueError(f"Q{question_index + 1} is not a theory question.")
            self._answers[question_index] = text
        self._notify()

    def go_to(self, question_index: int) -> int:
        with self._lock:
            if self._state is AttemptState.IN_PROGRESS:
                last = len(self._answers) - 1
                self._current_index = min(max(question_index, 0), last)
            index = self._current_index
        self._notify()
        return index

    def next_question(self) -> int:
        return self.go_to(self._current_index + 1)

    def previous_question(self) -> int:
        return self.go_to(self._current_index - 1)

    # --- Timer ---

    def tick(self) -> None:
        """One-second callback driven by the scheduler."""
        with self._lock:
            if self._state is not AttemptState.IN_PROGRESS or self._timer is None:
                return
            result = self._timer.tick(self._current_index)
            if result.outcome is TickOutcome.ADVANCE:
                self._current_index = result.question_index
            expired = result.outcome is TickOutcome.EXPIRED
        if expired:
            logger.info("Time is up for attempt %d of quiz %s", self._attempt_no, self._quiz_id())
            self._force_submit(SubmitReason.TIME_EXPIRED)
        else:
            self._notify()

    # --- Submission ---

    def submit(self, reason: SubmitReason = SubmitReason.MANUAL) -> AttemptRecord | None:
        """Seal, score and persist the attempt.

        Returns the record, or None when the attempt was not in progress.
        Raises PersistenceFailure if the result store rejects the save.
        """
        with self._lock:
            if self._state is not AttemptState.IN_PROGRESS or self._quiz is None:
                return None
            self._state = AttemptState.SUBMITTING
            self._submit_reason = reason
            self._release_resources()

            sealed = list(self._answers)
            score = score_answers(self._quiz, sealed)
            self._record = build_attempt_record(
                self._quiz,
                attempt_no=self._attempt_no,
                answers=sealed,
                score=score,
                submitted_at=self._clock(),
                student_key=self._student_key,
                violations=self.violations,
            )
            self._delta = build_analytics_delta(self._quiz, score)
            logger.info(
                "Submitting attempt %d of quiz %s (%s): %d/%d auto-graded",
                self._attempt_no,
                self._quiz.id,
                reason.value,
                score.mcq_score,
                score.total_gradable,
            )
        self._notify()
        return self._persist()

    def retry_save(self) -> AttemptRecord | None:
        """Re-send the sealed record after a PersistenceFailure."""
        with self._lock:
            if self._state is AttemptState.SUBMITTED:
                return self._record
            if self._state is not AttemptState.SUBMITTING or self._record is None:
                raise RuntimeError("No sealed attempt is waiting to be saved.")
        return self._persist()

    def _persist(self) -> AttemptRecord | None:
        with self._lock:
            if self._saving or self._record is None or self._delta is None:
                return None
            self._saving = True
            record, delta, quiz = self._record, self._delta, self._quiz
        try:
            attempt_id = self._aggregator.save_attempt(record, delta, quiz=quiz)
        except Exception as exc:
            with self._lock:
                self._saving = False
                self._last_error = str(exc) or exc.__class__.__name__
            logger.exception("Saving attempt %d of quiz %s failed", record.attempt_no, record.quiz_id)
            self._notify()
            raise PersistenceFailure("Attempt could not be saved.") from exc
        with self._lock:
            self._saving = False
            self._attempt_id = attempt_id
            self._last_error = None
            self._state = AttemptState.SUBMITTED
        logger.info("Saved attempt %s", attempt_id)
        self._notify()
        return record

    def _force_submit(self, reason: SubmitReason) -> None:
        try:
            self.submit(reason)
        except PersistenceFailure:
            logger.warning("Attempt %d is sealed but unsaved; waiting for retry_save", self._attempt_no)

    def _submit_for_violations(self) -> None:
        logger.warning("Attempt %d of quiz %s auto-submitted for anti-cheat violations",
                       self._attempt_no, self._quiz_id())
        self._force_submit(SubmitReason.ANTI_CHEAT)

    def _record_violation(self, notice: ViolationNotice) -> None:
        with self._lock:
            self._warning = VIOLATION_WARNING_TEMPLATE.format(
                count=notice.count, limit=notice.limit, reason=notice.reason
            )
        if not notice.forced_submit:
            self._notify()

    def _release_resources(self) -> None:
        self._scheduler.stop()
        if self._timer is not None:
            self._timer.stop()
        if self._monitor is not None:
            self._monitor.detach()

    # --- Queries ---

    @property
    def state(self) -> AttemptState:
        return self._state

    @property
    def quiz(self) -> Quiz | None:
        return self._quiz

    @property
    def attempt_no(self) -> int:
        return self._attempt_no

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def answers(self) -> list[Any]:
        with self._lock:
            return list(self._answers)

    @property
    def violations(self) -> int:
        return self._monitor.violations if self._monitor is not None else 0

    @property
    def seconds_left(self) -> int:
        return self._timer.seconds_left if self._timer is not None else 0

    @property
    def record(self) -> AttemptRecord | None:
        return self._record

    @property
    def attempt_id(self) -> str | None:
        return self._attempt_id

    @property
    def submit_reason(self) -> SubmitReason | None:
        return self._submit_reason

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def is_locked(self, question_index: int) -> bool:
        return self._locked[question_index]

    def question_seconds_left(self, question_index: int) -> int:
        return self._timer.question_seconds_left(question_index) if self._timer is not None else 0

    def snapshot(self) -> AttemptSnapshot:
        with self._lock:
            timer = self._timer
            index = self._current_index
            return AttemptSnapshot(
                state=self._state,
                quiz_id=self._quiz_id(),
                attempt_no=self._attempt_no,
                current_index=index,
                question_count=len(self._answers),
                answers=list(self._answers),
                locked=list(self._locked),
                violations=self.violations,
                seconds_left=timer.seconds_left if timer is not None else 0,
                question_seconds_left=timer.question_seconds_left(index) if timer is not None else 0,
                has_question_timer=timer.has_question_budget(index) if timer is not None else False,
                warning=self._warning,
                submit_reason=self._submit_reason,
                attempt_id=self._attempt_id,
                last_error=self._last_error,
            )

    def _question_at(self, question_index: int) -> QuizQuestion:
        if self._quiz is None or not 0 <= question_index < self._quiz.question_count:
            raise IndexError(f"Question index {question_index} out of range")
        return self._quiz.questions[question_index]

    def _quiz_id(self) -> str | None:
        return self._quiz.id if self._quiz is not None else None

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())
