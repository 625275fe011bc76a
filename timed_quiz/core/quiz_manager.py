"""Business logic shared between the HTTP API and the desktop window."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

from timed_quiz.core.models import AttemptRecord, Quiz, QuizAnalytics, StudentProgress
from timed_quiz.core.quiz_exporter import build_results_csv, results_filename, save_results_to_file
from timed_quiz.core.scoring import grade_theory
from timed_quiz.core.services.anti_cheat import CallbackSignalSource, EnvironmentSignal
from timed_quiz.core.services.attempt_session import AttemptSession, AttemptSnapshot, AttemptState
from timed_quiz.core.services.quiz_repository import QuizRepository
from timed_quiz.core.services.result_store import InMemoryResultStore
from timed_quiz.core.services.scheduler import ThreadingScheduler, TickScheduler


@dataclass(slots=True)
class _ActiveAttempt:
    session: AttemptSession
    signals: CallbackSignalSource


class QuizManager:
    """Facade for quiz services: repository, result store and attempt sessions."""

    def __init__(
        self,
        result_store: InMemoryResultStore | None = None,
        scheduler_factory: Callable[[], TickScheduler] = ThreadingScheduler,
    ) -> None:
        self._lock = Lock()
        self._repository = QuizRepository()
        self._results = result_store or InMemoryResultStore()
        self._scheduler_factory = scheduler_factory
        self._attempts: dict[str, _ActiveAttempt] = {}

    @property
    def results(self) -> InMemoryResultStore:
        return self._results

    # --- Quiz Repository Delegation ---

    def save_quiz(self, quiz: Quiz) -> Quiz:
        with self._lock:
            return self._repository.save_quiz(quiz)

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._repository.get_quiz(quiz_id)

    def get_quizzes_for_class(self, class_id: str) -> list[Quiz]:
        with self._lock:
            return self._repository.quizzes_for_class(class_id)

    def publish_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._repository.publish(quiz_id)

    def unpublish_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._repository.unpublish(quiz_id)

    def set_accepting_attempts(self, quiz_id: str, accepting: bool) -> Quiz:
        with self._lock:
            return self._repository.set_accepting_attempts(quiz_id, accepting)

    def archive_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._repository.archive(quiz_id)

    def restore_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._repository.restore(quiz_id)

    # --- Attempt Delegation ---

    def count_attempts(self, quiz_id: str, student_key: str) -> int:
        return self._results.count_attempts(quiz_id, student_key)

    def start_attempt(self, student_key: str, quiz_id: str) -> AttemptSnapshot:
        with self._lock:
            quiz = self._repository.get_quiz(quiz_id)
            previous = self._attempts.get(student_key)
            if previous is not None:
                if previous.session.state in (AttemptState.IN_PROGRESS, AttemptState.SUBMITTING):
                    raise RuntimeError("Finish the current attempt before starting another.")
                previous.session.dispose()
                del self._attempts[student_key]

            signals = CallbackSignalSource()
            session = AttemptSession(
                self._results,
                self._scheduler_factory(),
                signal_source=signals,
                student_key=student_key,
            )
            session.start(quiz, self._results.count_attempts(quiz_id, student_key))
            self._attempts[student_key] = _ActiveAttempt(session=session, signals=signals)
            return session.snapshot()

    def get_session(self, student_key: str) -> AttemptSession:
        with self._lock:
            active = self._attempts.get(student_key)
            if active is None:
                raise KeyError(f"No attempt for {student_key}")
            return active.session

    def select_option(self, student_key: str, question_index: int, option_index: int) -> bool:
        return self.get_session(student_key).select_option(question_index, option_index)

    def set_theory_text(self, student_key: str, question_index: int, text: str) -> None:
        self.get_session(student_key).set_theory_text(question_index, text)

    def go_to_question(self, student_key: str, question_index: int) -> int:
        return self.get_session(student_key).go_to(question_index)

    def report_signal(self, student_key: str, signal: EnvironmentSignal) -> bool:
        """Feed a browser-reported signal to the student's anti-cheat monitor."""
        with self._lock:
            active = self._attempts.get(student_key)
            if active is None:
                raise KeyError(f"No attempt for {student_key}")
            signals = active.signals
        return signals.emit(signal)

    def submit_attempt(self, student_key: str) -> AttemptRecord | None:
        return self.get_session(student_key).submit()

    def retry_save(self, student_key: str) -> AttemptRecord | None:
        return self.get_session(student_key).retry_save()

    def abandon_attempt(self, student_key: str) -> None:
        with self._lock:
            active = self._attempts.pop(student_key, None)
        if active is not None:
            active.session.dispose()

    def shutdown(self) -> None:
        """Stop every attempt's timers and listeners."""
        with self._lock:
            attempts = list(self._attempts.values())
            self._attempts.clear()
        for active in attempts:
            active.session.dispose()

    # --- Grading & Analytics ---

    def grade_theory(
        self,
        attempt_id: str,
        marks: Mapping[int, float],
        reviewed_by: str | None = None,
    ) -> AttemptRecord:
        record = self._results.get_attempt(attempt_id)
        quiz = self._results.quiz_for_attempt(attempt_id) or self.get_quiz(record.quiz_id)
        update = grade_theory(quiz, record, marks, reviewed_by=reviewed_by)
        return self._results.apply_theory_grading(attempt_id, update)

    def get_analytics(self, quiz_id: str) -> QuizAnalytics | None:
        return self._results.get_analytics(quiz_id)

    def get_progress(self, class_id: str, student_key: str) -> StudentProgress | None:
        return self._results.get_progress(class_id, student_key)

    def export_results_csv(self, quiz_id: str, class_names: Mapping[str, str] | None = None) -> str:
        quiz = self.get_quiz(quiz_id)
        records = [record for _, record in self._results.attempts_for_quiz(quiz_id)]
        return build_results_csv({quiz.id: quiz}, records, class_names)

    def save_results(
        self,
        quiz_id: str,
        directory: Path,
        class_names: Mapping[str, str] | None = None,
        now: datetime | None = None,
    ) -> Path:
        """Write the quiz's results CSV into ``directory`` and return its path."""
        quiz = self.get_quiz(quiz_id)
        records = [record for _, record in self._results.attempts_for_quiz(quiz_id)]
        class_name = (class_names or {}).get(quiz.class_id, quiz.class_id)
        file_path = directory / results_filename(class_name, quiz.quiz_number, now or datetime.now(timezone.utc))
        save_results_to_file(file_path, {quiz.id: quiz}, records, class_names)
        return file_path
