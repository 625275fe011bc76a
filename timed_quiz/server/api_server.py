"""FastAPI server that exposes student attempt and teacher grading endpoints."""

from __future__ import annotations

from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
import uvicorn

from timed_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from timed_quiz.core.errors import (
    AttemptLimitExceeded,
    GradingError,
    PersistenceFailure,
    QuizNotAccepting,
    QuizValidationError,
)
from timed_quiz.core.models import AttemptRecord, Quiz, QuizQuestion, StudentProgress
from timed_quiz.core.quiz_manager import QuizManager
from timed_quiz.core.scoring import total_possible
from timed_quiz.core.services.anti_cheat import EnvironmentSignal
from timed_quiz.core.services.attempt_session import AttemptSnapshot


class StartPayload(BaseModel):
    student_key: str = Field(min_length=1)
    quiz_id: str


class StudentPayload(BaseModel):
    student_key: str = Field(min_length=1)


class OptionPayload(StudentPayload):
    question_index: int
    option_index: int


class TheoryPayload(StudentPayload):
    question_index: int
    text: str


class NavigatePayload(StudentPayload):
    question_index: int


class SignalPayload(StudentPayload):
    signal: EnvironmentSignal


class TheoryGradesPayload(BaseModel):
    theory_marks: dict[int, float]
    reviewed_by: str | None = None


class AcceptingPayload(BaseModel):
    accepting: bool


def _question_view(question: QuizQuestion) -> dict[str, object]:
    """Student-safe question data: never includes the key or model answer."""
    return {
        "type": question.question_type.value,
        "prompt_html": question.prompt_html,
        "options": list(question.options) if question.is_mcq else None,
        "max_marks": question.max_marks,
        "question_time_sec": question.question_time_sec,
        "image_data_url": question.image_data_url or None,
    }


def _quiz_summary(quiz: Quiz, attempts_used: int | None = None) -> dict[str, object]:
    summary: dict[str, object] = {
        "id": quiz.id,
        "class_id": quiz.class_id,
        "title": quiz.title,
        "quiz_number": quiz.quiz_number,
        "duration_min": quiz.duration_min,
        "attempt_limit": quiz.attempt_limit,
        "anti_cheat_enabled": quiz.anti_cheat_enabled,
        "accepting_attempts": quiz.accepting_attempts,
        "status": quiz.status.value,
        "question_count": quiz.question_count,
        "total_possible": total_possible(quiz),
    }
    if attempts_used is not None:
        summary["attempts_used"] = attempts_used
        summary["can_attempt"] = quiz.accepting_attempts and attempts_used < quiz.attempt_limit
    return summary


def _snapshot_view(snapshot: AttemptSnapshot, quiz: Quiz | None) -> dict[str, object]:
    question = None
    if quiz is not None and snapshot.question_count:
        question = _question_view(quiz.questions[snapshot.current_index])
    return {
        "state": snapshot.state.value,
        "quiz_id": snapshot.quiz_id,
        "attempt_no": snapshot.attempt_no,
        "current_index": snapshot.current_index,
        "question_count": snapshot.question_count,
        "question": question,
        "answers": snapshot.answers,
        "locked": snapshot.locked,
        "violations": snapshot.violations,
        "seconds_left": snapshot.seconds_left,
        "question_seconds_left": snapshot.question_seconds_left if snapshot.has_question_timer else None,
        "warning": snapshot.warning,
        "submit_reason": snapshot.submit_reason.value if snapshot.submit_reason else None,
        "attempt_id": snapshot.attempt_id,
        "last_error": snapshot.last_error,
    }


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title="Timed Quiz API", version="0.1.0")
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    def current_view(manager: QuizManager, student_key: str) -> dict[str, object]:
        try:
            session = manager.get_session(student_key)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="No attempt in progress.") from exc
        return _snapshot_view(session.snapshot(), session.quiz)

    def call_session(action):
        try:
            return action()
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="No attempt in progress.") from exc
        except IndexError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    def call_quiz(action):
        try:
            return action()
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Quiz not found.") from exc
        except QuizValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    def record_response(record: AttemptRecord | None, manager: QuizManager, student_key: str) -> dict[str, object]:
        if record is None:
            raise HTTPException(status_code=409, detail="Attempt is not in progress.")
        return {
            "attempt_id": manager.get_session(student_key).attempt_id,
            "record": record.to_document(),
        }

    @app.get("/classes/{class_id}/quizzes")
    def list_quizzes(
        class_id: str,
        student_key: str | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [
            _quiz_summary(quiz, manager.count_attempts(quiz.id, student_key) if student_key else None)
            for quiz in manager.get_quizzes_for_class(class_id)
        ]

    @app.post("/quizzes/{quiz_id}/publish")
    def publish_quiz(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _quiz_summary(call_quiz(lambda: manager.publish_quiz(quiz_id)))

    @app.post("/quizzes/{quiz_id}/accepting")
    def set_accepting_attempts(
        quiz_id: str,
        payload: AcceptingPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _quiz_summary(call_quiz(lambda: manager.set_accepting_attempts(quiz_id, payload.accepting)))

    @app.post("/quizzes/{quiz_id}/unpublish")
    def unpublish_quiz(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _quiz_summary(call_quiz(lambda: manager.unpublish_quiz(quiz_id)))

    @app.post("/quizzes/{quiz_id}/archive")
    def archive_quiz(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _quiz_summary(call_quiz(lambda: manager.archive_quiz(quiz_id)))

    @app.post("/quizzes/{quiz_id}/restore")
    def restore_quiz(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _quiz_summary(call_quiz(lambda: manager.restore_quiz(quiz_id)))

    @app.post("/attempts", status_code=201)
    def start_attempt(
        payload: StartPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            manager.start_attempt(payload.student_key, payload.quiz_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Quiz not found.") from exc
        except (AttemptLimitExceeded, QuizNotAccepting, RuntimeError) as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except QuizValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return current_view(manager, payload.student_key)

    @app.get("/attempts/current")
    def get_current_attempt(
        student_key: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return current_view(manager, student_key)

    @app.post("/attempts/current/answer")
    def select_option(
        payload: OptionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        recorded = call_session(
            lambda: manager.select_option(payload.student_key, payload.question_index, payload.option_index)
        )
        return {"recorded": recorded, **current_view(manager, payload.student_key)}

    @app.post("/attempts/current/theory")
    def set_theory_text(
        payload: TheoryPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        call_session(lambda: manager.set_theory_text(payload.student_key, payload.question_index, payload.text))
        return current_view(manager, payload.student_key)

    @app.post("/attempts/current/navigate")
    def navigate(
        payload: NavigatePayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        call_session(lambda: manager.go_to_question(payload.student_key, payload.question_index))
        return current_view(manager, payload.student_key)

    @app.post("/attempts/current/signal")
    def report_signal(
        payload: SignalPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        suppress = call_session(lambda: manager.report_signal(payload.student_key, payload.signal))
        return {"suppress": suppress, **current_view(manager, payload.student_key)}

    @app.post("/attempts/current/submit")
    def submit_attempt(
        payload: StudentPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            record = call_session(lambda: manager.submit_attempt(payload.student_key))
        except PersistenceFailure as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return record_response(record, manager, payload.student_key)

    @app.post("/attempts/current/retry-save")
    def retry_save(
        payload: StudentPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            record = call_session(lambda: manager.retry_save(payload.student_key))
        except PersistenceFailure as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return record_response(record, manager, payload.student_key)

    @app.delete("/attempts/current", status_code=204)
    def abandon_attempt(
        student_key: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> None:
        manager.abandon_attempt(student_key)

    @app.post("/attempts/{attempt_id}/theory-grades")
    def grade_theory(
        attempt_id: str,
        payload: TheoryGradesPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            record = manager.grade_theory(attempt_id, payload.theory_marks, reviewed_by=payload.reviewed_by)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Attempt not found.") from exc
        except GradingError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return record.to_document()

    @app.get("/quizzes/{quiz_id}/analytics")
    def get_analytics(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        analytics = manager.get_analytics(quiz_id)
        if analytics is None:
            raise HTTPException(status_code=404, detail="No attempts yet.")
        return {
            "quiz_id": analytics.quiz_id,
            "attempts": analytics.attempts,
            "total_score": analytics.total_score,
            "total_gradable": analytics.total_gradable,
            "question_stats": [{"correct": s.correct, "total": s.total} for s in analytics.question_stats],
        }

    @app.get("/classes/{class_id}/students/{student_key}/progress")
    def get_progress(
        class_id: str,
        student_key: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        progress = manager.get_progress(class_id, student_key) or StudentProgress(class_id, student_key)
        return {
            "class_id": progress.class_id,
            "student_key": progress.student_key,
            "points": progress.points,
            "quiz_count": progress.quiz_count,
            "badges": progress.badges,
        }

    @app.get("/quizzes/{quiz_id}/results.csv", response_class=PlainTextResponse)
    def export_results(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> str:
        try:
            return manager.export_results_csv(quiz_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Quiz not found.") from exc
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    return app


def start_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return thread
