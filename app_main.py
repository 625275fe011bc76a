"""Application entry point for the timed quiz runtime."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys
from uuid import uuid4

from PySide6.QtWidgets import QApplication

from timed_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from timed_quiz.constants.quiz_constants import DEFAULT_ATTEMPT_LIMIT, DEFAULT_DURATION_MINUTES
from timed_quiz.core.errors import QuizValidationError
from timed_quiz.core.models import Quiz
from timed_quiz.core.quiz_importer import QuizImportError, load_questions_from_file
from timed_quiz.core.quiz_manager import QuizManager
from timed_quiz.server.api_server import start_api_server
from timed_quiz.ui.attempt_window import AttemptWindow
from timed_quiz.utils.logging_config import configure_logging


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a timed quiz attempt.")
    parser.add_argument("quiz_file", type=Path, help="Plain-text question file to import.")
    parser.add_argument("--title", default=None, help="Quiz title (defaults to the file name).")
    parser.add_argument("--class-id", default="local")
    parser.add_argument("--duration", type=int, default=DEFAULT_DURATION_MINUTES, help="Minutes.")
    parser.add_argument("--attempts", type=int, default=DEFAULT_ATTEMPT_LIMIT, help="Attempt limit.")
    parser.add_argument("--anti-cheat", action="store_true")
    parser.add_argument("--student", default="local-student", help="Student key for the desktop attempt.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--no-server", action="store_true", help="Do not start the HTTP API.")
    parser.add_argument(
        "--export-dir",
        type=Path,
        default=None,
        help="Write a results CSV into this folder when the window closes.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Import the quiz, start the API server, and launch the Qt attempt window."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logger = configure_logging()

    try:
        imported = load_questions_from_file(args.quiz_file)
    except (OSError, QuizImportError) as exc:
        logger.error("Could not import %s: %s", args.quiz_file, exc)
        sys.exit(1)

    quiz_manager = QuizManager()
    try:
        quiz = quiz_manager.save_quiz(
            Quiz(
                id=uuid4().hex,
                class_id=args.class_id,
                teacher_id="local-teacher",
                title=args.title or args.quiz_file.stem,
                questions=imported.questions,
                duration_min=args.duration,
                attempt_limit=args.attempts,
                anti_cheat_enabled=args.anti_cheat,
            )
        )
        quiz_manager.publish_quiz(quiz.id)
    except QuizValidationError as exc:
        logger.error("Quiz %s is not ready to run: %s", args.quiz_file, exc)
        sys.exit(1)
    logger.info("Loaded %d question(s) from %s", quiz.question_count, args.quiz_file)

    if not args.no_server:
        start_api_server(quiz_manager=quiz_manager, host=args.host, port=args.port)
        logger.info("Attempt API available on http://%s:%d/", args.host, args.port)

    app = QApplication(sys.argv[:1])
    window = AttemptWindow(quiz_manager, quiz.id, args.student)
    window.show()
    if not window.start_attempt():
        sys.exit(1)
    exit_code = app.exec()
    quiz_manager.shutdown()
    if args.export_dir is not None:
        try:
            results_path = quiz_manager.save_results(quiz.id, args.export_dir)
        except (OSError, ValueError) as exc:
            logger.warning("Results were not exported: %s", exc)
        else:
            logger.info("Results written to %s", results_path)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
