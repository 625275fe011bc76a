"""Exceptions raised by the quiz attempt runtime."""

from __future__ import annotations


class AttemptError(Exception):
    """Base class for failures reported by an attempt session."""


class AttemptLimitExceeded(AttemptError):
    """Raised when a student has used every attempt the quiz allows."""

    def __init__(self, attempt_limit: int, prior_attempts: int) -> None:
        super().__init__(
            f"Attempt limit reached ({prior_attempts}/{attempt_limit})."
        )
        self.attempt_limit = attempt_limit
        self.prior_attempts = prior_attempts


class QuizNotAccepting(AttemptError):
    """Raised when the teacher has not opened the quiz for attempts."""

    def __init__(self, quiz_id: str) -> None:
        super().__init__("Teacher has not started this quiz yet.")
        self.quiz_id = quiz_id


class PersistenceFailure(AttemptError):
    """Raised when a sealed attempt could not be handed to the result store.

    The attempt stays sealed; ``AttemptSession.retry_save`` re-sends the same
    record without scoring again.
    """


class GradingError(ValueError):
    """Raised when awarded theory marks are outside the allowed range."""


class QuizValidationError(ValueError):
    """Raised when a quiz definition cannot be published or started."""
