"""Qt UI components for the student attempt window."""

from .attempt_window import AttemptWindow
from .dialog_helpers import (
    confirm_leave_attempt,
    confirm_submit_quiz,
    show_error,
    show_warning,
)
from .qt_bridge import QtSignalSource, QtTickScheduler

__all__ = [
    "AttemptWindow",
    "QtSignalSource",
    "QtTickScheduler",
    "confirm_leave_attempt",
    "confirm_submit_quiz",
    "show_error",
    "show_warning",
]
