"""Helper functions for common dialog patterns in the attempt window."""

from __future__ import annotations

from PySide6.QtWidgets import QMessageBox, QWidget


def confirm_submit_quiz(parent: QWidget, unanswered: int) -> bool:
    """Ask the student to confirm submission.

    Args:
        parent: Parent widget for the dialog
        unanswered: Number of questions without an answer

    Returns:
        True if the student confirmed, False otherwise
    """
    message = "Submit your answers now? Answers cannot be changed afterwards."
    if unanswered:
        message = f"{unanswered} question(s) are unanswered. {message}"
    reply = QMessageBox.question(
        parent,
        "Confirm Submit",
        message,
        QMessageBox.Yes | QMessageBox.No,
        QMessageBox.No
    )
    return reply == QMessageBox.Yes


def confirm_leave_attempt(parent: QWidget) -> bool:
    """Ask before closing the window while an attempt is running."""
    reply = QMessageBox.question(
        parent,
        "Leave Quiz",
        "Leaving now abandons this attempt and nothing will be saved. Continue?",
        QMessageBox.Yes | QMessageBox.No,
        QMessageBox.No
    )
    return reply == QMessageBox.Yes


def show_error(parent: QWidget, title: str, message: str) -> None:
    """Show error dialog.

    Args:
        parent: Parent widget for the dialog
        title: Dialog title
        message: Error message
    """
    QMessageBox.critical(parent, title, message)


def show_warning(parent: QWidget, title: str, message: str) -> None:
    QMessageBox.warning(parent, title, message)
