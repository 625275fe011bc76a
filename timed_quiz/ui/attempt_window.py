"""Qt window that runs one student's timed quiz attempt."""

from __future__ import annotations

import base64
import binascii

from PySide6.QtCore import Qt
from PySide6.QtGui import QCloseEvent, QPixmap
from PySide6.QtWidgets import (
    QButtonGroup,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPlainTextEdit,
    QPushButton,
    QRadioButton,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from timed_quiz.constants.quiz_constants import MCQ_OPTION_COUNT
from timed_quiz.constants.ui_constants import (
    ANTI_CHEAT_SUBMITTED_MESSAGE,
    LOCKED_OPTION_TEXT,
    NEXT_BUTTON,
    NO_QUESTION_TIMER_TEXT,
    PREV_BUTTON,
    QUESTION_HEADER_TEMPLATE,
    QUESTION_TIME_LEFT_TEMPLATE,
    RESULT_TEMPLATE,
    RETRY_SAVE_BUTTON,
    SAVE_FAILED_MESSAGE,
    SUBMIT_BUTTON,
    SUBMITTED_MESSAGE,
    THEORY_PENDING_SUFFIX,
    THEORY_PLACEHOLDER,
    TIME_LEFT_TEMPLATE,
    WINDOW_TITLE,
)
from timed_quiz.core.errors import AttemptError, PersistenceFailure
from timed_quiz.core.quiz_manager import QuizManager
from timed_quiz.core.services.attempt_session import (
    AttemptSession,
    AttemptSnapshot,
    AttemptState,
    SubmitReason,
)
from timed_quiz.ui.dialog_helpers import (
    confirm_leave_attempt,
    confirm_submit_quiz,
    show_error,
    show_warning,
)
from timed_quiz.ui.qt_bridge import QtSignalSource, QtTickScheduler


class AttemptWindow(QMainWindow):
    """Presents one question at a time and forwards input to the session."""

    def __init__(self, quiz_manager: QuizManager, quiz_id: str, student_key: str) -> None:
        super().__init__()
        self.quiz_manager = quiz_manager
        self.quiz = quiz_manager.get_quiz(quiz_id)
        self.student_key = student_key
        self.setWindowTitle(f"{WINDOW_TITLE} - {self.quiz.title}")

        self._rendered_index: int | None = None
        self._rendered_locked: bool | None = None

        self.session = AttemptSession(
            quiz_manager.results,
            QtTickScheduler(parent=self),
            signal_source=QtSignalSource(parent=self),
            student_key=student_key,
            on_change=self._render,
        )
        self._build_ui()

    def _build_ui(self) -> None:
        central_widget = QWidget(self)
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout()
        central_widget.setLayout(layout)

        self.time_label = QLabel("", self)
        self.time_label.setStyleSheet("font-size: 16pt; font-weight: bold;")
        layout.addWidget(self.time_label)

        self.warning_label = QLabel("", self)
        self.warning_label.setStyleSheet("color: #b42318;")
        self.warning_label.setWordWrap(True)
        layout.addWidget(self.warning_label)

        self.question_timer_label = QLabel("", self)
        layout.addWidget(self.question_timer_label)

        self.locked_label = QLabel(LOCKED_OPTION_TEXT, self)
        self.locked_label.setVisible(False)
        layout.addWidget(self.locked_label)

        self.header_label = QLabel("", self)
        layout.addWidget(self.header_label)

        self.prompt_view = QTextBrowser(self)
        layout.addWidget(self.prompt_view, stretch=1)

        self.image_label = QLabel(self)
        self.image_label.setVisible(False)
        layout.addWidget(self.image_label)

        self.option_group = QButtonGroup(self)
        self.option_buttons: list[QRadioButton] = []
        for option_number in range(1, MCQ_OPTION_COUNT + 1):
            button = QRadioButton(self)
            self.option_group.addButton(button, option_number)
            self.option_buttons.append(button)
            layout.addWidget(button)
        self.option_group.idClicked.connect(self._handle_option_clicked)

        self.theory_edit = QPlainTextEdit(self)
        self.theory_edit.setPlaceholderText(THEORY_PLACEHOLDER)
        self.theory_edit.textChanged.connect(self._handle_theory_changed)
        layout.addWidget(self.theory_edit)

        button_row = QHBoxLayout()
        self.prev_button = QPushButton(PREV_BUTTON, self)
        self.prev_button.clicked.connect(self.session.previous_question)
        button_row.addWidget(self.prev_button)

        self.next_button = QPushButton(NEXT_BUTTON, self)
        self.next_button.clicked.connect(self.session.next_question)
        button_row.addWidget(self.next_button)

        button_row.addStretch()

        self.submit_button = QPushButton(SUBMIT_BUTTON, self)
        self.submit_button.clicked.connect(self._handle_submit_clicked)
        button_row.addWidget(self.submit_button)

        self.retry_button = QPushButton(RETRY_SAVE_BUTTON, self)
        self.retry_button.setVisible(False)
        self.retry_button.clicked.connect(self._handle_retry_clicked)
        button_row.addWidget(self.retry_button)
        layout.addLayout(button_row)

        self.status_label = QLabel("", self)
        self.status_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(self.status_label)

    def start_attempt(self) -> bool:
        prior = self.quiz_manager.count_attempts(self.quiz.id, self.student_key)
        try:
            self.session.start(self.quiz, prior)
        except AttemptError as exc:
            show_warning(self, "Cannot start quiz", str(exc))
            return False
        return True

    # --- Input handlers ---

    def _handle_option_clicked(self, option_number: int) -> None:
        self.session.select_option(self.session.current_index, option_number)

    def _handle_theory_changed(self) -> None:
        quiz_question = self.quiz.questions[self.session.current_index]
        if quiz_question.is_theory:
            self.session.set_theory_text(self.session.current_index, self.theory_edit.toPlainText())

    def _handle_submit_clicked(self) -> None:
        unanswered = sum(1 for answer in self.session.answers if answer in (None, ""))
        if not confirm_submit_quiz(self, unanswered):
            return
        try:
            self.session.submit(SubmitReason.MANUAL)
        except PersistenceFailure as exc:
            show_error(self, "Save failed", str(exc))

    def _handle_retry_clicked(self) -> None:
        try:
            self.session.retry_save()
        except PersistenceFailure as exc:
            show_error(self, "Save failed", str(exc))

    def closeEvent(self, event: QCloseEvent) -> None:
        if self.session.state is AttemptState.IN_PROGRESS and not confirm_leave_attempt(self):
            event.ignore()
            return
        self.session.dispose()
        super().closeEvent(event)

    # --- Rendering ---

    def _render(self, snapshot: AttemptSnapshot) -> None:
        if snapshot.state in (AttemptState.SUBMITTING, AttemptState.SUBMITTED):
            self._render_finished(snapshot)
            return
        if snapshot.state is not AttemptState.IN_PROGRESS:
            return

        self.time_label.setText(f"{self.quiz.title} | {TIME_LEFT_TEMPLATE.format(seconds=snapshot.seconds_left)}")
        self.warning_label.setText(snapshot.warning or "")
        if snapshot.has_question_timer:
            self.question_timer_label.setText(
                QUESTION_TIME_LEFT_TEMPLATE.format(seconds=snapshot.question_seconds_left)
            )
        else:
            self.question_timer_label.setText(NO_QUESTION_TIMER_TEXT)

        index = snapshot.current_index
        locked = snapshot.locked[index]
        if index != self._rendered_index or locked != self._rendered_locked:
            self._render_question(snapshot)
            self._rendered_index = index
            self._rendered_locked = locked

        self.prev_button.setEnabled(index > 0)
        self.next_button.setEnabled(index < snapshot.question_count - 1)

    def _render_question(self, snapshot: AttemptSnapshot) -> None:
        index = snapshot.current_index
        question = self.quiz.questions[index]
        self.header_label.setText(
            QUESTION_HEADER_TEMPLATE.format(number=index + 1, count=snapshot.question_count)
        )
        self.prompt_view.setHtml(question.prompt_html)
        pixmap = _pixmap_from_data_url(question.image_data_url)
        self.image_label.setVisible(pixmap is not None)
        if pixmap is not None:
            self.image_label.setPixmap(pixmap.scaledToWidth(260, Qt.SmoothTransformation))

        self.locked_label.setVisible(question.is_mcq and snapshot.locked[index])
        self.option_group.setExclusive(False)
        for option_number, button in enumerate(self.option_buttons, start=1):
            button.setVisible(question.is_mcq)
            if question.is_mcq:
                button.setText(question.options[option_number - 1])
                button.setChecked(snapshot.answers[index] == option_number)
                button.setEnabled(not snapshot.locked[index])
        self.option_group.setExclusive(True)

        self.theory_edit.setVisible(question.is_theory)
        self.theory_edit.blockSignals(True)
        self.theory_edit.setPlainText(str(snapshot.answers[index] or "") if question.is_theory else "")
        self.theory_edit.blockSignals(False)

    def _render_finished(self, snapshot: AttemptSnapshot) -> None:
        for widget in (*self.option_buttons, self.theory_edit, self.prev_button, self.next_button, self.submit_button):
            widget.setEnabled(False)
        if snapshot.submit_reason is SubmitReason.ANTI_CHEAT:
            self.warning_label.setText(ANTI_CHEAT_SUBMITTED_MESSAGE)

        record = self.session.record
        if snapshot.state is AttemptState.SUBMITTED and record is not None:
            result = RESULT_TEMPLATE.format(final=record.final_score, possible=record.total_possible)
            if record.theory_pending:
                result += THEORY_PENDING_SUFFIX
            self.status_label.setText(f"{SUBMITTED_MESSAGE} {result}")
            self.retry_button.setVisible(False)
        elif snapshot.last_error:
            self.status_label.setText(SAVE_FAILED_MESSAGE)
            self.retry_button.setVisible(True)


def _pixmap_from_data_url(data_url: str) -> QPixmap | None:
    """Decode an embedded ``data:image/...;base64,`` question image."""
    if not data_url.startswith("data:") or ";base64," not in data_url:
        return None
    try:
        payload = base64.b64decode(data_url.split(";base64,", 1)[1], validate=True)
    except (binascii.Error, ValueError):
        return None
    pixmap = QPixmap()
    if not pixmap.loadFromData(payload):
        return None
    return pixmap
