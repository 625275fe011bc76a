"""Qt adapters for the attempt session's scheduler and signal source."""

from __future__ import annotations

from PySide6.QtCore import QEvent, QObject, Qt, QTimer
from PySide6.QtGui import QKeySequence
from PySide6.QtWidgets import QApplication, QWidget

from timed_quiz.constants.quiz_constants import TICK_INTERVAL_MS
from timed_quiz.core.services.anti_cheat import EnvironmentSignal, SignalHandler
from timed_quiz.core.services.scheduler import TickCallback


class QtTickScheduler(QObject):
    """Drives attempt ticks from the Qt event loop."""

    def __init__(self, interval_ms: int = TICK_INTERVAL_MS, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._callback: TickCallback | None = None
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._on_timeout)

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self._callback = None

    def _on_timeout(self) -> None:
        if self._callback is not None:
            self._callback()


class QtSignalSource(QObject):
    """Application-wide event filter translating Qt events into signals.

    Minimising a window counts as visibility loss, the application becoming
    inactive as focus loss. Copy and paste shortcuts and context menus are
    swallowed when the handler asks for suppression.
    """

    def __init__(self, app: QApplication | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._app = app or QApplication.instance()
        self._handler: SignalHandler | None = None

    def attach(self, handler: SignalHandler) -> None:
        if self._handler is not None:
            self.detach()
        self._handler = handler
        self._app.installEventFilter(self)
        self._app.applicationStateChanged.connect(self._on_application_state_changed)

    def detach(self) -> None:
        if self._handler is None:
            return
        self._handler = None
        self._app.removeEventFilter(self)
        self._app.applicationStateChanged.disconnect(self._on_application_state_changed)

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:
        if self._handler is None:
            return False
        event_type = event.type()
        if event_type == QEvent.ContextMenu:
            return self._handler(EnvironmentSignal.CONTEXT_MENU)
        if event_type == QEvent.KeyPress:
            if event.matches(QKeySequence.StandardKey.Copy):
                return self._handler(EnvironmentSignal.COPY)
            if event.matches(QKeySequence.StandardKey.Paste):
                return self._handler(EnvironmentSignal.PASTE)
        if event_type == QEvent.WindowStateChange and isinstance(watched, QWidget):
            if watched.isWindow() and watched.isMinimized():
                self._handler(EnvironmentSignal.VISIBILITY_HIDDEN)
        return False

    def _on_application_state_changed(self, state: Qt.ApplicationState) -> None:
        if self._handler is not None and state == Qt.ApplicationInactive:
            self._handler(EnvironmentSignal.FOCUS_LOST)
