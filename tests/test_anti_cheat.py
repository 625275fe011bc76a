from __future__ import annotations

from timed_quiz.core.services.anti_cheat import (
    AntiCheatMonitor,
    CallbackSignalSource,
    EnvironmentSignal,
    ViolationNotice,
)


class Recorder:
    def __init__(self) -> None:
        self.submissions = 0
        self.notices: list[ViolationNotice] = []

    def submit(self) -> None:
        self.submissions += 1

    def notice(self, notice: ViolationNotice) -> None:
        self.notices.append(notice)


def _monitor(limit: int = 3):
    source = CallbackSignalSource()
    recorder = Recorder()
    monitor = AntiCheatMonitor(source, recorder.submit, violation_limit=limit, on_violation=recorder.notice)
    return source, recorder, monitor


def test_clipboard_and_context_menu_are_suppressed():
    source, _, monitor = _monitor(limit=10)
    monitor.attach()
    assert source.emit(EnvironmentSignal.COPY) is True
    assert source.emit(EnvironmentSignal.PASTE) is True
    assert source.emit(EnvironmentSignal.CONTEXT_MENU) is True
    assert source.emit(EnvironmentSignal.VISIBILITY_HIDDEN) is False
    assert source.emit(EnvironmentSignal.FOCUS_LOST) is False
    assert monitor.violations == 5


def test_visibility_and_focus_count_separately():
    source, recorder, monitor = _monitor(limit=10)
    monitor.attach()
    source.emit(EnvironmentSignal.VISIBILITY_HIDDEN)
    source.emit(EnvironmentSignal.FOCUS_LOST)
    assert monitor.violations == 2
    assert [n.reason for n in recorder.notices] == ["Tab switch detected.", "Window focus lost."]


def test_third_violation_forces_single_submission():
    source, recorder, monitor = _monitor()
    monitor.attach()
    source.emit(EnvironmentSignal.FOCUS_LOST)
    source.emit(EnvironmentSignal.FOCUS_LOST)
    assert recorder.submissions == 0
    source.emit(EnvironmentSignal.COPY)
    assert recorder.submissions == 1
    assert recorder.notices[-1].forced_submit is True
    assert not monitor.is_attached()
    assert not source.is_attached()

    source.emit(EnvironmentSignal.FOCUS_LOST)
    monitor.handle_signal(EnvironmentSignal.FOCUS_LOST)
    assert recorder.submissions == 1
    assert monitor.violations == 3


def test_monitor_cannot_be_reattached_after_limit():
    source, _, monitor = _monitor(limit=1)
    monitor.attach()
    source.emit(EnvironmentSignal.PASTE)
    monitor.attach()
    assert not source.is_attached()


def test_detached_monitor_ignores_signals():
    _, recorder, monitor = _monitor()
    assert monitor.handle_signal(EnvironmentSignal.COPY) is False
    assert monitor.violations == 0
    assert recorder.notices == []


def test_context_manager_detaches_listeners():
    source, _, monitor = _monitor()
    with monitor:
        assert source.is_attached()
        source.emit(EnvironmentSignal.FOCUS_LOST)
    assert not source.is_attached()
    assert source.emit(EnvironmentSignal.FOCUS_LOST) is False
    assert monitor.violations == 1
