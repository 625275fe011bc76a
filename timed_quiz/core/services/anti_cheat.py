"""Anti-cheat monitoring for an in-progress attempt."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
import logging
from threading import Lock
from typing import Protocol

from timed_quiz.constants.quiz_constants import MAX_VIOLATIONS

logger = logging.getLogger(__name__)


class EnvironmentSignal(str, Enum):
    VISIBILITY_HIDDEN = "visibility"
    FOCUS_LOST = "blur"
    COPY = "copy"
    PASTE = "paste"
    CONTEXT_MENU = "contextmenu"


SUPPRESSED_SIGNALS = frozenset(
    {EnvironmentSignal.COPY, EnvironmentSignal.PASTE, EnvironmentSignal.CONTEXT_MENU}
)

SIGNAL_REASONS: dict[EnvironmentSignal, str] = {
    EnvironmentSignal.VISIBILITY_HIDDEN: "Tab switch detected.",
    EnvironmentSignal.FOCUS_LOST: "Window focus lost.",
    EnvironmentSignal.COPY: "Copy is not allowed during quiz.",
    EnvironmentSignal.PASTE: "Paste is not allowed during quiz.",
    EnvironmentSignal.CONTEXT_MENU: "Right click is blocked during quiz.",
}

# Returns True when the originating action must be blocked.
SignalHandler = Callable[[EnvironmentSignal], bool]


class SignalSource(Protocol):
    """Delivers environment signals to a single attached handler."""

    def attach(self, handler: SignalHandler) -> None: ...

    def detach(self) -> None: ...


class CallbackSignalSource:
    """Signal source fed by explicit ``emit`` calls (HTTP reports, tests)."""

    def __init__(self) -> None:
        self._handler: SignalHandler | None = None

    def attach(self, handler: SignalHandler) -> None:
        self._handler = handler

    def detach(self) -> None:
        self._handler = None

    def is_attached(self) -> bool:
        return self._handler is not None

    def emit(self, signal: EnvironmentSignal) -> bool:
        """Deliver ``signal``; returns whether the action should be suppressed."""
        handler = self._handler
        if handler is None:
            return False
        return handler(signal)


@dataclass(slots=True)
class ViolationNotice:
    count: int
    limit: int
    reason: str
    forced_submit: bool


class AntiCheatMonitor:
    """Counts environment violations and forces submission at the limit.

    Usable as a context manager so listeners are always detached::

        with AntiCheatMonitor(source, on_limit_reached=submit_attempt):
            ...
    """

    def __init__(
        self,
        source: SignalSource,
        on_limit_reached: Callable[[], None],
        violation_limit: int = MAX_VIOLATIONS,
        on_violation: Callable[[ViolationNotice], None] | None = None,
    ) -> None:
        self._source = source
        self._on_limit_reached = on_limit_reached
        self._on_violation = on_violation
        self._limit = violation_limit
        self._lock = Lock()
        self._violations = 0
        self._attached = False
        self._limit_reached = False

    @property
    def violations(self) -> int:
        return self._violations

    @property
    def limit(self) -> int:
        return self._limit

    def is_attached(self) -> bool:
        return self._attached

    def attach(self) -> None:
        with self._lock:
            if self._attached or self._limit_reached:
                return
            self._attached = True
        self._source.attach(self.handle_signal)

    def detach(self) -> None:
        with self._lock:
            if not self._attached:
                return
            self._attached = False
        self._source.detach()

    def handle_signal(self, signal: EnvironmentSignal) -> bool:
        """Count one violation; returns True when the action must be blocked."""
        # Callbacks run outside the lock; they re-enter the owning session.
        with self._lock:
            if not self._attached:
                return False
            self._violations += 1
            count = self._violations
            forced = count >= self._limit
            if forced:
                self._limit_reached = True
                self._attached = False
        reason = SIGNAL_REASONS[signal]
        logger.warning("Anti-cheat violation %d/%d: %s", count, self._limit, reason)
        if forced:
            self._source.detach()
        if self._on_violation is not None:
            self._on_violation(
                ViolationNotice(count=count, limit=self._limit, reason=reason, forced_submit=forced)
            )
        if forced:
            self._on_limit_reached()
        return signal in SUPPRESSED_SIGNALS

    def __enter__(self) -> "AntiCheatMonitor":
        self.attach()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.detach()
