"""Countdown state for a timed attempt."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TickOutcome(Enum):
    RUNNING = auto()
    ADVANCE = auto()
    EXPIRED = auto()


@dataclass(slots=True)
class TickResult:
    """What happened on one tick and the remaining times afterwards."""

    outcome: TickOutcome
    seconds_left: int
    question_index: int
    question_seconds_left: int


class TimerEngine:
    """Whole-attempt countdown plus independent per-question countdowns.

    Only the active question's counter ticks. A question whose budget is 0 has
    no limit and never triggers advancement.
    """

    def __init__(self, total_seconds: int, question_budgets: list[int]) -> None:
        if total_seconds <= 0:
            raise ValueError("Attempt duration must be positive.")
        self._seconds_left = total_seconds
        self._budgets = [max(0, budget) for budget in question_budgets]
        self._question_seconds_left = list(self._budgets)
        self._running = True

    @property
    def seconds_left(self) -> int:
        return self._seconds_left

    def is_running(self) -> bool:
        return self._running

    def question_seconds_left(self, index: int) -> int:
        return self._question_seconds_left[index]

    def has_question_budget(self, index: int) -> bool:
        return self._budgets[index] > 0

    def stop(self) -> None:
        self._running = False

    def tick(self, active_index: int) -> TickResult:
        """Advance time by one second while ``active_index`` is on screen."""
        if not self._running:
            return self._result(TickOutcome.EXPIRED, active_index)

        self._seconds_left = max(0, self._seconds_left - 1)
        if self._question_seconds_left[active_index] > 0:
            self._question_seconds_left[active_index] -= 1

        # Whole-attempt timeout wins over a per-question timeout on the same tick.
        if self._seconds_left == 0:
            self._running = False
            return self._result(TickOutcome.EXPIRED, active_index)

        if self.has_question_budget(active_index) and self._question_seconds_left[active_index] == 0:
            if active_index < len(self._budgets) - 1:
                return self._result(TickOutcome.ADVANCE, active_index + 1)
            self._running = False
            return self._result(TickOutcome.EXPIRED, active_index)

        return self._result(TickOutcome.RUNNING, active_index)

    def _result(self, outcome: TickOutcome, index: int) -> TickResult:
        return TickResult(
            outcome=outcome,
            seconds_left=self._seconds_left,
            question_index=index,
            question_seconds_left=self._question_seconds_left[index],
        )
