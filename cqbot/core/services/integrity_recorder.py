"""Service that records integrity telemetry while questions are answered."""

from __future__ import annotations

from collections.abc import Callable, Iterable
import time

from cqbot.core.errors import UnknownQuestionError
from cqbot.core.models import QuestionState


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class IntegrityRecorder:
    """Tracks paste attempts, focus loss and per-question active time.

    Each question has at most one open timing interval. Closing an interval
    folds its length into ``time_spent_ms``, which therefore never decreases.
    """

    def __init__(self, clock: Callable[[], float] = monotonic_ms) -> None:
        self._clock = clock
        self._states: dict[str, QuestionState] = {}
        self._focus_loss_count: int = 0

    def start(self, question_ids: Iterable[str]) -> None:
        """Seed zeroed state for exactly the given question ids."""
        self._states = {question_id: QuestionState(question_id=question_id) for question_id in question_ids}
        self._focus_loss_count = 0

    def clear(self) -> None:
        self._states = {}
        self._focus_loss_count = 0

    def state(self, question_id: str) -> QuestionState:
        try:
            return self._states[question_id]
        except KeyError:
            raise UnknownQuestionError(f"Unknown question id: {question_id}") from None

    def states(self) -> list[QuestionState]:
        return list(self._states.values())

    @property
    def focus_loss_count(self) -> int:
        return self._focus_loss_count

    # --- Events ---

    def record_paste(self, question_id: str) -> int:
        state = self.state(question_id)
        state.paste_attempts += 1
        return state.paste_attempts

    def record_focus_loss(self) -> int:
        self._focus_loss_count += 1
        return self._focus_loss_count

    def question_focused(self, question_id: str) -> bool:
        """Open a timing interval; returns False if one is already running."""
        state = self.state(question_id)
        if state.timer_running:
            return False
        state.timer_started_at = self._clock()
        return True

    def question_blurred(self, question_id: str) -> bool:
        """Close the open interval, if any, into the accumulated time."""
        state = self.state(question_id)
        if state.timer_started_at is None:
            return False
        state.time_spent_ms += self._elapsed_since(state.timer_started_at)
        state.timer_started_at = None
        return True

    def merge_time_spent(self, cached: dict[str, int]) -> None:
        """Adopt cached totals for known questions without lowering any value."""
        for question_id, value in cached.items():
            state = self._states.get(question_id)
            if state is not None and value > state.time_spent_ms:
                state.time_spent_ms = value

    # --- Snapshots ---

    def time_spent(self) -> dict[str, int]:
        return {question_id: state.time_spent_ms for question_id, state in self._states.items()}

    def effective_time_spent(self) -> dict[str, int]:
        """Accumulated time including still-running intervals, as of now.

        Running timers are read, not closed, so repeated calls without new
        focus events only ever grow with the clock.
        """
        now = self._clock()
        effective: dict[str, int] = {}
        for question_id, state in self._states.items():
            total = state.time_spent_ms
            if state.timer_started_at is not None:
                total += max(0, int(now - state.timer_started_at))
            effective[question_id] = total
        return effective

    def _elapsed_since(self, started_at: float) -> int:
        return max(0, int(self._clock() - started_at))
