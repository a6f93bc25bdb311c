"""Hold-time progression through an ordered list of target poses.

Each step asks the dancer to hold a target pose for a cumulative
``hold_duration``. Matching frames add their elapsed time to the step's
accumulated hold; non-matching frames pause the accumulation but never clear
it, so a flickering classifier cannot take away earned progress. When the
hold is full the controller moves to the next step, and after the last step
either stops (terminal mode) or starts over at the first step (wrap mode).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)

_EPS = 1e-9


class SequenceState(str, Enum):
    AWAITING_MATCH = "awaiting_match"
    HOLDING = "holding"
    ADVANCING = "advancing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StepDefinition:
    """One target pose of a choreography."""
    ordinal: int
    target_label: str
    hold_duration: float
    phase_group: int = 0
    wrap_on_complete: bool = False

    def __post_init__(self) -> None:
        if not self.hold_duration > 0:
            raise InvalidConfiguration(
                f"step {self.ordinal}: hold_duration must be positive, got {self.hold_duration}"
            )


@dataclass(frozen=True)
class StepProgress:
    """Snapshot of the controller after a tick."""
    current_index: int
    accumulated_hold: float
    state: SequenceState
    matched: bool = False
    cycles: int = 0


class SequenceController:
    """State machine gating progress on sustained pose matches.

    Usage:
        ctrl = SequenceController(steps)
        state = ctrl.advance(matched=True, dt=1 / 30)
        if state is SequenceState.COMPLETE:
            print("choreography done")
    """

    def __init__(
        self,
        steps: Sequence[StepDefinition],
        wrap: Optional[bool] = None,
        on_advance: Optional[Callable[[int, int], None]] = None,
    ):
        self.steps: List[StepDefinition] = list(steps)
        if not self.steps:
            raise InvalidConfiguration("a sequence needs at least one step")
        self.wrap = self.steps[-1].wrap_on_complete if wrap is None else bool(wrap)
        self.on_advance = on_advance
        self._index = 0
        self._accumulated = 0.0
        self._matched = False
        self._state = SequenceState.AWAITING_MATCH
        self._cycles = 0

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_step(self) -> StepDefinition:
        return self.steps[self._index]

    @property
    def accumulated_hold(self) -> float:
        return self._accumulated

    @property
    def hold_duration(self) -> float:
        return self.current_step.hold_duration

    @property
    def remaining_hold(self) -> float:
        """Seconds of matching still needed on the current step."""
        if self._state is SequenceState.COMPLETE:
            return 0.0
        return max(self.hold_duration - self._accumulated, 0.0)

    @property
    def hold_fraction(self) -> float:
        if self._state is SequenceState.COMPLETE:
            return 1.0
        return self._accumulated / self.hold_duration

    @property
    def state(self) -> SequenceState:
        return self._state

    @property
    def matched(self) -> bool:
        return self._matched

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def is_complete(self) -> bool:
        return self._state is SequenceState.COMPLETE

    @property
    def progress(self) -> StepProgress:
        return StepProgress(
            current_index=self._index,
            accumulated_hold=self._accumulated,
            state=self._state,
            matched=self._matched,
            cycles=self._cycles,
        )

    def advance(self, matched: bool, dt: float) -> SequenceState:
        """Account for ``dt`` seconds in which the pose did or did not match.

        ``dt <= 0`` and calls after completion change nothing.
        """
        if self._state is SequenceState.COMPLETE or dt <= 0:
            return self._state

        self._matched = bool(matched)
        hold = self.hold_duration
        if self._matched:
            self._accumulated = min(self._accumulated + dt, hold)

        if self._accumulated >= hold - _EPS:
            self._step_done()
        else:
            self._state = SequenceState.HOLDING if self._matched else SequenceState.AWAITING_MATCH
        return self._state

    def _step_done(self) -> None:
        previous = self._index
        self._accumulated = 0.0
        self._matched = False
        if self._index < len(self.steps) - 1:
            self._index += 1
            self._state = SequenceState.ADVANCING
        elif self.wrap:
            self._index = 0
            self._cycles += 1
            self._state = SequenceState.ADVANCING
        else:
            self._state = SequenceState.COMPLETE
            logger.info("Sequence complete after %d steps", len(self.steps))
            return
        logger.debug(
            "Step %d (%s) held, now on step %d (%s)",
            previous, self.steps[previous].target_label,
            self._index, self.current_step.target_label,
        )
        if self.on_advance is not None:
            self.on_advance(previous, self._index)

    def reset(self, to_index: int = 0) -> None:
        """Restart at ``to_index`` with an empty hold (for "try again")."""
        if not 0 <= to_index < len(self.steps):
            raise ValueError(
                f"to_index must be within [0, {len(self.steps) - 1}], got {to_index}"
            )
        self._index = to_index
        self._accumulated = 0.0
        self._matched = False
        self._state = SequenceState.AWAITING_MATCH
        self._cycles = 0
