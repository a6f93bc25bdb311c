"""Practice and performance step lists built from configuration."""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .errors import InvalidConfiguration
from .sequence import StepDefinition

DEFAULT_STEP_LABELS = ["step_1", "step_2", "step_3", "step_4"]
DEFAULT_HOLD_SCHEDULE = [1.5, 1.5, 1.5, 1.0, 1.0, 1.0, 0.5, 0.5, 0.2, 0.2, 0.2]

# Coaching line shown for each practice phase (one phase per pass)
PHASE_INSTRUCTIONS = [
    "Face the right way and imitate the movement you see",
    "Well done! Try to stay in the middle",
    "Memorize the steps",
    "Let's go a bit faster now",
    "Good job, keep going!",
    "Try to do it without looking at the example",
    "Faster!",
    "Even faster!",
    "Let the steps flow into each other!",
    "This is the speed you'll have to do it at!",
    "Almost got it!",
]


def instruction_for(phase: int) -> str:
    if phase < 0:
        phase = 0
    return PHASE_INSTRUCTIONS[min(phase, len(PHASE_INSTRUCTIONS) - 1)]


def practice_steps(
    labels: Sequence[str] = DEFAULT_STEP_LABELS,
    repeats: int = 11,
    hold_schedule: Sequence[float] = DEFAULT_HOLD_SCHEDULE,
) -> List[StepDefinition]:
    """The drill: ``labels`` repeated ``repeats`` times with shrinking holds.

    Pass ``p`` (the phase group) uses ``hold_schedule[p]``; passes beyond the
    schedule reuse its last entry. The drill ends after the last pass.
    """
    if not labels:
        raise InvalidConfiguration("step_labels must not be empty")
    if repeats < 1:
        raise InvalidConfiguration(f"practice_repeats must be positive, got {repeats}")
    if not hold_schedule:
        raise InvalidConfiguration("practice_hold_schedule must not be empty")
    steps = []
    for phase in range(repeats):
        hold = float(hold_schedule[min(phase, len(hold_schedule) - 1)])
        for label in labels:
            steps.append(StepDefinition(len(steps), label, hold, phase, False))
    return steps


def performance_steps(
    labels: Sequence[str] = DEFAULT_STEP_LABELS,
    hold: float = 0.2,
) -> List[StepDefinition]:
    """One pass of ``labels`` that loops back to the first step when done."""
    if not labels:
        raise InvalidConfiguration("step_labels must not be empty")
    return [
        StepDefinition(i, label, float(hold), 0, True)
        for i, label in enumerate(labels)
    ]


def from_config(cfg: Dict[str, Any], mode: str) -> List[StepDefinition]:
    """Steps for ``mode`` ("practice" or "perform") from a loaded config."""
    labels = cfg.get("step_labels", DEFAULT_STEP_LABELS)
    if mode == "practice":
        return practice_steps(
            labels,
            cfg.get("practice_repeats", 11),
            cfg.get("practice_hold_schedule", DEFAULT_HOLD_SCHEDULE),
        )
    if mode == "perform":
        return performance_steps(labels, cfg.get("performance_hold_s", 0.2))
    raise ValueError(f"unknown mode {mode!r}")
