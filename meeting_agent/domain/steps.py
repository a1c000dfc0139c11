"""Step sequencing: order, neighbours and progress.

Entry requirements live in ``meeting_agent.validators``; this module only knows
the order of the steps.
"""

from __future__ import annotations

from typing import Optional

from meeting_agent.domain.enums import WorkflowStep

STEP_SEQUENCE: tuple[WorkflowStep, ...] = tuple(WorkflowStep)
TOTAL_STEPS = len(STEP_SEQUENCE)

_INDEX = {step: i for i, step in enumerate(STEP_SEQUENCE)}


def step_index(step: WorkflowStep) -> int:
    return _INDEX[WorkflowStep(step)]


def next_step(step: WorkflowStep) -> Optional[WorkflowStep]:
    idx = step_index(step)
    if idx + 1 >= TOTAL_STEPS:
        return None
    return STEP_SEQUENCE[idx + 1]


def is_forward(current: WorkflowStep, target: WorkflowStep) -> bool:
    return step_index(target) > step_index(current)


def steps_from(step: WorkflowStep) -> frozenset[WorkflowStep]:
    """``step`` and every step after it."""
    return frozenset(STEP_SEQUENCE[step_index(step):])


def steps_after(step: WorkflowStep) -> frozenset[WorkflowStep]:
    return frozenset(STEP_SEQUENCE[step_index(step) + 1:])


def progress_for(step: WorkflowStep) -> int:
    return round(step_index(step) / (TOTAL_STEPS - 1) * 100)


__all__ = [
    "STEP_SEQUENCE",
    "TOTAL_STEPS",
    "is_forward",
    "next_step",
    "progress_for",
    "step_index",
    "steps_after",
    "steps_from",
]
