"""Per-step entry requirements.

Each rule is a pure function ``(meeting_data, target_step) -> [ValidationResult]``.
``STEP_RULES`` decides which rules guard which target steps; the order of the
steps themselves lives in ``meeting_agent.domain.steps``.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable

from meeting_agent.domain.enums import Severity, WorkflowStep
from meeting_agent.domain.models import MeetingData, ValidationResult
from meeting_agent.domain.steps import steps_after, steps_from
from meeting_agent.validators.attendee_validator import validate_attendee_gate, validate_attendee_list
from meeting_agent.validators.details_validator import validate_created, validate_location, validate_title
from meeting_agent.validators.time_validator import validate_time_advisories, validate_time_window
from meeting_agent.validators.type_validator import validate_type

Rule = Callable[..., list[ValidationResult]]


@dataclass(frozen=True)
class StepRule:
    name: str
    check: Rule
    steps: frozenset[WorkflowStep]
    uses_clock: bool = False


_AVAILABILITY_STEPS = frozenset({WorkflowStep.AVAILABILITY_CHECK, WorkflowStep.CONFLICT_RESOLUTION})

STEP_RULES: tuple[StepRule, ...] = (
    StepRule("type", validate_type, steps_after(WorkflowStep.MEETING_TYPE_SELECTION)),
    StepRule("attendee_gate", validate_attendee_gate, steps_from(WorkflowStep.MEETING_DETAILS_COLLECTION)),
    StepRule("attendee_list", validate_attendee_list, steps_from(WorkflowStep.MEETING_DETAILS_COLLECTION)),
    StepRule("time_window", validate_time_window, _AVAILABILITY_STEPS | steps_from(WorkflowStep.VALIDATION)),
    StepRule(
        "time_advisories",
        validate_time_advisories,
        steps_from(WorkflowStep.VALIDATION),
        uses_clock=True,
    ),
    StepRule("location", validate_location, steps_from(WorkflowStep.CREATION)),
    StepRule("title", validate_title, steps_from(WorkflowStep.CREATION)),
    StepRule("created", validate_created, frozenset({WorkflowStep.COMPLETED})),
)

# field -> what the user has to do about a blocking result
REQUIRED_ACTIONS: dict[str, str] = {
    "type": "Select meeting type",
    "attendees": "Add attendees for online meeting",
    "startTime": "Set meeting start and end time",
    "endTime": "Set meeting start and end time",
    "location": "Add a meeting location",
    "title": "Add a meeting title",
    "status": "Create the calendar event",
}


def run_step_rules(
    meeting_data: MeetingData,
    target_step: WorkflowStep,
    *,
    now: dt.datetime | None = None,
) -> list[ValidationResult]:
    target_step = WorkflowStep(target_step)
    results: list[ValidationResult] = []
    for rule in STEP_RULES:
        if target_step not in rule.steps:
            continue
        if rule.uses_clock:
            results.extend(rule.check(meeting_data, target_step, now=now))
        else:
            results.extend(rule.check(meeting_data, target_step))
    return results


def blocking_errors(results: list[ValidationResult]) -> list[str]:
    return [r.message for r in results if r.is_blocking]


def warning_messages(results: list[ValidationResult]) -> list[str]:
    return [r.message for r in results if not r.is_valid and r.severity == Severity.WARNING]


def required_actions(results: list[ValidationResult]) -> list[str]:
    actions: list[str] = []
    for result in results:
        if not result.is_blocking:
            continue
        action = REQUIRED_ACTIONS.get(result.field, f"Fix {result.field}")
        if result.field == "attendees" and not result.message.startswith("Online"):
            action = "Fix attendee list"
        if action not in actions:
            actions.append(action)
    return actions


__all__ = [
    "REQUIRED_ACTIONS",
    "STEP_RULES",
    "StepRule",
    "blocking_errors",
    "required_actions",
    "run_step_rules",
    "warning_messages",
]
