"""Meeting type must be chosen before any step past type selection."""

from __future__ import annotations

from meeting_agent.domain.enums import Severity, WorkflowStep
from meeting_agent.domain.models import MeetingData, ValidationResult


def validate_type(meeting_data: MeetingData, target_step: WorkflowStep) -> list[ValidationResult]:
    if meeting_data.type is None:
        return [
            ValidationResult(
                field="type",
                is_valid=False,
                message="Meeting type must be selected",
                severity=Severity.ERROR,
            )
        ]
    return [
        ValidationResult(
            field="type",
            is_valid=True,
            message=f"Meeting type selected: {meeting_data.type.value}",
        )
    ]
