"""Location, title and creation-state rules."""

from __future__ import annotations

from meeting_agent.domain.constants import MIN_LOCATION_LENGTH
from meeting_agent.domain.enums import MeetingStatus, MeetingType, Severity, WorkflowStep
from meeting_agent.domain.models import MeetingData, ValidationResult


def has_valid_location(location: str | None) -> bool:
    return bool(location) and len(location.strip()) >= MIN_LOCATION_LENGTH


def validate_location(meeting_data: MeetingData, target_step: WorkflowStep) -> list[ValidationResult]:
    if meeting_data.type != MeetingType.PHYSICAL:
        return []
    if not has_valid_location(meeting_data.location):
        return [
            ValidationResult(
                field="location",
                is_valid=False,
                message="Location is required for physical meetings",
                severity=Severity.ERROR,
            )
        ]
    return [ValidationResult(field="location", is_valid=True, message=f"Location: {meeting_data.location}")]


def validate_title(meeting_data: MeetingData, target_step: WorkflowStep) -> list[ValidationResult]:
    if not (meeting_data.title or "").strip():
        return [
            ValidationResult(
                field="title",
                is_valid=False,
                message="Meeting title is required",
                severity=Severity.ERROR,
            )
        ]
    return [ValidationResult(field="title", is_valid=True, message=f"Title: {meeting_data.title}")]


def validate_created(meeting_data: MeetingData, target_step: WorkflowStep) -> list[ValidationResult]:
    if meeting_data.status != MeetingStatus.CREATED:
        return [
            ValidationResult(
                field="status",
                is_valid=False,
                message="Meeting must be successfully created before completion",
                severity=Severity.ERROR,
            )
        ]
    return [ValidationResult(field="status", is_valid=True, message="Meeting created")]
