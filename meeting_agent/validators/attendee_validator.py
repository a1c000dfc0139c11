"""Attendee rules: online gate and list integrity."""

from __future__ import annotations

from meeting_agent.domain.constants import (
    EMAIL_RE,
    MANY_ATTENDEES_WARNING,
    MAX_ATTENDEES,
    MIN_ATTENDEES_FOR_ONLINE,
)
from meeting_agent.domain.enums import MeetingType, Severity, WorkflowStep
from meeting_agent.domain.models import MeetingData, ValidationResult


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_RE.match(email.strip().lower()) is not None


def invalid_emails(meeting_data: MeetingData) -> list[str]:
    return [a.email for a in meeting_data.attendees if not is_valid_email(a.email)]


def duplicate_emails(meeting_data: MeetingData) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for attendee in meeting_data.attendees:
        if attendee.email in seen and attendee.email not in duplicates:
            duplicates.append(attendee.email)
        seen.add(attendee.email)
    return duplicates


def validate_attendee_gate(meeting_data: MeetingData, target_step: WorkflowStep) -> list[ValidationResult]:
    """Online meetings cannot leave attendee collection with an empty list."""
    if meeting_data.type != MeetingType.ONLINE:
        return []
    if len(meeting_data.attendees) < MIN_ATTENDEES_FOR_ONLINE:
        return [
            ValidationResult(
                field="attendees",
                is_valid=False,
                message="Online meetings must have at least one attendee",
                severity=Severity.ERROR,
            )
        ]
    return [
        ValidationResult(
            field="attendees",
            is_valid=True,
            message=f"{len(meeting_data.attendees)} attendee(s) added",
        )
    ]


def validate_attendee_list(meeting_data: MeetingData, target_step: WorkflowStep) -> list[ValidationResult]:
    results: list[ValidationResult] = []
    attendees = meeting_data.attendees
    if not attendees:
        return results

    for email in invalid_emails(meeting_data):
        results.append(
            ValidationResult(
                field="attendees",
                is_valid=False,
                message=f"Invalid email format: {email}",
                severity=Severity.ERROR,
            )
        )

    duplicates = duplicate_emails(meeting_data)
    if duplicates:
        results.append(
            ValidationResult(
                field="attendees",
                is_valid=False,
                message=f"Duplicate attendee emails are not allowed: {', '.join(duplicates)}",
                severity=Severity.ERROR,
            )
        )

    if len(attendees) > MAX_ATTENDEES:
        results.append(
            ValidationResult(
                field="attendees",
                is_valid=False,
                message=f"Cannot have more than {MAX_ATTENDEES} attendees",
                severity=Severity.ERROR,
            )
        )
    elif len(attendees) >= MANY_ATTENDEES_WARNING:
        results.append(
            ValidationResult(
                field="attendees",
                is_valid=False,
                message=f"Meeting has a large number of attendees ({MANY_ATTENDEES_WARNING}+)",
                severity=Severity.WARNING,
            )
        )
    return results
