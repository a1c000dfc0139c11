"""Time window rules: presence, ordering and advisories."""

from __future__ import annotations

import datetime as dt

from meeting_agent.domain.constants import (
    BUSINESS_HOURS_END,
    BUSINESS_HOURS_START,
    MAX_MEETING_DURATION_HOURS,
    MIN_MEETING_DURATION_MINUTES,
)
from meeting_agent.domain.enums import Severity, WorkflowStep
from meeting_agent.domain.models import MeetingData, ValidationResult


def validate_time_window(meeting_data: MeetingData, target_step: WorkflowStep) -> list[ValidationResult]:
    start, end = meeting_data.start_time, meeting_data.end_time
    results: list[ValidationResult] = []
    if start is None:
        results.append(
            ValidationResult(
                field="startTime",
                is_valid=False,
                message="Meeting start time is required",
                severity=Severity.ERROR,
            )
        )
    if end is None:
        results.append(
            ValidationResult(
                field="endTime",
                is_valid=False,
                message="Meeting end time is required",
                severity=Severity.ERROR,
            )
        )
    if results:
        return results

    if start >= end:
        return [
            ValidationResult(
                field="endTime",
                is_valid=False,
                message="End time must be after start time",
                severity=Severity.ERROR,
            )
        ]
    return [
        ValidationResult(
            field="endTime",
            is_valid=True,
            message="Meeting time window is valid",
        )
    ]


def validate_time_advisories(
    meeting_data: MeetingData,
    target_step: WorkflowStep,
    *,
    now: dt.datetime | None = None,
) -> list[ValidationResult]:
    """Non-blocking warnings about when and how long the meeting runs."""
    start, end = meeting_data.start_time, meeting_data.end_time
    if start is None or end is None or start >= end:
        return []

    now = now or dt.datetime.now(dt.timezone.utc)
    warnings: list[str] = []
    if start < now:
        warnings.append("Meeting is scheduled in the past")

    minutes = (end - start).total_seconds() / 60
    if minutes < MIN_MEETING_DURATION_MINUTES:
        warnings.append(f"Meeting is shorter than {MIN_MEETING_DURATION_MINUTES} minutes")
    if minutes > MAX_MEETING_DURATION_HOURS * 60:
        warnings.append(f"Meeting is longer than {MAX_MEETING_DURATION_HOURS} hours")

    start_utc = start.astimezone(dt.timezone.utc)
    end_utc = end.astimezone(dt.timezone.utc)
    if start_utc.hour < BUSINESS_HOURS_START or end_utc.hour > BUSINESS_HOURS_END:
        warnings.append("Meeting is scheduled outside typical business hours (8 AM - 6 PM)")
    if start_utc.weekday() >= 5:
        warnings.append("Meeting is scheduled on a weekend")

    return [
        ValidationResult(field="startTime", is_valid=False, message=msg, severity=Severity.WARNING)
        for msg in warnings
    ]
