"""Pydantic domain models.

Attributes are snake_case; the wire format is camelCase through ``to_camel``.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from meeting_agent.domain.enums import MeetingStatus, MeetingType, Severity, WorkflowStep


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def ensure_aware(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    """Treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Attendee(CamelModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture: Optional[str] = None
    is_validated: bool = False
    is_required: bool = True

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class MeetingData(CamelModel):
    id: Optional[str] = None
    title: Optional[str] = None
    purpose: Optional[str] = None
    type: Optional[MeetingType] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = None
    attendees: list[Attendee] = Field(default_factory=list)
    agenda: Optional[str] = None
    meeting_link: Optional[str] = None
    event_id: Optional[str] = None
    status: MeetingStatus = MeetingStatus.DRAFT

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return ensure_aware(value)

    @property
    def duration(self) -> Optional[dt.timedelta]:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


class ValidationResult(CamelModel):
    field: str
    is_valid: bool
    message: str
    severity: Severity = Severity.INFO

    @property
    def is_blocking(self) -> bool:
        return not self.is_valid and self.severity == Severity.ERROR


class BusyWindow(CamelModel):
    start: dt.datetime
    end: dt.datetime
    summary: str = ""


class WorkflowState(CamelModel):
    conversation_id: str
    current_step: WorkflowStep = WorkflowStep.INTENT_DETECTION
    meeting_data: MeetingData = Field(default_factory=MeetingData)
    validation_results: list[ValidationResult] = Field(default_factory=list)
    pending_actions: list[str] = Field(default_factory=list)
    is_complete: bool = False
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    time_collection_complete: bool = False
    attendee_collection_complete: bool = False
    progress: int = Field(default=0, ge=0, le=100)

    calendar_access_verified: bool = False
    availability_checked: bool = False
    conflicts: list[BusyWindow] = Field(default_factory=list)
    title_suggestions: list[str] = Field(default_factory=list)
    agenda_version: int = 0
    loading: bool = False
    email_job_id: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)


class ErrorResponse(CamelModel):
    error: bool = True
    code: str = "INTERNAL_ERROR"
    message: str = ""
    details: list[str] = Field(default_factory=list)
