"""Collaborator abstraction protocols and I/O schemas."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import Field

from meeting_agent.domain.enums import EmailJobState, Intent
from meeting_agent.domain.models import Attendee, BusyWindow, CamelModel, MeetingData
from meeting_agent.shared.exceptions import ToolError


# ── AI ──


class IntentRequest(CamelModel):
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class IntentFields(CamelModel):
    duration: Optional[int] = Field(default=None, description="Requested duration in minutes")
    purpose: Optional[str] = None
    participants: list[str] = Field(default_factory=list)
    suggested_title: Optional[str] = None


class IntentResult(CamelModel):
    intent: Intent = Intent.OTHER
    confidence: float = Field(default=0.0, ge=0, le=1)
    fields: IntentFields = Field(default_factory=IntentFields)
    missing: list[str] = Field(default_factory=list)


class TitleRequest(CamelModel):
    purpose: str
    participants: list[str] = Field(default_factory=list)
    context: str = ""


class TitleResult(CamelModel):
    title: str
    enhanced_purpose: str = ""
    title_suggestions: list[str] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list)


class AgendaRequest(CamelModel):
    meeting_id: str
    title: str
    enhanced_purpose: str = ""
    participants: list[str] = Field(default_factory=list)
    duration: int = Field(default=60, description="Meeting duration in minutes")
    meeting_link: Optional[str] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None


class AgendaContent(CamelModel):
    html: str
    text: str = ""


class AgendaResult(CamelModel):
    agenda: AgendaContent


# ── calendar ──


class CalendarEventRequest(CamelModel):
    title: str
    start_time: dt.datetime
    end_time: dt.datetime
    attendees: list[str] = Field(default_factory=list)
    create_meet_link: bool = False
    description: str = ""
    location: Optional[str] = None


class CalendarEvent(CamelModel):
    id: Optional[str] = None
    meeting_link: Optional[str] = None
    html_link: Optional[str] = None


class CalendarEventResult(CamelModel):
    success: bool
    event: CalendarEvent = Field(default_factory=CalendarEvent)


# ── email ──


class EmailDispatchRequest(CamelModel):
    meeting_id: str
    attendees: list[Attendee] = Field(default_factory=list)
    meeting_data: MeetingData
    agenda_content: str = ""


class EmailJob(CamelModel):
    job_id: str


class EmailJobStatus(CamelModel):
    job_id: str
    status: EmailJobState = EmailJobState.PENDING
    emails_sent: int = 0
    emails_failed: int = 0
    total_attendees: int = 0
    errors: list[str] = Field(default_factory=list)


@runtime_checkable
class AIService(Protocol):
    name: str

    def extract_intent(self, request: IntentRequest) -> IntentResult: ...

    def generate_title(self, request: TitleRequest) -> TitleResult: ...

    def generate_agenda(self, request: AgendaRequest) -> AgendaResult: ...


@runtime_checkable
class CalendarService(Protocol):
    name: str

    def create_event(self, request: CalendarEventRequest) -> CalendarEventResult: ...

    def find_conflicts(self, start: dt.datetime, end: dt.datetime) -> list[BusyWindow]: ...


@runtime_checkable
class EmailService(Protocol):
    name: str

    def dispatch(self, request: EmailDispatchRequest) -> EmailJob: ...

    def get_status(self, job_id: str) -> Optional[EmailJobStatus]: ...


__all__ = [
    "AIService",
    "AgendaContent",
    "AgendaRequest",
    "AgendaResult",
    "CalendarEvent",
    "CalendarEventRequest",
    "CalendarEventResult",
    "CalendarService",
    "EmailDispatchRequest",
    "EmailJob",
    "EmailJobStatus",
    "EmailService",
    "IntentFields",
    "IntentRequest",
    "IntentResult",
    "TitleRequest",
    "TitleResult",
    "ToolError",
]
