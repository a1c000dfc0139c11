"""Meeting finalisation: calendar event creation and agenda email dispatch.

Both calls run outside the meeting lock. The workflow is moved into
``creation`` before the calendar call and into ``completed`` only after the
agenda email has been handed to the email service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from meeting_agent.application.workflow import WorkflowEngine
from meeting_agent.domain.enums import EmailJobState, ErrorCode, MeetingStatus, MeetingType, WorkflowStep
from meeting_agent.domain.exceptions import WorkflowStepInvalid
from meeting_agent.domain.models import MeetingData, WorkflowState
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.infrastructure.retry import RetryPolicy
from meeting_agent.shared.exceptions import ExternalServiceError
from meeting_agent.tools.interfaces import (
    CalendarEventRequest,
    CalendarService,
    EmailDispatchRequest,
    EmailService,
)
from meeting_agent.validators.agenda_validator import agenda_text

CALENDAR_RETRY_MESSAGE = "Could not create the calendar event. Please try again."
EMAIL_RETRY_MESSAGE = "The meeting was created but the agenda email could not be sent. Please try again."


@dataclass
class FinalizeOutcome:
    success: bool
    state: WorkflowState
    message: str
    errors: list[str]
    error_code: Optional[ErrorCode] = None
    warnings: list[str] = field(default_factory=list)


def build_event_request(md: MeetingData) -> CalendarEventRequest:
    description = agenda_text(md.agenda or "") or (md.purpose or "")
    return CalendarEventRequest(
        title=md.title or "Meeting",
        start_time=md.start_time,
        end_time=md.end_time,
        attendees=[a.email for a in md.attendees],
        create_meet_link=md.type == MeetingType.ONLINE,
        description=description,
        location=md.location if md.type == MeetingType.PHYSICAL else None,
    )


class FinalizeService:
    def __init__(
        self,
        engine: WorkflowEngine,
        calendar: CalendarService,
        email: EmailService,
        *,
        retry: Optional[RetryPolicy] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self._engine = engine
        self._calendar = calendar
        self._email = email
        self._retry = retry or RetryPolicy()
        self._log = logger or get_logger()

    def approve(self, meeting_id: str) -> FinalizeOutcome:
        """Approval -> creation -> calendar event -> agenda email -> completed."""
        with self._engine.locked(meeting_id):
            state = self._engine.get(meeting_id)
            if state.current_step != WorkflowStep.APPROVAL:
                raise WorkflowStepInvalid(f"Meeting {meeting_id} is not awaiting approval")
            outcome = self._engine.advance(meeting_id, WorkflowStep.CREATION)
            if not outcome.success:
                return FinalizeOutcome(
                    success=False,
                    state=outcome.state,
                    message="Meeting is not ready to be created",
                    errors=outcome.check.errors,
                    error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
                )
            state = self._engine.mutate(meeting_id, _set_loading)

        request = build_event_request(state.meeting_data)
        try:
            result = self._retry.run(lambda: self._calendar.create_event(request), service="calendar")
            if not result.success:
                raise ExternalServiceError("calendar", "event was not created", retryable=False)
            self._log.external_call("calendar", "create_event", success=True, event_id=result.event.id)
        except ExternalServiceError as exc:
            self._log.external_call("calendar", "create_event", success=False, error=str(exc))
            with self._engine.locked(meeting_id):
                self._engine.advance(meeting_id, WorkflowStep.APPROVAL)
                state = self._engine.mutate(meeting_id, _clear_loading)
            return FinalizeOutcome(
                success=False,
                state=state,
                message=CALENDAR_RETRY_MESSAGE,
                errors=[str(exc)],
                error_code=ErrorCode.EXTERNAL_SERVICE_FAILURE,
            )

        def _created(s: WorkflowState) -> None:
            # loading stays set until the agenda email is out
            s.meeting_data.status = MeetingStatus.CREATED
            s.meeting_data.event_id = result.event.id
            if result.event.meeting_link:
                s.meeting_data.meeting_link = result.event.meeting_link

        state = self._engine.mutate(meeting_id, _created)
        return self._dispatch(meeting_id, state)

    def send_agenda(self, meeting_id: str) -> FinalizeOutcome:
        """Retry the agenda email for a meeting whose calendar event already exists."""
        with self._engine.locked(meeting_id):
            state = self._engine.get(meeting_id)
            if state.current_step != WorkflowStep.CREATION or state.meeting_data.status != MeetingStatus.CREATED:
                return FinalizeOutcome(
                    success=False,
                    state=state,
                    message="The calendar event is still being created",
                    errors=["Calendar event not created yet"],
                    error_code=ErrorCode.WORKFLOW_STEP_INVALID,
                )
            if state.loading:
                return FinalizeOutcome(
                    success=False,
                    state=state,
                    message="The agenda email is already being sent",
                    errors=["Agenda email already in progress"],
                    error_code=ErrorCode.WORKFLOW_STEP_INVALID,
                )
            state = self._engine.mutate(meeting_id, _set_loading)
        return self._dispatch(meeting_id, state)

    def _dispatch(self, meeting_id: str, state: WorkflowState) -> FinalizeOutcome:
        md = state.meeting_data
        request = EmailDispatchRequest(
            meeting_id=meeting_id,
            attendees=md.attendees,
            meeting_data=md,
            agenda_content=md.agenda or "",
        )
        try:
            job = self._retry.run(lambda: self._email.dispatch(request), service="email")
            self._log.external_call("email", "dispatch", success=True, job_id=job.job_id)
        except ExternalServiceError as exc:
            self._log.external_call("email", "dispatch", success=False, error=str(exc))
            state = self._engine.mutate(meeting_id, _clear_loading)
            return FinalizeOutcome(
                success=False,
                state=state,
                message=EMAIL_RETRY_MESSAGE,
                errors=[str(exc)],
                error_code=ErrorCode.EXTERNAL_SERVICE_FAILURE,
            )

        def _sent(s: WorkflowState) -> None:
            s.email_job_id = job.job_id
            s.loading = False

        status = self._email.get_status(job.job_id)
        if status is not None and status.status == EmailJobState.FAILED:
            self._log.external_call(
                "email", "delivery", success=False, job_id=job.job_id, failed=status.emails_failed
            )
            state = self._engine.mutate(meeting_id, _sent)
            return FinalizeOutcome(
                success=False,
                state=state,
                message=EMAIL_RETRY_MESSAGE,
                errors=status.errors or ["No agenda email could be delivered"],
                error_code=ErrorCode.EXTERNAL_SERVICE_FAILURE,
            )
        warnings = []
        if status is not None and status.status == EmailJobState.PARTIALLY_FAILED:
            warnings.append(
                f"Agenda email could not be delivered to {status.emails_failed} of {status.total_attendees} attendee(s)"
            )

        with self._engine.locked(meeting_id):
            self._engine.mutate(meeting_id, _sent)
            outcome = self._engine.advance(meeting_id, WorkflowStep.COMPLETED)
        return FinalizeOutcome(
            success=outcome.success,
            state=outcome.state,
            message="Meeting created and agenda sent to attendees" if outcome.success else "Meeting could not be completed",
            errors=outcome.check.errors,
            warnings=warnings,
        )

    def email_status(self, job_id: str):
        return self._email.get_status(job_id)


def _set_loading(state: WorkflowState) -> None:
    state.loading = True


def _clear_loading(state: WorkflowState) -> None:
    state.loading = False


__all__ = ["CALENDAR_RETRY_MESSAGE", "EMAIL_RETRY_MESSAGE", "FinalizeOutcome", "FinalizeService", "build_event_request"]
