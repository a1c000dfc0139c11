"""UI block generation: one block per workflow step, derived from state only.

``generate`` is pure; calling it twice on the same state gives equal blocks.
Optional values stay ``None`` and are dropped on serialisation so the UI can
render a prompt instead of a value.
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Callable, Literal, Optional, Union

from pydantic import Field

from meeting_agent.domain.constants import DEFAULT_MEETING_MINUTES
from meeting_agent.domain.enums import MeetingStatus, MeetingType, UIBlockType, WorkflowStep
from meeting_agent.domain.models import Attendee, BusyWindow, CamelModel, ValidationResult, WorkflowState
from meeting_agent.validators.agenda_validator import AgendaValidation, validate_agenda
from meeting_agent.validators.attendee_validator import invalid_emails, validate_attendee_list


# ── block payloads ──


class IntentPromptData(CamelModel):
    meeting_id: str
    question: str


class CalendarAccessData(CamelModel):
    meeting_id: str
    has_access: bool


class MeetingTypeOption(CamelModel):
    value: MeetingType
    label: str


class MeetingTypeSelectionData(CamelModel):
    question: str
    meeting_id: str
    current_type: Optional[MeetingType] = None
    current_location: Optional[str] = None
    options: list[MeetingTypeOption] = Field(default_factory=list)


class TimeSelectionData(CamelModel):
    meeting_id: str
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration_minutes: Optional[int] = None


class AvailabilityCheckData(CamelModel):
    meeting_id: str
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    checked: bool = False


class ConflictResolutionData(CamelModel):
    meeting_id: str
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    conflicts: list[BusyWindow] = Field(default_factory=list)


class AttendeeManagementData(CamelModel):
    meeting_id: str
    attendees: list[Attendee] = Field(default_factory=list)
    meeting_type: Optional[MeetingType] = None
    is_required: bool = False
    validation_errors: Optional[list[str]] = None
    invalid_emails: Optional[list[str]] = None


class TitleSuggestionsData(CamelModel):
    meeting_id: str
    suggestions: list[str] = Field(default_factory=list)
    current_title: Optional[str] = None
    purpose: Optional[str] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration_minutes: Optional[int] = None
    pending_actions: list[str] = Field(default_factory=list)
    loading: bool = False


class ValidationSummaryData(CamelModel):
    meeting_id: str
    results: list[ValidationResult] = Field(default_factory=list)
    can_proceed: bool = True


class AgendaEditorData(CamelModel):
    meeting_id: str
    initial_agenda: str = ""
    meeting_title: str = ""
    duration: int = DEFAULT_MEETING_MINUTES
    is_approval_mode: bool = False
    loading: bool = False
    validation: Optional[AgendaValidation] = None


class MeetingApprovalData(CamelModel):
    meeting_id: str
    title: Optional[str] = None
    type: Optional[MeetingType] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    location: Optional[str] = None
    attendees: list[Attendee] = Field(default_factory=list)
    agenda: Optional[str] = None
    validation_results: list[ValidationResult] = Field(default_factory=list)


class CreationStatusData(CamelModel):
    meeting_id: str
    title: Optional[str] = None
    meeting_link: Optional[str] = None
    status: MeetingStatus = MeetingStatus.DRAFT


class CompletionData(CamelModel):
    meeting_id: str
    title: Optional[str] = None
    meeting_link: Optional[str] = None
    email_job_id: Optional[str] = None


# ── blocks ──


class IntentPromptBlock(CamelModel):
    type: Literal[UIBlockType.INTENT_PROMPT] = UIBlockType.INTENT_PROMPT
    data: IntentPromptData


class CalendarAccessBlock(CamelModel):
    type: Literal[UIBlockType.CALENDAR_ACCESS] = UIBlockType.CALENDAR_ACCESS
    data: CalendarAccessData


class MeetingTypeSelectionBlock(CamelModel):
    type: Literal[UIBlockType.MEETING_TYPE_SELECTION] = UIBlockType.MEETING_TYPE_SELECTION
    data: MeetingTypeSelectionData


class TimeSelectionBlock(CamelModel):
    type: Literal[UIBlockType.TIME_SELECTION] = UIBlockType.TIME_SELECTION
    data: TimeSelectionData


class AvailabilityCheckBlock(CamelModel):
    type: Literal[UIBlockType.AVAILABILITY_CHECK] = UIBlockType.AVAILABILITY_CHECK
    data: AvailabilityCheckData


class ConflictResolutionBlock(CamelModel):
    type: Literal[UIBlockType.CONFLICT_RESOLUTION] = UIBlockType.CONFLICT_RESOLUTION
    data: ConflictResolutionData


class AttendeeManagementBlock(CamelModel):
    type: Literal[UIBlockType.ATTENDEE_MANAGEMENT] = UIBlockType.ATTENDEE_MANAGEMENT
    data: AttendeeManagementData


class TitleSuggestionsBlock(CamelModel):
    type: Literal[UIBlockType.TITLE_SUGGESTIONS] = UIBlockType.TITLE_SUGGESTIONS
    data: TitleSuggestionsData


class ValidationSummaryBlock(CamelModel):
    type: Literal[UIBlockType.VALIDATION_SUMMARY] = UIBlockType.VALIDATION_SUMMARY
    data: ValidationSummaryData


class AgendaEditorBlock(CamelModel):
    type: Literal[UIBlockType.AGENDA_EDITOR] = UIBlockType.AGENDA_EDITOR
    data: AgendaEditorData


class MeetingApprovalBlock(CamelModel):
    type: Literal[UIBlockType.MEETING_APPROVAL] = UIBlockType.MEETING_APPROVAL
    data: MeetingApprovalData


class CreationStatusBlock(CamelModel):
    type: Literal[UIBlockType.CREATION_STATUS] = UIBlockType.CREATION_STATUS
    data: CreationStatusData


class CompletionBlock(CamelModel):
    type: Literal[UIBlockType.COMPLETION] = UIBlockType.COMPLETION
    data: CompletionData


UIBlock = Annotated[
    Union[
        IntentPromptBlock,
        CalendarAccessBlock,
        MeetingTypeSelectionBlock,
        TimeSelectionBlock,
        AvailabilityCheckBlock,
        ConflictResolutionBlock,
        AttendeeManagementBlock,
        TitleSuggestionsBlock,
        ValidationSummaryBlock,
        AgendaEditorBlock,
        MeetingApprovalBlock,
        CreationStatusBlock,
        CompletionBlock,
    ],
    Field(discriminator="type"),
]

# the block type each step renders
STEP_BLOCK_TYPES: dict[WorkflowStep, UIBlockType] = {
    WorkflowStep.INTENT_DETECTION: UIBlockType.INTENT_PROMPT,
    WorkflowStep.CALENDAR_ACCESS_VERIFICATION: UIBlockType.CALENDAR_ACCESS,
    WorkflowStep.MEETING_TYPE_SELECTION: UIBlockType.MEETING_TYPE_SELECTION,
    WorkflowStep.TIME_DATE_COLLECTION: UIBlockType.TIME_SELECTION,
    WorkflowStep.AVAILABILITY_CHECK: UIBlockType.AVAILABILITY_CHECK,
    WorkflowStep.CONFLICT_RESOLUTION: UIBlockType.CONFLICT_RESOLUTION,
    WorkflowStep.ATTENDEE_COLLECTION: UIBlockType.ATTENDEE_MANAGEMENT,
    WorkflowStep.MEETING_DETAILS_COLLECTION: UIBlockType.TITLE_SUGGESTIONS,
    WorkflowStep.VALIDATION: UIBlockType.VALIDATION_SUMMARY,
    WorkflowStep.AGENDA_GENERATION: UIBlockType.AGENDA_EDITOR,
    WorkflowStep.AGENDA_APPROVAL: UIBlockType.AGENDA_EDITOR,
    WorkflowStep.APPROVAL: UIBlockType.MEETING_APPROVAL,
    WorkflowStep.CREATION: UIBlockType.CREATION_STATUS,
    WorkflowStep.COMPLETED: UIBlockType.COMPLETION,
}

_TYPE_OPTIONS = [
    MeetingTypeOption(value=MeetingType.PHYSICAL, label="In-person"),
    MeetingTypeOption(value=MeetingType.ONLINE, label="Online"),
]


def meeting_minutes(state: WorkflowState) -> int:
    md = state.meeting_data
    if md.duration is not None and md.duration.total_seconds() > 0:
        return int(md.duration.total_seconds() // 60)
    return md.duration_minutes or DEFAULT_MEETING_MINUTES


# ── per-step builders ──


def _intent_prompt(state: WorkflowState) -> IntentPromptBlock:
    return IntentPromptBlock(
        data=IntentPromptData(
            meeting_id=state.conversation_id,
            question="What meeting would you like to schedule?",
        )
    )


def _calendar_access(state: WorkflowState) -> CalendarAccessBlock:
    return CalendarAccessBlock(
        data=CalendarAccessData(meeting_id=state.conversation_id, has_access=state.calendar_access_verified)
    )


def _type_selection(state: WorkflowState) -> MeetingTypeSelectionBlock:
    md = state.meeting_data
    return MeetingTypeSelectionBlock(
        data=MeetingTypeSelectionData(
            question="Will this be an in-person or online meeting?",
            meeting_id=state.conversation_id,
            current_type=md.type,
            current_location=md.location,
            options=[o.model_copy() for o in _TYPE_OPTIONS],
        )
    )


def _time_selection(state: WorkflowState) -> TimeSelectionBlock:
    md = state.meeting_data
    return TimeSelectionBlock(
        data=TimeSelectionData(
            meeting_id=state.conversation_id,
            start_time=md.start_time,
            end_time=md.end_time,
            duration_minutes=md.duration_minutes,
        )
    )


def _availability(state: WorkflowState) -> AvailabilityCheckBlock:
    md = state.meeting_data
    return AvailabilityCheckBlock(
        data=AvailabilityCheckData(
            meeting_id=state.conversation_id,
            start_time=md.start_time,
            end_time=md.end_time,
            checked=state.availability_checked,
        )
    )


def _conflicts(state: WorkflowState) -> ConflictResolutionBlock:
    md = state.meeting_data
    return ConflictResolutionBlock(
        data=ConflictResolutionData(
            meeting_id=state.conversation_id,
            start_time=md.start_time,
            end_time=md.end_time,
            conflicts=[c.model_copy() for c in state.conflicts],
        )
    )


def _attendees(state: WorkflowState) -> AttendeeManagementBlock:
    md = state.meeting_data
    errors = [r.message for r in validate_attendee_list(md, state.current_step) if r.is_blocking]
    bad = invalid_emails(md)
    return AttendeeManagementBlock(
        data=AttendeeManagementData(
            meeting_id=state.conversation_id,
            attendees=[a.model_copy() for a in md.attendees],
            meeting_type=md.type,
            is_required=md.type == MeetingType.ONLINE,
            validation_errors=errors or None,
            invalid_emails=bad or None,
        )
    )


def _title_suggestions(state: WorkflowState) -> TitleSuggestionsBlock:
    md = state.meeting_data
    return TitleSuggestionsBlock(
        data=TitleSuggestionsData(
            meeting_id=state.conversation_id,
            suggestions=list(state.title_suggestions),
            current_title=md.title,
            purpose=md.purpose,
            start_time=md.start_time,
            end_time=md.end_time,
            duration_minutes=md.duration_minutes,
            pending_actions=list(state.pending_actions),
            loading=state.loading,
        )
    )


def _validation_summary(state: WorkflowState) -> ValidationSummaryBlock:
    return ValidationSummaryBlock(
        data=ValidationSummaryData(
            meeting_id=state.conversation_id,
            results=[r.model_copy() for r in state.validation_results],
            can_proceed=not any(r.is_blocking for r in state.validation_results),
        )
    )


def _agenda_editor(state: WorkflowState) -> AgendaEditorBlock:
    md = state.meeting_data
    approval_mode = state.current_step == WorkflowStep.AGENDA_APPROVAL
    validation = None
    if approval_mode and md.agenda:
        validation = validate_agenda(md.agenda)
    return AgendaEditorBlock(
        data=AgendaEditorData(
            meeting_id=state.conversation_id,
            initial_agenda=md.agenda or "",
            meeting_title=md.title or "",
            duration=meeting_minutes(state),
            is_approval_mode=approval_mode,
            loading=state.loading,
            validation=validation,
        )
    )


def _approval(state: WorkflowState) -> MeetingApprovalBlock:
    md = state.meeting_data
    return MeetingApprovalBlock(
        data=MeetingApprovalData(
            meeting_id=state.conversation_id,
            title=md.title,
            type=md.type,
            start_time=md.start_time,
            end_time=md.end_time,
            location=md.location,
            attendees=[a.model_copy() for a in md.attendees],
            agenda=md.agenda,
            validation_results=[r.model_copy() for r in state.validation_results],
        )
    )


def _creation(state: WorkflowState) -> CreationStatusBlock:
    md = state.meeting_data
    return CreationStatusBlock(
        data=CreationStatusData(
            meeting_id=state.conversation_id,
            title=md.title,
            meeting_link=md.meeting_link,
            status=md.status,
        )
    )


def _completion(state: WorkflowState) -> CompletionBlock:
    md = state.meeting_data
    return CompletionBlock(
        data=CompletionData(
            meeting_id=state.conversation_id,
            title=md.title,
            meeting_link=md.meeting_link,
            email_job_id=state.email_job_id,
        )
    )


_BUILDERS: dict[WorkflowStep, Callable[[WorkflowState], CamelModel]] = {
    WorkflowStep.INTENT_DETECTION: _intent_prompt,
    WorkflowStep.CALENDAR_ACCESS_VERIFICATION: _calendar_access,
    WorkflowStep.MEETING_TYPE_SELECTION: _type_selection,
    WorkflowStep.TIME_DATE_COLLECTION: _time_selection,
    WorkflowStep.AVAILABILITY_CHECK: _availability,
    WorkflowStep.CONFLICT_RESOLUTION: _conflicts,
    WorkflowStep.ATTENDEE_COLLECTION: _attendees,
    WorkflowStep.MEETING_DETAILS_COLLECTION: _title_suggestions,
    WorkflowStep.VALIDATION: _validation_summary,
    WorkflowStep.AGENDA_GENERATION: _agenda_editor,
    WorkflowStep.AGENDA_APPROVAL: _agenda_editor,
    WorkflowStep.APPROVAL: _approval,
    WorkflowStep.CREATION: _creation,
    WorkflowStep.COMPLETED: _completion,
}


def generate(state: WorkflowState) -> UIBlock:
    """The block to render for ``state.current_step``."""
    return _BUILDERS[state.current_step](state)


__all__ = [
    "STEP_BLOCK_TYPES",
    "UIBlock",
    "generate",
    "meeting_minutes",
]
