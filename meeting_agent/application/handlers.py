"""UI block interaction handlers.

Handlers are registered per ``(block_type, action)``. Each one validates its
payload with a pydantic model before touching state; a malformed payload
raises ``PayloadValidationError`` and leaves the workflow untouched.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from meeting_agent.application.agenda import AgendaService
from meeting_agent.application.contracts import (
    InteractionValidation,
    UIBlockInteractionRequest,
    UIBlockInteractionResponse,
    summarize,
)
from meeting_agent.application.finalize import FinalizeOutcome, FinalizeService
from meeting_agent.application.titles import TitleService
from meeting_agent.application.ui_blocks import STEP_BLOCK_TYPES, generate
from meeting_agent.application.workflow import WorkflowEngine
from meeting_agent.domain.enums import (
    ErrorCode,
    MeetingStatus,
    MeetingType,
    UIBlockAction,
    UIBlockType,
    WorkflowStep,
)
from meeting_agent.domain.exceptions import MeetingTypeLocked, PayloadValidationError, WorkflowStepInvalid
from meeting_agent.domain.models import Attendee, CamelModel, WorkflowState
from meeting_agent.domain.steps import step_index
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.infrastructure.retry import RetryPolicy
from meeting_agent.shared.exceptions import ExternalServiceError
from meeting_agent.tools.interfaces import CalendarService
from meeting_agent.validators.agenda_validator import validate_agenda, validate_agenda_draft
from meeting_agent.validators.attendee_validator import validate_attendee_list
from meeting_agent.validators.details_validator import has_valid_location

LOCATION_REQUIRED = "Location is required for physical meetings"

_STATUS_ORDER = list(MeetingStatus)


# ── payloads ──


class _Payload(CamelModel):
    model_config = ConfigDict(extra="ignore")


class TypeSelectPayload(_Payload):
    type: MeetingType
    location: Optional[str] = None


class AttendeesUpdatePayload(_Payload):
    attendees: list[Attendee]


class ContinuePayload(_Payload):
    updates: Optional[dict[str, Any]] = None


class AgendaPayload(_Payload):
    agenda: str = Field(max_length=100_000)


class EmptyPayload(_Payload):
    pass


def _parse(model: type[BaseModel], data: dict[str, Any]) -> Any:
    try:
        return model.model_validate(data or {})
    except ValidationError as exc:
        details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise PayloadValidationError("Invalid interaction payload", details=details) from None


# ── handler plumbing ──


@dataclass
class HandlerResult:
    state: WorkflowState
    message: str
    success: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error_code: Optional[ErrorCode] = None
    remove_after: bool = False


Handler = Callable[[str, Any], HandlerResult]


@dataclass(frozen=True)
class _Registration:
    fn: Handler
    payload: type[BaseModel]
    any_step: bool = False


class InteractionService:
    """Dispatches UI block interactions to the workflow engine."""

    def __init__(
        self,
        engine: WorkflowEngine,
        agenda: AgendaService,
        titles: TitleService,
        finalize: FinalizeService,
        calendar: CalendarService,
        *,
        retry: Optional[RetryPolicy] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self._engine = engine
        self._agenda = agenda
        self._titles = titles
        self._finalize = finalize
        self._calendar = calendar
        self._retry = retry or RetryPolicy()
        self._log = logger or get_logger()
        self._registry: dict[tuple[UIBlockType, UIBlockAction], _Registration] = {}
        self._register_defaults()

    def register(
        self,
        block_type: UIBlockType,
        action: UIBlockAction,
        fn: Handler,
        payload: type[BaseModel] = EmptyPayload,
        *,
        any_step: bool = False,
    ) -> None:
        self._registry[(block_type, action)] = _Registration(fn, payload, any_step)

    def _register_defaults(self) -> None:
        B, A = UIBlockType, UIBlockAction
        self.register(B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, self._type_select, TypeSelectPayload, any_step=True)
        self.register(B.ATTENDEE_MANAGEMENT, A.ATTENDEES_UPDATE, self._attendees_update, AttendeesUpdatePayload)
        self.register(B.ATTENDEE_MANAGEMENT, A.CONTINUE, self._attendees_continue, ContinuePayload)
        self.register(B.CALENDAR_ACCESS, A.CONTINUE, self._calendar_access_continue, ContinuePayload)
        self.register(B.AVAILABILITY_CHECK, A.CONTINUE, self._availability_continue, ContinuePayload)
        self.register(B.VALIDATION_SUMMARY, A.CONTINUE, self._validation_continue, ContinuePayload)
        self.register(B.AGENDA_EDITOR, A.AGENDA_UPDATE, self._agenda_update, AgendaPayload)
        self.register(B.AGENDA_EDITOR, A.AGENDA_APPROVE, self._agenda_approve, AgendaPayload)
        self.register(B.AGENDA_EDITOR, A.AGENDA_REGENERATE, self._agenda_regenerate)
        self.register(B.MEETING_APPROVAL, A.APPROVE, self._approve)
        self.register(B.MEETING_APPROVAL, A.EDIT, self._edit)
        self.register(B.CREATION_STATUS, A.CONTINUE, self._creation_continue)
        for block_type in (
            B.INTENT_PROMPT,
            B.MEETING_TYPE_SELECTION,
            B.TIME_SELECTION,
            B.CONFLICT_RESOLUTION,
            B.TITLE_SUGGESTIONS,
        ):
            self.register(
                block_type,
                A.CONTINUE,
                partial(self._generic_continue, block_type=block_type),
                ContinuePayload,
            )

    # ── entry point ──

    def handle(self, request: UIBlockInteractionRequest) -> UIBlockInteractionResponse:
        meeting_id = request.conversation_id
        handler_name = f"{request.block_type.value}/{request.action.value}"
        registration = self._registry.get((request.block_type, request.action))
        if registration is None:
            raise WorkflowStepInvalid(f"Unsupported interaction: {handler_name}")
        payload = _parse(registration.payload, request.data)

        self._log.handler_start(handler_name, meeting_id)
        try:
            state = self._engine.get(meeting_id)
            if not registration.any_step:
                _check_block(state, request.block_type)
            result = registration.fn(meeting_id, payload)
        except Exception as exc:
            self._log.handler_end(handler_name, meeting_id, success=False, error=str(exc))
            raise

        response = self._respond(meeting_id, result)
        if result.remove_after:
            self._engine.complete(meeting_id)
        self._log.handler_end(
            handler_name,
            meeting_id,
            success=result.success,
            step=result.state.current_step.value,
        )
        return response

    def _respond(self, meeting_id: str, result: HandlerResult) -> UIBlockInteractionResponse:
        block = generate(result.state)
        return UIBlockInteractionResponse(
            success=result.success,
            message=result.message,
            conversation_id=meeting_id,
            next_ui_block=block,
            workflow_state=summarize(result.state),
            validation=InteractionValidation(
                errors=result.errors,
                warnings=result.warnings,
                is_valid=not result.errors,
            ),
            error_code=result.error_code,
        )

    # ── helpers ──

    def _advance(self, meeting_id: str, target: Optional[WorkflowStep] = None, message: str = "") -> HandlerResult:
        outcome = self._engine.advance(meeting_id, target)
        if not outcome.success:
            return HandlerResult(
                state=outcome.state,
                message="; ".join(outcome.check.required_actions) or "Cannot continue yet",
                success=False,
                errors=outcome.check.errors,
                warnings=outcome.check.warnings,
                error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
            )
        return HandlerResult(
            state=outcome.state,
            message=message or f"Moved to {outcome.state.current_step.value}",
            warnings=outcome.state.warnings,
        )

    @contextmanager
    def _at_step(self, meeting_id: str, block_type: UIBlockType) -> Iterator[WorkflowState]:
        """Hold the meeting lock and re-check that ``block_type`` is still the current block."""
        with self._engine.locked(meeting_id):
            state = self._engine.get(meeting_id)
            _check_block(state, block_type)
            yield state

    def _apply_updates(self, meeting_id: str, payload: ContinuePayload) -> None:
        if payload.updates:
            self._engine.apply_update(meeting_id, payload.updates)

    # ── handlers ──

    def _type_select(self, meeting_id: str, payload: TypeSelectPayload) -> HandlerResult:
        with self._engine.locked(meeting_id):
            state = self._engine.get(meeting_id)
            md = state.meeting_data
            if md.type is not None and md.type != payload.type:
                raise MeetingTypeLocked(md.type.value, payload.type.value)

            if payload.type == MeetingType.PHYSICAL:
                location = payload.location or md.location
                if not has_valid_location(location):
                    return HandlerResult(
                        state=state,
                        message=LOCATION_REQUIRED,
                        success=False,
                        errors=[LOCATION_REQUIRED],
                        error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
                    )
                self._engine.apply_update(meeting_id, {"type": payload.type, "location": location.strip()})
                target = WorkflowStep.TIME_DATE_COLLECTION
            else:
                self._engine.apply_update(meeting_id, {"type": payload.type})
                target = WorkflowStep.ATTENDEE_COLLECTION

            state = self._engine.get(meeting_id)
            if step_index(state.current_step) > step_index(WorkflowStep.MEETING_TYPE_SELECTION):
                # same type re-sent from a later step
                return HandlerResult(state=state, message=f"Meeting type is {payload.type.value}")
            return self._advance(meeting_id, target, f"{payload.type.value.capitalize()} meeting selected")

    def _attendees_update(self, meeting_id: str, payload: AttendeesUpdatePayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.ATTENDEE_MANAGEMENT):
            state = self._engine.apply_update(
                meeting_id, {"attendees": [a.model_dump() for a in payload.attendees]}
            )
        results = validate_attendee_list(state.meeting_data, state.current_step)
        errors = [r.message for r in results if r.is_blocking]
        warnings = [r.message for r in results if not r.is_valid and not r.is_blocking]
        count = len(state.meeting_data.attendees)
        return HandlerResult(
            state=state,
            message=f"{count} attendee(s) added" if not errors else "Please fix the attendee list",
            success=not errors,
            errors=errors,
            warnings=warnings,
            error_code=ErrorCode.BUSINESS_RULE_VIOLATION if errors else None,
        )

    def _attendees_continue(self, meeting_id: str, payload: ContinuePayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.ATTENDEE_MANAGEMENT):
            self._apply_updates(meeting_id, payload)
            result = self._advance(meeting_id, WorkflowStep.MEETING_DETAILS_COLLECTION, "Attendees confirmed")
        if not result.success:
            return result
        state = self._titles.suggest(meeting_id)
        return HandlerResult(state=state, message="Here are some title suggestions", warnings=result.warnings)

    def _calendar_access_continue(self, meeting_id: str, payload: ContinuePayload) -> HandlerResult:
        def _verified(state: WorkflowState) -> None:
            state.calendar_access_verified = True

        with self._at_step(meeting_id, UIBlockType.CALENDAR_ACCESS):
            self._apply_updates(meeting_id, payload)
            self._engine.mutate(meeting_id, _verified)
            return self._advance(meeting_id, message="Calendar access verified")

    def _availability_continue(self, meeting_id: str, payload: ContinuePayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.AVAILABILITY_CHECK):
            self._apply_updates(meeting_id, payload)
            state = self._engine.get(meeting_id)
            check = self._engine.can_transition(state.current_step, WorkflowStep.CONFLICT_RESOLUTION, state)
            if not check.can_transition:
                return self._advance(meeting_id, WorkflowStep.CONFLICT_RESOLUTION)
            start, end = state.meeting_data.start_time, state.meeting_data.end_time

        try:
            conflicts = self._retry.run(lambda: self._calendar.find_conflicts(start, end), service="calendar")
            self._log.external_call("calendar", "find_conflicts", success=True, conflicts=len(conflicts))
        except ExternalServiceError as exc:
            self._log.external_call("calendar", "find_conflicts", success=False, error=str(exc))
            return HandlerResult(
                state=self._engine.get(meeting_id),
                message="Could not check calendar availability. Please try again.",
                success=False,
                errors=[str(exc)],
                error_code=ErrorCode.EXTERNAL_SERVICE_FAILURE,
            )

        def _checked(s: WorkflowState) -> None:
            s.availability_checked = True
            s.conflicts = conflicts

        with self._engine.locked(meeting_id):
            state = self._engine.get(meeting_id)
            if state.current_step != WorkflowStep.AVAILABILITY_CHECK:
                return HandlerResult(state=state, message="Availability check is no longer current")
            self._engine.mutate(meeting_id, _checked)
            if conflicts:
                return self._advance(
                    meeting_id,
                    WorkflowStep.CONFLICT_RESOLUTION,
                    f"Found {len(conflicts)} conflicting event(s)",
                )
            return self._advance(meeting_id, WorkflowStep.ATTENDEE_COLLECTION, "You are free at that time")

    def _generic_continue(self, meeting_id: str, payload: ContinuePayload, *, block_type: UIBlockType) -> HandlerResult:
        with self._at_step(meeting_id, block_type):
            self._apply_updates(meeting_id, payload)
            return self._advance(meeting_id)

    def _validation_continue(self, meeting_id: str, payload: ContinuePayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.VALIDATION_SUMMARY):
            self._apply_updates(meeting_id, payload)
            result = self._advance(meeting_id, WorkflowStep.AGENDA_GENERATION)
            if not result.success:
                return result
            if _agenda_locked(result.state) is not None and result.state.meeting_data.agenda:
                # approved agenda is kept as is
                self._advance(meeting_id, WorkflowStep.AGENDA_APPROVAL)
                return self._advance(meeting_id, WorkflowStep.APPROVAL, "Agenda was already approved")
        return self._generate_agenda(meeting_id, "Agenda ready for review")

    def _generate_agenda(self, meeting_id: str, message: str) -> HandlerResult:
        outcome = self._agenda.generate(meeting_id)
        if not outcome.applied:
            return HandlerResult(state=outcome.state, message="A newer agenda request replaced this one")
        warnings = []
        if outcome.source == "fallback":
            warnings.append("Agenda generated from a template because the AI service was unavailable")
        return HandlerResult(state=outcome.state, message=message, warnings=warnings)

    def _agenda_update(self, meeting_id: str, payload: AgendaPayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.AGENDA_EDITOR) as state:
            refused = _agenda_locked(state)
            if refused is not None:
                return refused
            state = self._engine.apply_update(meeting_id, {"agenda": payload.agenda})
        check = validate_agenda_draft(payload.agenda)
        return HandlerResult(state=state, message="Agenda updated", warnings=check.warnings)

    def _agenda_approve(self, meeting_id: str, payload: AgendaPayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.AGENDA_EDITOR) as state:
            refused = _agenda_locked(state)
            if refused is not None and payload.agenda != state.meeting_data.agenda:
                return refused
            state = self._engine.apply_update(meeting_id, {"agenda": payload.agenda})
            check = validate_agenda(payload.agenda)
            if not check.is_valid:
                return HandlerResult(
                    state=state,
                    message="Agenda needs more work before approval",
                    success=False,
                    errors=check.errors,
                    warnings=check.warnings,
                    error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
                )
            if state.current_step == WorkflowStep.AGENDA_GENERATION:
                self._advance(meeting_id, WorkflowStep.AGENDA_APPROVAL)
            result = self._advance(meeting_id, WorkflowStep.APPROVAL, "Agenda approved")
        result.warnings = check.warnings + result.warnings
        return result

    def _agenda_regenerate(self, meeting_id: str, payload: EmptyPayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.AGENDA_EDITOR) as state:
            refused = _agenda_locked(state)
            if refused is not None:
                return refused
            self._engine.advance(meeting_id, WorkflowStep.AGENDA_GENERATION)
        return self._generate_agenda(meeting_id, "Agenda regenerated")

    def _approve(self, meeting_id: str, payload: EmptyPayload) -> HandlerResult:
        return self._finalized(self._finalize.approve(meeting_id))

    def _creation_continue(self, meeting_id: str, payload: EmptyPayload) -> HandlerResult:
        return self._finalized(self._finalize.send_agenda(meeting_id))

    def _finalized(self, outcome: FinalizeOutcome) -> HandlerResult:
        if not outcome.success:
            return HandlerResult(
                state=outcome.state,
                message=outcome.message,
                success=False,
                errors=outcome.errors,
                error_code=outcome.error_code or ErrorCode.BUSINESS_RULE_VIOLATION,
            )
        return HandlerResult(
            state=outcome.state,
            message=outcome.message,
            warnings=outcome.warnings,
            remove_after=outcome.state.is_complete,
        )

    def _edit(self, meeting_id: str, payload: EmptyPayload) -> HandlerResult:
        with self._at_step(meeting_id, UIBlockType.MEETING_APPROVAL):
            return self._advance(meeting_id, WorkflowStep.MEETING_DETAILS_COLLECTION, "What would you like to change?")


def _agenda_locked(state: WorkflowState) -> Optional[HandlerResult]:
    """Refusal for agenda changes once the meeting has been approved."""
    if _STATUS_ORDER.index(state.meeting_data.status) < _STATUS_ORDER.index(MeetingStatus.APPROVED):
        return None
    return HandlerResult(
        state=state,
        message="Agenda can no longer be edited after approval",
        success=False,
        errors=["Agenda is locked after approval"],
        error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
    )


def _check_block(state: WorkflowState, block_type: UIBlockType) -> None:
    expected = STEP_BLOCK_TYPES[state.current_step]
    if expected != block_type:
        raise WorkflowStepInvalid(
            f"{block_type.value} is not valid at step {state.current_step.value}",
            details=[f"expected block {expected.value}"],
        )


__all__ = ["InteractionService", "LOCATION_REQUIRED"]
