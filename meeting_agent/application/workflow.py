"""Conversational workflow state machine.

One ``WorkflowState`` per meeting id lives in the session store. Every
read-modify-write for a meeting runs under that meeting's lock, so two
interactions for the same meeting serialise instead of overwriting each
other's merge.
"""

from __future__ import annotations

import datetime as dt
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional

from pydantic import Field

from meeting_agent.application.meeting_data import merge_meeting_data
from meeting_agent.domain.enums import MeetingStatus, MeetingType, WorkflowStep
from meeting_agent.domain.exceptions import WorkflowNotFound, WorkflowStepInvalid
from meeting_agent.domain.models import CamelModel, MeetingData, ValidationResult, WorkflowState
from meeting_agent.domain.steps import STEP_SEQUENCE, is_forward, next_step, progress_for, step_index
from meeting_agent.infrastructure.locks import KeyedLocks
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.validators import blocking_errors, required_actions, run_step_rules, warning_messages
from meeting_agent.validators.details_validator import has_valid_location

# status reached on entering a step; status never moves backwards
_STEP_STATUS: dict[WorkflowStep, MeetingStatus] = {
    WorkflowStep.APPROVAL: MeetingStatus.PENDING_APPROVAL,
    WorkflowStep.CREATION: MeetingStatus.APPROVED,
}
_STATUS_ORDER = list(MeetingStatus)


class TransitionCheck(CamelModel):
    can_transition: bool
    required_actions: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    results: list[ValidationResult] = Field(default_factory=list)


@dataclass
class AdvanceOutcome:
    success: bool
    previous_step: WorkflowStep
    state: WorkflowState
    check: TransitionCheck


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def can_transition(
    current: WorkflowStep,
    target: WorkflowStep,
    state: WorkflowState,
    *,
    now: Optional[dt.datetime] = None,
) -> TransitionCheck:
    """Backward and same-step moves always pass; forward moves must satisfy the target's rules."""
    if not is_forward(current, target):
        return TransitionCheck(can_transition=True)

    results = run_step_rules(state.meeting_data, target, now=now)
    errors = blocking_errors(results)
    return TransitionCheck(
        can_transition=not errors,
        required_actions=required_actions(results),
        errors=errors,
        warnings=warning_messages(results),
        results=results,
    )


def _first_missing_step(md: MeetingData) -> WorkflowStep:
    if md.type is None:
        return WorkflowStep.MEETING_TYPE_SELECTION
    if md.type == MeetingType.PHYSICAL and not has_valid_location(md.location):
        return WorkflowStep.MEETING_TYPE_SELECTION
    if md.start_time is None or md.end_time is None or md.start_time >= md.end_time:
        return WorkflowStep.TIME_DATE_COLLECTION
    if md.type == MeetingType.ONLINE and not md.attendees:
        return WorkflowStep.ATTENDEE_COLLECTION
    if not (md.title or "").strip():
        return WorkflowStep.MEETING_DETAILS_COLLECTION
    return WorkflowStep.VALIDATION


def first_open_step(meeting_data: MeetingData, *, now: Optional[dt.datetime] = None) -> WorkflowStep:
    """Where a workflow created with prefilled data should start.

    The step must also satisfy its own entry rules; otherwise the nearest
    earlier step that does is used.
    """
    candidate = _first_missing_step(meeting_data)
    for step in reversed(STEP_SEQUENCE[: step_index(candidate) + 1]):
        if not blocking_errors(run_step_rules(meeting_data, step, now=now)):
            return step
    return WorkflowStep.INTENT_DETECTION


class WorkflowEngine:
    def __init__(
        self,
        store,
        *,
        locks: Optional[KeyedLocks] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], dt.datetime] = _utcnow,
    ):
        self._store = store
        self._locks = locks or KeyedLocks()
        self._log = logger or get_logger()
        self._clock = clock

    @property
    def store(self):
        return self._store

    @contextmanager
    def locked(self, meeting_id: str) -> Iterator[None]:
        """Hold the meeting's lock across several engine calls (re-entrant)."""
        with self._locks.hold(meeting_id):
            yield

    # ── helpers ──

    def _load(self, meeting_id: str) -> WorkflowState:
        state = self._store.get(meeting_id)
        if state is None:
            raise WorkflowNotFound(meeting_id)
        return state

    def _save(self, state: WorkflowState) -> WorkflowState:
        state.updated_at = self._clock()
        self._store.update(state.conversation_id, state)
        return state.model_copy(deep=True)

    def _evaluate(self, state: WorkflowState) -> None:
        """Refresh validation against the step after the current one."""
        target = next_step(state.current_step) or state.current_step
        results = run_step_rules(state.meeting_data, target, now=self._clock())
        state.validation_results = results
        state.errors = blocking_errors(results)
        state.warnings = warning_messages(results)
        state.pending_actions = required_actions(results)

    def _enter_step(self, state: WorkflowState, target: WorkflowStep) -> None:
        state.current_step = target
        state.progress = progress_for(target)
        idx = step_index(target)
        md = state.meeting_data
        state.time_collection_complete = (
            idx > step_index(WorkflowStep.TIME_DATE_COLLECTION)
            and md.start_time is not None
            and md.end_time is not None
        )
        state.attendee_collection_complete = idx > step_index(WorkflowStep.ATTENDEE_COLLECTION)
        state.is_complete = target == WorkflowStep.COMPLETED

        status = _STEP_STATUS.get(target)
        if status is not None and _STATUS_ORDER.index(status) > _STATUS_ORDER.index(md.status):
            md.status = status

    # ── operations ──

    def can_transition(self, current: WorkflowStep, target: WorkflowStep, state: WorkflowState) -> TransitionCheck:
        return can_transition(current, target, state, now=self._clock())

    def create_workflow(
        self,
        meeting_id: str,
        initial_data: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowState:
        with self._locks.hold(meeting_id):
            state = WorkflowState(conversation_id=meeting_id, meeting_data=MeetingData(id=meeting_id))
            if initial_data:
                state.meeting_data = merge_meeting_data(state.meeting_data, initial_data)
                self._enter_step(state, first_open_step(state.meeting_data, now=self._clock()))
            self._evaluate(state)
            self._store.create(meeting_id, state)
            self._log.transition(meeting_id, "none", state.current_step.value, reason="created")
            return state.model_copy(deep=True)

    def get(self, meeting_id: str) -> WorkflowState:
        with self._locks.hold(meeting_id):
            return self._load(meeting_id)

    def advance(self, meeting_id: str, target: Optional[WorkflowStep] = None) -> AdvanceOutcome:
        with self._locks.hold(meeting_id):
            state = self._load(meeting_id)
            current = state.current_step
            if current == WorkflowStep.COMPLETED:
                raise WorkflowStepInvalid("Workflow is already complete")

            target = WorkflowStep(target) if target is not None else next_step(current)
            check = self.can_transition(current, target, state)
            if not check.can_transition:
                self._log.transition_blocked(meeting_id, current.value, target.value, check.errors)
                state.validation_results = check.results
                state.errors = check.errors
                state.warnings = check.warnings
                state.pending_actions = check.required_actions
                return AdvanceOutcome(False, current, self._save(state), check)

            self._enter_step(state, target)
            self._evaluate(state)
            self._log.transition(meeting_id, current.value, target.value, progress=state.progress)
            return AdvanceOutcome(True, current, self._save(state), check)

    def apply_update(self, meeting_id: str, partial: Mapping[str, Any]) -> WorkflowState:
        with self._locks.hold(meeting_id):
            state = self._load(meeting_id)
            state.meeting_data = merge_meeting_data(state.meeting_data, partial)
            self._evaluate(state)
            return self._save(state)

    def mutate(self, meeting_id: str, fn: Callable[[WorkflowState], Any]) -> WorkflowState:
        """Locked read-modify-write of the whole state."""
        with self._locks.hold(meeting_id):
            state = self._load(meeting_id)
            fn(state)
            self._evaluate(state)
            return self._save(state)

    def cancel(self, meeting_id: str) -> None:
        with self._locks.hold(meeting_id):
            self._load(meeting_id)
            self._store.delete(meeting_id)
            self._log.transition(meeting_id, "any", "none", reason="cancelled")

    def complete(self, meeting_id: str) -> WorkflowState:
        """Remove a completed workflow from the store and return its final state."""
        with self._locks.hold(meeting_id):
            state = self._load(meeting_id)
            if state.current_step != WorkflowStep.COMPLETED:
                raise WorkflowStepInvalid(
                    f"Workflow {meeting_id} is at {state.current_step.value}, not completed"
                )
            self._store.delete(meeting_id)
        return state


__all__ = [
    "AdvanceOutcome",
    "TransitionCheck",
    "WorkflowEngine",
    "can_transition",
    "first_open_step",
]
