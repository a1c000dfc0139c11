import datetime as dt

import pytest

from meeting_agent.application.workflow import WorkflowEngine, can_transition, first_open_step
from meeting_agent.domain.enums import MeetingStatus, MeetingType, WorkflowStep
from meeting_agent.domain.exceptions import WorkflowAlreadyExists, WorkflowNotFound, WorkflowStepInvalid
from meeting_agent.domain.models import MeetingData, WorkflowState
from meeting_agent.domain.steps import STEP_SEQUENCE, progress_for
from meeting_agent.infrastructure.locks import KeyedLocks
from meeting_agent.infrastructure.session_store import SessionStore

NOW = dt.datetime(2030, 3, 4, 9, 0, tzinfo=dt.timezone.utc)

READY = {
    "type": "online",
    "title": "Quarterly planning",
    "startTime": "2030-03-05T10:00:00Z",
    "endTime": "2030-03-05T11:00:00Z",
    "attendees": [{"email": "a@x.com"}],
}


@pytest.fixture
def engine():
    return WorkflowEngine(SessionStore(), clock=lambda: NOW)


def test_new_workflow_starts_at_intent_detection(engine):
    state = engine.create_workflow("m1")
    assert state.current_step == WorkflowStep.INTENT_DETECTION
    assert state.progress == 0
    assert state.meeting_data.id == "m1"
    assert state.meeting_data.status == MeetingStatus.DRAFT


def test_duplicate_create_is_rejected(engine):
    engine.create_workflow("m1")
    with pytest.raises(WorkflowAlreadyExists):
        engine.create_workflow("m1")


def test_unknown_workflow_raises_not_found(engine):
    with pytest.raises(WorkflowNotFound):
        engine.get("missing")
    with pytest.raises(WorkflowNotFound):
        engine.advance("missing")


def test_locks_are_released_after_use():
    locks = KeyedLocks()
    engine = WorkflowEngine(SessionStore(), locks=locks, clock=lambda: NOW)
    for i in range(50):
        with pytest.raises(WorkflowNotFound):
            engine.get(f"nope{i}")
    assert len(locks) == 0

    engine.create_workflow("m1")
    with engine.locked("m1"):
        engine.advance("m1")
        assert len(locks) == 1
    assert len(locks) == 0

    engine.cancel("m1")
    assert len(locks) == 0


def test_prefilled_workflow_starts_at_first_open_step(engine):
    state = engine.create_workflow("m1", READY)
    assert state.current_step == WorkflowStep.VALIDATION

    partial = engine.create_workflow("m2", {"type": "online"})
    assert partial.current_step == WorkflowStep.TIME_DATE_COLLECTION


def test_prefilled_workflow_does_not_skip_failing_entry_rules(engine):
    reversed_window = engine.create_workflow(
        "m1", {**READY, "startTime": "2030-03-05T11:00:00Z", "endTime": "2030-03-05T10:00:00Z"}
    )
    assert reversed_window.current_step == WorkflowStep.TIME_DATE_COLLECTION

    duplicates = engine.create_workflow("m2", {**READY, "attendees": [{"email": "a@x.com"}, {"email": "A@x.com"}]})
    assert duplicates.current_step == WorkflowStep.ATTENDEE_COLLECTION
    assert duplicates.pending_actions == ["Fix attendee list"]

    both = engine.create_workflow(
        "m3",
        {
            **READY,
            "startTime": "2030-03-05T11:00:00Z",
            "endTime": "2030-03-05T10:00:00Z",
            "attendees": [{"email": "a@x.com"}, {"email": "a@x.com"}],
        },
    )
    assert both.current_step == WorkflowStep.TIME_DATE_COLLECTION
    check = engine.can_transition(WorkflowStep.INTENT_DETECTION, both.current_step, both)
    assert check.can_transition


def test_first_open_step_for_physical_without_location():
    md = MeetingData(id="m1", type=MeetingType.PHYSICAL, location="x")
    assert first_open_step(md) == WorkflowStep.MEETING_TYPE_SELECTION


def test_skipping_to_creation_lists_every_missing_prerequisite(engine):
    engine.create_workflow("m1")
    outcome = engine.advance("m1", WorkflowStep.CREATION)

    assert outcome.success is False
    assert outcome.state.current_step == WorkflowStep.INTENT_DETECTION
    assert outcome.check.required_actions == [
        "Select meeting type",
        "Set meeting start and end time",
        "Add a meeting title",
    ]
    assert outcome.state.pending_actions == outcome.check.required_actions


def test_skipping_to_creation_online_requires_attendees(engine):
    engine.create_workflow("m1", {"type": "online"})
    outcome = engine.advance("m1", WorkflowStep.CREATION)
    assert outcome.check.required_actions == [
        "Add attendees for online meeting",
        "Set meeting start and end time",
        "Add a meeting title",
    ]


def test_backward_moves_always_pass():
    state = WorkflowState(conversation_id="m1", current_step=WorkflowStep.APPROVAL)
    check = can_transition(WorkflowStep.APPROVAL, WorkflowStep.MEETING_TYPE_SELECTION, state)
    assert check.can_transition
    assert check.errors == []


def test_progress_is_monotonic_forward_and_resets_backward(engine):
    engine.create_workflow("m1", READY)
    engine.mutate("m1", lambda s: setattr(s, "current_step", WorkflowStep.INTENT_DETECTION))

    seen = []
    for target in STEP_SEQUENCE[1:12]:
        outcome = engine.advance("m1", target)
        assert outcome.success, target
        seen.append(outcome.state.progress)
    assert seen == sorted(seen)

    back = engine.advance("m1", WorkflowStep.ATTENDEE_COLLECTION)
    assert back.state.progress == progress_for(WorkflowStep.ATTENDEE_COLLECTION)


def test_status_follows_steps_and_never_goes_back(engine):
    engine.create_workflow("m1", READY)

    approval = engine.advance("m1", WorkflowStep.APPROVAL)
    assert approval.state.meeting_data.status == MeetingStatus.PENDING_APPROVAL

    back = engine.advance("m1", WorkflowStep.VALIDATION)
    assert back.state.meeting_data.status == MeetingStatus.PENDING_APPROVAL

    creation = engine.advance("m1", WorkflowStep.CREATION)
    assert creation.state.meeting_data.status == MeetingStatus.APPROVED


def test_completion_requires_created_event(engine):
    engine.create_workflow("m1", READY)
    engine.advance("m1", WorkflowStep.CREATION)

    blocked = engine.advance("m1", WorkflowStep.COMPLETED)
    assert blocked.success is False
    assert blocked.check.required_actions == ["Create the calendar event"]

    engine.mutate("m1", lambda s: setattr(s.meeting_data, "status", MeetingStatus.CREATED))
    done = engine.advance("m1", WorkflowStep.COMPLETED)
    assert done.success
    assert done.state.is_complete
    assert done.state.progress == 100


def test_advance_from_completed_is_refused(engine):
    engine.create_workflow("m1")
    engine.mutate("m1", lambda s: setattr(s, "current_step", WorkflowStep.COMPLETED))
    with pytest.raises(WorkflowStepInvalid):
        engine.advance("m1")


def test_warnings_are_recorded_but_do_not_block(engine):
    data = dict(READY, startTime="2030-03-09T10:00:00Z", endTime="2030-03-09T11:00:00Z")
    engine.create_workflow("m1", data)
    outcome = engine.advance("m1", WorkflowStep.AGENDA_GENERATION)
    assert outcome.success
    assert "Meeting is scheduled on a weekend" in outcome.state.warnings


def test_returned_state_is_a_copy(engine):
    state = engine.create_workflow("m1")
    state.meeting_data.title = "changed outside"
    assert engine.get("m1").meeting_data.title is None


def test_cancel_removes_workflow(engine):
    engine.create_workflow("m1")
    engine.cancel("m1")
    assert not engine.store.exists("m1")
    with pytest.raises(WorkflowNotFound):
        engine.cancel("m1")


def test_complete_only_removes_finished_workflows(engine):
    engine.create_workflow("m1")
    with pytest.raises(WorkflowStepInvalid):
        engine.complete("m1")
    engine.mutate("m1", lambda s: setattr(s, "current_step", WorkflowStep.COMPLETED))
    final = engine.complete("m1")
    assert final.current_step == WorkflowStep.COMPLETED
    assert not engine.store.exists("m1")
