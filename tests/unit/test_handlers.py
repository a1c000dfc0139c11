import datetime as dt
import threading
import time

import pytest

from meeting_agent.application.contracts import UIBlockInteractionRequest
from meeting_agent.application.finalize import CALENDAR_RETRY_MESSAGE, EMAIL_RETRY_MESSAGE
from meeting_agent.application.handlers import LOCATION_REQUIRED
from meeting_agent.domain.enums import EmailJobState, ErrorCode, MeetingStatus, UIBlockAction, UIBlockType, WorkflowStep
from meeting_agent.domain.exceptions import MeetingTypeLocked, PayloadValidationError, WorkflowStepInvalid
from meeting_agent.domain.models import BusyWindow
from meeting_agent.adapters.calendar.mock import MockCalendarService
from meeting_agent.adapters.email.mock import MockEmailService
from tests.fakes import FULL_AGENDA, FakeAI, FailingCalendar, FailingEmail, build_context, future_window

B, A = UIBlockType, UIBlockAction


def interact(ctx, block_type, action, meeting_id="m1", **data):
    return ctx.interactions.handle(
        UIBlockInteractionRequest(block_type=block_type, action=action, conversation_id=meeting_id, data=data)
    )


def to_agenda_approval(ctx, meeting_id="m1"):
    start, end = future_window()
    ctx.engine.create_workflow(meeting_id)
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, meeting_id, type="online")
    interact(ctx, B.ATTENDEE_MANAGEMENT, A.ATTENDEES_UPDATE, meeting_id, attendees=[{"email": "a@x.com"}])
    interact(ctx, B.ATTENDEE_MANAGEMENT, A.CONTINUE, meeting_id)
    interact(ctx, B.TITLE_SUGGESTIONS, A.CONTINUE, meeting_id, updates={"startTime": start, "endTime": end})
    return interact(ctx, B.VALIDATION_SUMMARY, A.CONTINUE, meeting_id)


def to_approval(ctx, meeting_id="m1"):
    to_agenda_approval(ctx, meeting_id)
    return interact(ctx, B.AGENDA_EDITOR, A.AGENDA_APPROVE, meeting_id, agenda=FULL_AGENDA)


@pytest.fixture
def ctx():
    return build_context()


# ── type selection ──


def test_online_selection_shows_required_attendee_block(ctx):
    ctx.engine.create_workflow("m1")
    resp = interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")

    assert resp.success
    assert resp.next_ui_block.type == UIBlockType.ATTENDEE_MANAGEMENT
    assert resp.next_ui_block.data.attendees == []
    assert resp.next_ui_block.data.is_required is True
    assert resp.workflow_state.current_step == WorkflowStep.ATTENDEE_COLLECTION


def test_physical_selection_without_location_is_refused(ctx):
    ctx.engine.create_workflow("m1")
    resp = interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="physical")

    assert resp.success is False
    assert resp.validation.errors == [LOCATION_REQUIRED]
    assert resp.error_code == ErrorCode.BUSINESS_RULE_VIOLATION
    state = ctx.engine.get("m1")
    assert state.current_step == WorkflowStep.INTENT_DETECTION
    assert state.meeting_data.type is None


def test_physical_selection_with_location_goes_to_time(ctx):
    ctx.engine.create_workflow("m1")
    resp = interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="physical", location="  Room 42 ")
    assert resp.next_ui_block.type == UIBlockType.TIME_SELECTION
    assert ctx.engine.get("m1").meeting_data.location == "Room 42"


def test_meeting_type_cannot_change(ctx):
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    with pytest.raises(MeetingTypeLocked):
        interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="physical", location="Room 42")

    again = interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    assert again.success
    assert again.workflow_state.current_step == WorkflowStep.ATTENDEE_COLLECTION


# ── attendees ──


def test_attendees_then_continue_moves_past_collection(ctx):
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    updated = interact(ctx, B.ATTENDEE_MANAGEMENT, A.ATTENDEES_UPDATE, attendees=[{"email": "a@x.com"}])
    assert updated.success

    resp = interact(ctx, B.ATTENDEE_MANAGEMENT, A.CONTINUE)
    assert resp.success
    assert resp.workflow_state.current_step == WorkflowStep.MEETING_DETAILS_COLLECTION
    assert resp.next_ui_block.type == UIBlockType.TITLE_SUGGESTIONS
    assert resp.next_ui_block.data.suggestions
    assert resp.next_ui_block.data.loading is False


def test_continue_with_no_attendees_stays_on_attendee_block(ctx):
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    interact(ctx, B.ATTENDEE_MANAGEMENT, A.ATTENDEES_UPDATE, attendees=[])

    resp = interact(ctx, B.ATTENDEE_MANAGEMENT, A.CONTINUE)
    assert resp.success is False
    assert resp.error_code == ErrorCode.BUSINESS_RULE_VIOLATION
    assert resp.message == "Add attendees for online meeting"
    assert resp.next_ui_block.type == UIBlockType.ATTENDEE_MANAGEMENT


def test_invalid_attendee_is_reported(ctx):
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    resp = interact(ctx, B.ATTENDEE_MANAGEMENT, A.ATTENDEES_UPDATE, attendees=[{"email": "a@x.com"}, {"email": "broken"}])
    assert resp.success is False
    assert resp.validation.errors == ["Invalid email format: broken"]
    assert resp.next_ui_block.data.invalid_emails == ["broken"]


def test_malformed_payload_leaves_state_untouched(ctx):
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    before = ctx.engine.get("m1")
    with pytest.raises(PayloadValidationError):
        interact(ctx, B.ATTENDEE_MANAGEMENT, A.ATTENDEES_UPDATE, attendees="a@x.com")
    assert ctx.engine.get("m1").meeting_data == before.meeting_data


def test_interaction_for_another_step_is_rejected(ctx):
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    with pytest.raises(WorkflowStepInvalid):
        interact(ctx, B.VALIDATION_SUMMARY, A.CONTINUE)


def test_unknown_block_action_pair_is_rejected(ctx):
    ctx.engine.create_workflow("m1")
    with pytest.raises(WorkflowStepInvalid):
        interact(ctx, B.COMPLETION, A.APPROVE)


# ── availability ──


def _to_availability(ctx):
    start, end = future_window()
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="physical", location="Room 42")
    resp = interact(ctx, B.TIME_SELECTION, A.CONTINUE, updates={"startTime": start, "endTime": end})
    assert resp.workflow_state.current_step == WorkflowStep.AVAILABILITY_CHECK
    return start, end


def test_free_slot_skips_conflict_resolution(ctx):
    _to_availability(ctx)
    resp = interact(ctx, B.AVAILABILITY_CHECK, A.CONTINUE)
    assert resp.success
    assert resp.workflow_state.current_step == WorkflowStep.ATTENDEE_COLLECTION
    assert ctx.engine.get("m1").availability_checked


def test_busy_slot_goes_to_conflict_resolution():
    start, _ = future_window()
    begin = dt.datetime.fromisoformat(start)
    busy = [BusyWindow(start=begin, end=begin + dt.timedelta(minutes=30), summary="1:1")]
    ctx = build_context(calendar=MockCalendarService(busy=busy))
    _to_availability(ctx)

    resp = interact(ctx, B.AVAILABILITY_CHECK, A.CONTINUE)
    assert resp.workflow_state.current_step == WorkflowStep.CONFLICT_RESOLUTION
    assert resp.next_ui_block.type == UIBlockType.CONFLICT_RESOLUTION
    assert [c.summary for c in resp.next_ui_block.data.conflicts] == ["1:1"]

    moved = interact(ctx, B.CONFLICT_RESOLUTION, A.CONTINUE)
    assert moved.workflow_state.current_step == WorkflowStep.ATTENDEE_COLLECTION


# ── agenda ──


def test_validation_continue_generates_agenda(ctx):
    resp = to_agenda_approval(ctx)
    assert resp.success
    assert resp.workflow_state.current_step == WorkflowStep.AGENDA_APPROVAL
    assert resp.next_ui_block.data.is_approval_mode is True
    assert resp.next_ui_block.data.initial_agenda.startswith(FULL_AGENDA)


def test_short_agenda_is_rejected_then_full_agenda_approved(ctx):
    to_agenda_approval(ctx)

    short = interact(ctx, B.AGENDA_EDITOR, A.AGENDA_APPROVE, agenda="<p>Quick sync</p>")
    assert short.success is False
    assert "Agenda is too short. Please add more details." in short.validation.errors
    assert short.workflow_state.current_step == WorkflowStep.AGENDA_APPROVAL

    full = interact(ctx, B.AGENDA_EDITOR, A.AGENDA_APPROVE, agenda=FULL_AGENDA)
    assert full.success
    assert full.workflow_state.current_step == WorkflowStep.APPROVAL
    assert full.next_ui_block.type == UIBlockType.MEETING_APPROVAL
    assert ctx.engine.get("m1").meeting_data.status == MeetingStatus.PENDING_APPROVAL


def test_agenda_update_keeps_draft(ctx):
    to_agenda_approval(ctx)
    resp = interact(ctx, B.AGENDA_EDITOR, A.AGENDA_UPDATE, agenda="")
    assert resp.success
    assert resp.validation.warnings == ["Agenda is empty"]
    assert ctx.engine.get("m1").meeting_data.agenda == ""


def test_stale_regeneration_result_is_discarded():
    ai = FakeAI()
    ctx = build_context(ai=ai)
    to_agenda_approval(ctx)
    assert ai.agenda_calls == 1

    first_gate, second_gate = threading.Event(), threading.Event()
    ai.gates = [first_gate, second_gate]
    responses = {}

    def regenerate(name):
        responses[name] = interact(ctx, B.AGENDA_EDITOR, A.AGENDA_REGENERATE)

    def wait_for_calls(n):
        deadline = time.monotonic() + 5
        while ai.agenda_calls < n and time.monotonic() < deadline:
            time.sleep(0.01)
        assert ai.agenda_calls == n

    older = threading.Thread(target=regenerate, args=("older",))
    older.start()
    wait_for_calls(2)
    newer = threading.Thread(target=regenerate, args=("newer",))
    newer.start()
    wait_for_calls(3)

    second_gate.set()
    newer.join(timeout=5)
    first_gate.set()
    older.join(timeout=5)

    state = ctx.engine.get("m1")
    assert state.current_step == WorkflowStep.AGENDA_APPROVAL
    assert state.meeting_data.agenda.endswith("<!-- v3 -->")
    assert state.agenda_version == 3
    assert responses["newer"].message == "Agenda regenerated"
    assert responses["older"].message == "A newer agenda request replaced this one"


# ── approval and creation ──


def test_approve_creates_event_sends_agenda_and_removes_session(ctx):
    to_approval(ctx)
    resp = interact(ctx, B.MEETING_APPROVAL, A.APPROVE)

    assert resp.success
    assert resp.workflow_state.is_complete
    assert resp.next_ui_block.type == UIBlockType.COMPLETION
    assert resp.next_ui_block.data.meeting_link.startswith("https://meet.google.com/")
    assert not ctx.engine.store.exists("m1")

    events = list(ctx.tools.calendar.events.values())
    assert len(events) == 1
    assert events[0].create_meet_link is True
    assert [email for email, _ in ctx.tools.email.sent] == ["a@x.com"]

    job = ctx.finalize.email_status(resp.next_ui_block.data.email_job_id)
    assert job.emails_sent == 1


def test_calendar_failure_returns_to_approval():
    calendar = FailingCalendar(failures=1)
    ctx = build_context(calendar=calendar)
    to_approval(ctx)

    failed = interact(ctx, B.MEETING_APPROVAL, A.APPROVE)
    assert failed.success is False
    assert failed.error_code == ErrorCode.EXTERNAL_SERVICE_FAILURE
    assert failed.message == CALENDAR_RETRY_MESSAGE
    assert failed.workflow_state.current_step == WorkflowStep.APPROVAL
    assert ctx.engine.get("m1").loading is False

    retried = interact(ctx, B.MEETING_APPROVAL, A.APPROVE)
    assert retried.success
    assert calendar.calls == 2


def test_email_failure_can_be_retried_from_creation():
    email = FailingEmail(failures=1)
    ctx = build_context(email=email)
    to_approval(ctx)

    failed = interact(ctx, B.MEETING_APPROVAL, A.APPROVE)
    assert failed.success is False
    assert failed.error_code == ErrorCode.EXTERNAL_SERVICE_FAILURE
    assert failed.workflow_state.current_step == WorkflowStep.CREATION
    assert ctx.engine.get("m1").meeting_data.status == MeetingStatus.CREATED

    retried = interact(ctx, B.CREATION_STATUS, A.CONTINUE)
    assert retried.success
    assert retried.workflow_state.is_complete
    assert len(ctx.tools.calendar.events) == 1
    assert email.calls == 2


def test_undelivered_agenda_email_keeps_meeting_in_creation():
    email = MockEmailService(failing={"a@x.com"})
    ctx = build_context(email=email)
    to_approval(ctx)

    failed = interact(ctx, B.MEETING_APPROVAL, A.APPROVE)
    assert failed.success is False
    assert failed.error_code == ErrorCode.EXTERNAL_SERVICE_FAILURE
    assert failed.message == EMAIL_RETRY_MESSAGE
    assert failed.validation.errors == ["a@x.com: delivery failed"]
    assert failed.workflow_state.current_step == WorkflowStep.CREATION
    assert failed.next_ui_block.type == UIBlockType.CREATION_STATUS

    state = ctx.engine.get("m1")
    assert state.loading is False
    assert ctx.finalize.email_status(state.email_job_id).status == EmailJobState.FAILED

    email.failing.clear()
    retried = interact(ctx, B.CREATION_STATUS, A.CONTINUE)
    assert retried.success
    assert retried.workflow_state.is_complete
    assert len(ctx.tools.calendar.events) == 1
    assert [addr for addr, _ in email.sent] == ["a@x.com"]


def test_partially_delivered_agenda_completes_with_warning():
    start, end = future_window()
    ctx = build_context(email=MockEmailService(failing={"b@x.com"}))
    ctx.engine.create_workflow(
        "m1",
        {
            "type": "online",
            "title": "Roadmap sync",
            "startTime": start,
            "endTime": end,
            "attendees": [{"email": "a@x.com"}, {"email": "b@x.com"}],
        },
    )
    interact(ctx, B.VALIDATION_SUMMARY, A.CONTINUE)
    interact(ctx, B.AGENDA_EDITOR, A.AGENDA_APPROVE, agenda=FULL_AGENDA)

    resp = interact(ctx, B.MEETING_APPROVAL, A.APPROVE)
    assert resp.success
    assert resp.workflow_state.is_complete
    assert resp.validation.warnings == ["Agenda email could not be delivered to 1 of 2 attendee(s)"]


def test_online_title_step_prompts_for_missing_time(ctx):
    ctx.engine.create_workflow("m1")
    interact(ctx, B.MEETING_TYPE_SELECTION, A.TYPE_SELECT, type="online")
    interact(ctx, B.ATTENDEE_MANAGEMENT, A.ATTENDEES_UPDATE, attendees=[{"email": "a@x.com"}])
    resp = interact(ctx, B.ATTENDEE_MANAGEMENT, A.CONTINUE)

    block = resp.next_ui_block
    assert block.type == UIBlockType.TITLE_SUGGESTIONS
    assert block.data.start_time is None
    assert block.data.pending_actions == ["Set meeting start and end time"]
    assert "pendingActions" in block.model_dump(by_alias=True, exclude_none=True)["data"]

    blocked = interact(ctx, B.TITLE_SUGGESTIONS, A.CONTINUE)
    assert blocked.success is False
    assert blocked.message == "Set meeting start and end time"
    assert blocked.next_ui_block.type == UIBlockType.TITLE_SUGGESTIONS

    start, end = future_window()
    moved = interact(ctx, B.TITLE_SUGGESTIONS, A.CONTINUE, updates={"startTime": start, "endTime": end})
    assert moved.success
    assert moved.workflow_state.current_step == WorkflowStep.VALIDATION


def _approved_after_calendar_failure():
    ctx = build_context(calendar=FailingCalendar(failures=1))
    to_approval(ctx)
    interact(ctx, B.MEETING_APPROVAL, A.APPROVE)
    assert ctx.engine.get("m1").meeting_data.status == MeetingStatus.APPROVED
    return ctx


def test_approved_agenda_is_kept_when_details_are_edited():
    ctx = _approved_after_calendar_failure()

    edit = interact(ctx, B.MEETING_APPROVAL, A.EDIT)
    assert edit.workflow_state.current_step == WorkflowStep.MEETING_DETAILS_COLLECTION
    interact(ctx, B.TITLE_SUGGESTIONS, A.CONTINUE)
    resp = interact(ctx, B.VALIDATION_SUMMARY, A.CONTINUE)

    assert resp.success
    assert resp.message == "Agenda was already approved"
    assert resp.workflow_state.current_step == WorkflowStep.APPROVAL
    assert ctx.engine.get("m1").meeting_data.agenda == FULL_AGENDA
    assert ctx.tools.ai.agenda_calls == 1


@pytest.mark.parametrize(
    "action, data",
    [
        (A.AGENDA_UPDATE, {"agenda": "<p>rewritten</p>"}),
        (A.AGENDA_APPROVE, {"agenda": FULL_AGENDA.replace("Roadmap", "Budget")}),
        (A.AGENDA_REGENERATE, {}),
    ],
)
def test_agenda_changes_are_refused_once_approved(action, data):
    ctx = _approved_after_calendar_failure()
    ctx.engine.advance("m1", WorkflowStep.AGENDA_APPROVAL)

    resp = interact(ctx, B.AGENDA_EDITOR, action, **data)
    assert resp.success is False
    assert resp.error_code == ErrorCode.BUSINESS_RULE_VIOLATION
    assert resp.validation.errors == ["Agenda is locked after approval"]
    state = ctx.engine.get("m1")
    assert state.meeting_data.agenda == FULL_AGENDA
    assert state.current_step == WorkflowStep.AGENDA_APPROVAL


def test_approved_agenda_can_be_confirmed_unchanged():
    ctx = _approved_after_calendar_failure()
    ctx.engine.advance("m1", WorkflowStep.AGENDA_APPROVAL)

    resp = interact(ctx, B.AGENDA_EDITOR, A.AGENDA_APPROVE, agenda=FULL_AGENDA)
    assert resp.success
    assert resp.workflow_state.current_step == WorkflowStep.APPROVAL
