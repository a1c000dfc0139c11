import datetime as dt

import pytest

from meeting_agent.application.meeting_data import merge_meeting_data
from meeting_agent.domain.enums import MeetingStatus, MeetingType
from meeting_agent.domain.exceptions import ImmutableFieldError, MeetingTypeLocked, PayloadValidationError
from meeting_agent.domain.models import MeetingData


def _base(**kwargs) -> MeetingData:
    return MeetingData(id="m1", **kwargs)


def test_absent_fields_are_kept():
    current = _base(title="Planning", location="Room 1")
    merged = merge_meeting_data(current, {"purpose": "Plan Q3"})
    assert merged.title == "Planning"
    assert merged.location == "Room 1"
    assert merged.purpose == "Plan Q3"


def test_explicit_none_clears_field():
    merged = merge_meeting_data(_base(title="Planning"), {"title": None})
    assert merged.title is None


def test_camel_case_keys_are_accepted():
    merged = merge_meeting_data(_base(), {"startTime": "2030-03-05T10:00:00Z", "endTime": "2030-03-05T11:00:00Z"})
    assert merged.start_time == dt.datetime(2030, 3, 5, 10, tzinfo=dt.timezone.utc)
    assert merged.duration == dt.timedelta(hours=1)


def test_naive_times_are_treated_as_utc():
    merged = merge_meeting_data(_base(), {"start_time": "2030-03-05T10:00:00"})
    assert merged.start_time.tzinfo is not None


def test_duration_hint_derives_end_time():
    merged = merge_meeting_data(_base(), {"startTime": "2030-03-05T10:00:00Z", "durationMinutes": 45})
    assert merged.end_time == dt.datetime(2030, 3, 5, 10, 45, tzinfo=dt.timezone.utc)


def test_type_is_locked_once_set():
    current = merge_meeting_data(_base(), {"type": "online"})
    assert current.type == MeetingType.ONLINE
    assert merge_meeting_data(current, {"type": "online"}).type == MeetingType.ONLINE

    with pytest.raises(MeetingTypeLocked) as exc_info:
        merge_meeting_data(current, {"type": "physical"})
    assert "locked to online" in exc_info.value.message


def test_id_is_immutable():
    with pytest.raises(ImmutableFieldError):
        merge_meeting_data(_base(), {"id": "other"})


def test_status_never_moves_backwards():
    current = _base(status=MeetingStatus.APPROVED)
    with pytest.raises(ImmutableFieldError):
        merge_meeting_data(current, {"status": "draft"}, allow_system=True)
    assert merge_meeting_data(current, {"status": "created"}, allow_system=True).status == MeetingStatus.CREATED


@pytest.mark.parametrize("key", ["status", "eventId", "meetingLink"])
def test_workflow_owned_fields_are_rejected_from_updates(key):
    value = "created" if key == "status" else "x"
    with pytest.raises(ImmutableFieldError) as exc_info:
        merge_meeting_data(_base(), {key: value})
    assert "set by the workflow" in exc_info.value.message


def test_attendees_replace_list_and_recompute_validation():
    current = merge_meeting_data(_base(), {"attendees": [{"email": "old@x.com"}]})
    merged = merge_meeting_data(current, {"attendees": [{"email": " New@X.com "}, "bad-email"]})
    assert [a.email for a in merged.attendees] == ["new@x.com", "bad-email"]
    assert [a.is_validated for a in merged.attendees] == [True, False]


def test_malformed_partial_changes_nothing():
    current = _base(title="Planning")
    with pytest.raises(PayloadValidationError) as exc_info:
        merge_meeting_data(current, {"title": "New", "startTime": "not a date"})
    assert exc_info.value.details
    assert current.title == "Planning"


def test_unknown_fields_are_rejected():
    with pytest.raises(PayloadValidationError):
        merge_meeting_data(_base(), {"colour": "blue"})
