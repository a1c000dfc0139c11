"""Meeting data accumulation: merge partial updates into ``MeetingData``.

Fields absent from the partial are left alone; an explicit ``None`` clears a
field. The partial is validated as a whole before anything changes.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Mapping, Optional, Union

from pydantic import ConfigDict, Field, ValidationError, field_validator

from meeting_agent.domain.enums import MeetingStatus, MeetingType
from meeting_agent.domain.exceptions import ImmutableFieldError, MeetingTypeLocked, PayloadValidationError
from meeting_agent.domain.models import Attendee, CamelModel, MeetingData, ensure_aware
from meeting_agent.validators.attendee_validator import is_valid_email

_STATUS_ORDER = list(MeetingStatus)

# written only by the workflow itself, never by a client update
SYSTEM_FIELDS = frozenset({"status", "event_id", "meeting_link"})


class MeetingDataPatch(CamelModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    title: Optional[str] = None
    purpose: Optional[str] = None
    type: Optional[MeetingType] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = None
    attendees: Optional[list[Attendee]] = None
    agenda: Optional[str] = None
    meeting_link: Optional[str] = None
    event_id: Optional[str] = None
    status: Optional[MeetingStatus] = None

    @field_validator("attendees", mode="before")
    @classmethod
    def _plain_emails(cls, value: Any) -> Any:
        # allow ["a@x.com", ...] as shorthand for [{"email": "a@x.com"}, ...]
        if isinstance(value, list):
            return [{"email": item} if isinstance(item, str) else item for item in value]
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return ensure_aware(value)

    @field_validator("title", "purpose", "location")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if isinstance(value, str) else value


def parse_patch(partial: Union[Mapping[str, Any], MeetingDataPatch]) -> MeetingDataPatch:
    if isinstance(partial, MeetingDataPatch):
        return partial
    try:
        return MeetingDataPatch.model_validate(dict(partial))
    except ValidationError as exc:
        details = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        raise PayloadValidationError("Invalid meeting data", details=details) from None
    except TypeError:
        raise PayloadValidationError("Meeting data must be an object") from None


def _check_locks(current: MeetingData, patch: MeetingDataPatch, fields: set[str]) -> None:
    if "id" in fields and current.id is not None and patch.id != current.id:
        raise ImmutableFieldError("id", "Meeting id cannot be changed once set")

    if "type" in fields and current.type is not None and patch.type != current.type:
        requested = patch.type.value if patch.type else "none"
        raise MeetingTypeLocked(current.type.value, requested)

    if "status" in fields:
        if patch.status is None:
            raise ImmutableFieldError("status", "Meeting status cannot be cleared")
        if _STATUS_ORDER.index(patch.status) < _STATUS_ORDER.index(current.status):
            raise ImmutableFieldError(
                "status",
                f"Meeting status cannot move back from {current.status.value} to {patch.status.value}",
            )


def merge_meeting_data(
    current: MeetingData,
    partial: Union[Mapping[str, Any], MeetingDataPatch],
    *,
    allow_system: bool = False,
) -> MeetingData:
    """Return a new ``MeetingData`` with ``partial`` applied; ``current`` is never modified.

    ``status``, ``event_id`` and ``meeting_link`` are refused unless ``allow_system`` is set.
    """
    patch = parse_patch(partial)
    fields = set(patch.model_fields_set)
    blocked = sorted(fields & SYSTEM_FIELDS)
    if blocked and not allow_system:
        raise ImmutableFieldError(blocked[0], f"Field '{blocked[0]}' is set by the workflow and cannot be updated")
    _check_locks(current, patch, fields)

    update: dict[str, Any] = {name: getattr(patch, name) for name in fields}
    if "attendees" in update:
        update["attendees"] = [
            a.model_copy(update={"is_validated": is_valid_email(a.email)}) for a in (update["attendees"] or [])
        ]

    merged = current.model_copy(update=update, deep=True)
    if merged.start_time and merged.end_time is None and merged.duration_minutes:
        merged.end_time = merged.start_time + dt.timedelta(minutes=merged.duration_minutes)
    # re-run field validators on the merged result
    return MeetingData.model_validate(merged.model_dump())


__all__ = ["MeetingDataPatch", "SYSTEM_FIELDS", "merge_meeting_data", "parse_patch"]
