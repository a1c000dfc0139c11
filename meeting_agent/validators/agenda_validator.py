"""Agenda content checks used by the agenda editor actions."""

from __future__ import annotations

import re

from pydantic import Field

from meeting_agent.domain.constants import AGENDA_LONG_WARNING, AGENDA_MAX_LENGTH, AGENDA_MIN_LENGTH
from meeting_agent.domain.models import CamelModel

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_TIME_MARKER_RE = re.compile(r"\d+\s*min", re.IGNORECASE)
_STRUCTURE_RE = re.compile(r"(^|\n)\s*(\d+\.|[-*•])|<li\b", re.IGNORECASE)


class AgendaValidation(CamelModel):
    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def agenda_text(agenda: str) -> str:
    """Visible text of an HTML or plain agenda."""
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", agenda or "")).strip()


def validate_agenda(agenda: str) -> AgendaValidation:
    errors: list[str] = []
    warnings: list[str] = []
    text = agenda_text(agenda)

    if len(text) < AGENDA_MIN_LENGTH:
        errors.append("Agenda is too short. Please add more details.")
    if len(text) > AGENDA_MAX_LENGTH:
        errors.append(f"Agenda is too long ({len(text)}/{AGENDA_MAX_LENGTH} characters).")
    elif len(text) > AGENDA_LONG_WARNING:
        warnings.append("Agenda is quite long. Consider condensing for better readability.")

    if not _STRUCTURE_RE.search(agenda or ""):
        warnings.append("Agenda should include numbered or bulleted items.")
    if not _TIME_MARKER_RE.search(text):
        warnings.append("Consider adding time allocations for agenda items.")
    lowered = text.lower()
    if "action" not in lowered and "next steps" not in lowered:
        warnings.append("Consider adding an action items or next steps section.")

    return AgendaValidation(is_valid=not errors, errors=errors, warnings=warnings)


def validate_agenda_draft(agenda: str) -> AgendaValidation:
    """Edits in progress are never blocked; an empty agenda only warns."""
    if not agenda_text(agenda):
        return AgendaValidation(warnings=["Agenda is empty"])
    return AgendaValidation()
