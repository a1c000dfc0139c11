"""Agenda generation with retry, template fallback and stale-result discard.

The AI call runs outside the meeting lock. Each generation bumps
``agenda_version``; a result is applied only if the version is unchanged and
the workflow is still waiting in ``agenda_generation``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from meeting_agent.adapters.ai.template import render_agenda
from meeting_agent.application.ui_blocks import meeting_minutes
from meeting_agent.application.workflow import WorkflowEngine
from meeting_agent.domain.enums import WorkflowStep
from meeting_agent.domain.models import WorkflowState
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.infrastructure.retry import RetryPolicy
from meeting_agent.shared.exceptions import ExternalServiceError
from meeting_agent.tools.interfaces import AgendaRequest, AIService

DEFAULT_PAYLOAD_LIMIT = 8192
_ELLIPSIS = "..."


@dataclass
class AgendaOutcome:
    state: WorkflowState
    applied: bool
    source: str  # "ai" | "fallback"


def _payload_size(request: AgendaRequest) -> int:
    return len(request.model_dump_json(by_alias=True).encode("utf-8"))


def fit_payload(request: AgendaRequest, limit: int = DEFAULT_PAYLOAD_LIMIT) -> AgendaRequest:
    """Shorten ``enhanced_purpose`` until the serialised request fits in ``limit`` bytes."""
    overflow = _payload_size(request) - limit
    while overflow > 0 and request.enhanced_purpose:
        purpose = request.enhanced_purpose.removesuffix(_ELLIPSIS).encode("utf-8")
        keep = max(0, len(purpose) - overflow - len(_ELLIPSIS))
        shortened = purpose[:keep].decode("utf-8", errors="ignore")
        request = request.model_copy(update={"enhanced_purpose": shortened + _ELLIPSIS if shortened else ""})
        overflow = _payload_size(request) - limit
    return request


def build_agenda_request(state: WorkflowState) -> AgendaRequest:
    md = state.meeting_data
    return AgendaRequest(
        meeting_id=state.conversation_id,
        title=md.title or "Meeting",
        enhanced_purpose=md.purpose or "",
        participants=[a.email for a in md.attendees],
        duration=meeting_minutes(state),
        meeting_link=md.meeting_link,
        start_time=md.start_time,
        end_time=md.end_time,
    )


class AgendaService:
    def __init__(
        self,
        engine: WorkflowEngine,
        ai: AIService,
        *,
        retry: Optional[RetryPolicy] = None,
        payload_limit: int = DEFAULT_PAYLOAD_LIMIT,
        logger: Optional[StructuredLogger] = None,
    ):
        self._engine = engine
        self._ai = ai
        self._retry = retry or RetryPolicy()
        self._payload_limit = payload_limit
        self._log = logger or get_logger()

    def begin(self, meeting_id: str) -> tuple[int, AgendaRequest]:
        """Clear the agenda and start a new generation; the workflow must be in ``agenda_generation``."""
        captured: dict = {}

        def _start(state: WorkflowState) -> None:
            state.meeting_data.agenda = None
            state.agenda_version += 1
            state.loading = True
            captured["version"] = state.agenda_version
            captured["request"] = build_agenda_request(state)

        self._engine.mutate(meeting_id, _start)
        return captured["version"], fit_payload(captured["request"], self._payload_limit)

    def fetch(self, request: AgendaRequest) -> tuple[str, str]:
        """Agenda HTML from the AI, or the template when the AI keeps failing."""
        try:
            result = self._retry.run(lambda: self._ai.generate_agenda(request), service="ai")
            self._log.external_call("ai", "generate_agenda", success=True)
            return result.agenda.html, "ai"
        except ExternalServiceError as exc:
            self._log.external_call("ai", "generate_agenda", success=False, error=str(exc), fallback=True)
            return render_agenda(request).html, "fallback"

    def apply(self, meeting_id: str, version: int, agenda_html: str) -> tuple[WorkflowState, bool]:
        applied = {"ok": False}

        def _apply(state: WorkflowState) -> None:
            if state.agenda_version != version or state.current_step != WorkflowStep.AGENDA_GENERATION:
                return
            state.meeting_data.agenda = agenda_html
            state.loading = False
            applied["ok"] = True

        with self._engine.locked(meeting_id):
            state = self._engine.mutate(meeting_id, _apply)
            if not applied["ok"]:
                self._log.warning(
                    "agenda",
                    "stale agenda result discarded",
                    meeting_id=meeting_id,
                    version=version,
                    current_version=state.agenda_version,
                )
                return state, False
            outcome = self._engine.advance(meeting_id, WorkflowStep.AGENDA_APPROVAL)
            return outcome.state, True

    def generate(self, meeting_id: str) -> AgendaOutcome:
        version, request = self.begin(meeting_id)
        agenda_html, source = self.fetch(request)
        state, applied = self.apply(meeting_id, version, agenda_html)
        return AgendaOutcome(state=state, applied=applied, source=source)


__all__ = ["AgendaOutcome", "AgendaService", "build_agenda_request", "fit_payload"]
