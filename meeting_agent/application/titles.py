"""Title and purpose suggestions for the meeting details step."""

from __future__ import annotations

from typing import Optional

from meeting_agent.adapters.ai.template import TemplateAIService
from meeting_agent.application.workflow import WorkflowEngine
from meeting_agent.domain.enums import WorkflowStep
from meeting_agent.domain.models import WorkflowState
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.infrastructure.retry import RetryPolicy
from meeting_agent.shared.exceptions import ExternalServiceError
from meeting_agent.tools.interfaces import AIService, TitleRequest, TitleResult


class TitleService:
    def __init__(
        self,
        engine: WorkflowEngine,
        ai: AIService,
        *,
        retry: Optional[RetryPolicy] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self._engine = engine
        self._ai = ai
        self._retry = retry or RetryPolicy()
        self._log = logger or get_logger()
        self._fallback = TemplateAIService()

    def _request(self, meeting_id: str) -> TitleRequest:
        def _start(state: WorkflowState) -> None:
            state.loading = True

        state = self._engine.mutate(meeting_id, _start)
        md = state.meeting_data
        return TitleRequest(
            purpose=md.purpose or md.title or "team meeting",
            participants=[a.email for a in md.attendees],
            context=f"{md.type.value} meeting" if md.type else "",
        )

    def _fetch(self, request: TitleRequest) -> TitleResult:
        try:
            result = self._retry.run(lambda: self._ai.generate_title(request), service="ai")
            self._log.external_call("ai", "generate_title", success=True)
            return result
        except ExternalServiceError as exc:
            self._log.external_call("ai", "generate_title", success=False, error=str(exc), fallback=True)
            return self._fallback.generate_title(request)

    def suggest(self, meeting_id: str) -> WorkflowState:
        """Fill ``title_suggestions``; the top suggestion becomes the title when none is set."""
        result = self._fetch(self._request(meeting_id))
        suggestions = result.title_suggestions or [result.title]

        def _apply(state: WorkflowState) -> None:
            state.loading = False
            if state.current_step != WorkflowStep.MEETING_DETAILS_COLLECTION:
                return
            md = state.meeting_data
            state.title_suggestions = suggestions
            if not md.title:
                md.title = result.title
            if not md.purpose and result.enhanced_purpose:
                md.purpose = result.enhanced_purpose

        return self._engine.mutate(meeting_id, _apply)


__all__ = ["TitleService"]
