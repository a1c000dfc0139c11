"""Chat intake: turn a free-text message into a new workflow when it asks for a meeting."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from pydantic import Field

from meeting_agent.adapters.ai.template import TemplateAIService
from meeting_agent.application.contracts import WorkflowStateSummary, summarize
from meeting_agent.application.ui_blocks import UIBlock, generate
from meeting_agent.application.workflow import WorkflowEngine
from meeting_agent.domain.enums import Intent, WorkflowStep
from meeting_agent.domain.models import CamelModel
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.infrastructure.retry import RetryPolicy
from meeting_agent.shared.exceptions import ExternalServiceError
from meeting_agent.tools.interfaces import AIService, IntentRequest, IntentResult

DEFAULT_CONFIDENCE_THRESHOLD = 0.6


class ChatRequest(CamelModel):
    message: str = Field(min_length=1, max_length=4000)
    conversation_id: Optional[str] = Field(default=None, max_length=128)
    context: dict[str, Any] = Field(default_factory=dict)


class ChatResponse(CamelModel):
    message: str
    intent: Intent
    confidence: float
    workflow_started: bool = False
    conversation_id: Optional[str] = None
    next_ui_block: Optional[UIBlock] = None
    workflow_state: Optional[WorkflowStateSummary] = None
    missing: list[str] = Field(default_factory=list)


def should_start_workflow(result: IntentResult, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> bool:
    return result.intent != Intent.OTHER and result.confidence > threshold


def initial_data_from_intent(result: IntentResult) -> dict[str, Any]:
    fields = result.fields
    data: dict[str, Any] = {}
    if fields.purpose:
        data["purpose"] = fields.purpose
    if fields.suggested_title:
        data["title"] = fields.suggested_title
    if fields.duration:
        data["duration_minutes"] = fields.duration
    if fields.participants:
        data["attendees"] = [{"email": email} for email in fields.participants]
    return data


class ChatService:
    def __init__(
        self,
        engine: WorkflowEngine,
        ai: AIService,
        *,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        retry: Optional[RetryPolicy] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self._engine = engine
        self._ai = ai
        self._threshold = threshold
        self._retry = retry or RetryPolicy()
        self._log = logger or get_logger()
        self._fallback = TemplateAIService()

    def _detect(self, request: IntentRequest) -> IntentResult:
        try:
            result = self._retry.run(lambda: self._ai.extract_intent(request), service="ai")
            self._log.external_call("ai", "extract_intent", success=True, confidence=result.confidence)
            return result
        except ExternalServiceError as exc:
            self._log.external_call("ai", "extract_intent", success=False, error=str(exc), fallback=True)
            return self._fallback.extract_intent(request)

    def handle(self, request: ChatRequest) -> ChatResponse:
        if request.conversation_id and self._engine.store.exists(request.conversation_id):
            state = self._engine.get(request.conversation_id)
            return ChatResponse(
                message="Let's continue with your meeting",
                intent=Intent.SCHEDULE_MEETING,
                confidence=1.0,
                conversation_id=state.conversation_id,
                next_ui_block=generate(state),
                workflow_state=summarize(state),
            )

        result = self._detect(IntentRequest(message=request.message, context=request.context))
        if not should_start_workflow(result, self._threshold):
            return ChatResponse(
                message="I can help you schedule a meeting. Tell me who should attend and what it is about.",
                intent=result.intent,
                confidence=result.confidence,
            )

        meeting_id = request.conversation_id or f"mtg_{uuid.uuid4().hex[:12]}"
        state = self._engine.create_workflow(meeting_id, initial_data_from_intent(result))
        if state.current_step == WorkflowStep.INTENT_DETECTION:
            state = self._engine.advance(meeting_id).state
        return ChatResponse(
            message="Let's set up your meeting",
            intent=result.intent,
            confidence=result.confidence,
            workflow_started=True,
            conversation_id=meeting_id,
            next_ui_block=generate(state),
            workflow_state=summarize(state),
            missing=result.missing,
        )


__all__ = ["ChatRequest", "ChatResponse", "ChatService", "initial_data_from_intent", "should_start_workflow"]
