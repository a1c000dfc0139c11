"""LLM-backed AI service (langchain-openai ``ChatOpenAI`` via ``get_llm``).

Every call asks for a JSON-only answer. Parse failures raise, so the caller's
retry and fallback logic decides what happens next.
"""

from __future__ import annotations

import json
from typing import Any

from meeting_agent.infrastructure.llm_factory import get_llm
from meeting_agent.shared.exceptions import ToolError
from meeting_agent.tools.interfaces import (
    AgendaContent,
    AgendaRequest,
    AgendaResult,
    IntentRequest,
    IntentResult,
    TitleRequest,
    TitleResult,
)

_INTENT_PROMPT = """Analyze the message for meeting intent.

Context: {context}
Message: "{message}"

Return JSON only, with conservative confidence:
{{
  "intent": "schedule_meeting" | "modify_meeting" | "other",
  "confidence": 0.0-1.0,
  "fields": {{
    "duration": minutes or null,
    "purpose": "string" or null,
    "participants": ["email"],
    "suggestedTitle": "string" or null
  }},
  "missing": ["field names"]
}}"""

_TITLE_PROMPT = """Suggest 3 meeting titles. Return JSON only.

Purpose: "{purpose}"
People: {participants}
Context: "{context}"

{{
  "title": "best title",
  "enhancedPurpose": "one or two sentence purpose",
  "titleSuggestions": ["Title1", "Title2", "Title3"],
  "keyPoints": ["point"]
}}

Rules: fewer than 6 words, specific, action-focused, avoid the words "meeting" and "discussion"."""

_AGENDA_PROMPT = """Write an agenda for "{title}" ({duration} min).

Purpose: {purpose}
Participants: {participants}
{link_line}
Return JSON only: {{"html": "<h2>...</h2><ol><li>Topic (N min)</li>...</ol>", "text": "plain text version"}}
Include numbered items with time allocations that add up to {duration} minutes and
finish with an "Action Items" section."""


def _strip_fence(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        lines = content.split("\n")
        content = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    return content


class LLMAIService:
    name = "llm"

    def __init__(self, llm=None):
        self._llm = llm

    def _invoke_json(self, prompt: str) -> dict[str, Any]:
        llm = self._llm or get_llm()
        if llm is None:
            raise ToolError("llm", "No LLM key configured")
        resp = llm.invoke(prompt)
        content = resp.content if hasattr(resp, "content") else str(resp)
        data = json.loads(_strip_fence(content))
        if not isinstance(data, dict):
            raise ValueError("LLM answer is not a JSON object")
        return data

    def extract_intent(self, request: IntentRequest) -> IntentResult:
        data = self._invoke_json(
            _INTENT_PROMPT.format(context=json.dumps(request.context, default=str), message=request.message)
        )
        if data.get("intent") == "create_meeting":
            data["intent"] = "schedule_meeting"
        return IntentResult.model_validate(data)

    def generate_title(self, request: TitleRequest) -> TitleResult:
        data = self._invoke_json(
            _TITLE_PROMPT.format(
                purpose=request.purpose,
                participants=", ".join(request.participants) or "none",
                context=request.context,
            )
        )
        suggestions = data.get("titleSuggestions") or data.get("suggestions") or []
        if not data.get("title") and suggestions:
            data["title"] = suggestions[0]
        data["titleSuggestions"] = suggestions
        return TitleResult.model_validate(data)

    def generate_agenda(self, request: AgendaRequest) -> AgendaResult:
        link_line = f"Meeting link: {request.meeting_link}" if request.meeting_link else ""
        data = self._invoke_json(
            _AGENDA_PROMPT.format(
                title=request.title,
                duration=request.duration,
                purpose=request.enhanced_purpose or "not specified",
                participants=", ".join(request.participants) or "none",
                link_line=link_line,
            )
        )
        agenda = data.get("agenda", data)
        return AgendaResult(agenda=AgendaContent.model_validate(agenda))
