"""Deterministic AI service used when no LLM key is configured.

Intent comes from keyword and regex matching; titles and agendas come from
fixed templates. The agenda template doubles as the fallback when the LLM
fails.
"""

from __future__ import annotations

import html
import re
from typing import Optional

from meeting_agent.domain.constants import DEFAULT_MEETING_MINUTES
from meeting_agent.domain.enums import Intent
from meeting_agent.tools.interfaces import (
    AgendaContent,
    AgendaRequest,
    AgendaResult,
    IntentFields,
    IntentRequest,
    IntentResult,
    TitleRequest,
    TitleResult,
)

# ── intent keywords ────────────────────────────

_SCHEDULE_VERBS = ("schedule", "set up", "setup", "book", "arrange", "organize", "organise", "plan", "create")
_MEETING_NOUNS = ("meeting", "call", "sync", "standup", "stand-up", "1:1", "one-on-one", "review", "catch up", "catch-up")
_MODIFY_VERBS = ("reschedule", "move", "postpone", "change", "cancel", "update")

_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(minutes?|mins?|hours?|hrs?|h)\b", re.IGNORECASE)
_PURPOSE_RE = re.compile(
    r"\b(?:to discuss|to talk about|to review|about|regarding|for)\s+(.+?)(?:\s+(?:with|on|at|tomorrow|today|next)\b|[.?!]|$)",
    re.IGNORECASE,
)

_STOP_WORDS = {"a", "an", "the", "our", "my", "to", "of", "and", "for", "with", "on", "about"}


def extract_duration(text: str) -> Optional[int]:
    """Duration in minutes from '30 min', '1.5 hours', '2h'."""
    m = _DURATION_RE.search(text)
    if not m:
        return None
    value = float(m.group(1))
    unit = m.group(2).lower()
    minutes = value * 60 if unit.startswith("h") else value
    return int(round(minutes)) or None


def extract_participants(text: str) -> list[str]:
    seen: list[str] = []
    for email in _EMAIL_RE.findall(text):
        email = email.lower()
        if email not in seen:
            seen.append(email)
    return seen


def extract_purpose(text: str) -> Optional[str]:
    m = _PURPOSE_RE.search(text)
    if not m:
        return None
    purpose = _EMAIL_RE.sub("", m.group(1)).strip(" ,;:")
    return purpose or None


def _contains_any(text: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(w)}\b", text) for w in words)


def _title_case(words: list[str]) -> str:
    return " ".join(w if w.isupper() else w.capitalize() for w in words)


def suggest_titles(purpose: str) -> list[str]:
    words = [w for w in re.findall(r"[\w'-]+", purpose) if w.lower() not in _STOP_WORDS][:5]
    if not words:
        return ["Team Sync", "Project Check-in", "Planning Session"]
    core = _title_case(words)
    suggestions = [core, f"{core} Sync", f"{core} Review"]
    return list(dict.fromkeys(suggestions))


def agenda_topics(duration: int) -> list[tuple[str, int]]:
    """Welcome, discussion and wrap-up slots that add up to ``duration``."""
    welcome = min(10, int(duration * 0.15))
    main = int(duration * 0.6)
    wrap_up = int(duration * 0.25)
    # remainder goes to the main discussion
    main += duration - (welcome + main + wrap_up)
    return [
        ("Welcome & Introductions", welcome),
        ("Main Discussion", main),
        ("Action Items & Next Steps", wrap_up),
    ]


def render_agenda(request: AgendaRequest) -> AgendaContent:
    duration = request.duration or DEFAULT_MEETING_MINUTES
    title = request.title or "Meeting Agenda"
    topics = agenda_topics(duration)

    parts = [f"<h2>{html.escape(title)}</h2>", f"<p>Duration: {duration} min</p>"]
    if request.enhanced_purpose:
        parts.append(f"<p>Purpose: {html.escape(request.enhanced_purpose)}</p>")
    if request.meeting_link:
        parts.append(f'<p>Join: <a href="{html.escape(request.meeting_link)}">{html.escape(request.meeting_link)}</a></p>')
    parts.append("<ol>")
    parts.extend(f"<li>{html.escape(name)} ({minutes} min)</li>" for name, minutes in topics)
    parts.append("</ol>")
    parts.append("<h3>Action Items</h3><ul><li>Follow up on discussion points</li></ul>")

    lines = [title, f"Duration: {duration} min"]
    if request.enhanced_purpose:
        lines.append(f"Purpose: {request.enhanced_purpose}")
    if request.meeting_link:
        lines.append(f"Join: {request.meeting_link}")
    lines.extend(f"{i}. {name} ({minutes} min)" for i, (name, minutes) in enumerate(topics, 1))
    lines.append("Action Items:")
    lines.append("- Follow up on discussion points")

    return AgendaContent(html="".join(parts), text="\n".join(lines))


class TemplateAIService:
    name = "template"

    def extract_intent(self, request: IntentRequest) -> IntentResult:
        text = request.message.strip()
        lowered = text.lower()

        participants = extract_participants(text)
        purpose = extract_purpose(text)
        fields = IntentFields(
            duration=extract_duration(text),
            purpose=purpose,
            participants=participants,
            suggested_title=suggest_titles(purpose)[0] if purpose else None,
        )

        has_verb = _contains_any(lowered, _SCHEDULE_VERBS)
        has_noun = _contains_any(lowered, _MEETING_NOUNS)
        if _contains_any(lowered, _MODIFY_VERBS) and has_noun:
            intent, confidence = Intent.MODIFY_MEETING, 0.75
        elif has_verb and has_noun:
            intent, confidence = Intent.SCHEDULE_MEETING, 0.9
        elif has_noun and (participants or fields.duration):
            intent, confidence = Intent.SCHEDULE_MEETING, 0.7
        elif has_noun or has_verb:
            intent, confidence = Intent.SCHEDULE_MEETING, 0.4
        else:
            intent, confidence = Intent.OTHER, 0.1

        missing: list[str] = []
        if intent != Intent.OTHER:
            if not participants:
                missing.append("participants")
            if not purpose:
                missing.append("purpose")
            if fields.duration is None:
                missing.append("duration")
        return IntentResult(intent=intent, confidence=confidence, fields=fields, missing=missing)

    def generate_title(self, request: TitleRequest) -> TitleResult:
        purpose = request.purpose.strip()
        suggestions = suggest_titles(purpose)
        enhanced = purpose[:1].upper() + purpose[1:] if purpose else ""
        if enhanced and request.participants:
            enhanced = f"{enhanced} with {', '.join(request.participants)}"
        return TitleResult(
            title=suggestions[0],
            enhanced_purpose=enhanced,
            title_suggestions=suggestions,
            key_points=[purpose] if purpose else [],
        )

    def generate_agenda(self, request: AgendaRequest) -> AgendaResult:
        return AgendaResult(agenda=render_agenda(request))
