"""Concrete collaborator selection and wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from meeting_agent.adapters.ai.template import TemplateAIService
from meeting_agent.adapters.calendar.mock import MockCalendarService
from meeting_agent.adapters.email.mock import MockEmailService
from meeting_agent.config.settings import Settings
from meeting_agent.infrastructure.llm_factory import is_llm_available
from meeting_agent.security.redact import redact_sensitive
from meeting_agent.tools.interfaces import AIService, CalendarService, EmailService

_logger = logging.getLogger("meeting-agent.tools")


@dataclass(frozen=True)
class Toolset:
    ai: AIService
    calendar: CalendarService
    email: EmailService


def get_ai_service() -> AIService:
    if is_llm_available():
        try:
            from meeting_agent.adapters.ai.llm import LLMAIService

            return LLMAIService()
        except Exception as exc:
            _logger.warning("Failed to load LLM adapter, fallback to template: %s", redact_sensitive(str(exc)))
    return TemplateAIService()


def get_calendar_service(settings: Settings) -> CalendarService:
    if settings.google_access_token:
        try:
            from meeting_agent.adapters.calendar.google import GoogleCalendarService

            return GoogleCalendarService(
                settings.google_access_token,
                settings.google_calendar_id,
                timeout=settings.external_timeout_seconds,
            )
        except Exception as exc:
            _logger.warning(
                "Failed to load Google Calendar adapter, fallback to mock: %s",
                redact_sensitive(str(exc)),
            )
    return MockCalendarService()


def get_email_service(settings: Settings) -> EmailService:
    if settings.google_access_token and settings.sender_email:
        try:
            from meeting_agent.adapters.email.gmail import GmailEmailService

            return GmailEmailService(
                settings.google_access_token,
                settings.sender_email,
                timeout=settings.external_timeout_seconds,
            )
        except Exception as exc:
            _logger.warning("Failed to load Gmail adapter, fallback to mock: %s", redact_sensitive(str(exc)))
    return MockEmailService()


def build_toolset(settings: Settings) -> Toolset:
    return Toolset(
        ai=get_ai_service(),
        calendar=get_calendar_service(settings),
        email=get_email_service(settings),
    )
