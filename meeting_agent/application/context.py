"""Application-level dependency injection context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from meeting_agent.adapters.tool_factory import Toolset, build_toolset
from meeting_agent.application.agenda import AgendaService
from meeting_agent.application.chat import ChatService
from meeting_agent.application.finalize import FinalizeService
from meeting_agent.application.handlers import InteractionService
from meeting_agent.application.titles import TitleService
from meeting_agent.application.workflow import WorkflowEngine
from meeting_agent.config.settings import Settings, load_settings
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.infrastructure.retry import RetryPolicy
from meeting_agent.infrastructure.session_store import build_session_store


@dataclass
class AppContext:
    settings: Settings
    session_store: Any
    tools: Toolset
    engine: WorkflowEngine
    interactions: InteractionService
    chat: ChatService
    finalize: FinalizeService
    logger: Optional[StructuredLogger] = None
    extras: dict[str, Any] = field(default_factory=dict)

    def close(self) -> None:
        self.session_store.clear()


def make_app_context(
    settings: Optional[Settings] = None,
    *,
    session_store: Any = None,
    tools: Optional[Toolset] = None,
    retry: Optional[RetryPolicy] = None,
    logger: Optional[StructuredLogger] = None,
) -> AppContext:
    settings = settings or load_settings()
    store = session_store or build_session_store(
        ttl=settings.session_ttl_seconds,
        max_sessions=settings.session_max_sessions,
        redis_url=settings.redis_url,
    )
    tools = tools or build_toolset(settings)
    retry = retry or RetryPolicy.from_settings(settings)
    logger = logger or get_logger()

    engine = WorkflowEngine(store, logger=logger)
    agenda = AgendaService(
        engine,
        tools.ai,
        retry=retry,
        payload_limit=settings.agenda_payload_limit_bytes,
        logger=logger,
    )
    titles = TitleService(engine, tools.ai, retry=retry, logger=logger)
    finalize = FinalizeService(engine, tools.calendar, tools.email, retry=retry, logger=logger)
    interactions = InteractionService(engine, agenda, titles, finalize, tools.calendar, retry=retry, logger=logger)
    chat = ChatService(
        engine,
        tools.ai,
        threshold=settings.intent_confidence_threshold,
        retry=retry,
        logger=logger,
    )
    return AppContext(
        settings=settings,
        session_store=store,
        tools=tools,
        engine=engine,
        interactions=interactions,
        chat=chat,
        finalize=finalize,
        logger=logger,
    )
