"""Infrastructure services and cross-cutting utilities."""

from meeting_agent.infrastructure.llm_factory import get_llm, is_llm_available, reset_llm
from meeting_agent.infrastructure.locks import KeyedLocks
from meeting_agent.infrastructure.logging import StructuredLogger, get_logger
from meeting_agent.infrastructure.retry import RetryPolicy, call_with_timeout, retry_with_backoff
from meeting_agent.infrastructure.session_store import RedisSessionStore, SessionStore, build_session_store

__all__ = [
    "KeyedLocks",
    "RedisSessionStore",
    "RetryPolicy",
    "SessionStore",
    "StructuredLogger",
    "build_session_store",
    "call_with_timeout",
    "get_llm",
    "get_logger",
    "is_llm_available",
    "reset_llm",
    "retry_with_backoff",
]
