"""Conversation session store with in-memory default and optional Redis backend."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from meeting_agent.domain.exceptions import WorkflowAlreadyExists
from meeting_agent.domain.models import WorkflowState
from meeting_agent.security.redact import redact_sensitive

try:
    import redis
except Exception:  # pragma: no cover - optional dependency
    redis = None

_logger = logging.getLogger("meeting-agent.session")

DEFAULT_TTL = 86400.0
MAX_SESSIONS = 1000
_DEFAULT_PREFIX = "meeting-agent:workflow:"


class SessionStore:
    """Thread-safe in-memory store of ``WorkflowState`` keyed by meeting id.

    Entries expire after ``ttl`` seconds without an update. Callers always get
    a deep copy, so a state can only change through ``update``.
    """

    backend = "memory"

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_sessions: int = MAX_SESSIONS,
        clock: Callable[[], float] = time.time,
    ):
        self._store: dict[str, tuple[WorkflowState, float]] = {}
        self._ttl = ttl
        self._max_sessions = max_sessions
        self._clock = clock
        self._lock = threading.Lock()

    def create(self, meeting_id: str, state: WorkflowState) -> None:
        with self._lock:
            entry = self._store.get(meeting_id)
            if entry is not None and self._clock() <= entry[1]:
                raise WorkflowAlreadyExists(meeting_id)
            self._put(meeting_id, state)

    def get(self, meeting_id: str) -> Optional[WorkflowState]:
        with self._lock:
            entry = self._store.get(meeting_id)
            if entry is None:
                return None
            state, expire_at = entry
            if self._clock() > expire_at:
                del self._store[meeting_id]
                return None
            return state.model_copy(deep=True)

    def update(self, meeting_id: str, state: WorkflowState) -> None:
        with self._lock:
            self._put(meeting_id, state)

    def delete(self, meeting_id: str) -> None:
        with self._lock:
            self._store.pop(meeting_id, None)

    def exists(self, meeting_id: str) -> bool:
        with self._lock:
            entry = self._store.get(meeting_id)
            return entry is not None and self._clock() <= entry[1]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def _put(self, meeting_id: str, state: WorkflowState) -> None:
        if meeting_id not in self._store and len(self._store) >= self._max_sessions:
            self._cleanup_expired()
            if len(self._store) >= self._max_sessions:
                oldest = min(self._store, key=lambda k: self._store[k][1])
                _logger.warning("Session store full, evicting %s", oldest)
                del self._store[oldest]
        self._store[meeting_id] = (state.model_copy(deep=True), self._clock() + self._ttl)

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (_, exp) in self._store.items() if now > exp]
        for key in expired:
            del self._store[key]

    @property
    def active_count(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for _, (_, exp) in self._store.items() if now <= exp)


class RedisSessionStore:
    """Redis-backed store for multi-instance deployments."""

    backend = "redis"

    def __init__(self, redis_url: str, ttl: float = DEFAULT_TTL, prefix: str = _DEFAULT_PREFIX):
        if redis is None:  # pragma: no cover
            raise RuntimeError("redis package is not installed")
        self._ttl = max(1, int(ttl))
        self._prefix = prefix
        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._client.ping()

    def _key(self, meeting_id: str) -> str:
        return f"{self._prefix}{meeting_id}"

    def create(self, meeting_id: str, state: WorkflowState) -> None:
        created = self._client.set(self._key(meeting_id), state.model_dump_json(), ex=self._ttl, nx=True)
        if not created:
            raise WorkflowAlreadyExists(meeting_id)

    def get(self, meeting_id: str) -> Optional[WorkflowState]:
        raw = self._client.get(self._key(meeting_id))
        if raw is None:
            return None
        try:
            return WorkflowState.model_validate_json(raw)
        except ValueError:
            _logger.warning("Dropping unreadable workflow state for %s", meeting_id)
            self._client.delete(self._key(meeting_id))
            return None

    def update(self, meeting_id: str, state: WorkflowState) -> None:
        self._client.setex(self._key(meeting_id), self._ttl, state.model_dump_json())

    def delete(self, meeting_id: str) -> None:
        self._client.delete(self._key(meeting_id))

    def exists(self, meeting_id: str) -> bool:
        return bool(self._client.exists(self._key(meeting_id)))

    def clear(self) -> None:
        keys = list(self._client.scan_iter(f"{self._prefix}*"))
        if keys:
            self._client.delete(*keys)

    @property
    def active_count(self) -> int:
        return sum(1 for _ in self._client.scan_iter(f"{self._prefix}*"))


def build_session_store(
    *,
    ttl: float = DEFAULT_TTL,
    max_sessions: int = MAX_SESSIONS,
    redis_url: str | None = None,
):
    if redis_url:
        if redis is None:
            _logger.warning("REDIS_URL is set but redis dependency is missing; fallback to memory store")
        else:
            try:
                store = RedisSessionStore(redis_url=redis_url, ttl=ttl)
                _logger.info("Session store initialized with Redis backend")
                return store
            except Exception as exc:
                _logger.warning(
                    "Failed to initialize Redis session store, fallback to memory store: %s",
                    redact_sensitive(str(exc)),
                )

    return SessionStore(ttl=ttl, max_sessions=max_sessions)
