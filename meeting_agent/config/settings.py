"""Settings read from the environment."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}


def _is_enabled(value: str | None) -> bool:
    return bool(value and value.strip().lower() in _TRUTHY)


def _is_configured(value: str | None) -> bool:
    return bool(value and value.strip())


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if _is_configured(raw) else default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if _is_configured(raw) else default


class Settings(BaseModel):
    session_ttl_seconds: float = Field(default=86400.0, gt=0)
    session_max_sessions: int = Field(default=1000, gt=0)
    redis_url: str | None = None

    external_timeout_seconds: float = Field(default=45.0, gt=0)
    external_max_retries: int = Field(default=3, ge=0)
    retry_initial_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=10.0, ge=0)

    intent_confidence_threshold: float = Field(default=0.6, ge=0, le=1)
    agenda_payload_limit_bytes: int = Field(default=8192, gt=512)

    google_access_token: str | None = None
    google_calendar_id: str = "primary"
    sender_email: str | None = None

    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    enable_docs: bool = False


def load_settings() -> Settings:
    return Settings(
        session_ttl_seconds=_float_env("SESSION_TTL_SECONDS", 86400.0),
        session_max_sessions=_int_env("SESSION_MAX_SESSIONS", 1000),
        redis_url=os.getenv("REDIS_URL") or None,
        external_timeout_seconds=_float_env("EXTERNAL_TIMEOUT_SECONDS", 45.0),
        external_max_retries=_int_env("EXTERNAL_MAX_RETRIES", 3),
        retry_initial_delay_seconds=_float_env("RETRY_INITIAL_DELAY_SECONDS", 1.0),
        retry_max_delay_seconds=_float_env("RETRY_MAX_DELAY_SECONDS", 10.0),
        intent_confidence_threshold=_float_env("INTENT_CONFIDENCE_THRESHOLD", 0.6),
        agenda_payload_limit_bytes=_int_env("AGENDA_PAYLOAD_LIMIT_BYTES", 8192),
        google_access_token=os.getenv("GOOGLE_ACCESS_TOKEN") or None,
        google_calendar_id=os.getenv("GOOGLE_CALENDAR_ID", "primary").strip() or "primary",
        sender_email=os.getenv("SENDER_EMAIL") or None,
        cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()] or ["*"],
        enable_docs=_is_enabled(os.getenv("ENABLE_DOCS")),
    )


def resolve_ai_provider() -> str:
    if _is_configured(os.getenv("OPENAI_API_KEY")):
        return "openai"
    if _is_configured(os.getenv("DASHSCOPE_API_KEY")):
        return "dashscope"
    if _is_configured(os.getenv("LLM_API_KEY")):
        return "llm_compatible"
    return "template"


class ProviderSnapshot(BaseModel):
    ai_provider: str = Field(default="template")
    calendar_provider: str = Field(default="mock")
    email_provider: str = Field(default="mock")
    session_backend: str = Field(default="memory")


def resolve_provider_snapshot(settings: Settings, *, session_backend: str = "memory") -> ProviderSnapshot:
    google = _is_configured(settings.google_access_token)
    return ProviderSnapshot(
        ai_provider=resolve_ai_provider(),
        calendar_provider="google" if google else "mock",
        email_provider="gmail" if google and _is_configured(settings.sender_email) else "mock",
        session_backend=session_backend,
    )


__all__ = ["ProviderSnapshot", "Settings", "load_settings", "resolve_ai_provider", "resolve_provider_snapshot"]
