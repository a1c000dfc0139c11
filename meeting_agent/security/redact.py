"""Helpers for redacting credentials in logs and error strings."""

from __future__ import annotations

import re

_REDACTED = "***REDACTED***"

_QUERY_VALUE_RE = re.compile(
    r"(?i)(?P<prefix>\b(?:key|api[_-]?key|access_token|refresh_token|token|secret|client_secret|password)\s*=\s*)"
    r"(?P<value>[^&\s\"']+)"
)
_JSON_KV_RE = re.compile(
    r"(?i)(?P<prefix>(?:[\"']?(?:api[_-]?key|access_?token|refresh_?token|client_?secret|token|secret|password)"
    r"[\"']?\s*[:=]\s*[\"']?))(?P<value>[^\"',\s}]+)"
)
_BEARER_RE = re.compile(r"(?i)(?P<prefix>\bbearer\s+)(?P<value>[A-Za-z0-9._~+/=-]+)")
_GOOGLE_ACCESS_TOKEN_RE = re.compile(r"\bya29\.[A-Za-z0-9._-]{10,}\b")
_GOOGLE_REFRESH_TOKEN_RE = re.compile(r"\b1//[A-Za-z0-9._-]{20,}\b")
_OPENAI_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9_-]{8,}\b")
_DSN_CREDENTIAL_RE = re.compile(r"(?i)(?P<prefix>\b(?:postgres(?:ql)?|redis|rediss)://)(?P<creds>[^@/\s]+)@")


def _replace_value(pattern: re.Pattern[str], text: str) -> str:
    return pattern.sub(lambda m: f"{m.group('prefix')}{_REDACTED}", text)


def redact_sensitive(text: str) -> str:
    """Redact OAuth tokens, API keys and DSN credentials, keeping the context."""
    if not text:
        return text

    redacted = str(text)
    for pattern in (_QUERY_VALUE_RE, _JSON_KV_RE, _BEARER_RE):
        redacted = _replace_value(pattern, redacted)
    for pattern in (_GOOGLE_ACCESS_TOKEN_RE, _GOOGLE_REFRESH_TOKEN_RE, _OPENAI_KEY_RE):
        redacted = pattern.sub(_REDACTED, redacted)
    return _DSN_CREDENTIAL_RE.sub(rf"\g<prefix>{_REDACTED}@", redacted)


__all__ = ["redact_sensitive"]
