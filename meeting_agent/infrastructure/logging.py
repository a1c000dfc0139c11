"""Structured logging: JSON lines with credential redaction."""

from __future__ import annotations

import json
import sys
import time
import uuid
from typing import Any, Optional

from meeting_agent.security.redact import redact_sensitive


class StructuredLogger:
    """Writes one JSON object per line; every line is redacted before output."""

    def __init__(self, trace_id: Optional[str] = None, output=None):
        self.trace_id = trace_id or str(uuid.uuid4())[:8]
        self._output = output or sys.stderr
        self._timers: dict[str, float] = {}

    def _emit(self, data: dict[str, Any]) -> None:
        data["trace_id"] = self.trace_id
        data["timestamp"] = time.time()
        try:
            line = redact_sensitive(json.dumps(data, ensure_ascii=False, default=str))
            self._output.write(line + "\n")
            self._output.flush()
        except Exception as exc:
            # Last-resort fallback to avoid silent logger failures.
            try:
                fallback = {
                    "event": "logger_internal_error",
                    "trace_id": self.trace_id,
                    "timestamp": time.time(),
                    "error": str(exc),
                }
                sys.stderr.write(json.dumps(fallback, default=str) + "\n")
                sys.stderr.flush()
            except Exception:
                return

    def handler_start(self, handler: str, meeting_id: str, **extra: Any) -> None:
        self._timers[f"{handler}:{meeting_id}"] = time.time()
        self._emit({"event": "handler_start", "handler": handler, "meeting_id": meeting_id, **extra})

    def handler_end(self, handler: str, meeting_id: str, *, success: bool, **extra: Any) -> None:
        start = self._timers.pop(f"{handler}:{meeting_id}", time.time())
        self._emit({
            "event": "handler_end",
            "handler": handler,
            "meeting_id": meeting_id,
            "success": success,
            "duration_ms": round((time.time() - start) * 1000, 1),
            **extra,
        })

    def transition(self, meeting_id: str, from_step: str, to_step: str, **extra: Any) -> None:
        self._emit({"event": "transition", "meeting_id": meeting_id, "from": from_step, "to": to_step, **extra})

    def transition_blocked(self, meeting_id: str, from_step: str, to_step: str, errors: list[str]) -> None:
        self._emit({
            "event": "transition_blocked",
            "meeting_id": meeting_id,
            "from": from_step,
            "to": to_step,
            "errors": errors,
        })

    def external_call(self, service: str, operation: str, *, success: bool, **extra: Any) -> None:
        self._emit({"event": "external_call", "service": service, "operation": operation, "success": success, **extra})

    def error(self, where: str, error: str, **extra: Any) -> None:
        self._emit({"event": "error", "where": where, "error": error, **extra})

    def warning(self, where: str, message: str, **extra: Any) -> None:
        self._emit({"event": "warning", "where": where, "message": message, **extra})


def get_logger(trace_id: Optional[str] = None, output=None) -> StructuredLogger:
    return StructuredLogger(trace_id=trace_id, output=output)
