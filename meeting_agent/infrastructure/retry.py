"""Timeout and bounded exponential-backoff retry for external calls.

Only collaborator calls (AI, calendar, email) go through here; workflow state
transitions are never retried.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import httpx

from meeting_agent.security.redact import redact_sensitive
from meeting_agent.shared.exceptions import ExternalServiceError

T = TypeVar("T")

_logger = logging.getLogger("meeting-agent.retry")

DEFAULT_TIMEOUT_SECONDS = 45.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


class CallTimeoutError(TimeoutError):
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"operation timed out after {timeout}s")


def call_with_timeout(fn: Callable[[], T], timeout: float) -> T:
    """Run ``fn`` on a worker thread and stop waiting after ``timeout`` seconds."""
    pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = pool.submit(fn)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        raise CallTimeoutError(timeout) from None
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def backoff_delay(retry_number: int, initial: float = DEFAULT_INITIAL_DELAY, maximum: float = DEFAULT_MAX_DELAY) -> float:
    """Seconds to wait before retry ``retry_number`` (0-based): min(initial * 2^n, maximum)."""
    return min(initial * (2 ** retry_number), maximum)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, ExternalServiceError):
        return exc.retryable
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    if isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True
    message = str(exc).lower()
    return any(hint in message for hint in ("timeout", "network", "connection", "overloaded", "rate limit"))


def retry_with_backoff(
    fn: Callable[[], T],
    *,
    service: str,
    max_retries: int = DEFAULT_MAX_RETRIES,
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` up to ``max_retries + 1`` times.

    Raises ``ExternalServiceError`` once retries are exhausted or the failure is
    not retryable.
    """
    attempt = 0
    while True:
        try:
            if timeout:
                return call_with_timeout(fn, timeout)
            return fn()
        except Exception as exc:
            safe_msg = redact_sensitive(str(exc)) or type(exc).__name__
            retryable = is_retryable(exc)
            if not retryable or attempt >= max_retries:
                _logger.warning(
                    "%s call failed after %d attempt(s): %s", service, attempt + 1, safe_msg
                )
                raise ExternalServiceError(service, safe_msg, retryable=retryable) from exc
            delay = backoff_delay(attempt, initial_delay, max_delay)
            _logger.info(
                "%s call failed, retrying (%d/%d) in %.1fs: %s",
                service,
                attempt + 1,
                max_retries,
                delay,
                safe_msg,
            )
            sleep(delay)
            attempt += 1


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings bundled for the services that call collaborators."""

    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS
    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.external_max_retries,
            timeout=settings.external_timeout_seconds,
            initial_delay=settings.retry_initial_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )

    def run(self, fn: Callable[[], T], *, service: str) -> T:
        return retry_with_backoff(
            fn,
            service=service,
            max_retries=self.max_retries,
            timeout=self.timeout,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            sleep=self.sleep,
        )
