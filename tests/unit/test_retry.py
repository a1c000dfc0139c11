import time

import httpx
import pytest

from meeting_agent.config.settings import Settings
from meeting_agent.infrastructure.retry import (
    RetryPolicy,
    backoff_delay,
    call_with_timeout,
    is_retryable,
    retry_with_backoff,
)
from meeting_agent.shared.exceptions import ExternalServiceError


class Flaky:
    def __init__(self, failures: int, exc: Exception):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


def test_backoff_doubles_and_caps():
    assert [backoff_delay(n, 1.0, 10.0) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_retries_until_success_with_backoff_delays():
    delays = []
    fn = Flaky(2, ConnectionError("connection reset"))
    result = retry_with_backoff(fn, service="ai", timeout=None, sleep=delays.append)
    assert result == "ok"
    assert fn.calls == 3
    assert delays == [1.0, 2.0]


def test_gives_up_after_max_retries():
    delays = []
    fn = Flaky(10, ConnectionError("connection reset"))
    with pytest.raises(ExternalServiceError) as exc_info:
        retry_with_backoff(fn, service="calendar", max_retries=3, timeout=None, sleep=delays.append)
    assert fn.calls == 4
    assert len(delays) == 3
    assert exc_info.value.service == "calendar"
    assert exc_info.value.retryable is True


def test_non_retryable_error_fails_immediately():
    fn = Flaky(1, ValueError("bad json"))
    with pytest.raises(ExternalServiceError) as exc_info:
        retry_with_backoff(fn, service="ai", timeout=None, sleep=lambda _s: None)
    assert fn.calls == 1
    assert exc_info.value.retryable is False


def test_error_message_is_redacted():
    fn = Flaky(1, ValueError("denied for access_token=ya29.secretsecretsecret"))
    with pytest.raises(ExternalServiceError) as exc_info:
        retry_with_backoff(fn, service="email", timeout=None, sleep=lambda _s: None)
    assert "secretsecret" not in str(exc_info.value)


def test_http_status_retryability():
    request = httpx.Request("POST", "https://example.invalid")

    def status_error(code):
        return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(code, request=request))

    assert is_retryable(status_error(503))
    assert is_retryable(status_error(429))
    assert not is_retryable(status_error(400))
    assert is_retryable(httpx.ConnectError("refused", request=request))


def test_call_with_timeout_stops_waiting():
    with pytest.raises(TimeoutError):
        call_with_timeout(lambda: time.sleep(1), timeout=0.05)
    assert call_with_timeout(lambda: 42, timeout=1) == 42


def test_timeout_counts_as_retryable():
    with pytest.raises(ExternalServiceError) as exc_info:
        retry_with_backoff(
            lambda: time.sleep(1),
            service="ai",
            max_retries=1,
            timeout=0.05,
            sleep=lambda _s: None,
        )
    assert exc_info.value.retryable is True


def test_policy_from_settings():
    policy = RetryPolicy.from_settings(
        Settings(external_max_retries=1, external_timeout_seconds=5, retry_initial_delay_seconds=0.5)
    )
    assert policy.max_retries == 1
    assert policy.timeout == 5
    assert policy.initial_delay == 0.5

    fn = Flaky(1, ConnectionError("reset"))
    fast = RetryPolicy(max_retries=1, timeout=None, sleep=lambda _s: None)
    assert fast.run(fn, service="ai") == "ok"
