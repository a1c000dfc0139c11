"""Collaborator fakes and context builders shared by the tests."""

from __future__ import annotations

import datetime as dt
import threading
from typing import Optional

from meeting_agent.adapters.ai.template import TemplateAIService
from meeting_agent.adapters.calendar.mock import MockCalendarService
from meeting_agent.adapters.email.mock import MockEmailService
from meeting_agent.adapters.tool_factory import Toolset
from meeting_agent.application.context import AppContext, make_app_context
from meeting_agent.config.settings import Settings
from meeting_agent.domain.models import BusyWindow
from meeting_agent.infrastructure.retry import RetryPolicy
from meeting_agent.infrastructure.session_store import SessionStore
from meeting_agent.tools.interfaces import (
    AgendaContent,
    AgendaRequest,
    AgendaResult,
    CalendarEventRequest,
    CalendarEventResult,
    EmailDispatchRequest,
    EmailJob,
)

FULL_AGENDA = (
    "<h2>Quarterly Planning</h2><ol>"
    "<li>Welcome and goals (10 min)</li>"
    "<li>Roadmap review (30 min)</li>"
    "<li>Action items and next steps (20 min)</li>"
    "</ol>"
)

NO_RETRY = RetryPolicy(max_retries=0, timeout=None, initial_delay=0, max_delay=0, sleep=lambda _s: None)
FAST_RETRY = RetryPolicy(max_retries=3, timeout=None, initial_delay=0, max_delay=0, sleep=lambda _s: None)


class FakeAI(TemplateAIService):
    """Template AI with switchable agenda failures and an optional gate for race tests."""

    name = "fake"

    def __init__(self, agenda_html: str = FULL_AGENDA, fail_agenda: int = 0):
        self.agenda_html = agenda_html
        self.fail_agenda = fail_agenda
        self.agenda_calls = 0
        self.gates: list[threading.Event] = []
        self._lock = threading.Lock()

    def generate_agenda(self, request: AgendaRequest) -> AgendaResult:
        with self._lock:
            self.agenda_calls += 1
            call_no = self.agenda_calls
            gate = self.gates.pop(0) if self.gates else None
        if gate is not None:
            gate.wait(timeout=5)
        if call_no <= self.fail_agenda:
            raise ConnectionError("ai backend connection reset")
        return AgendaResult(agenda=AgendaContent(html=f"{self.agenda_html}<!-- v{call_no} -->"))


class FailingCalendar(MockCalendarService):
    name = "failing"

    def __init__(self, failures: int = 1, busy: Optional[list[BusyWindow]] = None):
        super().__init__(busy=busy)
        self.failures = failures
        self.calls = 0

    def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("calendar connection refused")
        return super().create_event(request)


class FailingEmail(MockEmailService):
    name = "failing"

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.calls = 0

    def dispatch(self, request: EmailDispatchRequest) -> EmailJob:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("smtp gateway timeout")
        return super().dispatch(request)


def build_context(
    *,
    ai=None,
    calendar=None,
    email=None,
    retry: RetryPolicy = NO_RETRY,
    settings: Optional[Settings] = None,
) -> AppContext:
    tools = Toolset(
        ai=ai or FakeAI(),
        calendar=calendar or MockCalendarService(),
        email=email or MockEmailService(),
    )
    return make_app_context(
        settings or Settings(),
        session_store=SessionStore(),
        tools=tools,
        retry=retry,
    )


def future_window(days: int = 3, hour: int = 10, minutes: int = 60) -> tuple[str, str]:
    """An ISO start/end pair on a future weekday inside business hours."""
    day = dt.datetime.now(dt.timezone.utc).date() + dt.timedelta(days=days)
    while day.weekday() >= 5:
        day += dt.timedelta(days=1)
    start = dt.datetime(day.year, day.month, day.day, hour, tzinfo=dt.timezone.utc)
    end = start + dt.timedelta(minutes=minutes)
    return start.isoformat(), end.isoformat()
