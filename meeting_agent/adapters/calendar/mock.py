"""In-memory calendar: stores created events and reports overlaps as conflicts."""

from __future__ import annotations

import datetime as dt
import random
import string
import threading
import uuid
from typing import Optional

from meeting_agent.domain.models import BusyWindow, ensure_aware
from meeting_agent.tools.interfaces import CalendarEvent, CalendarEventRequest, CalendarEventResult


def _meet_code() -> str:
    letters = random.choices(string.ascii_lowercase, k=10)
    return f"{''.join(letters[:3])}-{''.join(letters[3:7])}-{''.join(letters[7:])}"


class MockCalendarService:
    name = "mock"

    def __init__(self, busy: Optional[list[BusyWindow]] = None):
        self._busy: list[BusyWindow] = list(busy or [])
        self._events: dict[str, CalendarEventRequest] = {}
        self._lock = threading.Lock()

    @property
    def events(self) -> dict[str, CalendarEventRequest]:
        with self._lock:
            return dict(self._events)

    def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        event_id = f"evt_{uuid.uuid4().hex[:12]}"
        link = f"https://meet.google.com/{_meet_code()}" if request.create_meet_link else None
        with self._lock:
            self._events[event_id] = request
            self._busy.append(
                BusyWindow(start=request.start_time, end=request.end_time, summary=request.title)
            )
        return CalendarEventResult(
            success=True,
            event=CalendarEvent(
                id=event_id,
                meeting_link=link,
                html_link=f"https://calendar.google.com/calendar/event?eid={event_id}",
            ),
        )

    def find_conflicts(self, start: dt.datetime, end: dt.datetime) -> list[BusyWindow]:
        start, end = ensure_aware(start), ensure_aware(end)
        with self._lock:
            return [w for w in self._busy if ensure_aware(w.start) < end and start < ensure_aware(w.end)]
