"""Google Calendar adapter (REST v3 over httpx).

Environment: GOOGLE_ACCESS_TOKEN, GOOGLE_CALENDAR_ID (default "primary").
Docs: https://developers.google.com/calendar/api/v3/reference
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

import httpx

from meeting_agent.domain.models import BusyWindow, ensure_aware
from meeting_agent.shared.exceptions import KeyMissingError
from meeting_agent.tools.interfaces import CalendarEvent, CalendarEventRequest, CalendarEventResult

_BASE_URL = "https://www.googleapis.com/calendar/v3"


class GoogleCalendarService:
    name = "google"

    def __init__(
        self,
        access_token: Optional[str],
        calendar_id: str = "primary",
        *,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        if not access_token:
            raise KeyMissingError("GOOGLE_ACCESS_TOKEN")
        self._calendar_id = calendar_id
        self._client = client or httpx.Client(
            base_url=_BASE_URL,
            timeout=timeout,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        body: dict = {
            "summary": request.title,
            "description": request.description,
            "start": {"dateTime": ensure_aware(request.start_time).isoformat()},
            "end": {"dateTime": ensure_aware(request.end_time).isoformat()},
            "attendees": [{"email": email} for email in request.attendees],
        }
        if request.location:
            body["location"] = request.location
        params = {"sendUpdates": "all"}
        if request.create_meet_link:
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }
            params["conferenceDataVersion"] = "1"

        resp = self._client.post(f"/calendars/{self._calendar_id}/events", params=params, json=body)
        resp.raise_for_status()
        data = resp.json()

        link = data.get("hangoutLink")
        if not link:
            for entry in (data.get("conferenceData") or {}).get("entryPoints", []):
                if entry.get("entryPointType") == "video":
                    link = entry.get("uri")
                    break
        return CalendarEventResult(
            success=True,
            event=CalendarEvent(id=data.get("id"), meeting_link=link, html_link=data.get("htmlLink")),
        )

    def find_conflicts(self, start: dt.datetime, end: dt.datetime) -> list[BusyWindow]:
        resp = self._client.post(
            "/freeBusy",
            json={
                "timeMin": ensure_aware(start).isoformat(),
                "timeMax": ensure_aware(end).isoformat(),
                "items": [{"id": self._calendar_id}],
            },
        )
        resp.raise_for_status()
        calendars = resp.json().get("calendars", {})
        busy = calendars.get(self._calendar_id, {}).get("busy", [])
        return [BusyWindow(start=item["start"], end=item["end"], summary="Busy") for item in busy]
