"""Mock email service: records messages instead of sending them."""

from __future__ import annotations

from typing import Optional

from meeting_agent.adapters.email.jobs import EmailJobBook
from meeting_agent.tools.interfaces import EmailDispatchRequest, EmailJob, EmailJobStatus


class MockEmailService:
    name = "mock"

    def __init__(self, failing: Optional[set[str]] = None):
        self.failing = {e.lower() for e in (failing or set())}
        self._jobs = EmailJobBook()
        self.sent: list[tuple[str, str]] = []

    def dispatch(self, request: EmailDispatchRequest) -> EmailJob:
        job_id = self._jobs.open(len(request.attendees))
        sent = failed = 0
        errors: list[str] = []
        for attendee in request.attendees:
            if attendee.email in self.failing:
                failed += 1
                errors.append(f"{attendee.email}: delivery failed")
                continue
            self.sent.append((attendee.email, request.agenda_content))
            sent += 1
        self._jobs.close(job_id, sent, failed, errors)
        return EmailJob(job_id=job_id)

    def get_status(self, job_id: str) -> Optional[EmailJobStatus]:
        return self._jobs.get(job_id)
