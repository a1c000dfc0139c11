"""Gmail adapter: sends the agenda to every attendee via users.messages.send.

Environment: GOOGLE_ACCESS_TOKEN, SENDER_EMAIL.
"""

from __future__ import annotations

import base64
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import httpx

from meeting_agent.adapters.email.jobs import EmailJobBook
from meeting_agent.security.redact import redact_sensitive
from meeting_agent.shared.exceptions import KeyMissingError
from meeting_agent.tools.interfaces import EmailDispatchRequest, EmailJob, EmailJobStatus

_logger = logging.getLogger("meeting-agent.tools")

_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"


def build_message(sender: str, recipient: str, request: EmailDispatchRequest) -> str:
    """Base64url-encoded RFC 2822 message."""
    md = request.meeting_data
    title = md.title or "Meeting"
    msg = MIMEMultipart("alternative")
    msg["To"] = recipient
    msg["From"] = sender
    msg["Subject"] = f"Agenda: {title}"

    header = []
    if md.start_time:
        header.append(f"<p>When: {md.start_time.isoformat()}</p>")
    if md.meeting_link:
        header.append(f'<p>Join: <a href="{md.meeting_link}">{md.meeting_link}</a></p>')
    elif md.location:
        header.append(f"<p>Where: {md.location}</p>")
    msg.attach(MIMEText("".join(header) + request.agenda_content, "html", "utf-8"))
    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")


class GmailEmailService:
    name = "gmail"

    def __init__(
        self,
        access_token: Optional[str],
        sender: Optional[str],
        *,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        if not access_token:
            raise KeyMissingError("GOOGLE_ACCESS_TOKEN")
        if not sender:
            raise KeyMissingError("SENDER_EMAIL")
        self._sender = sender
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._jobs = EmailJobBook()

    def dispatch(self, request: EmailDispatchRequest) -> EmailJob:
        job_id = self._jobs.open(len(request.attendees))
        sent = failed = 0
        errors: list[str] = []
        for attendee in request.attendees:
            try:
                resp = self._client.post(
                    _SEND_URL, json={"raw": build_message(self._sender, attendee.email, request)}
                )
                resp.raise_for_status()
                sent += 1
            except httpx.HTTPError as exc:
                failed += 1
                safe_msg = redact_sensitive(str(exc))
                errors.append(f"{attendee.email}: {safe_msg}")
                _logger.warning("Agenda email to %s failed: %s", attendee.email, safe_msg)
        self._jobs.close(job_id, sent, failed, errors)
        return EmailJob(job_id=job_id)

    def get_status(self, job_id: str) -> Optional[EmailJobStatus]:
        return self._jobs.get(job_id)
