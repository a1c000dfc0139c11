"""Email job bookkeeping shared by the email adapters."""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, Optional

from meeting_agent.domain.enums import EmailJobState
from meeting_agent.tools.interfaces import EmailJobStatus

JOB_TTL = 86400.0
MAX_JOBS = 1000


class EmailJobBook:
    """Job statuses kept for ``ttl`` seconds, at most ``max_jobs`` at a time (oldest evicted)."""

    def __init__(
        self,
        ttl: float = JOB_TTL,
        max_jobs: int = MAX_JOBS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._jobs: dict[str, tuple[EmailJobStatus, float]] = {}
        self._ttl = ttl
        self._max_jobs = max_jobs
        self._clock = clock
        self._lock = threading.Lock()

    def open(self, total: int) -> str:
        job_id = f"email_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._put(job_id, EmailJobStatus(job_id=job_id, total_attendees=total))
        return job_id

    def close(self, job_id: str, sent: int, failed: int, errors: list[str]) -> EmailJobStatus:
        if failed == 0:
            state = EmailJobState.COMPLETED
        elif sent == 0:
            state = EmailJobState.FAILED
        else:
            state = EmailJobState.PARTIALLY_FAILED
        with self._lock:
            current = self._jobs.get(job_id)
            base = current[0] if current else EmailJobStatus(job_id=job_id, total_attendees=sent + failed)
            job = base.model_copy(
                update={"status": state, "emails_sent": sent, "emails_failed": failed, "errors": errors}
            )
            self._put(job_id, job)
            return job.model_copy()

    def get(self, job_id: str) -> Optional[EmailJobStatus]:
        with self._lock:
            entry = self._jobs.get(job_id)
            if entry is None:
                return None
            job, expire_at = entry
            if self._clock() > expire_at:
                del self._jobs[job_id]
                return None
            return job.model_copy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _put(self, job_id: str, job: EmailJobStatus) -> None:
        if job_id not in self._jobs and len(self._jobs) >= self._max_jobs:
            now = self._clock()
            for key in [k for k, (_, exp) in self._jobs.items() if now > exp]:
                del self._jobs[key]
            if len(self._jobs) >= self._max_jobs:
                del self._jobs[min(self._jobs, key=lambda k: self._jobs[k][1])]
        self._jobs[job_id] = (job, self._clock() + self._ttl)
