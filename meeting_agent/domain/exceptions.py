"""Domain semantic exceptions."""

from __future__ import annotations

from meeting_agent.domain.enums import ErrorCode


class DomainError(Exception):
    """Base domain exception carrying a stable error code."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, *, details: list[str] | None = None):
        self.message = message
        self.details = list(details or [])
        super().__init__(message)


class PayloadValidationError(DomainError):
    """Interaction payload or update body is malformed."""

    code = ErrorCode.INVALID_REQUEST


class WorkflowNotFound(DomainError):
    code = ErrorCode.WORKFLOW_NOT_FOUND

    def __init__(self, meeting_id: str):
        self.meeting_id = meeting_id
        super().__init__(f"Workflow not found: {meeting_id}")


class EmailJobNotFound(DomainError):
    code = ErrorCode.EMAIL_JOB_NOT_FOUND

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Email job not found: {job_id}")


class WorkflowAlreadyExists(DomainError):
    code = ErrorCode.WORKFLOW_ALREADY_EXISTS

    def __init__(self, meeting_id: str):
        self.meeting_id = meeting_id
        super().__init__(f"Workflow already exists: {meeting_id}")


class WorkflowStepInvalid(DomainError):
    """The interaction does not belong to the workflow's current step."""

    code = ErrorCode.WORKFLOW_STEP_INVALID


class MeetingTypeLocked(DomainError):
    code = ErrorCode.BUSINESS_RULE_VIOLATION

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Meeting type is locked to {current} and cannot be changed to {requested}"
        )


class ImmutableFieldError(DomainError):
    code = ErrorCode.BUSINESS_RULE_VIOLATION

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Field '{field}' cannot be changed once set")
