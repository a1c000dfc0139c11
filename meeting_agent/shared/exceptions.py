"""Shared (non-domain) exceptions."""


class ToolError(Exception):
    """Collaborator adapter could not be loaded or configured."""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(f"[{tool}] {message}")


class ExternalServiceError(Exception):
    """External service call failed after retries."""

    def __init__(self, service: str, message: str, *, retryable: bool = True):
        self.service = service
        self.retryable = retryable
        super().__init__(f"[{service}] {message}")


class KeyMissingError(Exception):
    """Required key is missing."""

    def __init__(self, name: str):
        self.key_name = name
        super().__init__(f"Missing required credential: {name} (configure it in .env)")
