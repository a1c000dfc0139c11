"""Shared cross-layer types and exceptions."""

from meeting_agent.shared.exceptions import ExternalServiceError, KeyMissingError, ToolError

__all__ = ["ToolError", "ExternalServiceError", "KeyMissingError"]
