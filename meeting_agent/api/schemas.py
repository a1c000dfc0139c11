"""API request/response models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from meeting_agent.application.ui_blocks import UIBlock
from meeting_agent.domain.enums import WorkflowStep
from meeting_agent.domain.models import CamelModel, WorkflowState

_MEETING_ID_PATTERN = r"^[A-Za-z0-9_-]+$"


class HealthResponse(CamelModel):
    status: str = Field(default="ok")
    version: str = Field(default="")


class CreateWorkflowRequest(CamelModel):
    meeting_id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=128,
        pattern=_MEETING_ID_PATTERN,
        description="Meeting id; generated when omitted",
    )
    initial_data: dict[str, Any] = Field(default_factory=dict, description="Prefilled meeting data")


class AdvanceRequest(CamelModel):
    target_step: Optional[WorkflowStep] = Field(default=None, description="Defaults to the next step")


class WorkflowResponse(CamelModel):
    conversation_id: str
    state: WorkflowState
    next_ui_block: Optional[UIBlock] = None
