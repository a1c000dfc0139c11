"""Request/response contracts exchanged with the chat UI."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from meeting_agent.domain.enums import ErrorCode, UIBlockAction, UIBlockType, WorkflowStep
from meeting_agent.domain.models import CamelModel, WorkflowState
from meeting_agent.application.ui_blocks import UIBlock


class UIBlockInteractionRequest(CamelModel):
    block_type: UIBlockType
    action: UIBlockAction
    data: dict[str, Any] = Field(default_factory=dict)
    conversation_id: str = Field(min_length=1, max_length=128)


class WorkflowStateSummary(CamelModel):
    current_step: WorkflowStep
    progress: int
    requires_user_input: bool = True
    is_complete: bool = False


class InteractionValidation(CamelModel):
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    is_valid: bool = True


class UIBlockInteractionResponse(CamelModel):
    success: bool
    message: str
    conversation_id: str
    next_ui_block: Optional[UIBlock] = None
    workflow_state: WorkflowStateSummary
    validation: InteractionValidation = Field(default_factory=InteractionValidation)
    error_code: Optional[ErrorCode] = None


class AdvancementValidation(CamelModel):
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    can_proceed: bool = True


class WorkflowAdvancementResponse(CamelModel):
    success: bool
    message: str
    conversation_id: str
    previous_step: WorkflowStep
    current_step: WorkflowStep
    next_ui_block: Optional[UIBlock] = None
    validation: AdvancementValidation = Field(default_factory=AdvancementValidation)
    required_actions: list[str] = Field(default_factory=list)


def summarize(state: WorkflowState) -> WorkflowStateSummary:
    return WorkflowStateSummary(
        current_step=state.current_step,
        progress=state.progress,
        requires_user_input=not state.is_complete and not state.loading,
        is_complete=state.is_complete,
    )


__all__ = [
    "AdvancementValidation",
    "InteractionValidation",
    "UIBlockInteractionRequest",
    "UIBlockInteractionResponse",
    "WorkflowAdvancementResponse",
    "WorkflowStateSummary",
    "summarize",
]
