"""Action record models."""

from datetime import UTC, datetime
from typing import Any, Literal

from cuid2 import cuid_wrapper
from pydantic import BaseModel, Field

cuid = cuid_wrapper()

ActionType = Literal[
    "message",
    "data_update",
    "set_future_reminder",
    "escalation",
    "human_in_loop",
    "crm_write",
    "crm_append_note",
]
ActionStatus = Literal["pending", "approved", "rejected", "executed"]


class ActionRecord(BaseModel):
    """An auditable side effect proposed by the agent."""

    id: str = Field(default_factory=lambda: cuid())
    project_id: str
    prompt_run_id: str | None = None
    action_type: ActionType
    action_payload: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None
    requires_approval: bool = True
    status: ActionStatus = "pending"
    recipient_id: str | None = None
    sender_id: str | None = None
    reminder_date: datetime | None = None
    dedupe_key: str | None = None
    execution_error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    reviewed_at: datetime | None = None
    executed_at: datetime | None = None


class ActionDecisionRequest(BaseModel):
    """Operator approval or rejection of a pending action."""

    company_id: str = Field(..., min_length=1)


class RecipientAssignmentRequest(BaseModel):
    """Operator choice of the contact a message action should go to."""

    company_id: str = Field(..., min_length=1)
    recipient_id: str = Field(..., min_length=1)


class ActionListResponse(BaseModel):
    """Response model for action listing."""

    actions: list[ActionRecord]
