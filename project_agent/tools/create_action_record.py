"""Action record creation tool."""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from project_agent.models.llm import ToolResult
from project_agent.tools.base import Decision, Priority, ToolDefinition, ToolExecutionContext
from project_agent.tools.escalation import create_escalation_record
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SENDER = "BidList Project Manager"

DESCRIPTION = """Create a specific action record based on the detect_action decision.

Call once per distinct action, after detect_action returns ACTION_NEEDED.

Action types and their required fields:
- message: recipient (name or role, e.g. "Homeowner"), message_text; sender is optional
- data_update: field, value
- set_future_reminder: check_reason; days_until_check defaults to 7
- human_in_loop: review_reason
- escalation: escalation_reason

Messages and data updates wait for human approval before anything is sent or changed.
"""


class CreateActionRecordInput(BaseModel):
    """Input schema for the create_action_record tool."""

    action_type: Literal["message", "data_update", "set_future_reminder", "human_in_loop", "escalation"]
    decision: Decision | None = Field(
        default=None, description="The decision that led to this action; defaults to the detect_action result"
    )
    recipient: str | None = Field(default=None, description="For message actions, who should receive the message")
    sender: str | None = Field(default=None, description="For message actions, who is sending the message")
    message_text: str | None = Field(default=None, description="For message actions, the content of the message")
    field: str | None = Field(default=None, description="For data_update actions, the field to update")
    value: Any = Field(default=None, description="For data_update actions, the new value for the field")
    days_until_check: int = Field(default=7, ge=1, le=365, description="For reminders, days until the next check")
    check_reason: str | None = Field(default=None, description="For reminders, why a future check is needed")
    review_reason: str | None = Field(default=None, description="For human_in_loop actions, why review is needed")
    escalation_reason: str | None = Field(default=None, description="For escalation actions, why to escalate")
    priority: Priority = "medium"
    description: str | None = None

    @model_validator(mode="after")
    def validate_type_fields(self) -> "CreateActionRecordInput":
        """Each action type carries its own required fields."""
        required: dict[str, list[str]] = {
            "message": ["recipient", "message_text"],
            "data_update": ["field", "value"],
            "set_future_reminder": ["check_reason"],
            "human_in_loop": ["review_reason"],
            "escalation": ["escalation_reason"],
        }
        missing = [name for name in required[self.action_type] if getattr(self, name) in (None, "")]
        if missing:
            raise ValueError(f"{', '.join(missing)} required for {self.action_type} actions")
        return self


async def _create_message(params: CreateActionRecordInput, context: ToolExecutionContext) -> ToolResult:
    sender = params.sender or DEFAULT_SENDER
    recipient_id = await context.resolver.resolve(params.recipient, context.project_id, context.company_id)
    sender_id = await context.resolver.resolve(sender, context.project_id, context.company_id)

    record = await context.actions.create(
        project_id=context.project_id,
        action_type="message",
        payload={
            "recipient": params.recipient,
            "sender": sender,
            "message_content": params.message_text,
            "decision": params.decision,
        },
        prompt_run_id=context.prompt_run_id,
        recipient_id=recipient_id,
        sender_id=sender_id,
        message=params.message_text,
    )
    reused = not context.record_action(record)

    message = f"Message action created for {params.recipient}"
    if reused:
        message = f"Identical message to {params.recipient} already pending as action {record.id}"
    if recipient_id is None:
        logger.warning(f"Recipient '{params.recipient}' not matched on project {context.project_id}")
        message += f"; '{params.recipient}' did not match a project contact and must be assigned during review"

    return ToolResult(
        status="success",
        message=message,
        data={
            "action_record_id": record.id,
            "status": record.status,
            "recipient_id": recipient_id,
            "sender_id": sender_id,
            "reused": reused,
        },
    )


async def create_action_record_handler(params: CreateActionRecordInput, context: ToolExecutionContext) -> ToolResult:
    await context.scoped_project()
    if params.decision is None:
        params.decision = context.state.last_decision

    match params.action_type:
        case "message":
            return await _create_message(params, context)

        case "set_future_reminder":
            record = await context.actions.create_reminder(
                project_id=context.project_id,
                check_reason=params.check_reason or "",
                days_until_check=params.days_until_check,
                prompt_run_id=context.prompt_run_id,
            )

        case "escalation":
            record = await create_escalation_record(context, params.escalation_reason or "", params.priority)

        case "data_update":
            record = await context.actions.create(
                project_id=context.project_id,
                action_type="data_update",
                payload={
                    "field": params.field,
                    "value": params.value,
                    "description": params.description or f"Update {params.field} to {params.value}",
                    "decision": params.decision,
                },
                prompt_run_id=context.prompt_run_id,
            )

        case "human_in_loop":
            record = await context.actions.create(
                project_id=context.project_id,
                action_type="human_in_loop",
                payload={
                    "review_reason": params.review_reason,
                    "description": params.description or f"Human review requested: {params.review_reason}",
                    "decision": params.decision,
                },
                prompt_run_id=context.prompt_run_id,
                message=params.review_reason,
            )

    reused = not context.record_action(record)
    return ToolResult(
        status="success",
        message=(
            f"Identical {params.action_type} action already pending as action {record.id}"
            if reused
            else f"{params.action_type} action created"
        ),
        data={"action_record_id": record.id, "status": record.status, "reused": reused},
    )


def create_action_record_tool() -> ToolDefinition:
    return ToolDefinition(
        name="create_action_record",
        description=DESCRIPTION,
        input_schema_class=CreateActionRecordInput,
        handler=create_action_record_handler,
    )
