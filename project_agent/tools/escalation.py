"""Escalation tool: raises a project to the team immediately."""

from pydantic import BaseModel, Field

from project_agent.models.actions import ActionRecord
from project_agent.models.llm import ToolResult
from project_agent.tools.base import Priority, ToolDefinition, ToolExecutionContext

DESCRIPTION = """Escalate the project to the team for urgent attention.

Use when the project is blocked, a customer is unhappy, or something is at risk that cannot wait for the
normal approval cycle. Escalations are sent immediately and do not require approval.
"""


class EscalationInput(BaseModel):
    """Input schema for the escalation tool."""

    escalation_reason: str = Field(..., min_length=1, description="Why the project needs escalation")
    escalation_details: str | None = Field(default=None, description="Supporting details for the team")
    priority: Priority = Field(default="high", description="Urgency of the escalation")


async def create_escalation_record(
    context: ToolExecutionContext,
    reason: str,
    priority: str = "high",
    details: str | None = None,
) -> ActionRecord:
    """Create and immediately execute an escalation record for the run's project."""
    payload = {
        "escalation_reason": reason,
        "priority": priority,
        "decision": context.state.last_decision,
    }
    if details:
        payload["escalation_details"] = details

    record = await context.actions.create(
        project_id=context.project_id,
        action_type="escalation",
        payload=payload,
        prompt_run_id=context.prompt_run_id,
        message=reason,
    )
    context.record_action(record)
    return record


async def escalation_handler(params: EscalationInput, context: ToolExecutionContext) -> ToolResult:
    await context.scoped_project()
    record = await create_escalation_record(
        context, params.escalation_reason, params.priority, params.escalation_details
    )
    return ToolResult(
        status="success",
        message=f"Project escalated with {params.priority} priority",
        data={"action_record_id": record.id, "status": record.status},
    )


def create_escalation_tool() -> ToolDefinition:
    return ToolDefinition(
        name="escalation",
        description=DESCRIPTION,
        input_schema_class=EscalationInput,
        handler=escalation_handler,
    )
