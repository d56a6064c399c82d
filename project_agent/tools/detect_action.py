"""Decision tool: records what the agent intends to do with the project."""

from pydantic import BaseModel, Field, model_validator

from project_agent.models.llm import ToolResult
from project_agent.tools.base import Decision, Priority, ToolDefinition, ToolExecutionContext
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

DESCRIPTION = """Analyze the project and decide whether any action is needed, postponed, or unnecessary.

This should always be your first tool and is only allowed once per run.

Decisions:
- ACTION_NEEDED: follow up with create_action_record (or another action tool)
- NO_ACTION: nothing to do right now
- SET_FUTURE_REMINDER: schedule the next check (requires days_until_check and check_reason)
- REQUEST_HUMAN_REVIEW: a person should look at this project
- QUERY_KNOWLEDGE_BASE: more information is needed before deciding
"""


class DetectActionInput(BaseModel):
    """Input schema for the detect_action tool."""

    decision: Decision = Field(..., description="The decision about what course of action to take")
    reason: str = Field(..., min_length=1, description="Explanation of the decision")
    priority: Priority = Field(default="medium", description="Priority of the action or reminder")
    days_until_check: int | None = Field(
        default=None, ge=1, le=365, description="For SET_FUTURE_REMINDER, days until the next check"
    )
    check_reason: str | None = Field(default=None, description="For SET_FUTURE_REMINDER, why a future check is needed")

    @model_validator(mode="after")
    def validate_reminder_fields(self) -> "DetectActionInput":
        """Reminder decisions must say when and why."""
        if self.decision == "SET_FUTURE_REMINDER":
            if not self.days_until_check:
                raise ValueError("days_until_check is required for SET_FUTURE_REMINDER decision")
            if not self.check_reason:
                raise ValueError("check_reason is required for SET_FUTURE_REMINDER decision")
        return self


async def detect_action_handler(params: DetectActionInput, context: ToolExecutionContext) -> ToolResult:
    await context.scoped_project()
    context.state.last_decision = params.decision
    logger.info(f"Decision for project {context.project_id}: {params.decision} ({params.priority})")

    if params.decision == "NO_ACTION":
        return ToolResult(
            status="no_action",
            message=f"No action needed: {params.reason}",
            data={"decision": params.decision},
        )

    if params.decision == "SET_FUTURE_REMINDER":
        record = await context.actions.create_reminder(
            project_id=context.project_id,
            check_reason=params.check_reason or params.reason,
            days_until_check=params.days_until_check or 7,
            prompt_run_id=context.prompt_run_id,
        )
        context.record_action(record)
        return ToolResult(
            status="success",
            message=record.message,
            data={
                "decision": params.decision,
                "action_record_id": record.id,
                "reminder_date": record.reminder_date.isoformat() if record.reminder_date else None,
            },
        )

    return ToolResult(
        status="success",
        message=f"Decision recorded: {params.decision}",
        data={"decision": params.decision, "priority": params.priority, "reason": params.reason},
    )


def create_detect_action_tool() -> ToolDefinition:
    return ToolDefinition(
        name="detect_action",
        description=DESCRIPTION,
        input_schema_class=DetectActionInput,
        handler=detect_action_handler,
    )
