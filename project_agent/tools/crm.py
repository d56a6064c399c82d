"""CRM write and note tools."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from project_agent.models.llm import ToolResult
from project_agent.tools.base import ToolDefinition, ToolExecutionContext

CRM_DATA_WRITE_DESCRIPTION = """Propose a create, update or delete of a CRM record (project, task, note or contact).

resource_id is required for update and delete. Writes wait for human approval unless
requires_approval is explicitly false.
"""

APPEND_CRM_NOTE_DESCRIPTION = """Append a timestamped note to the project's CRM record without overwriting existing notes.

Use this when a customer provides an update, an issue is reported, a milestone or status changes,
or any interaction should be documented. Notes wait for human approval by default.
"""

NoteType = Literal["general", "customer_update", "issue", "milestone", "status_change", "communication"]


class CrmDataWriteInput(BaseModel):
    """Input schema for the crm_data_write tool."""

    resource_type: Literal["project", "task", "note", "contact"]
    operation_type: Literal["create", "update", "delete"]
    resource_id: str | None = Field(default=None, description="CRM ID of the record; required for update and delete")
    data: dict[str, Any] = Field(default_factory=dict, description="Fields to write")
    project_id: str | None = Field(default=None, description="Project the write belongs to; defaults to the run's")
    requires_approval: bool = True

    @model_validator(mode="after")
    def validate_resource_id(self) -> "CrmDataWriteInput":
        if self.operation_type in ("update", "delete") and not self.resource_id:
            raise ValueError(f"resource_id is required for {self.operation_type} operations")
        if self.operation_type != "delete" and not self.data:
            raise ValueError(f"data is required for {self.operation_type} operations")
        return self


class AppendCrmNoteInput(BaseModel):
    """Input schema for the append_crm_note tool."""

    note_content: str = Field(..., min_length=1, description="The note text to append")
    note_type: NoteType = "general"
    author: str = Field(default="AI Agent", description="Who is leaving the note")
    project_id: str | None = Field(default=None, description="Project to note; defaults to the run's")
    requires_approval: bool = True


def format_crm_note(content: str, note_type: str, author: str, when: datetime | None = None) -> str:
    """Format a note as `[date] [TYPE] author: content`."""
    when = when or datetime.now(UTC)
    return f"[{when.strftime('%b %d, %Y %H:%M %Z')}] [{note_type.upper()}] {author}: {content.strip()}"


async def crm_data_write_handler(params: CrmDataWriteInput, context: ToolExecutionContext) -> ToolResult:
    project = await context.scoped_project(params.project_id)
    record = await context.actions.create(
        project_id=project.id,
        action_type="crm_write",
        payload={
            "resource_type": params.resource_type,
            "operation_type": params.operation_type,
            "resource_id": params.resource_id,
            "data": params.data,
            "company_id": project.company_id,
        },
        prompt_run_id=context.prompt_run_id,
        requires_approval=params.requires_approval,
        message=f"{params.operation_type.title()} CRM {params.resource_type} for {project.project_name}",
    )
    reused = not context.record_action(record)
    return ToolResult(
        status="success",
        message=(
            "CRM write queued for approval" if record.status == "pending" else f"CRM write {record.status}"
        ),
        data={
            "action_record_id": record.id,
            "status": record.status,
            "requires_approval": record.requires_approval,
            "reused": reused,
        },
    )


async def append_crm_note_handler(params: AppendCrmNoteInput, context: ToolExecutionContext) -> ToolResult:
    project = await context.scoped_project(params.project_id)
    if not project.crm_id:
        return ToolResult(
            status="error",
            error="Project does not have a CRM ID linked. Cannot append note to CRM.",
        )

    formatted_note = format_crm_note(params.note_content, params.note_type, params.author)
    preview = params.note_content if len(params.note_content) <= 100 else f"{params.note_content[:100]}..."
    record = await context.actions.create(
        project_id=project.id,
        action_type="crm_append_note",
        payload={
            "resource_type": "project",
            "operation_type": "append_note",
            "resource_id": project.crm_id,
            "data": {
                "note_content": formatted_note,
                "raw_content": params.note_content,
                "note_type": params.note_type,
                "author": params.author,
            },
        },
        prompt_run_id=context.prompt_run_id,
        requires_approval=params.requires_approval,
        message=f'Append note to {project.project_name}: "{preview}"',
    )
    reused = not context.record_action(record)
    return ToolResult(
        status="success",
        message=(
            f"Note queued for approval. Will append to {project.project_name} CRM record once approved."
            if record.status == "pending"
            else f"Note {record.status}"
        ),
        data={
            "action_record_id": record.id,
            "status": record.status,
            "note_preview": formatted_note,
            "reused": reused,
        },
    )


def create_crm_data_write_tool() -> ToolDefinition:
    return ToolDefinition(
        name="crm_data_write",
        description=CRM_DATA_WRITE_DESCRIPTION,
        input_schema_class=CrmDataWriteInput,
        handler=crm_data_write_handler,
    )


def create_append_crm_note_tool() -> ToolDefinition:
    return ToolDefinition(
        name="append_crm_note",
        description=APPEND_CRM_NOTE_DESCRIPTION,
        input_schema_class=AppendCrmNoteInput,
        handler=append_crm_note_handler,
    )
