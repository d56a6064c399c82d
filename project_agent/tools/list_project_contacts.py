"""Project contact listing tool."""

from pydantic import BaseModel

from project_agent.models.llm import ToolResult
from project_agent.tools.base import ToolDefinition, ToolExecutionContext


class ListProjectContactsInput(BaseModel):
    """Input schema for list_project_contacts (no parameters)."""


async def list_project_contacts_handler(params: ListProjectContactsInput, context: ToolExecutionContext) -> ToolResult:
    project = await context.scoped_project()
    contacts = [
        contact
        for contact in await context.datastore.list_project_contacts(project.id)
        if contact.company_id == context.company_id
    ]
    if not contacts:
        return ToolResult(status="success", message="No contacts are linked to this project", data={"contacts": []})

    return ToolResult(
        status="success",
        message=f"Found {len(contacts)} contacts",
        data={"contacts": [contact.as_dict() for contact in contacts]},
    )


def create_list_project_contacts_tool() -> ToolDefinition:
    return ToolDefinition(
        name="list_project_contacts",
        description=(
            "List the contacts linked to the current project with their names and roles. "
            "Use this to pick the right recipient before creating a message action."
        ),
        input_schema_class=ListProjectContactsInput,
        handler=list_project_contacts_handler,
    )
