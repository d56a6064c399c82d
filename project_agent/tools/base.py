"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel

from project_agent.models.actions import ActionRecord
from project_agent.models.llm import ToolResult, ToolSchema
from project_agent.models.projects import Project
from project_agent.services.actions import ActionRecordService
from project_agent.services.contacts import ContactResolver
from project_agent.services.datastore import Datastore, require_project_in_scope

Decision = Literal["ACTION_NEEDED", "NO_ACTION", "SET_FUTURE_REMINDER", "REQUEST_HUMAN_REVIEW", "QUERY_KNOWLEDGE_BASE"]
Priority = Literal["high", "medium", "low"]


@dataclass
class RunState:
    """Mutable per-run state shared between tool calls."""

    last_decision: Decision | None = None
    action_record_ids: list[str] = field(default_factory=list)


@dataclass
class ToolExecutionContext:
    """Everything a tool handler may touch, scoped to one run."""

    datastore: Datastore
    actions: ActionRecordService
    resolver: ContactResolver
    company_id: str
    project_id: str
    prompt_run_id: str | None = None
    caller_id: str | None = None
    state: RunState = field(default_factory=RunState)

    async def scoped_project(self, project_id: str | None = None) -> Project:
        """Load the run's project (or an explicitly named one) inside the company scope."""
        return await require_project_in_scope(self.datastore, project_id or self.project_id, self.company_id)

    def record_action(self, record: ActionRecord) -> bool:
        """Track a record this run created.

        Returns False for a pending record reused from an earlier run, which is left out of the run's actions.
        """
        if record.prompt_run_id != self.prompt_run_id:
            return False
        if record.id not in self.state.action_record_ids:
            self.state.action_record_ids.append(record.id)
        return True


ToolHandler = Callable[[Any, ToolExecutionContext], Awaitable[ToolResult]]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def to_schema(self) -> ToolSchema:
        return ToolSchema(name=self.name, description=self.description, input_schema=self.get_json_schema())

    async def run(self, raw_input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        """Validate input and invoke the handler."""
        return await self.handler(self.parse_input(raw_input), context)
