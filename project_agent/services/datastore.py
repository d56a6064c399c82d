"""Datastore interface and in-memory implementation."""

from typing import Protocol

from project_agent.models.actions import ActionRecord, ActionStatus
from project_agent.models.projects import Contact, Project
from project_agent.models.runs import PromptRun, ToolLog
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)


class ScopeError(PermissionError):
    """Raised when a resource does not belong to the caller's company."""


class Datastore(Protocol):
    """Interface for the relational store backing projects, contacts, actions and audit rows.

    This allows pluggable storage:
    - In-memory store for tests and local development
    - A relational database in deployment
    """

    async def get_project(self, project_id: str) -> Project | None:
        """Get a project by ID.

        Args:
            project_id: The project's unique identifier

        Returns:
            The project if found, None otherwise
        """
        ...

    async def update_project(self, project: Project) -> None: ...

    async def list_project_contacts(self, project_id: str) -> list[Contact]:
        """Get contacts linked to a project."""
        ...

    async def list_company_contacts(self, company_id: str) -> list[Contact]:
        """Get every contact belonging to a company."""
        ...

    async def get_contact(self, contact_id: str) -> Contact | None: ...

    async def insert_action(self, record: ActionRecord) -> None: ...

    async def update_action(self, record: ActionRecord) -> None: ...

    async def get_action(self, action_id: str) -> ActionRecord | None: ...

    async def list_actions(self, project_id: str, status: ActionStatus | None = None) -> list[ActionRecord]:
        """Get action records for a project, optionally filtered by status."""
        ...

    async def insert_prompt_run(self, run: PromptRun) -> None: ...

    async def update_prompt_run(self, run: PromptRun) -> None: ...

    async def get_prompt_run(self, run_id: str) -> PromptRun | None: ...

    async def insert_tool_log(self, log: ToolLog) -> None: ...

    async def list_tool_logs(self, prompt_run_id: str) -> list[ToolLog]: ...


class InMemoryDatastore:
    """In-memory datastore.

    Rows are held in dictionaries keyed by ID. Writes replace whole rows, so the last write wins.
    """

    def __init__(self):
        """Initialize empty tables."""
        self.projects: dict[str, Project] = {}
        self.contacts: dict[str, Contact] = {}
        self.project_contacts: dict[str, list[str]] = {}
        self.actions: dict[str, ActionRecord] = {}
        self.prompt_runs: dict[str, PromptRun] = {}
        self.tool_logs: list[ToolLog] = []

    def add_project(self, project: Project) -> Project:
        """Seed a project."""
        self.projects[project.id] = project
        self.project_contacts.setdefault(project.id, [])
        return project

    def add_contact(self, contact: Contact, project_ids: list[str] | None = None) -> Contact:
        """Seed a contact and optionally link it to projects."""
        self.contacts[contact.id] = contact
        for project_id in project_ids or []:
            self.link_contact(project_id, contact.id)
        return contact

    def link_contact(self, project_id: str, contact_id: str) -> None:
        """Link an existing contact to a project."""
        linked = self.project_contacts.setdefault(project_id, [])
        if contact_id not in linked:
            linked.append(contact_id)

    async def get_project(self, project_id: str) -> Project | None:
        return self.projects.get(project_id)

    async def update_project(self, project: Project) -> None:
        if project.id not in self.projects:
            raise LookupError(f"Project {project.id} not found")
        self.projects[project.id] = project

    async def list_project_contacts(self, project_id: str) -> list[Contact]:
        return [self.contacts[cid] for cid in self.project_contacts.get(project_id, []) if cid in self.contacts]

    async def list_company_contacts(self, company_id: str) -> list[Contact]:
        return [contact for contact in self.contacts.values() if contact.company_id == company_id]

    async def get_contact(self, contact_id: str) -> Contact | None:
        return self.contacts.get(contact_id)

    async def insert_action(self, record: ActionRecord) -> None:
        self.actions[record.id] = record

    async def update_action(self, record: ActionRecord) -> None:
        if record.id not in self.actions:
            raise LookupError(f"Action record {record.id} not found")
        self.actions[record.id] = record

    async def get_action(self, action_id: str) -> ActionRecord | None:
        return self.actions.get(action_id)

    async def list_actions(self, project_id: str, status: ActionStatus | None = None) -> list[ActionRecord]:
        records = [
            record
            for record in self.actions.values()
            if record.project_id == project_id and (status is None or record.status == status)
        ]
        return sorted(records, key=lambda record: record.created_at)

    async def insert_prompt_run(self, run: PromptRun) -> None:
        self.prompt_runs[run.id] = run

    async def update_prompt_run(self, run: PromptRun) -> None:
        self.prompt_runs[run.id] = run

    async def get_prompt_run(self, run_id: str) -> PromptRun | None:
        return self.prompt_runs.get(run_id)

    async def insert_tool_log(self, log: ToolLog) -> None:
        self.tool_logs.append(log)

    async def list_tool_logs(self, prompt_run_id: str) -> list[ToolLog]:
        return [log for log in self.tool_logs if log.prompt_run_id == prompt_run_id]


async def require_project_in_scope(datastore: Datastore, project_id: str, company_id: str) -> Project:
    """Load a project and verify it belongs to the given company.

    Raises:
        ScopeError: If the project is missing or owned by another company
    """
    project = await datastore.get_project(project_id)
    if project is None or project.company_id != company_id:
        logger.warning(f"Project {project_id} is not accessible for company {company_id}")
        raise ScopeError(f"Project {project_id} is not accessible for company {company_id}")
    return project
