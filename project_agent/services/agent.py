"""Application service wiring the orchestration core to its collaborators."""

import os

from project_agent.clients.anthropic import get_anthropic_client
from project_agent.models.actions import ActionRecord, ActionStatus
from project_agent.models.runs import RunRequest, RunResult
from project_agent.services.actions import ActionRecordService
from project_agent.services.contacts import ContactResolver
from project_agent.services.context_store import InMemoryContextStore
from project_agent.services.datastore import InMemoryDatastore, require_project_in_scope
from project_agent.services.delivery import (
    InMemoryCRMWriter,
    InMemoryEscalationNotifier,
    InMemoryMessageDelivery,
    ProjectDataUpdater,
)
from project_agent.services.demo import seed_demo_data
from project_agent.services.orchestrator import ModelClient, OrchestrationService, OrchestratorConfig
from project_agent.tools.registry import get_tools_registry
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)


class AgentService:
    """Entry point for runs and operator review of action records."""

    def __init__(
        self,
        client: ModelClient | None = None,
        datastore: InMemoryDatastore | None = None,
        config: OrchestratorConfig | None = None,
    ):
        """Initialize agent service.

        Args:
            client: Language-model transport (defaults to the global Anthropic client on first run)
            datastore: Backing store (defaults to a fresh in-memory store)
            config: Orchestration safety bounds
        """
        self.datastore = datastore or InMemoryDatastore()
        self.message_delivery = InMemoryMessageDelivery(self.datastore)
        self.escalations = InMemoryEscalationNotifier()
        self.crm = InMemoryCRMWriter()
        self.actions = ActionRecordService(
            self.datastore,
            executors={
                "message": self.message_delivery,
                "escalation": self.escalations,
                "crm_write": self.crm,
                "crm_append_note": self.crm,
                "data_update": ProjectDataUpdater(self.datastore),
            },
        )
        self.resolver = ContactResolver(self.datastore)
        self.registry = get_tools_registry()
        self.context_store = InMemoryContextStore()
        self.config = config or OrchestratorConfig()
        self._client = client
        self._orchestrator: OrchestrationService | None = None

    @property
    def orchestrator(self) -> OrchestrationService:
        if self._orchestrator is None:
            self._orchestrator = OrchestrationService(
                client=self._client or get_anthropic_client(),
                datastore=self.datastore,
                actions=self.actions,
                resolver=self.resolver,
                registry=self.registry,
                context_store=self.context_store,
                config=self.config,
            )
        return self._orchestrator

    async def run(self, request: RunRequest) -> RunResult:
        return await self.orchestrator.run(request)

    async def list_actions(
        self, project_id: str, company_id: str, status: ActionStatus | None = None
    ) -> list[ActionRecord]:
        """List a project's action records within the company scope."""
        await require_project_in_scope(self.datastore, project_id, company_id)
        return await self.actions.list_for_project(project_id, status)

    async def get_action(self, action_id: str, company_id: str) -> ActionRecord:
        return await self.actions.get(action_id, company_id)

    async def approve_action(self, action_id: str, company_id: str) -> ActionRecord:
        return await self.actions.approve(action_id, company_id)

    async def reject_action(self, action_id: str, company_id: str) -> ActionRecord:
        return await self.actions.reject(action_id, company_id)

    async def retry_action(self, action_id: str, company_id: str) -> ActionRecord:
        return await self.actions.retry(action_id, company_id)

    async def assign_recipient(self, action_id: str, company_id: str, recipient_id: str) -> ActionRecord:
        return await self.actions.assign_recipient(action_id, company_id, recipient_id)


_agent_service: AgentService | None = None


def get_agent_service() -> AgentService:
    """Get or create agent service instance."""
    global _agent_service
    if _agent_service is None:
        _agent_service = AgentService()
        if os.getenv("AGENT_SEED_DEMO", "").lower() in ("1", "true", "yes"):
            seed_demo_data(_agent_service.datastore)
            logger.info("Seeded demo projects")
    return _agent_service
