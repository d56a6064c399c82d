"""Shared fixtures for tests."""

import itertools

import pytest

from project_agent.models.llm import LLMResponse, LLMUsage, Message, ToolInvocation, ToolSchema
from project_agent.models.projects import Contact, Project
from project_agent.services.actions import ActionRecordService
from project_agent.services.agent import AgentService
from project_agent.services.contacts import ContactResolver
from project_agent.services.datastore import InMemoryDatastore
from project_agent.services.delivery import (
    InMemoryCRMWriter,
    InMemoryEscalationNotifier,
    InMemoryMessageDelivery,
    ProjectDataUpdater,
)
from project_agent.tools.base import ToolExecutionContext

COMPANY_ID = "company_1"
OTHER_COMPANY_ID = "company_2"
PROJECT_ID = "project_1"
NO_HOMEOWNER_PROJECT_ID = "project_3"
OTHER_PROJECT_ID = "project_2"

_call_ids = itertools.count(1)


def tool_call(name: str, call_id: str | None = None, **arguments) -> ToolInvocation:
    """Build a tool invocation with a fresh ID unless one is given."""
    return ToolInvocation(id=call_id or f"toolu_{next(_call_ids):04d}", name=name, arguments=arguments)


def tool_response(*calls: ToolInvocation, text: str | None = None) -> LLMResponse:
    return LLMResponse(
        text=text,
        tool_calls=list(calls),
        stop_reason="tool_use",
        usage=LLMUsage(input_tokens=100, output_tokens=20, total_tokens=120),
        model="claude-sonnet-4-20250514",
    )


def text_response(text: str) -> LLMResponse:
    return LLMResponse(
        text=text,
        tool_calls=[],
        stop_reason="end_turn",
        usage=LLMUsage(input_tokens=150, output_tokens=30, total_tokens=180),
        model="claude-sonnet-4-20250514",
    )


class ScriptedClient:
    """Model client that replays scripted responses and records each request."""

    model = "claude-sonnet-4-20250514"

    def __init__(self, responses: list[LLMResponse | Exception] | None = None, repeat_last: bool = False):
        self.responses = list(responses or [])
        self.repeat_last = repeat_last
        self.calls: list[dict] = []

    async def create_message(self, messages: list[Message], tools: list[ToolSchema] | None = None) -> LLMResponse:
        self.calls.append({"messages": list(messages), "tools": list(tools or [])})
        if len(self.responses) > 1 or (self.responses and not self.repeat_last):
            response = self.responses.pop(0)
        elif self.responses:
            response = self.responses[0]
        else:
            raise AssertionError("ScriptedClient ran out of responses")

        if isinstance(response, Exception):
            raise response
        return response


def seed(datastore: InMemoryDatastore) -> InMemoryDatastore:
    datastore.add_project(
        Project(id=PROJECT_ID, company_id=COMPANY_ID, project_name="12 Maple St Reroof", crm_id="crm_1")
    )
    datastore.add_project(Project(id=OTHER_PROJECT_ID, company_id=OTHER_COMPANY_ID, project_name="Elsewhere"))
    datastore.add_contact(
        Contact(
            id="contact_jane",
            company_id=COMPANY_ID,
            full_name="Jane Doe",
            role="HO",
            email="jane@example.com",
            phone_number="555-123-4567",
        ),
        project_ids=[PROJECT_ID],
    )
    datastore.add_project(Project(id=NO_HOMEOWNER_PROJECT_ID, company_id=COMPANY_ID, project_name="Warehouse Roof"))
    datastore.add_contact(
        Contact(id="contact_bob", company_id=COMPANY_ID, full_name="Bob", role="PM", email="bob@example.com"),
        project_ids=[PROJECT_ID, NO_HOMEOWNER_PROJECT_ID],
    )
    datastore.add_contact(
        Contact(
            id="contact_ray",
            company_id=COMPANY_ID,
            full_name="Ray Alvarez",
            role="Roofer",
            email="ray@roofco.com",
        ),
    )
    datastore.add_contact(
        Contact(
            id="contact_other",
            company_id=OTHER_COMPANY_ID,
            full_name="Olivia Outsider",
            role="Homeowner",
            email="olivia@example.com",
        ),
        project_ids=[OTHER_PROJECT_ID],
    )
    return datastore


@pytest.fixture
def datastore():
    """Datastore with two companies, their projects and contacts."""
    return seed(InMemoryDatastore())


@pytest.fixture
def message_delivery(datastore):
    return InMemoryMessageDelivery(datastore)


@pytest.fixture
def escalations():
    return InMemoryEscalationNotifier()


@pytest.fixture
def crm():
    return InMemoryCRMWriter()


@pytest.fixture
def actions(datastore, message_delivery, escalations, crm):
    """Action record service with in-memory executors."""
    return ActionRecordService(
        datastore,
        executors={
            "message": message_delivery,
            "escalation": escalations,
            "crm_write": crm,
            "crm_append_note": crm,
            "data_update": ProjectDataUpdater(datastore),
        },
    )


@pytest.fixture
def resolver(datastore):
    return ContactResolver(datastore)


@pytest.fixture
def tool_context(datastore, actions, resolver):
    """Tool execution context scoped to company_1 / project_1."""
    return ToolExecutionContext(
        datastore=datastore,
        actions=actions,
        resolver=resolver,
        company_id=COMPANY_ID,
        project_id=PROJECT_ID,
        prompt_run_id="run_1",
    )


@pytest.fixture
def agent_factory():
    """Build an agent service over a seeded datastore with a scripted client."""

    def factory(responses: list[LLMResponse | Exception], **kwargs) -> tuple[AgentService, ScriptedClient]:
        client = ScriptedClient(responses, **kwargs)
        service = AgentService(client=client, datastore=seed(InMemoryDatastore()))
        return service, client

    return factory
