"""Executors that perform the side effect of an approved action record."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from project_agent.models.actions import ActionRecord
from project_agent.services.datastore import Datastore
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)


class ActionExecutor(Protocol):
    """Interface for performing an approved action."""

    async def execute(self, record: ActionRecord) -> None:
        """Perform the action's side effect.

        Args:
            record: The approved action record

        Raises:
            Exception: If the side effect could not be performed
        """
        ...


@dataclass
class DeliveredMessage:
    """A message handed to a communication channel."""

    action_id: str
    channel: str
    recipient_id: str
    destination: str
    body: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryMessageDelivery:
    """Records outbound messages instead of sending them.

    SMS is used when the recipient has a phone number, email otherwise.
    """

    def __init__(self, datastore: Datastore):
        self.datastore = datastore
        self.sent: list[DeliveredMessage] = []

    async def execute(self, record: ActionRecord) -> None:
        if not record.recipient_id:
            raise ValueError("Message action has no resolved recipient")

        recipient = await self.datastore.get_contact(record.recipient_id)
        if recipient is None:
            raise ValueError(f"Recipient {record.recipient_id} not found")

        channel = record.action_payload.get("channel") or ("sms" if recipient.phone_number else "email")
        destination = recipient.phone_number if channel == "sms" else recipient.email
        if not destination:
            raise ValueError(f"Recipient {recipient.id} has no {channel} destination")

        body = record.message or record.action_payload.get("message_content", "")
        self.sent.append(
            DeliveredMessage(
                action_id=record.id,
                channel=channel,
                recipient_id=recipient.id,
                destination=destination,
                body=body,
            )
        )
        logger.info(f"Delivered message for action {record.id} via {channel} to contact {recipient.id}")


@dataclass
class EscalationNotice:
    """An escalation raised to the team."""

    action_id: str
    project_id: str
    reason: str
    priority: str
    raised_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryEscalationNotifier:
    """Collects escalation notifications."""

    def __init__(self):
        self.notices: list[EscalationNotice] = []

    async def execute(self, record: ActionRecord) -> None:
        notice = EscalationNotice(
            action_id=record.id,
            project_id=record.project_id,
            reason=record.action_payload.get("escalation_reason", ""),
            priority=record.action_payload.get("priority", "medium"),
        )
        self.notices.append(notice)
        logger.warning(f"Escalation raised for project {record.project_id}: {notice.reason}")


class InMemoryCRMWriter:
    """Applies CRM writes and note appends to an in-memory CRM."""

    def __init__(self):
        self.writes: list[dict[str, Any]] = []
        self.notes: dict[str, list[str]] = {}

    async def execute(self, record: ActionRecord) -> None:
        payload = record.action_payload
        if record.action_type == "crm_append_note":
            crm_id = payload.get("resource_id")
            if not crm_id:
                raise ValueError("CRM note has no target CRM record")
            note = payload.get("data", {})
            self.notes.setdefault(crm_id, []).append(note["note_content"])
            logger.info(f"Appended {note.get('note_type', 'general')} note to CRM record {crm_id}")
            return

        self.writes.append(
            {
                "action_id": record.id,
                "resource_type": payload.get("resource_type"),
                "operation_type": payload.get("operation_type"),
                "resource_id": payload.get("resource_id"),
                "data": payload.get("data", {}),
            }
        )
        logger.info(
            f"Applied CRM {payload.get('operation_type')} on {payload.get('resource_type')} for action {record.id}"
        )


class ProjectDataUpdater:
    """Writes an approved data_update into the project row."""

    def __init__(self, datastore: Datastore):
        self.datastore = datastore

    async def execute(self, record: ActionRecord) -> None:
        project = await self.datastore.get_project(record.project_id)
        if project is None:
            raise ValueError(f"Project {record.project_id} not found")

        field_name = record.action_payload.get("field")
        if not field_name:
            raise ValueError("Data update has no target field")

        project.set_field(field_name, record.action_payload.get("value"))
        await self.datastore.update_project(project)
        logger.info(f"Updated field '{field_name}' on project {project.id}")
