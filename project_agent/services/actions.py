"""Action record lifecycle: creation, approval, rejection and execution."""

import hashlib
import json
from datetime import UTC, datetime, timedelta
from typing import Any

from project_agent.models.actions import ActionRecord, ActionStatus, ActionType
from project_agent.services.datastore import Datastore, ScopeError
from project_agent.services.delivery import ActionExecutor
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[ActionStatus, set[ActionStatus]] = {
    "pending": {"approved", "rejected"},
    "approved": {"executed"},
    "rejected": set(),
    "executed": set(),
}

DEFAULT_REQUIRES_APPROVAL: dict[ActionType, bool] = {
    "message": True,
    "data_update": True,
    "crm_write": True,
    "crm_append_note": True,
    "human_in_loop": True,
    "escalation": False,
    "set_future_reminder": False,
}

DEFAULT_REMINDER_DAYS = 7


class InvalidTransitionError(Exception):
    """Raised when an action record is moved to a status its current status does not allow."""


class ActionNotFoundError(LookupError):
    """Raised when an action record does not exist."""


class ContactNotFoundError(LookupError):
    """Raised when a contact assigned to an action does not exist."""


def transition(record: ActionRecord, new_status: ActionStatus) -> None:
    """Move a record to a new status, enforcing the lifecycle.

    Raises:
        InvalidTransitionError: If the move is not allowed
    """
    if new_status not in ALLOWED_TRANSITIONS[record.status]:
        raise InvalidTransitionError(f"Cannot move action {record.id} from {record.status} to {new_status}")

    now = datetime.now(UTC)
    if new_status in ("approved", "rejected"):
        record.reviewed_at = now
    elif new_status == "executed":
        record.executed_at = now
        record.execution_error = None
    record.status = new_status


def compute_dedupe_key(
    project_id: str, action_type: ActionType, payload: dict[str, Any], recipient_id: str | None = None
) -> str:
    """Generate a content hash identifying structurally identical actions."""
    content = json.dumps(
        {"project_id": project_id, "action_type": action_type, "payload": payload, "recipient_id": recipient_id},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(content.encode()).hexdigest()[:16]


class ActionRecordService:
    """Creates action records and drives them through their lifecycle."""

    def __init__(self, datastore: Datastore, executors: dict[ActionType, ActionExecutor] | None = None):
        """Initialize action record service.

        Args:
            datastore: Persistence for action records and projects
            executors: Side-effect performers keyed by action type; types without one execute as no-ops
        """
        self.datastore = datastore
        self.executors = executors or {}

    async def create(
        self,
        project_id: str,
        action_type: ActionType,
        payload: dict[str, Any],
        prompt_run_id: str | None = None,
        requires_approval: bool | None = None,
        recipient_id: str | None = None,
        sender_id: str | None = None,
        message: str | None = None,
    ) -> ActionRecord:
        """Create an action record.

        Records needing approval start pending. Others are approved and executed immediately.
        A pending record with identical content on the same project is returned instead of a duplicate.

        Args:
            project_id: Project the action belongs to
            action_type: Kind of side effect
            payload: Type-specific details
            prompt_run_id: Run that proposed the action
            requires_approval: Override of the per-type default
            recipient_id: Resolved recipient contact
            sender_id: Resolved sender contact
            message: Human-readable message or summary

        Returns:
            The created (or already pending) action record
        """
        if requires_approval is None:
            requires_approval = DEFAULT_REQUIRES_APPROVAL.get(action_type, True)

        dedupe_key = compute_dedupe_key(project_id, action_type, payload, recipient_id)
        if requires_approval:
            for existing in await self.datastore.list_actions(project_id, status="pending"):
                if existing.dedupe_key == dedupe_key:
                    logger.info(f"Reusing pending {action_type} action {existing.id} for project {project_id}")
                    return existing

        record = ActionRecord(
            project_id=project_id,
            prompt_run_id=prompt_run_id,
            action_type=action_type,
            action_payload=payload,
            message=message,
            requires_approval=requires_approval,
            status="pending" if requires_approval else "approved",
            recipient_id=recipient_id,
            sender_id=sender_id,
            dedupe_key=dedupe_key,
        )
        await self.datastore.insert_action(record)
        logger.info(f"Created {action_type} action {record.id} for project {project_id} ({record.status})")

        if not requires_approval:
            await self._execute(record)
        return record

    async def create_reminder(
        self,
        project_id: str,
        check_reason: str,
        days_until_check: int = DEFAULT_REMINDER_DAYS,
        prompt_run_id: str | None = None,
    ) -> ActionRecord:
        """Schedule the project's next check and record it as an executed reminder.

        Args:
            project_id: Project to schedule
            check_reason: Why the project should be checked again
            days_until_check: Days from now until the next check
            prompt_run_id: Run that proposed the reminder

        Returns:
            The executed reminder record
        """
        project = await self.datastore.get_project(project_id)
        if project is None:
            raise LookupError(f"Project {project_id} not found")

        now = datetime.now(UTC)
        next_check = now + timedelta(days=days_until_check)
        project.next_check_date = next_check
        await self.datastore.update_project(project)

        description = f"Set reminder to check in {days_until_check} days: {check_reason}"
        record = ActionRecord(
            project_id=project_id,
            prompt_run_id=prompt_run_id,
            action_type="set_future_reminder",
            action_payload={
                "days_until_check": days_until_check,
                "check_reason": check_reason,
                "description": description,
                "scheduled_date": next_check.isoformat(),
            },
            message=description,
            requires_approval=False,
            status="executed",
            reminder_date=next_check,
            executed_at=now,
        )
        await self.datastore.insert_action(record)
        logger.info(f"Next check for project {project_id} set to {next_check.isoformat()}")
        return record

    async def get(self, action_id: str, company_id: str | None = None) -> ActionRecord:
        """Get an action record, optionally verifying its company scope.

        Raises:
            ActionNotFoundError: If the record does not exist
            ScopeError: If the record's project belongs to another company
        """
        record = await self.datastore.get_action(action_id)
        if record is None:
            raise ActionNotFoundError(f"Action {action_id} not found")

        if company_id is not None:
            project = await self.datastore.get_project(record.project_id)
            if project is None or project.company_id != company_id:
                raise ScopeError(f"Action {action_id} is not accessible for company {company_id}")
        return record

    async def list_for_project(self, project_id: str, status: ActionStatus | None = None) -> list[ActionRecord]:
        """List a project's action records."""
        return await self.datastore.list_actions(project_id, status)

    async def approve(self, action_id: str, company_id: str) -> ActionRecord:
        """Approve a pending action and perform its side effect.

        Execution failures leave the record approved with the error recorded.
        """
        record = await self.get(action_id, company_id)
        transition(record, "approved")
        await self.datastore.update_action(record)
        logger.info(f"Action {action_id} approved")

        await self._execute(record)
        return record

    async def reject(self, action_id: str, company_id: str) -> ActionRecord:
        """Reject a pending action."""
        record = await self.get(action_id, company_id)
        transition(record, "rejected")
        await self.datastore.update_action(record)
        logger.info(f"Action {action_id} rejected")
        return record

    async def retry(self, action_id: str, company_id: str) -> ActionRecord:
        """Execute an approved action again after a failed attempt.

        Raises:
            InvalidTransitionError: If the record is not approved with a recorded execution error
        """
        record = await self.get(action_id, company_id)
        if record.status != "approved" or record.execution_error is None:
            raise InvalidTransitionError(f"Action {action_id} has no failed execution to retry ({record.status})")

        logger.info(f"Retrying {record.action_type} action {action_id} after: {record.execution_error}")
        await self._execute(record)
        return record

    async def assign_recipient(self, action_id: str, company_id: str, recipient_id: str) -> ActionRecord:
        """Point a message action at a different contact before it is delivered.

        Pending records get a fresh dedupe key. Approved records keep their error until retried.

        Raises:
            InvalidTransitionError: If the record is not a message awaiting delivery
            ContactNotFoundError: If the contact does not exist
            ScopeError: If the contact belongs to another company
        """
        record = await self.get(action_id, company_id)
        if record.action_type != "message" or record.status not in ("pending", "approved"):
            raise InvalidTransitionError(
                f"Cannot change the recipient of {record.status} {record.action_type} action {action_id}"
            )

        contact = await self.datastore.get_contact(recipient_id)
        if contact is None:
            raise ContactNotFoundError(f"Contact {recipient_id} not found")
        if contact.company_id != company_id:
            raise ScopeError(f"Contact {recipient_id} is not accessible for company {company_id}")

        record.recipient_id = recipient_id
        if record.status == "pending":
            record.dedupe_key = compute_dedupe_key(
                record.project_id, record.action_type, record.action_payload, recipient_id
            )
        await self.datastore.update_action(record)
        logger.info(f"Action {action_id} recipient set to {recipient_id}")
        return record

    async def _execute(self, record: ActionRecord) -> None:
        """Run the executor for an approved record and mark it executed."""
        executor = self.executors.get(record.action_type)
        try:
            if executor:
                await executor.execute(record)
        except Exception as e:
            logger.error(f"Execution of {record.action_type} action {record.id} failed: {e}")
            record.execution_error = str(e)
            await self.datastore.update_action(record)
            return

        transition(record, "executed")
        await self.datastore.update_action(record)
