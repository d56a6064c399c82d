"""API endpoints for the project assistant service."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from project_agent import __version__
from project_agent.models.actions import (
    ActionDecisionRequest,
    ActionListResponse,
    ActionRecord,
    ActionStatus,
    RecipientAssignmentRequest,
)
from project_agent.models.runs import HealthResponse, RunRequest, RunResponse
from project_agent.services.actions import ActionNotFoundError, ContactNotFoundError, InvalidTransitionError
from project_agent.services.agent import AgentService, get_agent_service
from project_agent.services.datastore import ScopeError
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, ScopeError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, (ActionNotFoundError, ContactNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=500, detail="Internal error")


@router.post("/runs", response_model=RunResponse, tags=["Runs"])
async def start_run(request: RunRequest, service: AgentService = Depends(get_agent_service)) -> RunResponse:
    """Run the project assistant against one project.

    Model and tool failures are reported in the response body; only scope violations fail the request.
    """
    logger.info(f"Starting run for project {request.project_id}, company {request.company_id}")
    try:
        result = await service.run(request)
    except ScopeError as e:
        logger.warning(f"Rejected run: {e}")
        raise _to_http_error(e) from e

    return result.to_response()


@router.get("/actions", response_model=ActionListResponse, tags=["Actions"])
async def list_actions(
    project_id: str = Query(..., min_length=1),
    company_id: str = Query(..., min_length=1),
    status: ActionStatus | None = None,
    service: AgentService = Depends(get_agent_service),
) -> ActionListResponse:
    """List action records for a project."""
    try:
        actions = await service.list_actions(project_id, company_id, status)
    except ScopeError as e:
        raise _to_http_error(e) from e
    return ActionListResponse(actions=actions)


@router.get("/actions/{action_id}", response_model=ActionRecord, tags=["Actions"])
async def get_action(
    action_id: str,
    company_id: str = Query(..., min_length=1),
    service: AgentService = Depends(get_agent_service),
) -> ActionRecord:
    """Get a single action record."""
    try:
        return await service.get_action(action_id, company_id)
    except (ScopeError, ActionNotFoundError) as e:
        raise _to_http_error(e) from e


@router.post("/actions/{action_id}/approve", response_model=ActionRecord, tags=["Actions"])
async def approve_action(
    action_id: str, request: ActionDecisionRequest, service: AgentService = Depends(get_agent_service)
) -> ActionRecord:
    """Approve a pending action and perform it.

    A failed side effect leaves the action approved with `execution_error` set.
    """
    try:
        return await service.approve_action(action_id, request.company_id)
    except (ScopeError, ActionNotFoundError, InvalidTransitionError) as e:
        logger.warning(f"Approval of {action_id} rejected: {e}")
        raise _to_http_error(e) from e


@router.post("/actions/{action_id}/reject", response_model=ActionRecord, tags=["Actions"])
async def reject_action(
    action_id: str, request: ActionDecisionRequest, service: AgentService = Depends(get_agent_service)
) -> ActionRecord:
    """Reject a pending action."""
    try:
        return await service.reject_action(action_id, request.company_id)
    except (ScopeError, ActionNotFoundError, InvalidTransitionError) as e:
        logger.warning(f"Rejection of {action_id} refused: {e}")
        raise _to_http_error(e) from e


@router.post("/actions/{action_id}/retry", response_model=ActionRecord, tags=["Actions"])
async def retry_action(
    action_id: str, request: ActionDecisionRequest, service: AgentService = Depends(get_agent_service)
) -> ActionRecord:
    """Perform an approved action again after its side effect failed."""
    try:
        return await service.retry_action(action_id, request.company_id)
    except (ScopeError, ActionNotFoundError, InvalidTransitionError) as e:
        logger.warning(f"Retry of {action_id} refused: {e}")
        raise _to_http_error(e) from e


@router.put("/actions/{action_id}/recipient", response_model=ActionRecord, tags=["Actions"])
async def assign_recipient(
    action_id: str, request: RecipientAssignmentRequest, service: AgentService = Depends(get_agent_service)
) -> ActionRecord:
    """Set the contact a pending or failed message action is delivered to."""
    try:
        return await service.assign_recipient(action_id, request.company_id, request.recipient_id)
    except (ScopeError, ActionNotFoundError, ContactNotFoundError, InvalidTransitionError) as e:
        logger.warning(f"Recipient change for {action_id} refused: {e}")
        raise _to_http_error(e) from e


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
