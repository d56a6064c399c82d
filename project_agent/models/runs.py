"""Orchestration run request/response and audit models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from cuid2 import cuid_wrapper
from pydantic import BaseModel, Field

from project_agent.models.llm import RunMetrics

cuid = cuid_wrapper()

PromptRunStatus = Literal["RUNNING", "COMPLETED", "FAILED"]
StopReason = Literal["completed", "max_iterations", "loop_aborted", "error"]


class RunRequest(BaseModel):
    """Request model for starting an orchestration run."""

    project_id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1, description="Project context and instructions for the agent")
    system_prompt: str | None = None
    available_tools: list[str] | None = Field(
        default=None, description="Allow-list of tool names; all registered tools when empty"
    )
    max_iterations: int | None = Field(default=None, ge=1, le=20)
    conversation_id: str | None = None
    milestone_instructions: str | None = None
    caller_id: str | None = None


class RunMetricsResponse(BaseModel):
    """Serialized run metrics."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model_calls: int
    tool_calls: int
    usd_cost: float


class RunResponse(BaseModel):
    """Response model for an orchestration run."""

    run_id: str
    conversation_id: str
    status: PromptRunStatus
    answer: str
    stop_reason: StopReason
    iterations: int
    metrics: RunMetricsResponse
    action_record_ids: list[str]


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str


@dataclass
class PromptRun:
    """Audit row for one orchestration run."""

    project_id: str
    company_id: str
    prompt_input: str
    id: str = field(default_factory=lambda: cuid())
    conversation_id: str | None = None
    status: PromptRunStatus = "RUNNING"
    prompt_output: str | None = None
    error_message: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    usd_cost: float = 0.0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None


@dataclass
class ToolLog:
    """Audit row for one tool dispatch."""

    prompt_run_id: str
    tool_call_id: str
    tool_name: str
    status: str
    duration_ms: int
    input_hash: str
    output_trim: str
    id: str = field(default_factory=lambda: cuid())
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ToolOutput:
    """A dispatched tool call and its result, as reported back to the caller."""

    tool: str
    args: dict[str, Any]
    result: dict[str, Any]


@dataclass
class RunResult:
    """Outcome of an orchestration run."""

    run_id: str
    conversation_id: str
    status: PromptRunStatus
    answer: str
    stop_reason: StopReason
    iterations: int
    metrics: RunMetrics
    tool_outputs: list[ToolOutput] = field(default_factory=list)
    action_record_ids: list[str] = field(default_factory=list)

    def to_response(self) -> RunResponse:
        """Convert to the API response model."""
        return RunResponse(
            run_id=self.run_id,
            conversation_id=self.conversation_id,
            status=self.status,
            answer=self.answer,
            stop_reason=self.stop_reason,
            iterations=self.iterations,
            metrics=RunMetricsResponse(**vars(self.metrics)),
            action_record_ids=self.action_record_ids,
        )
