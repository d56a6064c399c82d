"""LLM-related data models and types (provider-agnostic)."""

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

MessageRole = Literal["system", "user", "assistant", "tool"]
ToolStatus = Literal["success", "error", "no_action"]


class ToolInvocation(BaseModel):
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    """A single entry in the conversation log."""

    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolInvocation] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @model_validator(mode="after")
    def validate_tool_fields(self) -> "Message":
        """Tool messages must reference an invocation; only assistants raise invocations."""
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("Only assistant messages can carry tool calls")
        return self

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolInvocation] | None = None) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tool_calls or [])

    @classmethod
    def tool_response(cls, invocation: ToolInvocation, result: "ToolResult") -> "Message":
        return cls(role="tool", content=result.to_content(), tool_call_id=invocation.id, name=invocation.name)


class ToolResult(BaseModel):
    """Structured outcome of a tool execution."""

    status: ToolStatus
    message: str | None = None
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        """Build the error result returned to the model when a tool raises."""
        return cls(status="error", error=error, message=f"Tool execution failed: {error}")

    def to_content(self) -> str:
        """Serialize the result as the content of a tool message."""
        return json.dumps(self.model_dump(exclude_none=True), default=str)


class ToolSchema(BaseModel):
    """Tool definition as advertised to the model."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class LLMUsage:
    """Token/resource usage information from LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def cache_hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        total_input = self.input_tokens + self.cache_read_input_tokens + self.cache_creation_input_tokens
        if total_input == 0:
            return 0.0
        return (self.cache_read_input_tokens / total_input) * 100


@dataclass
class LLMResponse:
    """Provider-agnostic response from LLM service."""

    text: str | None
    tool_calls: list[ToolInvocation]
    stop_reason: str | None
    usage: LLMUsage = field(default_factory=LLMUsage)
    model: str = ""
    provider: str = "anthropic"


@dataclass
class RunMetrics:
    """Accumulated usage and cost for a single orchestration run."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    model_calls: int = 0
    tool_calls: int = 0
    usd_cost: float = 0.0

    def add_usage(self, usage: LLMUsage, cost: float) -> None:
        """Fold one model call's usage into the run totals."""
        self.model_calls += 1
        self.prompt_tokens += usage.input_tokens
        self.completion_tokens += usage.output_tokens
        self.total_tokens += usage.input_tokens + usage.output_tokens
        self.usd_cost += cost
