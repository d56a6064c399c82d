"""Conversation context for an orchestration run."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from project_agent.models.llm import Message, ToolInvocation, ToolResult, ToolSchema
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConversationContext:
    """Ordered, append-only message log plus the tools offered to the model."""

    conversation_id: str
    messages: list[Message] = field(default_factory=list)
    tools: list[ToolSchema] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))

    def append(self, message: Message) -> None:
        self.messages.append(message)
        self.last_activity = datetime.now(UTC)

    def add_system_notice(self, content: str) -> None:
        """Inject a system-role notice for the model's next turn."""
        self.append(Message.system(content))

    def add_tool_result(self, invocation: ToolInvocation, result: ToolResult) -> None:
        self.append(Message.tool_response(invocation, result))

    def answered_invocation_ids(self) -> set[str]:
        return {message.tool_call_id for message in self.messages if message.role == "tool" and message.tool_call_id}


def validate_context(context: ConversationContext) -> list[str]:
    """Find tool invocations that never received a tool response.

    Args:
        context: Conversation to check

    Returns:
        Invocation IDs missing a matching tool message, in the order they were raised
    """
    answered = context.answered_invocation_ids()
    missing = [
        invocation.id
        for message in context.messages
        if message.role == "assistant"
        for invocation in message.tool_calls
        if invocation.id not in answered
    ]

    for invocation_id in missing:
        logger.error(f"Tool call {invocation_id} has no tool response in conversation {context.conversation_id}")
    if missing:
        logger.warning(f"Conversation {context.conversation_id} has {len(missing)} unanswered tool calls")

    return missing
