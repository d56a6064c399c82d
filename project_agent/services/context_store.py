"""In-memory storage for resumable conversation contexts."""

from datetime import UTC, datetime, timedelta

from cuid2 import cuid_wrapper

from project_agent.services.context import ConversationContext

cuid = cuid_wrapper()


class InMemoryContextStore:
    """Keeps conversation contexts keyed by conversation ID until they expire."""

    def __init__(self, context_timeout_hours: int = 24):
        """Initialize context store.

        Args:
            context_timeout_hours: Hours of inactivity before a context expires
        """
        self.contexts: dict[str, ConversationContext] = {}
        self.context_timeout = timedelta(hours=context_timeout_hours)

    def get(self, conversation_id: str) -> ConversationContext | None:
        """Get a stored context.

        Args:
            conversation_id: Conversation identifier

        Returns:
            The context if found and not expired, None otherwise
        """
        self._cleanup_expired_contexts()
        return self.contexts.get(conversation_id)

    def save(self, context: ConversationContext) -> None:
        context.last_activity = datetime.now(UTC)
        self.contexts[context.conversation_id] = context

    def delete(self, conversation_id: str) -> bool:
        """Delete a context.

        Returns:
            True if the context was deleted, False if not found
        """
        return self.contexts.pop(conversation_id, None) is not None

    def generate_conversation_id(self) -> str:
        """Generate a new CUID-based conversation ID."""
        return cuid()

    def count(self) -> int:
        self._cleanup_expired_contexts()
        return len(self.contexts)

    def _cleanup_expired_contexts(self) -> None:
        """Remove expired contexts from memory."""
        current_time = datetime.now(UTC)
        expired = [
            conversation_id
            for conversation_id, context in self.contexts.items()
            if current_time - context.last_activity > self.context_timeout
        ]
        for conversation_id in expired:
            del self.contexts[conversation_id]
