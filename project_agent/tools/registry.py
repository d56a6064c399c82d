"""Tools registry for managing AI assistant tools."""

from project_agent.models.llm import ToolSchema
from project_agent.tools.base import ToolDefinition
from project_agent.tools.create_action_record import create_action_record_tool
from project_agent.tools.crm import create_append_crm_note_tool, create_crm_data_write_tool
from project_agent.tools.detect_action import create_detect_action_tool
from project_agent.tools.escalation import create_escalation_tool
from project_agent.tools.list_project_contacts import create_list_project_contacts_tool
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)


class ToolsRegistry:
    """Registry for managing AI assistant tools."""

    def __init__(self):
        """Initialize tools registry with the default tool set."""
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        """Register the default set of tools for project management."""
        tools = [
            create_detect_action_tool(),
            create_action_record_tool(),
            create_escalation_tool(),
            create_crm_data_write_tool(),
            create_append_crm_note_tool(),
            create_list_project_contacts_tool(),
        ]

        for tool in tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_tools(self, allow_list: list[str] | None = None) -> dict[str, ToolDefinition]:
        """Get tools filtered by an allow-list.

        Args:
            allow_list: Tool names to offer; every registered tool when empty or None

        Returns:
            Name-to-definition map in registration order
        """
        if not allow_list:
            return dict(self._tools)

        unknown = [name for name in allow_list if name not in self._tools]
        if unknown:
            logger.warning(f"Ignoring unknown tools in allow-list: {unknown}")

        return {name: tool for name, tool in self._tools.items() if name in allow_list}

    def get_schemas(self, allow_list: list[str] | None = None) -> list[ToolSchema]:
        return [tool.to_schema() for tool in self.get_tools(allow_list).values()]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools


_tools_registry: ToolsRegistry | None = None


def get_tools_registry() -> ToolsRegistry:
    """Get or create tools registry instance."""
    global _tools_registry
    if _tools_registry is None:
        _tools_registry = ToolsRegistry()
    return _tools_registry
