"""Tools available to the project assistant."""

from project_agent.tools.registry import ToolsRegistry, get_tools_registry

__all__ = ["ToolsRegistry", "get_tools_registry"]
