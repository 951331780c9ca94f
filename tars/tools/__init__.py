"""Tools the agent can invoke."""

from tars.tools.base import ToolDefinition, ToolError
from tars.tools.registry import TOOL_NOT_FOUND, ToolOutcome, ToolsRegistry, default_tools

__all__ = ["TOOL_NOT_FOUND", "ToolDefinition", "ToolError", "ToolOutcome", "ToolsRegistry", "default_tools"]
