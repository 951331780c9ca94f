"""Tools registry: the capability set the agent can invoke by name."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from tars.models.llm import LLMToolDefinition
from tars.tools.base import ToolDefinition, ToolError
from tars.tools.edit_file import create_edit_file_tool
from tars.tools.list_files import create_list_files_tool
from tars.tools.read_file import create_read_file_tool
from tars.utils.logging import get_logger

logger = get_logger(__name__)

TOOL_NOT_FOUND = "tool not found"


@dataclass(frozen=True)
class ToolOutcome:
    """Text produced by a tool invocation and whether it is an error."""

    content: str
    is_error: bool = False


def default_tools() -> list[ToolDefinition]:
    """The file tools the agent ships with, in declaration order."""
    return [
        create_read_file_tool(),
        create_list_files_tool(),
        create_edit_file_tool(),
    ]


class ToolsRegistry:
    """Ordered registry of tools, dispatched by name."""

    def __init__(self, tools: Iterable[ToolDefinition] | None = None):
        """Initialize the registry.

        Args:
            tools: Tools to register, defaults to the built-in file tools
        """
        self._tools: dict[str, ToolDefinition] = {}
        for tool in default_tools() if tools is None else tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    def definitions(self) -> list[LLMToolDefinition]:
        """Tool declarations for the model, in registration order."""
        return [tool.declaration() for tool in self._tools.values()]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    async def execute(self, name: str, raw_input: Any) -> ToolOutcome:
        """Run a tool and capture its output.

        Failures never propagate: an unknown name, invalid input or an error
        raised by the handler all come back as an error outcome for the model.
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.error(f"Unknown tool requested: {name}")
            return ToolOutcome(content=TOOL_NOT_FOUND, is_error=True)

        logger.debug(f"Executing tool: {name} with input: {raw_input}")
        try:
            params = tool.parse_input(raw_input)
            result = await tool.handler(params)
        except ValidationError as e:
            logger.warning(f"Tool {name} rejected its input: {e}")
            return ToolOutcome(content=str(e), is_error=True)
        except ToolError as e:
            logger.info(f"Tool {name} failed: {e}")
            return ToolOutcome(content=str(e), is_error=True)
        except Exception as e:
            logger.error(f"Tool {name} raised: {e}", exc_info=True)
            return ToolOutcome(content=str(e), is_error=True)

        logger.debug(f"Tool {name} succeeded: {result[:100]}...")
        return ToolOutcome(content=result)
