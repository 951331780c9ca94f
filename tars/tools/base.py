"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from tars.models.llm import LLMToolDefinition

ToolHandler = Callable[[Any], Awaitable[str]]


class ToolError(Exception):
    """A tool ran but could not do what was asked; the message goes back to the model."""


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: Any) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def declaration(self) -> LLMToolDefinition:
        """Declaration sent to the model alongside the conversation."""
        return LLMToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.get_json_schema(),
        )
