"""Stream events emitted while an agent loop runs."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter


class AssistantEvent(BaseModel):
    """Text produced by the assistant."""

    type: Literal["assistant"] = "assistant"
    text: str


class ToolCallEvent(BaseModel):
    """The assistant invoked a tool."""

    type: Literal["tool_call"] = "tool_call"
    name: str
    input: Any = None


class ToolResultEvent(BaseModel):
    """Output of a tool invocation."""

    type: Literal["tool_result"] = "tool_result"
    content: str
    is_error: bool = False


class InfoEvent(BaseModel):
    type: Literal["info"] = "info"
    message: str


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


class DoneEvent(BaseModel):
    """Terminal event of every loop run, successful or not."""

    type: Literal["done"] = "done"


StreamEvent = Annotated[
    AssistantEvent | ToolCallEvent | ToolResultEvent | InfoEvent | ErrorEvent | DoneEvent,
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_stream_event(payload: str | bytes) -> StreamEvent:
    """Parse a JSON payload into a stream event.

    Raises:
        pydantic.ValidationError: If the payload is not valid JSON or not a known event
    """
    return stream_event_adapter.validate_json(payload)


def dump_stream_event(event: StreamEvent) -> str:
    """Serialize a stream event as compact JSON."""
    return stream_event_adapter.dump_json(event).decode()
