"""Fakes and helpers shared by the test modules."""

import asyncio
from typing import Any

from pydantic import BaseModel

from tars.models.events import DoneEvent, StreamEvent
from tars.models.llm import LLMMessage, LLMResponse, LLMToolDefinition, TextBlock, ToolUseBlock
from tars.services.broadcaster import Subscription
from tars.tools.base import ToolDefinition, ToolError


class FakeModelClient:
    """Model client that replays canned responses.

    Each entry is returned in turn, or raised if it is an exception. Once the
    script runs out, a plain text answer is returned. When ``gate`` is given,
    every call waits for it before answering.
    """

    def __init__(self, responses: list[LLMResponse | Exception] | None = None, gate: asyncio.Event | None = None):
        self.responses = list(responses or [])
        self.gate = gate
        self.calls: list[list[LLMMessage]] = []
        self.tools: list[LLMToolDefinition] = []

    async def create_message(self, messages: list[LLMMessage], tools: list[LLMToolDefinition]) -> LLMResponse:
        self.calls.append(list(messages))
        self.tools = tools
        if self.gate is not None:
            await self.gate.wait()

        if not self.responses:
            return text_response("All done.")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def text_response(text: str) -> LLMResponse:
    return LLMResponse(content=[TextBlock(text=text)], stop_reason="end_turn")


def tool_response(*calls: tuple[str, str, Any], text: str | None = None) -> LLMResponse:
    """Response asking for tools, given as ``(id, name, input)`` triples."""
    content: list[Any] = [TextBlock(text=text)] if text else []
    content.extend(ToolUseBlock(id=tool_id, name=name, input=tool_input) for tool_id, name, tool_input in calls)
    return LLMResponse(content=content, stop_reason="tool_use")


class EchoInput(BaseModel):
    value: str


async def _echo(params: EchoInput) -> str:
    return params.value


async def _fail(params: EchoInput) -> str:
    raise ToolError(f"cannot handle {params.value}")


def echo_tool() -> ToolDefinition:
    return ToolDefinition(name="echo", description="Echo the value back.", input_schema_class=EchoInput, handler=_echo)


def failing_tool() -> ToolDefinition:
    return ToolDefinition(name="fail", description="Always fails.", input_schema_class=EchoInput, handler=_fail)


class EventRecorder:
    """Event sink that keeps everything it is given."""

    def __init__(self) -> None:
        self.events: list[StreamEvent] = []

    def __call__(self, event: StreamEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.type for event in self.events]


async def collect_until_done(subscription: Subscription, timeout: float = 2.0) -> list[StreamEvent]:
    """Read events from a subscription up to and including the next ``DoneEvent``."""
    events: list[StreamEvent] = []
    async with asyncio.timeout(timeout):
        async for event in subscription:
            events.append(event)
            if isinstance(event, DoneEvent):
                return events
    return events
