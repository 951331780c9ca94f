"""Agent service: the tool-use conversation loop."""

from collections.abc import Callable
from typing import Protocol

from tars.clients.anthropic import ModelClientError
from tars.models.events import (
    AssistantEvent,
    DoneEvent,
    ErrorEvent,
    StreamEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from tars.models.llm import LLMMessage, LLMResponse, LLMToolDefinition, TextBlock, ToolResultBlock, ToolUseBlock
from tars.models.session import Conversation
from tars.tools.registry import ToolsRegistry
from tars.utils.logging import get_logger

logger = get_logger(__name__)

EventSink = Callable[[StreamEvent], None]


class ModelClient(Protocol):
    """Anything that can complete a conversation with tool declarations."""

    async def create_message(self, messages: list[LLMMessage], tools: list[LLMToolDefinition]) -> LLMResponse: ...


class AgentService:
    """Drives the model and the tools until the model stops asking for tools."""

    def __init__(self, client: ModelClient, tools: ToolsRegistry | None = None, max_turns: int | None = None):
        """Initialize agent service.

        Args:
            client: Model client used for every turn
            tools: Tool registry, defaults to the built-in file tools
            max_turns: Optional ceiling on model calls per run, unbounded when None
        """
        if max_turns is not None and max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.client = client
        self.tools = tools if tools is not None else ToolsRegistry()
        self.max_turns = max_turns

    async def run(self, conversation: Conversation, user_text: str, emit: EventSink) -> None:
        """Run one user message through the tool-use loop.

        Every observable step is passed to ``emit`` in order, and the last
        event is always ``DoneEvent``. Model failures are reported as an
        ``ErrorEvent`` and end the run without touching the history further;
        tool failures are handed back to the model as error results.

        Args:
            conversation: History to read from and append to
            user_text: The user's message
            emit: Receives each stream event as it happens
        """
        await conversation.append(LLMMessage.user_text(user_text))
        declarations = self.tools.definitions()
        turns = 0

        while True:
            if self.max_turns is not None and turns >= self.max_turns:
                logger.warning(f"Agent loop reached max turns ({self.max_turns})")
                emit(ErrorEvent(message=f"Stopped after {turns} turns without a final answer"))
                emit(DoneEvent())
                return

            turns += 1
            history = await conversation.snapshot()
            logger.debug(f"Agent loop turn {turns}, calling model with {len(history)} messages")

            try:
                response = await self.client.create_message(history, declarations)
            except ModelClientError as e:
                logger.error(f"Model call failed on turn {turns}: {e}")
                emit(ErrorEvent(message=str(e)))
                emit(DoneEvent())
                return

            tool_results = await self._handle_response(response, emit)

            reply = [LLMMessage(role="assistant", content=response.content)]
            if tool_results:
                reply.append(LLMMessage(role="user", content=tool_results))
            await conversation.append(*reply)

            if not tool_results:
                logger.info(f"Agent loop completed in {turns} turns")
                emit(DoneEvent())
                return

            logger.info(f"Returning {len(tool_results)} tool results to the model")

    async def _handle_response(self, response: LLMResponse, emit: EventSink) -> list[ToolResultBlock]:
        """Emit events for each block and run the requested tools in order."""
        tool_results: list[ToolResultBlock] = []
        for block in response.content:
            if isinstance(block, TextBlock):
                emit(AssistantEvent(text=block.text))
            elif isinstance(block, ToolUseBlock):
                emit(ToolCallEvent(name=block.name, input=block.input))
                outcome = await self.tools.execute(block.name, block.input)
                emit(ToolResultEvent(content=outcome.content, is_error=outcome.is_error))
                tool_results.append(
                    ToolResultBlock(tool_use_id=block.id, content=outcome.content, is_error=outcome.is_error)
                )
        return tool_results
