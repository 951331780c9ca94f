"""Anthropic API client with rate limiting and error handling."""

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Any

from anthropic import APIError, APIStatusError, AsyncAnthropic
from anthropic.types import ContentBlock as AnthropicContentBlock
from anthropic.types import Message
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from tars.models.llm import ContentBlock, LLMMessage, LLMResponse, LLMToolDefinition, LLMUsage, TextBlock, ToolUseBlock
from tars.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"


class ModelClientError(Exception):
    """The model endpoint could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = DEFAULT_MODEL
    max_tokens: int = 4096
    temperature: float | None = None
    system_prompt: str | None = None
    requests_per_minute: int = 50
    timeout: float = 600.0

    @classmethod
    def from_env(cls) -> "AnthropicConfig":
        """Build a configuration from ``TARS_MODEL`` and ``TARS_MAX_TOKENS``."""
        return cls(
            model=os.getenv("TARS_MODEL", DEFAULT_MODEL),
            max_tokens=int(os.getenv("TARS_MAX_TOKENS", "4096")),
            system_prompt=os.getenv("TARS_SYSTEM_PROMPT") or None,
        )


class AnthropicRateLimiter:
    """Client-side request throttling using the limits library."""

    def __init__(self, requests_per_minute: int = 50):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.request_limit = parse(f"{requests_per_minute}/minute")

    async def acquire(self, identifier: str = "anthropic") -> None:
        """Wait until a request slot is available within the moving window."""
        while not self.limiter.hit(self.request_limit, identifier):
            window_stats = self.limiter.get_window_stats(self.request_limit, identifier)
            wait_time = max(0.1, window_stats.reset_time - time.time())
            logger.warning(f"Request rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class AnthropicClient:
    """Model client for the Anthropic Messages API.

    Each call is a single attempt: SDK retries are disabled and any failure is
    raised as ``ModelClientError`` for the agent loop to report.
    """

    api_key: str
    client: AsyncAnthropic
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter

    def __init__(
        self,
        api_key: str | None = None,
        config: AnthropicConfig | None = None,
        rate_limiter: AnthropicRateLimiter | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
            rate_limiter: Shared rate limiter, one per client by default
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")

        self.api_key = anthropic_api_key
        self.config = config or AnthropicConfig()
        self.client = AsyncAnthropic(api_key=self.api_key, max_retries=0, timeout=self.config.timeout)
        self.rate_limiter = rate_limiter or AnthropicRateLimiter(self.config.requests_per_minute)

    def build_request(self, messages: list[LLMMessage], tools: list[LLMToolDefinition]) -> dict[str, Any]:
        """Build the keyword arguments for ``messages.create``."""
        request_params: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": [message.model_dump() for message in messages],
        }
        if tools:
            request_params["tools"] = [tool.model_dump() for tool in tools]
        if self.config.system_prompt:
            request_params["system"] = self.config.system_prompt
        if self.config.temperature is not None:
            request_params["temperature"] = self.config.temperature
        return request_params

    async def create_message(self, messages: list[LLMMessage], tools: list[LLMToolDefinition]) -> LLMResponse:
        """Send the conversation to Claude and return its reply.

        Args:
            messages: Full conversation history
            tools: Tool declarations available to the model

        Returns:
            Provider-agnostic response

        Raises:
            ModelClientError: If the request fails or the API answers with a non-2xx status
        """
        await self.rate_limiter.acquire()

        request_params = self.build_request(messages, tools)
        logger.debug(f"Creating message with {len(messages)} messages, {len(tools)} tools, model {self.config.model}")

        try:
            response: Message = await self.client.messages.create(**request_params)
        except APIStatusError as e:
            raise ModelClientError(f"API error: {e.status_code} - {e.response.text}", status_code=e.status_code) from e
        except APIError as e:
            raise ModelClientError(f"API error: {e.message}") from e

        logger.debug(
            f"Response received - Stop reason: {response.stop_reason}, Content blocks: {len(response.content)}"
        )

        usage = None
        if response.usage:
            usage = LLMUsage(input_tokens=response.usage.input_tokens, output_tokens=response.usage.output_tokens)

        return LLMResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    def _convert_content_blocks(self, anthropic_content: list[AnthropicContentBlock]) -> list[ContentBlock]:
        """Convert Anthropic content blocks to our ContentBlock types."""
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump()

            if block_dict.get("type") == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            elif block_dict.get("type") == "tool_use":
                converted_blocks.append(ToolUseBlock.model_validate(block_dict))
            else:
                logger.warning(f"Skipping unsupported content block type: {block_dict.get('type')}")

        return converted_blocks
