"""Anthropic API client with rate limiting and error handling."""

import asyncio
import json
import os
import random
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

import tiktoken
from anthropic import APIConnectionError, APIError, APIStatusError, AsyncAnthropic
from anthropic.types import Message as AnthropicMessage
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from project_agent.models.llm import LLMResponse, LLMUsage, Message, ToolInvocation, ToolSchema
from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

SYSTEM_NOTICE_PREFIX = "[System notice]"

T = TypeVar("T")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = field(default_factory=lambda: os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514"))
    max_tokens: int = 2000
    temperature: float = 0.1
    request_timeout: float = 120.0


@dataclass
class RateLimitConfig:
    """Process-wide request, token and concurrency limits."""

    requests_per_minute: int = field(default_factory=lambda: _env_int("AGENT_REQUESTS_PER_MINUTE", 60))
    tokens_per_minute: int = field(default_factory=lambda: _env_int("AGENT_TOKENS_PER_MINUTE", 80_000))
    max_concurrent_requests: int = field(default_factory=lambda: _env_int("AGENT_MAX_CONCURRENT_REQUESTS", 10))


@dataclass
class RetryPolicy:
    """Exponential backoff with jitter for transient provider errors."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_jitter: float = 1.0

    def delay_for(self, attempt: int, jitter: float | None = None) -> float:
        """Seconds to wait before retrying after the given zero-based attempt."""
        if jitter is None:
            jitter = random.uniform(0, self.max_jitter)
        return self.base_delay * (2**attempt) + jitter


def is_retryable(error: Exception) -> bool:
    """Rate limits, server errors and connection failures are worth retrying."""
    if isinstance(error, APIConnectionError):
        return True
    if isinstance(error, APIStatusError):
        return error.status_code == 429 or error.status_code >= 500
    return False


class AnthropicRateLimiter:
    """Sliding-window request and token limiter with a concurrency cap."""

    def __init__(
        self,
        requests_per_minute: int = 60,
        tokens_per_minute: int = 80_000,
        max_concurrent_requests: int = 10,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests in any 60-second window
            tokens_per_minute: Maximum estimated tokens in any 60-second window
            max_concurrent_requests: Maximum requests in flight at once
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")
        self.tokens_per_minute = tokens_per_minute
        self.max_concurrent_requests = max_concurrent_requests
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "AnthropicRateLimiter":
        return cls(config.requests_per_minute, config.tokens_per_minute, config.max_concurrent_requests)

    def _wait_time(self, limit: RateLimitItem, identifier: str) -> float:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        return max(0.0, window_stats.reset_time - time.time())

    async def _wait_for_window(self, limit: RateLimitItem, identifier: str, cost: int = 1) -> None:
        while not self.limiter.hit(limit, identifier, cost=cost):
            wait_time = self._wait_time(limit, identifier)
            logger.warning(f"Rate limit {limit} exceeded for {identifier}, waiting {wait_time:.2f}s")
            await asyncio.sleep(max(wait_time, 0.05))

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Block until the request and its estimated tokens fit in the current windows."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")
        await self._wait_for_window(self.request_limit, identifier)

        token_cost = max(1, min(estimated_tokens, self.tokens_per_minute))
        await self._wait_for_window(self.token_limit, f"{identifier}_tokens", cost=token_cost)

    @asynccontextmanager
    async def slot(self, estimated_tokens: int, identifier: str = "anthropic") -> AsyncIterator[None]:
        """Hold one concurrency slot for the duration of a request."""
        async with self.semaphore:
            await self.check_rate_limit(estimated_tokens, identifier)
            yield


def _is_error_result(content: str | None) -> bool:
    if not content:
        return False
    try:
        parsed = json.loads(content)
    except ValueError:
        return False
    return isinstance(parsed, dict) and parsed.get("status") == "error"


def to_anthropic_messages(messages: list[Message]) -> tuple[str, list[dict[str, Any]]]:
    """Convert the conversation log to Anthropic's system prompt and message list.

    Leading system messages become the system prompt. Later system notices become user text.
    Consecutive tool, user and system messages merge into one user turn with tool results first.
    """
    index = 0
    system_parts: list[str] = []
    while index < len(messages) and messages[index].role == "system":
        system_parts.append(messages[index].content or "")
        index += 1

    converted: list[dict[str, Any]] = []
    for message in messages[index:]:
        if message.role == "assistant":
            blocks: list[dict[str, Any]] = []
            if message.content:
                blocks.append({"type": "text", "text": message.content})
            for call in message.tool_calls:
                blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
            if blocks:
                converted.append({"role": "assistant", "content": blocks})
            continue

        if message.role == "tool":
            block: dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": message.tool_call_id,
                "content": message.content or "",
                "is_error": _is_error_result(message.content),
            }
        elif message.role == "system":
            block = {"type": "text", "text": f"{SYSTEM_NOTICE_PREFIX} {message.content or ''}"}
        else:
            block = {"type": "text", "text": message.content or ""}

        if converted and converted[-1]["role"] == "user":
            converted[-1]["content"].append(block)
        else:
            converted.append({"role": "user", "content": [block]})

    for turn in converted:
        if turn["role"] == "user":
            turn["content"].sort(key=lambda block: block["type"] != "tool_result")

    return "\n\n".join(system_parts), converted


class AnthropicClient:
    """Low-level Anthropic API client with rate limiting and error handling."""

    tokenizer: tiktoken.Encoding | None = None
    api_key: str
    client: AsyncAnthropic
    config: AnthropicConfig
    retry_policy: RetryPolicy
    rate_limiter: AnthropicRateLimiter = AnthropicRateLimiter.from_config(RateLimitConfig())

    def __init__(
        self,
        api_key: str | None = None,
        config: AnthropicConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        rate_limiter: AnthropicRateLimiter | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
            retry_policy: Backoff policy for transient errors
            rate_limiter: Limiter to use instead of the process-wide one
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")

        self.api_key = anthropic_api_key
        self.config = config or AnthropicConfig()
        self.retry_policy = retry_policy or RetryPolicy()
        if rate_limiter is not None:
            self.rate_limiter = rate_limiter

        # Retries are handled here so they pass through the rate limiter
        self.client = AsyncAnthropic(api_key=self.api_key, max_retries=0, timeout=self.config.request_timeout)

        try:
            # Close approximation for Claude
            self.tokenizer = tiktoken.encoding_for_model("gpt-4")
        except Exception:
            self.tokenizer = None

    @property
    def model(self) -> str:
        return self.config.model

    async def create_message(self, messages: list[Message], tools: list[ToolSchema] | None = None) -> LLMResponse:
        """Send the conversation to Claude.

        Args:
            messages: Full ordered conversation log
            tools: Tools the model may call

        Returns:
            Provider-agnostic response with text, tool calls and usage
        """
        system_prompt, message_dicts = to_anthropic_messages(messages)
        estimated_tokens = self._estimate_tokens(system_prompt, message_dicts)

        request_params: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": message_dicts,
        }
        if system_prompt:
            request_params["system"] = system_prompt
        if tools:
            request_params["tools"] = [tool.model_dump() for tool in tools]

        logger.debug(f"Creating message with {len(message_dicts)} messages, {len(tools) if tools else 0} tools")

        async def send() -> AnthropicMessage:
            async with self.rate_limiter.slot(estimated_tokens):
                return await self.client.messages.create(**request_params)

        response = await self._request_with_retries(send)
        logger.debug(f"Response received - Stop reason: {response.stop_reason}, blocks: {len(response.content)}")
        return self._convert_response(response)

    async def _request_with_retries(self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute Anthropic API request with retry logic."""
        max_retries = self.retry_policy.max_retries
        for attempt in range(max_retries + 1):
            try:
                return await call()
            except APIError as e:
                if not is_retryable(e) or attempt >= max_retries:
                    raise
                delay = self.retry_policy.delay_for(attempt)
                logger.warning(f"Anthropic request failed ({e}), retry {attempt + 1}/{max_retries} in {delay:.2f}s")
                await asyncio.sleep(delay)

        raise RuntimeError(f"Failed to complete request after {max_retries + 1} attempts")

    def _convert_response(self, response: AnthropicMessage) -> LLMResponse:
        texts: list[str] = []
        tool_calls: list[ToolInvocation] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolInvocation(id=block.id, name=block.name, arguments=dict(block.input or {})))
            else:
                logger.warning(f"Unknown content block type: {block.type}")

        usage = LLMUsage()
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
                cache_creation_input_tokens=response.usage.cache_creation_input_tokens or 0,
                cache_read_input_tokens=response.usage.cache_read_input_tokens or 0,
            )

        return LLMResponse(
            text="\n".join(texts) if texts else None,
            tool_calls=tool_calls,
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    def _estimate_tokens(self, system_prompt: str, messages: list[dict[str, Any]]) -> int:
        """Estimate token count for rate limiting."""
        text_content = system_prompt + json.dumps(messages, default=str)
        try:
            return len(self.tokenizer.encode(text_content)) if self.tokenizer else len(text_content) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(text_content) // 4


_anthropic_client: AnthropicClient | None = None


def get_anthropic_client() -> AnthropicClient:
    """Get or create Anthropic client instance."""
    global _anthropic_client
    if _anthropic_client is None:
        _anthropic_client = AnthropicClient()
    return _anthropic_client
