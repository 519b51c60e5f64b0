"""Abstract base class for chat model providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_json(self) -> dict[str, int]:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    """A tool call requested by the model.

    `arguments_error` is set when the model produced arguments that are not a
    JSON object; the agent reports it back as a tool error.
    """

    id: str
    name: str
    arguments: dict[str, Any]
    raw_arguments: str = ""
    arguments_error: str | None = None


@dataclass(frozen=True, slots=True)
class ChatResponse:
    text: str
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: str = "stop"


@dataclass(frozen=True, slots=True)
class ChatChunk:
    """One streamed item: a text delta, or the final assembled response."""

    delta: str = ""
    response: ChatResponse | None = None


class LLMProvider(ABC):
    """Abstract base class for chat model providers.

    This interface allows pluggable model backends. Messages and tool
    definitions use the OpenAI chat-completions wire shape.
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> ChatResponse:
        """Generate a chat completion, possibly requesting tool calls.

        Args:
            messages: Message history (system, user, assistant, tool).
            tools: Tool definitions offered to the model.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            **kwargs: Additional provider-specific parameters.

        Returns:
            The assistant's text and requested tool calls.
        """

    @abstractmethod
    def stream_chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatChunk]:
        """Stream a chat completion.

        Yields text deltas as they arrive, then exactly one chunk whose
        `response` carries the assembled result.
        """

    def count_tokens(self, text: str) -> int:
        """Count tokens using a simple approximation (1 token ≈ 4 characters)."""
        return len(text) // 4

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
