"""Scripted collaborators shared by the unit tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from automation_engine.llm.provider import (
    ChatChunk,
    ChatResponse,
    LLMProvider,
    ToolCallRequest,
    Usage,
)


class ScriptedChatModel(LLMProvider):
    """Replays a fixed list of responses; the last one repeats when exhausted."""

    def __init__(self, responses: list[ChatResponse]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def _next(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None
    ) -> ChatResponse:
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> ChatResponse:
        return self._next(messages, tools)

    async def stream_chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatChunk]:
        response = self._next(messages, tools)
        words = response.text.split(" ") if response.text else []
        for i, word in enumerate(words):
            yield ChatChunk(delta=word if i == len(words) - 1 else word + " ")
        yield ChatChunk(response=response)

    async def aclose(self) -> None:
        self.closed = True


def tool_call(name: str, arguments: dict[str, Any], call_id: str = "call_1") -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments=arguments)


def reply(
    text: str = "", tool_calls: list[ToolCallRequest] | None = None, tokens: int = 10
) -> ChatResponse:
    return ChatResponse(
        text=text,
        tool_calls=tool_calls or [],
        usage=Usage(prompt_tokens=tokens, completion_tokens=tokens, total_tokens=2 * tokens),
        finish_reason="tool_calls" if tool_calls else "stop",
    )
