"""OpenAI chat provider implementation."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from automation_engine.core.config import LLMConfig
from automation_engine.llm.provider import (
    ChatChunk,
    ChatResponse,
    LLMProvider,
    ToolCallRequest,
    Usage,
)

logger = logging.getLogger(__name__)


def _parse_arguments(call_id: str, name: str, raw: str) -> ToolCallRequest:
    try:
        parsed = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        return ToolCallRequest(
            id=call_id, name=name, arguments={}, raw_arguments=raw, arguments_error=str(e)
        )
    if not isinstance(parsed, dict):
        return ToolCallRequest(
            id=call_id,
            name=name,
            arguments={},
            raw_arguments=raw,
            arguments_error="arguments must be a JSON object",
        )
    return ToolCallRequest(id=call_id, name=name, arguments=parsed, raw_arguments=raw)


def _usage(raw: Any) -> Usage:
    if raw is None:
        return Usage()
    return Usage(
        prompt_tokens=raw.prompt_tokens or 0,
        completion_tokens=raw.completion_tokens or 0,
        total_tokens=raw.total_tokens or 0,
    )


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, config: LLMConfig, client: AsyncOpenAI | None = None) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: LLM configuration.
            client: Pre-built client (tests, custom transports).

        Raises:
            ValueError: If API key is not provided.
        """
        if client is None and not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        self.client = client or AsyncOpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.request_timeout_seconds,
        )
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.info(f"OpenAI provider initialized with model: {self.model}")

    def _request(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        max_tokens: int | None,
        temperature: float | None,
        kwargs: dict[str, Any],
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.temperature,
            **kwargs,
        }
        if max_tokens is not None:
            request["max_tokens"] = max_tokens
        if tools:
            request["tools"] = tools
            request.setdefault("tool_choice", "auto")
        return request

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> ChatResponse:
        logger.debug(f"Generating chat completion with {len(messages)} messages")

        response = await self.client.chat.completions.create(
            **self._request(messages, tools, max_tokens, temperature, kwargs)
        )

        choice = response.choices[0]
        message = choice.message
        calls = [
            _parse_arguments(call.id, call.function.name, call.function.arguments or "")
            for call in (message.tool_calls or [])
        ]
        content = message.content or ""
        logger.debug(f"Generated {len(content)} characters and {len(calls)} tool calls")

        return ChatResponse(
            text=content,
            tool_calls=calls,
            usage=_usage(response.usage),
            finish_reason=choice.finish_reason or "stop",
        )

    async def stream_chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatChunk]:
        logger.debug(f"Streaming chat completion with {len(messages)} messages")

        request = self._request(messages, tools, max_tokens, temperature, kwargs)
        request["stream"] = True
        request["stream_options"] = {"include_usage": True}
        stream = await self.client.chat.completions.create(**request)

        text_parts: list[str] = []
        # Tool call fragments arrive keyed by index; id and name come first.
        partial_calls: dict[int, dict[str, str]] = {}
        finish_reason = "stop"
        usage = Usage()

        async for chunk in stream:
            if chunk.usage is not None:
                usage = _usage(chunk.usage)
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = choice.delta
            if delta.content:
                text_parts.append(delta.content)
                yield ChatChunk(delta=delta.content)
            for fragment in delta.tool_calls or []:
                slot = partial_calls.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
                if fragment.id:
                    slot["id"] = fragment.id
                if fragment.function is not None:
                    if fragment.function.name:
                        slot["name"] += fragment.function.name
                    if fragment.function.arguments:
                        slot["arguments"] += fragment.function.arguments
            if choice.finish_reason:
                finish_reason = choice.finish_reason

        calls = [
            _parse_arguments(slot["id"], slot["name"], slot["arguments"])
            for _index, slot in sorted(partial_calls.items())
        ]
        yield ChatChunk(
            response=ChatResponse(
                text="".join(text_parts),
                tool_calls=calls,
                usage=usage,
                finish_reason=finish_reason,
            )
        )

    async def aclose(self) -> None:
        await self.client.close()
