"""AI operations: a single chat completion, and the tool-calling agent as a step."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

from automation_engine.agent import ToolCallingAgent, ToolFilter
from automation_engine.registry import operation, param

if TYPE_CHECKING:
    from automation_engine.credentials import CredentialProvider
    from automation_engine.engine import EngineContext

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


@operation(
    "ai.openai.create_completion",
    description="Generate text with an OpenAI chat model",
    params=(
        param("prompt", "string", "User prompt"),
        param("api_key", "string", "OpenAI API key"),
        param("system_prompt", "string", "Optional system instructions", required=False),
        param("model", "string", "Model name", required=False, default=DEFAULT_MODEL),
        param("temperature", "number", "Sampling temperature", required=False),
        param("max_tokens", "integer", "Maximum tokens to generate", required=False),
    ),
    platform="openai",
    credential_param="api_key",
    example='create_completion({ prompt: "Summarize {{trigger.text}}", api_key: "{{credential.openai}}" })',
)
async def create_completion(
    prompt: str,
    api_key: str,
    system_prompt: str | None = None,
    model: str = DEFAULT_MODEL,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> str:
    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    request: dict[str, Any] = {"model": model, "messages": messages}
    if temperature is not None:
        request["temperature"] = temperature
    if max_tokens is not None:
        request["max_tokens"] = max_tokens

    client = AsyncOpenAI(api_key=api_key)
    try:
        response = await client.chat.completions.create(**request)
    finally:
        await client.close()
    return response.choices[0].message.content or ""


@operation(
    "ai.agent.run",
    description="Run the tool-calling agent on a prompt and return its result",
    params=(
        param("prompt", "string", "Task for the agent"),
        param("system_prompt", "string", "Override the default system prompt", required=False),
        param("categories", "array", "Restrict tools to these categories", required=False, items="string"),
        param("tools", "array", "Restrict tools to these names or module paths", required=False, items="string"),
        param("max_steps", "integer", "Reasoning turn budget", required=False),
    ),
    needs_engine=True,
    example='run({ prompt: "Compute 2+2", categories: ["utilities"] })',
)
async def run_agent(
    prompt: str,
    engine: EngineContext,
    system_prompt: str | None = None,
    categories: list[str] | None = None,
    tools: list[str] | None = None,
    max_steps: int | None = None,
    credentials: CredentialProvider | None = None,
) -> dict[str, Any]:
    tool_filter = ToolFilter.from_options(categories=categories or (), names=tools or ())
    agent = ToolCallingAgent(
        engine,
        max_steps=max_steps,
        system_prompt=system_prompt,
        tool_filter=tool_filter,
        credentials=credentials,
    )
    result = await agent.run(prompt)
    return result.to_json()
