"""The tool-calling agent.

A model-driven loop: each reasoning turn sends the history and the tool set
to the chat model; requested tool calls are dispatched concurrently and their
results (or errors) appended to the history; a turn without tool calls ends
the run. The step budget counts reasoning turns.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any

from automation_engine.agent.events import (
    AgentEvent,
    AgentResult,
    AgentStep,
    FinishEvent,
    TextDeltaEvent,
    ToolCallEvent,
    ToolCallRecord,
)
from automation_engine.agent.tools import ToolFilter, ToolGenerator, ToolSet
from automation_engine.core.state_machine import AgentState, agent_machine
from automation_engine.errors import AgentToolError, AutomationError, RunCancelled
from automation_engine.llm.provider import ChatResponse, LLMProvider, ToolCallRequest, Usage

if TYPE_CHECKING:
    from automation_engine.credentials import CredentialProvider
    from automation_engine.engine import EngineContext
    from automation_engine.workflow.pipeline import CancellationToken

logger = logging.getLogger(__name__)

StepCallback = Callable[[AgentStep], Awaitable[None] | None]
TextDeltaCallback = Callable[[str], Awaitable[None] | None]

FINISH_REASON_BUDGET = "step-budget-exceeded"


async def _notify(callback: Callable[[Any], Any] | None, value: Any) -> None:
    if callback is None:
        return
    outcome = callback(value)
    if inspect.isawaitable(outcome):
        await outcome


def _tool_content(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


def _assistant_message(response: ChatResponse) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": response.text or None,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {
                    "name": call.name,
                    "arguments": call.raw_arguments or json.dumps(call.arguments),
                },
            }
            for call in response.tool_calls
        ],
    }


class ToolCallingAgent:
    def __init__(
        self,
        engine: EngineContext,
        model: LLMProvider | None = None,
        *,
        max_steps: int | None = None,
        system_prompt: str | None = None,
        tool_filter: ToolFilter | None = None,
        credentials: CredentialProvider | None = None,
    ) -> None:
        settings = engine.config.agent
        self.engine = engine
        self.credentials = credentials if credentials is not None else engine.credentials
        self._model = model
        self.max_steps = max_steps if max_steps is not None else settings.max_steps
        if self.max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.system_prompt = system_prompt or settings.system_prompt
        self.tool_filter = tool_filter or ToolFilter.all()
        self.generator = ToolGenerator(engine.registry, default_max_tools=settings.max_tools)

    @property
    def model(self) -> LLMProvider:
        if self._model is None:
            self._model = self.engine.chat_model()
        return self._model

    def tools(self) -> ToolSet:
        """A fresh tool set for one invocation."""
        return self.generator.generate(
            self.tool_filter, self.credentials, engine=self.engine
        )

    async def run(
        self, prompt: str, *, cancellation: CancellationToken | None = None
    ) -> AgentResult:
        """Run to completion without streaming."""
        result: AgentResult | None = None
        async for event in self._loop(prompt, streaming=False, cancellation=cancellation):
            if isinstance(event, FinishEvent):
                result = event.result
        if result is None:
            raise AutomationError("Agent run ended without a result")
        return result

    async def stream(
        self,
        prompt: str,
        *,
        on_step: StepCallback | None = None,
        on_text_delta: TextDeltaCallback | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """Yield `text-delta`, `tool-call`, `tool-result` and `finish` events as they happen."""
        async for event in self._loop(
            prompt, streaming=True, cancellation=cancellation, on_step=on_step
        ):
            if isinstance(event, TextDeltaEvent):
                await _notify(on_text_delta, event.text)
            yield event

    async def run_streaming(
        self,
        prompt: str,
        *,
        on_step: StepCallback | None = None,
        on_text_delta: TextDeltaCallback | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AgentResult:
        """Consume the stream and return the collected result."""
        result: AgentResult | None = None
        async for event in self.stream(
            prompt, on_step=on_step, on_text_delta=on_text_delta, cancellation=cancellation
        ):
            if isinstance(event, FinishEvent):
                result = event.result
        if result is None:
            raise AutomationError("Agent run ended without a result")
        return result

    async def _reason(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None, streaming: bool
    ) -> AsyncIterator[TextDeltaEvent | ChatResponse]:
        if not streaming:
            yield await self.model.chat(messages, tools=tools)
            return
        response: ChatResponse | None = None
        async for chunk in self.model.stream_chat(messages, tools=tools):
            if chunk.delta:
                yield TextDeltaEvent(text=chunk.delta)
            if chunk.response is not None:
                response = chunk.response
        if response is None:
            raise AutomationError("Model stream ended without a final response")
        yield response

    async def _dispatch_one(self, toolset: ToolSet, call: ToolCallRequest) -> ToolCallRecord:
        try:
            if call.arguments_error is not None:
                raise AgentToolError(
                    call.name, f"arguments are not valid JSON: {call.arguments_error}"
                )
            result = await toolset.invoke(call.name, call.arguments)
        except AgentToolError as e:
            return ToolCallRecord(
                tool_call_id=call.id,
                tool_name=call.name,
                args=call.arguments,
                result=e.to_payload(),
                is_error=True,
            )
        return ToolCallRecord(
            tool_call_id=call.id, tool_name=call.name, args=call.arguments, result=result
        )

    async def _loop(
        self,
        prompt: str,
        *,
        streaming: bool,
        cancellation: CancellationToken | None = None,
        on_step: StepCallback | None = None,
    ) -> AsyncIterator[AgentEvent]:
        machine = agent_machine()
        toolset = self.tools()
        openai_tools = toolset.to_openai() or None
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": prompt},
        ]
        steps: list[AgentStep] = []
        records: list[ToolCallRecord] = []
        texts: list[str] = []
        usage = Usage()

        logger.info(
            "Agent run started",
            extra={"tools": len(toolset), "max_steps": self.max_steps, "streaming": streaming},
        )

        while True:
            if cancellation is not None and cancellation.cancelled:
                raise RunCancelled(cancellation.reason or "Agent run cancelled")
            machine.transition(AgentState.REASONING)

            response: ChatResponse | None = None
            async for item in self._reason(messages, openai_tools, streaming):
                if isinstance(item, ChatResponse):
                    response = item
                else:
                    yield item
            if response is None:
                raise AutomationError("Model turn ended without a response")
            usage = usage + response.usage
            if response.text:
                texts.append(response.text)

            if not response.tool_calls:
                machine.transition(AgentState.FINISHED)
                step = AgentStep(
                    index=len(steps),
                    text=response.text,
                    usage=response.usage,
                    finish_reason=response.finish_reason,
                )
                steps.append(step)
                await _notify(on_step, step)
                final_text = response.text
                finish_reason = response.finish_reason
                break

            machine.transition(AgentState.TOOL_DISPATCH)
            messages.append(_assistant_message(response))
            for call in response.tool_calls:
                yield ToolCallEvent(tool_call_id=call.id, tool_name=call.name, args=call.arguments)

            turn_records = await asyncio.gather(
                *(self._dispatch_one(toolset, call) for call in response.tool_calls)
            )
            for record in turn_records:
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": record.tool_call_id,
                        "content": _tool_content(record.result),
                    }
                )
                yield record.result_event()
            records.extend(turn_records)

            step = AgentStep(
                index=len(steps),
                text=response.text,
                tool_calls=tuple(turn_records),
                usage=response.usage,
                finish_reason="tool-calls",
            )
            steps.append(step)
            await _notify(on_step, step)

            if len(steps) >= self.max_steps:
                machine.transition(AgentState.STEP_BUDGET_EXCEEDED)
                final_text = "\n".join(texts)
                finish_reason = FINISH_REASON_BUDGET
                break

        result = AgentResult(
            text=final_text,
            tool_calls=tuple(records),
            usage=usage,
            steps=tuple(steps),
            finish_reason=finish_reason,
            state=machine.state,
        )
        logger.info(
            "Agent run finished",
            extra={
                "state": machine.state.value,
                "steps": len(steps),
                "tool_calls": len(records),
                "errors": sum(1 for r in records if r.is_error),
            },
        )
        yield FinishEvent(result=result)
