"""Unit tests for the tool-calling agent."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable

import pytest
from fakes import reply, tool_call

from automation_engine.agent import ToolCallingAgent, ToolFilter
from automation_engine.agent.agent import FINISH_REASON_BUDGET
from automation_engine.agent.events import (
    AgentStep,
    FinishEvent,
    TextDeltaEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from automation_engine.core.state_machine import AgentState
from automation_engine.credentials import StaticCredentialProvider
from automation_engine.engine import EngineContext
from automation_engine.errors import RunCancelled
from automation_engine.llm.provider import ToolCallRequest
from automation_engine.workflow.pipeline import CancellationToken


def test_single_tool_call_then_answer(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine(
        [
            reply(tool_calls=[tool_call("utilities_math_evaluate", {"expression": "2+2"})]),
            reply("2 + 2 = 4"),
        ]
    )
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter.preset("utilities"))
    result = asyncio.run(agent.run("What is 2+2?"))

    assert result.state is AgentState.FINISHED
    assert len(result.tool_calls) == 1
    record = result.tool_calls[0]
    assert record.tool_name == "utilities_math_evaluate"
    assert record.result == 4
    assert not record.is_error
    assert "4" in result.text
    assert result.usage.total_tokens == 40

    model = engine.chat_model()
    tool_messages = [m for m in model.calls[1]["messages"] if m["role"] == "tool"]
    assert tool_messages == [{"role": "tool", "tool_call_id": "call_1", "content": "4"}]


def test_step_budget_stops_a_looping_model(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine(
        [reply("thinking", tool_calls=[tool_call("utilities_math_evaluate", {"expression": "1"})])]
    )
    agent = ToolCallingAgent(engine, max_steps=1, tool_filter=ToolFilter.preset("utilities"))
    result = asyncio.run(agent.run("loop forever"))

    assert result.state is AgentState.STEP_BUDGET_EXCEEDED
    assert result.budget_exceeded
    assert result.finish_reason == FINISH_REASON_BUDGET
    assert len(result.tool_calls) == 1
    assert len(engine.chat_model().calls) == 1
    assert result.text == "thinking"


def test_budget_text_joins_every_turn(make_engine: Callable[..., EngineContext]) -> None:
    call = tool_call("utilities_math_evaluate", {"expression": "1"})
    engine = make_engine([reply("first", [call]), reply("", [call]), reply("third", [call])])
    agent = ToolCallingAgent(engine, max_steps=3, tool_filter=ToolFilter.preset("utilities"))
    result = asyncio.run(agent.run("go"))

    assert result.budget_exceeded
    assert len(result.steps) == 3
    assert result.text == "first\nthird"


def test_tool_errors_are_fed_back_to_the_model(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine(
        [
            reply(
                tool_calls=[
                    tool_call("utilities_math_evaluate", {"expression": "1/0"}, "c1"),
                    tool_call("no_such_tool", {}, "c2"),
                    tool_call("utilities_math_evaluate", {"wrong": 1}, "c3"),
                ]
            ),
            reply("I could not compute that."),
        ]
    )
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter.preset("utilities"))
    result = asyncio.run(agent.run("divide"))

    assert result.state is AgentState.FINISHED
    assert [r.is_error for r in result.tool_calls] == [True, True, True]
    assert "unknown tool" in result.tool_calls[1].result["message"]
    assert "invalid arguments" in result.tool_calls[2].result["message"]

    second_turn = engine.chat_model().calls[1]["messages"]
    fed_back = [json.loads(m["content"]) for m in second_turn if m["role"] == "tool"]
    assert all(payload["error"] is True for payload in fed_back)
    assert [m["tool_call_id"] for m in second_turn if m["role"] == "tool"] == ["c1", "c2", "c3"]


def test_malformed_tool_arguments_become_tool_errors(
    make_engine: Callable[..., EngineContext],
) -> None:
    bad = ToolCallRequest(
        id="c1",
        name="utilities_math_evaluate",
        arguments={},
        raw_arguments="{not json",
        arguments_error="Expecting property name",
    )
    engine = make_engine([reply(tool_calls=[bad]), reply("sorry")])
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter.preset("utilities"))
    result = asyncio.run(agent.run("x"))

    assert result.tool_calls[0].is_error
    assert "not valid JSON" in result.tool_calls[0].result["message"]
    assistant = engine.chat_model().calls[1]["messages"][2]
    assert assistant["tool_calls"][0]["function"]["arguments"] == "{not json"


def test_stream_emits_events_in_order(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine(
        [
            reply("Let me check", [tool_call("utilities_string_upper", {"text": "hi"})]),
            reply("Result is HI"),
        ]
    )
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter.preset("utilities"))
    steps: list[AgentStep] = []
    deltas: list[str] = []

    async def collect() -> list[object]:
        return [
            event
            async for event in agent.stream(
                "shout", on_step=steps.append, on_text_delta=deltas.append
            )
        ]

    events = asyncio.run(collect())
    kinds = [type(e) for e in events]

    assert kinds == [
        TextDeltaEvent,
        TextDeltaEvent,
        TextDeltaEvent,
        ToolCallEvent,
        ToolResultEvent,
        TextDeltaEvent,
        TextDeltaEvent,
        TextDeltaEvent,
        FinishEvent,
    ]
    assert "".join(deltas) == "Let me checkResult is HI"
    assert events[4].to_json()["result"] == "HI"
    assert [s.index for s in steps] == [0, 1]
    finish = events[-1]
    assert isinstance(finish, FinishEvent)
    assert finish.result.text == "Result is HI"
    assert finish.to_json()["type"] == "finish"


def test_run_streaming_supports_async_callbacks(
    make_engine: Callable[..., EngineContext],
) -> None:
    engine = make_engine([reply("all done")])
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter.preset("utilities"))
    seen: list[str] = []

    async def on_delta(text: str) -> None:
        seen.append(text)

    result = asyncio.run(agent.run_streaming("hi", on_text_delta=on_delta))
    assert result.text == "all done"
    assert seen == ["all ", "done"]


def test_agent_offers_filtered_tools(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine([reply("ok")])
    agent = ToolCallingAgent(
        engine, tool_filter=ToolFilter(names=("utilities_string_upper",))
    )
    asyncio.run(agent.run("hi"))
    offered = engine.chat_model().calls[0]["tools"]
    assert [t["function"]["name"] for t in offered] == ["utilities_string_upper"]


def test_no_tools_sends_none(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine([reply("ok")])
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter())
    asyncio.run(agent.run("hi"))
    assert engine.chat_model().calls[0]["tools"] is None


def test_cancellation_before_first_turn(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine([reply("never")])
    token = CancellationToken()
    token.cancel("user aborted")
    agent = ToolCallingAgent(engine)
    with pytest.raises(RunCancelled, match="user aborted"):
        asyncio.run(agent.run("hi", cancellation=token))
    assert engine.chat_model().calls == []


def test_max_steps_must_be_positive(engine: EngineContext) -> None:
    with pytest.raises(ValueError):
        ToolCallingAgent(engine, max_steps=0)


def test_result_json_shape(make_engine: Callable[..., EngineContext]) -> None:
    engine = make_engine([reply("fine")])
    result = asyncio.run(ToolCallingAgent(engine).run("hi"))
    payload = result.to_json()
    assert payload["text"] == "fine"
    assert payload["state"] == "finished"
    assert payload["finishReason"] == "stop"
    assert payload["usage"] == {"promptTokens": 10, "completionTokens": 10, "totalTokens": 20}


def test_agent_adapts_after_a_failing_operation(
    make_engine: Callable[..., EngineContext], caplog: pytest.LogCaptureFixture
) -> None:
    engine = make_engine(
        [
            reply(tool_calls=[tool_call("utilities_math_average", {"values": []})]),
            reply("adapted"),
        ]
    )
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter.preset("utilities"))
    with caplog.at_level(logging.WARNING, logger="automation_engine"):
        result = asyncio.run(agent.run("average nothing"))

    assert result.text == "adapted"
    assert result.state is AgentState.FINISHED
    (record,) = result.tool_calls
    assert record.is_error
    assert record.result["message"] == "Cannot average an empty list"
    (warning,) = [r for r in caplog.records if r.getMessage() == "Tool invocation failed"]
    assert warning.module_path == "utilities.math.average"  # type: ignore[attr-defined]


class UnreachableVault:
    async def get(self, platform: str) -> None:
        raise ConnectionError("vault unreachable")


def test_credential_provider_failures_are_fed_back(
    make_engine: Callable[..., EngineContext],
) -> None:
    engine = make_engine(
        [
            reply(
                tool_calls=[
                    tool_call("devtools_github_get_issue", {"repository": "o/r", "number": 1})
                ]
            ),
            reply("recovered"),
        ],
        credentials_override=UnreachableVault(),
    )
    agent = ToolCallingAgent(engine, tool_filter=ToolFilter(names=("devtools_github_get_issue",)))
    result = asyncio.run(agent.run("read issue 1"))

    assert result.text == "recovered"
    (record,) = result.tool_calls
    assert record.is_error
    assert "vault unreachable" in record.result["message"]


def test_credentials_override_takes_precedence(
    make_engine: Callable[..., EngineContext],
) -> None:
    engine = make_engine(credentials_override=UnreachableVault())
    override = StaticCredentialProvider({"github": "ghp_override"})
    agent = ToolCallingAgent(engine, credentials=override)
    assert agent.tools().credentials is override
