"""Agent trace events and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from automation_engine.core.state_machine import AgentState
from automation_engine.llm.provider import Usage


@dataclass(frozen=True, slots=True)
class TextDeltaEvent:
    type: ClassVar[str] = "text-delta"
    text: str

    def to_json(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True, slots=True)
class ToolCallEvent:
    type: ClassVar[str] = "tool-call"
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "args": self.args,
        }


@dataclass(frozen=True, slots=True)
class ToolResultEvent:
    type: ClassVar[str] = "tool-result"
    tool_call_id: str
    tool_name: str
    result: Any
    is_error: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "result": self.result,
            "isError": self.is_error,
        }


@dataclass(frozen=True, slots=True)
class ToolCallRecord:
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]
    result: Any
    is_error: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "args": self.args,
            "result": self.result,
            "isError": self.is_error,
        }

    def result_event(self) -> ToolResultEvent:
        return ToolResultEvent(
            tool_call_id=self.tool_call_id,
            tool_name=self.tool_name,
            result=self.result,
            is_error=self.is_error,
        )


@dataclass(frozen=True, slots=True)
class AgentStep:
    """One reasoning turn and the tool calls it requested."""

    index: int
    text: str
    tool_calls: tuple[ToolCallRecord, ...] = ()
    usage: Usage = field(default_factory=Usage)
    finish_reason: str = "stop"

    def to_json(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "text": self.text,
            "toolCalls": [c.to_json() for c in self.tool_calls],
            "usage": self.usage.to_json(),
            "finishReason": self.finish_reason,
        }


@dataclass(frozen=True, slots=True)
class AgentResult:
    text: str
    tool_calls: tuple[ToolCallRecord, ...]
    usage: Usage
    steps: tuple[AgentStep, ...]
    finish_reason: str
    state: AgentState

    @property
    def budget_exceeded(self) -> bool:
        return self.state is AgentState.STEP_BUDGET_EXCEEDED

    def to_json(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "toolCalls": [c.to_json() for c in self.tool_calls],
            "usage": self.usage.to_json(),
            "steps": [s.to_json() for s in self.steps],
            "finishReason": self.finish_reason,
            "state": self.state.value,
        }


@dataclass(frozen=True, slots=True)
class FinishEvent:
    type: ClassVar[str] = "finish"
    result: AgentResult

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "finishReason": self.result.finish_reason,
            "text": self.result.text,
            "usage": self.result.usage.to_json(),
            "state": self.result.state.value,
        }


AgentEvent = TextDeltaEvent | ToolCallEvent | ToolResultEvent | FinishEvent
