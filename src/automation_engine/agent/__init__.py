"""Tool-calling agent over the module registry."""

from automation_engine.agent.agent import ToolCallingAgent
from automation_engine.agent.events import (
    AgentEvent,
    AgentResult,
    AgentStep,
    FinishEvent,
    TextDeltaEvent,
    ToolCallEvent,
    ToolCallRecord,
    ToolResultEvent,
)
from automation_engine.agent.tools import (
    PRESETS,
    ToolDescriptor,
    ToolFilter,
    ToolGenerator,
    ToolSet,
)

__all__ = [
    "PRESETS",
    "AgentEvent",
    "AgentResult",
    "AgentStep",
    "FinishEvent",
    "TextDeltaEvent",
    "ToolCallEvent",
    "ToolCallRecord",
    "ToolCallingAgent",
    "ToolDescriptor",
    "ToolFilter",
    "ToolGenerator",
    "ToolResultEvent",
    "ToolSet",
]
