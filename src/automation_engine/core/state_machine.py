"""Explicit state machines for pipeline runs and agent runs.

Both machines are small, closed transition tables. Illegal transitions fail
loudly instead of being silently ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AgentState(str, Enum):
    IDLE = "idle"
    REASONING = "reasoning"
    TOOL_DISPATCH = "tool_dispatch"
    FINISHED = "finished"
    STEP_BUDGET_EXCEEDED = "step_budget_exceeded"


RUN_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.IDLE: {RunState.RUNNING},
    RunState.RUNNING: {RunState.COMPLETED, RunState.FAILED},
    RunState.COMPLETED: set(),
    RunState.FAILED: set(),
}

AGENT_TRANSITIONS: dict[AgentState, set[AgentState]] = {
    AgentState.IDLE: {AgentState.REASONING},
    AgentState.REASONING: {
        AgentState.TOOL_DISPATCH,
        AgentState.FINISHED,
        AgentState.STEP_BUDGET_EXCEEDED,
    },
    AgentState.TOOL_DISPATCH: {AgentState.REASONING, AgentState.STEP_BUDGET_EXCEEDED},
    AgentState.FINISHED: set(),
    AgentState.STEP_BUDGET_EXCEEDED: set(),
}


class IllegalTransitionError(ValueError):
    pass


S = TypeVar("S", bound=Enum)


@dataclass
class StateMachine(Generic[S]):
    """Tracks the current state and the ordered history of visited states."""

    state: S
    transitions: Mapping[S, set[S]]
    history: list[S] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.history.append(self.state)

    def transition(self, to: S) -> S:
        allowed = self.transitions.get(self.state, set())
        if to not in allowed:
            raise IllegalTransitionError(f"Illegal transition: {self.state.value} -> {to.value}")
        self.state = to
        self.history.append(to)
        return to

    @property
    def is_terminal(self) -> bool:
        return not self.transitions.get(self.state)


def run_machine() -> StateMachine[RunState]:
    return StateMachine(state=RunState.IDLE, transitions=RUN_TRANSITIONS)


def agent_machine() -> StateMachine[AgentState]:
    return StateMachine(state=AgentState.IDLE, transitions=AGENT_TRANSITIONS)
