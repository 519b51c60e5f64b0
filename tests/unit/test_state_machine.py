"""Unit tests for the explicit run and agent state machines.

Illegal transitions must fail loudly.
"""

from __future__ import annotations

import pytest

from automation_engine.core.state_machine import (
    AgentState,
    IllegalTransitionError,
    RunState,
    agent_machine,
    run_machine,
)


def test_run_lifecycle() -> None:
    machine = run_machine()
    assert machine.state is RunState.IDLE
    machine.transition(RunState.RUNNING)
    machine.transition(RunState.COMPLETED)
    assert machine.is_terminal
    assert machine.history == [RunState.IDLE, RunState.RUNNING, RunState.COMPLETED]


def test_run_cannot_skip_running() -> None:
    machine = run_machine()
    with pytest.raises(IllegalTransitionError):
        machine.transition(RunState.COMPLETED)


def test_terminal_run_states_are_final() -> None:
    machine = run_machine()
    machine.transition(RunState.RUNNING)
    machine.transition(RunState.FAILED)
    with pytest.raises(IllegalTransitionError):
        machine.transition(RunState.RUNNING)


def test_agent_loop_transitions() -> None:
    machine = agent_machine()
    for state in (
        AgentState.REASONING,
        AgentState.TOOL_DISPATCH,
        AgentState.REASONING,
        AgentState.FINISHED,
    ):
        machine.transition(state)
    assert machine.is_terminal


def test_agent_budget_from_dispatch() -> None:
    machine = agent_machine()
    machine.transition(AgentState.REASONING)
    machine.transition(AgentState.TOOL_DISPATCH)
    machine.transition(AgentState.STEP_BUDGET_EXCEEDED)
    assert machine.is_terminal


def test_agent_cannot_finish_from_dispatch() -> None:
    machine = agent_machine()
    machine.transition(AgentState.REASONING)
    machine.transition(AgentState.TOOL_DISPATCH)
    with pytest.raises(IllegalTransitionError, match="tool_dispatch -> finished"):
        machine.transition(AgentState.FINISHED)
