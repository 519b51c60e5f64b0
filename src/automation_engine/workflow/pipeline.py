"""Wave-by-wave execution of a workflow's step graph.

A run moves through `idle -> running -> completed|failed`. Every step whose
dependencies are satisfied is dispatched concurrently as one wave; the
orchestrator awaits the whole wave, publishes its outputs, and recomputes the
ready set. Nothing is invoked unless every module exists and the graph can be
fully resolved.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from automation_engine.core.logging import run_logger
from automation_engine.core.state_machine import RunState, StateMachine, run_machine
from automation_engine.credentials import (
    CredentialProvider,
    RunCredentialProvider,
    load_credentials,
    referenced_platforms,
)
from automation_engine.errors import (
    AutomationError,
    ConfigurationError,
    ModuleNotFound,
    ResolutionError,
    RunCancelled,
)
from automation_engine.workflow.context import RunContext
from automation_engine.workflow.executor import StepExecutor
from automation_engine.workflow.graph import DependencyGraph, StepNode
from automation_engine.workflow.models import WorkflowDefinition
from automation_engine.workflow.templates import VariableResolver

if TYPE_CHECKING:
    from automation_engine.engine import EngineContext

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag, checked at wave boundaries."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class PipelineRun:
    workflow: WorkflowDefinition
    context: RunContext
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    machine: StateMachine[RunState] = field(default_factory=run_machine)
    waves: list[list[str]] = field(default_factory=list)
    error: Exception | None = None
    error_step: str | None = None

    @property
    def state(self) -> RunState:
        return self.machine.state

    @property
    def succeeded(self) -> bool:
        return self.machine.state is RunState.COMPLETED

    @property
    def invoked(self) -> list[str]:
        return [step_id for wave in self.waves for step_id in wave]


class PipelineOrchestrator:
    def __init__(
        self, engine: EngineContext, *, credentials: CredentialProvider | None = None
    ) -> None:
        self.engine = engine
        self.credentials = credentials if credentials is not None else engine.credentials
        self.executor = StepExecutor(engine)

    async def run(
        self,
        workflow: WorkflowDefinition,
        trigger_data: Mapping[str, Any] | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> PipelineRun:
        run = PipelineRun(workflow=workflow, context=RunContext(trigger=trigger_data))
        log = run_logger(__name__, run_id=run.run_id, workflow=workflow.name)
        run.machine.transition(RunState.RUNNING)
        log.info("Run started", extra={"steps": len(workflow.steps)})

        try:
            graph = self._prepare(workflow)
        except ConfigurationError as e:
            return self._fail(run, e, _config_error_step(e), log)

        try:
            platforms = _credential_platforms(workflow)
            credentials = await load_credentials(self.credentials, platforms)
        except Exception as e:
            log.exception("Credential lookup failed")
            return self._fail(run, e, None, log)
        run.context = RunContext(trigger=trigger_data, credentials=credentials)
        run_credentials = RunCredentialProvider(self.credentials, credentials, platforms)

        completed: list[str] = []
        while len(completed) < len(graph.nodes):
            if cancellation is not None and cancellation.cancelled:
                cancelled = RunCancelled(cancellation.reason or "Run cancelled")
                return self._fail(run, cancelled, None, log)

            wave = graph.ready(completed)
            if not wave:
                # plan() already guarantees progress; kept as a hard stop.
                error = graph.unresolved_error(completed)
                return self._fail(run, error, next(iter(error.unresolved), None), log)

            run.waves.append([node.id for node in wave])
            outputs, failures = await self._dispatch(wave, run.context, run_credentials)

            for node in wave:
                if node.id in outputs and node.provides is not None:
                    run.context.set_output(node.provides, outputs[node.id])
            if failures:
                step_id, error = failures[0]
                return self._fail(run, error, step_id, log)
            completed.extend(node.id for node in wave)

        run.machine.transition(RunState.COMPLETED)
        log.info("Run completed", extra={"waves": len(run.waves)})
        return run

    def _prepare(self, workflow: WorkflowDefinition) -> DependencyGraph:
        graph = DependencyGraph.build(workflow.steps)
        for step in workflow.steps:
            self.engine.registry.get(step.module, step_id=step.id)
        run_waves = graph.plan()
        logger.debug("Execution plan", extra={"waves": run_waves})
        return graph

    async def _dispatch(
        self, wave: list[StepNode], context: RunContext, credentials: CredentialProvider
    ) -> tuple[dict[str, Any], list[tuple[str, Exception]]]:
        outputs: dict[str, Any] = {}
        # Appended as each step fails, so index 0 is the first failure observed.
        failures: list[tuple[str, Exception]] = []

        async def _one(node: StepNode) -> None:
            try:
                outputs[node.id] = await self.executor.execute(
                    node.step, context, credentials=credentials
                )
            except AutomationError as e:
                failures.append((node.id, e))

        await asyncio.gather(*(_one(node) for node in wave))
        return outputs, failures

    def _fail(
        self,
        run: PipelineRun,
        error: Exception,
        step_id: str | None,
        log: logging.LoggerAdapter,  # type: ignore[type-arg]
    ) -> PipelineRun:
        run.error = error
        run.error_step = step_id
        run.machine.transition(RunState.FAILED)
        log.error(
            "Run failed",
            extra={"error_step": step_id, "error": str(error), "error_type": type(error).__name__},
        )
        return run


def _credential_platforms(workflow: WorkflowDefinition) -> set[str]:
    platforms = set(workflow.metadata.requires_credentials)
    for step in workflow.steps:
        platforms |= referenced_platforms(step.inputs)
    platforms |= referenced_platforms(workflow.config.return_value)
    return platforms


def _config_error_step(error: ConfigurationError) -> str | None:
    if isinstance(error, ModuleNotFound):
        return error.step_id
    if error.unresolved:
        return next(iter(error.unresolved))
    return None


class RunResult(BaseModel):
    """What callers of a workflow run see: `{success, output | error, errorStep}`."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    output: Any = None
    error: str | None = None
    error_step: str | None = Field(default=None, alias="errorStep")
    run_id: str | None = Field(default=None, alias="runId")

    def to_json(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "output": self.output, "runId": self.run_id}
        return {
            "success": False,
            "error": self.error,
            "errorStep": self.error_step,
            "runId": self.run_id,
        }


def resolve_return_value(workflow: WorkflowDefinition, context: RunContext) -> Any:
    """Resolve the declared return value against a finished context.

    Without a declared return value, the output of the last step (in
    declaration order) that declared an output name is returned.
    """
    if workflow.config.return_value is not None:
        return VariableResolver(context).resolve(workflow.config.return_value)
    for step in reversed(workflow.steps):
        if step.output_as is not None and context.has_output(step.output_as):
            return context.get_output(step.output_as)
    return None


async def execute_workflow(
    engine: EngineContext,
    workflow: WorkflowDefinition,
    trigger_data: Mapping[str, Any] | None = None,
    *,
    credentials: CredentialProvider | None = None,
    cancellation: CancellationToken | None = None,
) -> RunResult:
    orchestrator = PipelineOrchestrator(engine, credentials=credentials)
    run = await orchestrator.run(workflow, trigger_data, cancellation=cancellation)
    if not run.succeeded:
        return RunResult(
            success=False,
            error=str(run.error),
            error_step=run.error_step,
            run_id=run.run_id,
        )
    try:
        output = resolve_return_value(workflow, run.context)
    except ResolutionError as e:
        logger.error("Return value could not be resolved", extra={"run_id": run.run_id, "error": str(e)})
        return RunResult(success=False, error=str(e), error_step=None, run_id=run.run_id)
    return RunResult(success=True, output=output, run_id=run.run_id)


__all__ = [
    "CancellationToken",
    "PipelineOrchestrator",
    "PipelineRun",
    "RunResult",
    "execute_workflow",
    "resolve_return_value",
]
