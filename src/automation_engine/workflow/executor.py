"""Executes a single workflow step."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from automation_engine.errors import InvocationError
from automation_engine.workflow.context import RunContext
from automation_engine.workflow.models import StepDefinition
from automation_engine.workflow.templates import VariableResolver

if TYPE_CHECKING:
    from automation_engine.credentials import CredentialProvider
    from automation_engine.engine import EngineContext

logger = logging.getLogger(__name__)


class StepExecutor:
    """Looks up, resolves and invokes one step.

    The executor never writes to the run context: it returns the output and
    leaves publication to the orchestrator.
    """

    def __init__(self, engine: EngineContext) -> None:
        self.engine = engine

    async def execute(
        self,
        step: StepDefinition,
        context: RunContext,
        *,
        credentials: CredentialProvider | None = None,
    ) -> Any:
        # ModuleNotFound and ResolutionError propagate unwrapped.
        entry = self.engine.registry.get(step.module, step_id=step.id)
        arguments = VariableResolver(context, step_id=step.id).resolve(step.inputs)

        started = time.perf_counter()
        try:
            result = await entry.invoke(arguments, engine=self.engine, credentials=credentials)
        except ValidationError as e:
            raise InvocationError(
                step_id=step.id,
                module=step.module,
                cause=ValueError(f"invalid inputs: {e.errors(include_url=False)}"),
            ) from e
        except Exception as e:
            raise InvocationError(step_id=step.id, module=step.module, cause=e) from e

        logger.debug(
            "Step completed",
            extra={
                "step_id": step.id,
                "module_path": step.module,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return result
