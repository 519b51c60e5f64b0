"""Error taxonomy for the execution core.

Configuration problems are detected before or at run start and are never
retried. Resolution and invocation errors abort a run. Agent tool errors are
the only non-terminal kind: they are fed back to the model.
"""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(AutomationError):
    """A workflow definition cannot be executed as declared."""

    def __init__(self, message: str, *, unresolved: dict[str, list[str]] | None = None) -> None:
        super().__init__(message)
        self.unresolved: dict[str, list[str]] = dict(unresolved or {})


class ModuleNotFound(ConfigurationError):
    """A module path does not exist in the registry."""

    def __init__(self, path: str, *, step_id: str | None = None) -> None:
        where = f" (step {step_id!r})" if step_id else ""
        super().__init__(f"Module {path!r} not found in registry{where}")
        self.path = path
        self.step_id = step_id


class TemplateSyntaxError(ConfigurationError):
    """A `{{...}}` expression is malformed."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"Invalid template expression {{{{{expression}}}}}: {reason}")
        self.expression = expression
        self.reason = reason


class ResolutionError(AutomationError):
    """A template expression could not be resolved against the run context."""

    def __init__(
        self,
        *,
        step_id: str | None,
        expression: str,
        segment: str,
        reason: str,
    ) -> None:
        where = f"Step {step_id!r}: " if step_id else ""
        super().__init__(
            f"{where}cannot resolve {{{{{expression}}}}} at {segment!r}: {reason}"
        )
        self.step_id = step_id
        self.expression = expression
        self.segment = segment
        self.reason = reason


class InvocationError(AutomationError):
    """The operation behind a step failed."""

    def __init__(self, *, step_id: str, module: str, cause: BaseException) -> None:
        super().__init__(f"Step {step_id!r} ({module}) failed: {cause}")
        self.step_id = step_id
        self.module = module
        self.cause = cause


class RunCancelled(AutomationError):
    """A run was cancelled cooperatively at a wave boundary."""


class AgentToolError(AutomationError):
    """A tool call requested by the agent failed.

    Never raised out of the agent loop; converted into a tool result.
    """

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"Tool {tool_name!r} failed: {message}")
        self.tool_name = tool_name
        self.message = message

    def to_payload(self) -> dict[str, object]:
        return {"error": True, "tool": self.tool_name, "message": self.message}
