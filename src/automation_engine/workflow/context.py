from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


class RunContext:
    """Per-run state: produced outputs plus read-only trigger and credentials.

    Each run owns exactly one instance. Only the orchestrator writes outputs,
    and only between waves.
    """

    def __init__(
        self,
        trigger: Mapping[str, Any] | None = None,
        credentials: Mapping[str, Any] | None = None,
        outputs: Mapping[str, Any] | None = None,
    ) -> None:
        self.trigger: Mapping[str, Any] = MappingProxyType(dict(trigger or {}))
        self.credentials: Mapping[str, Any] = MappingProxyType(dict(credentials or {}))
        self._outputs: dict[str, Any] = dict(outputs or {})
        self.deprecation_warnings: set[str] = set()

    @property
    def outputs(self) -> Mapping[str, Any]:
        return MappingProxyType(self._outputs)

    def has_output(self, name: str) -> bool:
        return name in self._outputs

    def get_output(self, name: str) -> Any:
        return self._outputs[name]

    def set_output(self, name: str, value: Any) -> None:
        self._outputs[name] = value

    def snapshot(self) -> dict[str, Any]:
        return {"trigger": dict(self.trigger), "outputs": dict(self._outputs)}
