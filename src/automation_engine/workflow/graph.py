"""Dependency graph between workflow steps.

An edge A -> B exists iff B's inputs reference the output name A declares.
The graph is derived from the definition on every run and never persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from automation_engine.errors import ConfigurationError
from automation_engine.workflow.models import StepDefinition
from automation_engine.workflow.templates import RESERVED_NAMESPACES, referenced_names

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StepNode:
    step: StepDefinition
    requires: frozenset[str]
    provides: str | None

    @property
    def id(self) -> str:
        return self.step.id


class DependencyGraph:
    def __init__(self, nodes: Sequence[StepNode]) -> None:
        self.nodes: tuple[StepNode, ...] = tuple(nodes)
        self._by_id = {node.id: node for node in self.nodes}
        self.producers: dict[str, str] = {
            node.provides: node.id for node in self.nodes if node.provides is not None
        }

    @classmethod
    def build(cls, steps: Iterable[StepDefinition]) -> DependencyGraph:
        """Scan every step's inputs; raises `ConfigurationError` on bad declarations.

        Malformed templates surface here as `TemplateSyntaxError`, before any
        step is invoked.
        """
        nodes: list[StepNode] = []
        seen_ids: set[str] = set()
        seen_outputs: dict[str, str] = {}
        for step in steps:
            if step.id in seen_ids:
                raise ConfigurationError(f"Duplicate step id {step.id!r}")
            seen_ids.add(step.id)

            if step.output_as is not None:
                if step.output_as in RESERVED_NAMESPACES:
                    raise ConfigurationError(
                        f"Step {step.id!r}: output name {step.output_as!r} is reserved"
                    )
                if step.output_as in seen_outputs:
                    raise ConfigurationError(
                        f"Step {step.id!r}: output name {step.output_as!r} is already "
                        f"declared by step {seen_outputs[step.output_as]!r}"
                    )
                seen_outputs[step.output_as] = step.id

            nodes.append(
                StepNode(
                    step=step,
                    requires=frozenset(referenced_names(step.inputs)),
                    provides=step.output_as,
                )
            )
        return cls(nodes)

    def node(self, step_id: str) -> StepNode:
        return self._by_id[step_id]

    def edges(self) -> dict[str, list[str]]:
        """Producer step id -> consumer step ids, in declaration order."""
        result: dict[str, list[str]] = {node.id: [] for node in self.nodes}
        for node in self.nodes:
            for name in sorted(node.requires):
                producer = self.producers.get(name)
                if producer is not None and producer != node.id:
                    result[producer].append(node.id)
        return result

    def ready(self, completed: Iterable[str]) -> list[StepNode]:
        """Unfinished steps whose every required name was provided by a completed step."""
        done = set(completed)
        provided = {self._by_id[step_id].provides for step_id in done} - {None}
        return [
            node
            for node in self.nodes
            if node.id not in done and node.requires <= provided
        ]

    def initial_ready(self) -> list[StepNode]:
        return self.ready(())

    def plan(self) -> list[list[str]]:
        """Simulate execution and return the waves of step ids.

        Raises `ConfigurationError` listing every step that can never become
        ready (a cycle, or a name no step provides).
        """
        completed: list[str] = []
        waves: list[list[str]] = []
        while len(completed) < len(self.nodes):
            wave = [node.id for node in self.ready(completed)]
            if not wave:
                raise self.unresolved_error(completed)
            waves.append(wave)
            completed.extend(wave)
        return waves

    def unresolved_error(self, completed: Iterable[str]) -> ConfigurationError:
        done = set(completed)
        provided = {self._by_id[step_id].provides for step_id in done} - {None}
        unresolved: dict[str, list[str]] = {}
        for node in self.nodes:
            if node.id in done:
                continue
            unresolved[node.id] = sorted(node.requires - provided)

        parts: list[str] = []
        for step_id, names in unresolved.items():
            missing = [name for name in names if name not in self.producers]
            part = f"step {step_id!r} waits for {', '.join(map(repr, names))}"
            if missing:
                part += f" (never provided: {', '.join(map(repr, missing))})"
            parts.append(part)
        logger.error("Unresolvable step graph", extra={"unresolved": unresolved})
        return ConfigurationError(
            f"Unresolvable dependencies: {'; '.join(parts)}", unresolved=unresolved
        )
