"""Static checks for workflow definitions before they are accepted or run."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from automation_engine.credentials import RequiredCredential, analyze_credentials
from automation_engine.errors import ConfigurationError
from automation_engine.registry import ModuleRegistry
from automation_engine.workflow.graph import DependencyGraph
from automation_engine.workflow.models import WorkflowDefinition

logger = logging.getLogger(__name__)

_DISPLAY_EXPECTATIONS: dict[str, str] = {
    "table": "an array of objects",
    "list": "an array",
    "text": "a string",
    "markdown": "a string",
    "number": "a number",
    "image": "an image URL",
    "images": "an array of image URLs",
}

# Modules whose result is a single scalar value, never an array of rows.
_SCALAR_FUNCTIONS = frozenset({"upper", "lower", "truncate", "join", "stringify", "evaluate"})


def parse_workflow(data: Mapping[str, Any] | str | bytes) -> WorkflowDefinition:
    """Parse a workflow document (mapping or JSON text).

    Raises:
        ConfigurationError: If the document is not valid JSON or does not
            match the definition schema.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Workflow is not valid JSON: {e}") from e
    if not isinstance(data, Mapping):
        raise ConfigurationError("Workflow document must be a JSON object")
    try:
        return WorkflowDefinition.model_validate(data)
    except ValidationError as e:
        messages = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors(include_url=False)
        ]
        raise ConfigurationError("Invalid workflow definition: " + "; ".join(messages)) from e


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    required_credentials: list[RequiredCredential] = field(default_factory=list)
    definition: WorkflowDefinition | None = None

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_json(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "requiredCredentials": [c.to_json() for c in self.required_credentials],
        }


def _check_inputs(definition: WorkflowDefinition, registry: ModuleRegistry) -> list[str]:
    errors: list[str] = []
    for step in definition.steps:
        entry = registry.find(step.module)
        if entry is None:
            continue
        declared = {p.name for p in entry.parameters}
        for name in step.inputs:
            if name not in declared:
                errors.append(f"Step {step.id!r}: unknown input {name!r} for {step.module}")
        for p in entry.parameters:
            if p.required and p.name not in step.inputs:
                errors.append(f"Step {step.id!r}: missing required input {p.name!r}")
    return errors


def output_display_warnings(definition: WorkflowDefinition) -> list[str]:
    display = definition.config.output_display
    if display is None:
        return []
    last = definition.steps[-1]
    warnings: list[str] = []
    expected = _DISPLAY_EXPECTATIONS.get(display.type)
    if expected is not None:
        warnings.append(
            f"Output display is {display.type!r}: final step {last.id!r} should return {expected}"
        )
    if display.type == "table":
        if not display.columns:
            warnings.append("Table display should define columns")
        if last.module.rsplit(".", 1)[-1] in _SCALAR_FUNCTIONS:
            warnings.append(
                f"Step {last.id!r} uses {last.module}, which returns a single value, "
                "but a table display requires an array"
            )
    return warnings


def validate_workflow(
    document: WorkflowDefinition | Mapping[str, Any] | str, registry: ModuleRegistry
) -> ValidationReport:
    """Collect every problem with a definition instead of stopping at the first."""
    report = ValidationReport()
    try:
        definition = (
            document if isinstance(document, WorkflowDefinition) else parse_workflow(document)
        )
    except ConfigurationError as e:
        report.errors.append(str(e))
        return report
    report.definition = definition

    report.errors.extend(registry.validate_paths(definition.module_paths()))
    report.errors.extend(_check_inputs(definition, registry))
    try:
        DependencyGraph.build(definition.steps).plan()
    except ConfigurationError as e:
        report.errors.append(str(e))

    report.warnings.extend(output_display_warnings(definition))
    report.required_credentials = analyze_credentials(definition)

    if report.errors:
        logger.info(
            "Workflow failed validation",
            extra={"workflow": definition.name, "errors": len(report.errors)},
        )
    return report
