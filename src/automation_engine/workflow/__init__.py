"""Workflow definitions and their execution.

Import execution entry points from their modules
(`automation_engine.workflow.pipeline`, `automation_engine.workflow.validation`).
"""

from automation_engine.workflow.models import (
    StepDefinition,
    TriggerDefinition,
    WorkflowDefinition,
)

__all__ = ["StepDefinition", "TriggerDefinition", "WorkflowDefinition"]
