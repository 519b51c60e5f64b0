"""Module registry package."""

from automation_engine.registry.registry import ModuleRegistry, RegistryEntry
from automation_engine.registry.spec import (
    ModulePath,
    OperationSpec,
    ParameterSpec,
    operation,
    param,
)

__all__ = [
    "ModulePath",
    "ModuleRegistry",
    "OperationSpec",
    "ParameterSpec",
    "RegistryEntry",
    "operation",
    "param",
]
