"""Built-in operations."""

from types import ModuleType

from automation_engine.operations import ai, github, http, utilities
from automation_engine.registry import ModuleRegistry

BUILTIN_MODULES: tuple[ModuleType, ...] = (utilities, http, github, ai)


def default_registry() -> ModuleRegistry:
    return ModuleRegistry.from_modules(*BUILTIN_MODULES)


__all__ = ["BUILTIN_MODULES", "default_registry"]
