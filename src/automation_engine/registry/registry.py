"""The module registry: an immutable catalog of invocable operations."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType, ModuleType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, create_model

from automation_engine.errors import ConfigurationError, ModuleNotFound
from automation_engine.registry.spec import (
    SPEC_ATTRIBUTE,
    ModulePath,
    OperationSpec,
    ParameterSpec,
    ParamType,
)

logger = logging.getLogger(__name__)

_PYTHON_TYPES: dict[ParamType, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "object": dict[str, Any],
    "array": list[Any],
    "any": Any,
}


def _build_input_model(spec: OperationSpec) -> type[BaseModel]:
    fields: dict[str, Any] = {}
    for p in spec.parameters:
        annotation = _PYTHON_TYPES[p.type]
        if p.required:
            fields[p.name] = (annotation, Field(..., description=p.description))
        else:
            fields[p.name] = (annotation | None, Field(p.default, description=p.description))
    model_name = "".join(part.title() for part in spec.path.tool_name.split("_")) + "Input"
    return create_model(  # type: ignore[call-overload,no-any-return]
        model_name,
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )


def _check_signature(func: Callable[..., Any], spec: OperationSpec) -> None:
    sig = inspect.signature(func)
    params = sig.parameters
    accepts_kwargs = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())
    declared = {p.name for p in spec.parameters}

    for name in declared:
        if name not in params and not accepts_kwargs:
            raise ConfigurationError(
                f"{spec.path}: declared parameter {name!r} is not accepted by {func.__name__}()"
            )

    for name, p in params.items():
        if p.kind in (inspect.Parameter.VAR_KEYWORD, inspect.Parameter.VAR_POSITIONAL):
            continue
        if name == "engine":
            continue
        if p.default is inspect.Parameter.empty and name not in declared:
            raise ConfigurationError(
                f"{spec.path}: required argument {name!r} of {func.__name__}() is not declared"
            )

    if spec.needs_engine and "engine" not in params and not accepts_kwargs:
        raise ConfigurationError(f"{spec.path}: needs_engine requires an 'engine' argument")


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """One registered operation. Immutable at runtime."""

    spec: OperationSpec
    func: Callable[..., Any]
    input_model: type[BaseModel]

    @staticmethod
    def from_function(func: Callable[..., Any]) -> RegistryEntry:
        spec = getattr(func, SPEC_ATTRIBUTE, None)
        if not isinstance(spec, OperationSpec):
            raise ConfigurationError(f"{func!r} is not a declared operation")
        _check_signature(func, spec)
        return RegistryEntry(spec=spec, func=func, input_model=_build_input_model(spec))

    @property
    def path(self) -> ModulePath:
        return self.spec.path

    @property
    def category(self) -> str:
        return self.spec.path.category

    @property
    def module(self) -> str:
        return self.spec.path.module

    @property
    def function(self) -> str:
        return self.spec.path.function

    @property
    def description(self) -> str:
        return self.spec.description

    @property
    def signature(self) -> str:
        return self.spec.signature

    @property
    def parameters(self) -> tuple[ParameterSpec, ...]:
        return self.spec.parameters

    @property
    def platform(self) -> str:
        """Credential platform; defaults to the module name."""
        return self.spec.platform or self.spec.path.module

    def json_schema(self, *, exclude: Iterable[str] = ()) -> dict[str, Any]:
        skip = set(exclude)
        visible = [p for p in self.spec.parameters if p.name not in skip]
        return {
            "type": "object",
            "properties": {p.name: p.json_schema() for p in visible},
            "required": [p.name for p in visible if p.required],
            "additionalProperties": False,
        }

    def validate_arguments(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        """Validate against the declared parameters; returns only supplied values."""
        model = self.input_model.model_validate(dict(arguments))
        return {name: getattr(model, name) for name in model.model_fields_set}

    async def invoke(
        self, arguments: Mapping[str, Any], *, engine: Any = None, credentials: Any = None
    ) -> Any:
        """Validate and call the operation.

        Engine-aware operations also receive the run's credential provider when
        they accept a `credentials` argument and one is supplied.
        """
        kwargs = self.validate_arguments(arguments)
        if self.spec.needs_engine:
            kwargs["engine"] = engine
            accepted = inspect.signature(self.func).parameters
            if credentials is not None and "credentials" in accepted:
                kwargs["credentials"] = credentials

        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)
        # Blocking operations (requests, PyGithub) run off the event loop.
        return await asyncio.to_thread(functools.partial(self.func, **kwargs))


class ModuleRegistry:
    """Static catalog of operations keyed by `category.module.function`.

    Built and validated once; lookups never mutate it, so it can be shared by
    any number of concurrent runs and agents.
    """

    def __init__(self, entries: Iterable[RegistryEntry]) -> None:
        table: dict[str, RegistryEntry] = {}
        for entry in entries:
            key = str(entry.path)
            if key in table:
                raise ConfigurationError(f"Duplicate module path registered: {key}")
            table[key] = entry
        self._entries: Mapping[str, RegistryEntry] = MappingProxyType(table)
        logger.debug("Module registry loaded", extra={"operations": len(table)})

    @classmethod
    def from_functions(cls, functions: Iterable[Callable[..., Any]]) -> ModuleRegistry:
        return cls(RegistryEntry.from_function(func) for func in functions)

    @classmethod
    def from_modules(cls, *modules: ModuleType) -> ModuleRegistry:
        """Collect every declared operation defined in the given modules."""
        functions: list[Callable[..., Any]] = []
        for module in modules:
            for _name, value in vars(module).items():
                if callable(value) and isinstance(getattr(value, SPEC_ATTRIBUTE, None), OperationSpec):
                    if getattr(value, "__module__", None) == module.__name__:
                        functions.append(value)
        return cls.from_functions(functions)

    def __contains__(self, path: object) -> bool:
        return str(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self._entries.values())

    def find(self, path: str | ModulePath) -> RegistryEntry | None:
        return self._entries.get(str(path))

    def get(self, path: str | ModulePath, *, step_id: str | None = None) -> RegistryEntry:
        entry = self._entries.get(str(path))
        if entry is None:
            raise ModuleNotFound(str(path), step_id=step_id)
        return entry

    def categories(self) -> list[str]:
        return sorted({entry.category for entry in self})

    def entries(self, categories: Iterable[str] | None = None) -> list[RegistryEntry]:
        if categories is None:
            return list(self)
        wanted = {c.lower() for c in categories}
        return [entry for entry in self if entry.category in wanted]

    def validate_paths(self, paths: Iterable[str]) -> list[str]:
        """Return one error line per path that is malformed or unknown."""
        errors: list[str] = []
        for path in paths:
            try:
                ModulePath.parse(path)
            except ConfigurationError as e:
                errors.append(str(e))
                continue
            if path not in self._entries:
                errors.append(f"Module {path!r} not found in registry")
        return errors

    def render_documentation(self) -> str:
        """Markdown catalog of every operation, grouped by category and module."""
        lines: list[str] = ["# Available modules", ""]
        for category in self.categories():
            lines.append(f"## {category}")
            modules: dict[str, list[RegistryEntry]] = {}
            for entry in self.entries([category]):
                modules.setdefault(entry.module, []).append(entry)
            for module_name in sorted(modules):
                lines.append(f"### {category}.{module_name}")
                for entry in sorted(modules[module_name], key=lambda e: e.function):
                    lines.append(f"- `{entry.path}` - {entry.description}")
                    lines.append(f"  - signature: `{entry.signature}`")
                    if entry.spec.example:
                        lines.append(f"  - example: `{entry.spec.example}`")
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"
