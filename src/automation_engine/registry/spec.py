"""Declared operation metadata.

Every invocable operation carries an explicit `OperationSpec` attached at
definition time by the `operation` decorator. The registry never parses
free-text signatures: parameter schemas come from `ParameterSpec` entries.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, TypeVar

from automation_engine.errors import ConfigurationError

ParamType = Literal["string", "number", "integer", "boolean", "object", "array", "any"]

SPEC_ATTRIBUTE = "__operation_spec__"

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True, slots=True)
class ModulePath:
    """A `category.module.function` key."""

    category: str
    module: str
    function: str

    @staticmethod
    def parse(value: str) -> ModulePath:
        parts = value.split(".") if isinstance(value, str) else []
        if len(parts) != 3 or not all(parts):
            raise ConfigurationError(
                f"Invalid module path {value!r}: expected 'category.module.function'"
            )
        category, module, function = parts
        if category != category.lower() or module != module.lower():
            raise ConfigurationError(
                f"Invalid module path {value!r}: category and module must be lowercase"
            )
        return ModulePath(category=category, module=module, function=function)

    @property
    def tool_name(self) -> str:
        return f"{self.category}_{self.module}_{self.function}".replace("-", "_")

    def __str__(self) -> str:
        return f"{self.category}.{self.module}.{self.function}"


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    name: str
    type: ParamType = "string"
    description: str = ""
    required: bool = True
    default: Any = None
    items: ParamType | None = None

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {}
        if self.type != "any":
            schema["type"] = self.type
        if self.type == "array":
            schema["items"] = {"type": self.items} if self.items and self.items != "any" else {}
        if self.description:
            schema["description"] = self.description
        if not self.required and self.default is not None:
            schema["default"] = self.default
        return schema


def param(
    name: str,
    type: ParamType = "string",
    description: str = "",
    *,
    required: bool = True,
    default: Any = None,
    items: ParamType | None = None,
) -> ParameterSpec:
    return ParameterSpec(
        name=name,
        type=type,
        description=description,
        required=required,
        default=default,
        items=items,
    )


@dataclass(frozen=True, slots=True)
class OperationSpec:
    path: ModulePath
    description: str
    parameters: tuple[ParameterSpec, ...] = field(default_factory=tuple)
    platform: str | None = None
    credential_param: str | None = None
    example: str | None = None
    needs_engine: bool = False

    @property
    def signature(self) -> str:
        """Display signature, e.g. ``upper({ text, locale? })``."""
        names = [p.name if p.required else f"{p.name}?" for p in self.parameters]
        inner = f"{{ {', '.join(names)} }}" if names else ""
        return f"{self.path.function}({inner})"


def operation(
    path: str,
    *,
    description: str,
    params: tuple[ParameterSpec, ...] | list[ParameterSpec] = (),
    platform: str | None = None,
    credential_param: str | None = None,
    example: str | None = None,
    needs_engine: bool = False,
) -> Callable[[F], F]:
    """Attach an `OperationSpec` to a function.

    The function itself is returned unchanged; registration happens when a
    `ModuleRegistry` is built from the functions (or their modules).
    """

    spec = OperationSpec(
        path=ModulePath.parse(path),
        description=description,
        parameters=tuple(params),
        platform=platform,
        credential_param=credential_param,
        example=example,
        needs_engine=needs_engine,
    )
    names = [p.name for p in spec.parameters]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Duplicate parameter names declared for {path!r}")
    if credential_param is not None and credential_param not in names:
        raise ConfigurationError(
            f"Credential parameter {credential_param!r} is not declared for {path!r}"
        )

    def decorator(func: F) -> F:
        setattr(func, SPEC_ATTRIBUTE, spec)
        return func

    return decorator
