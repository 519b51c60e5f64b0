"""Projection of registry entries into agent-callable tools.

Tool names are the module path with dots replaced by underscores. Credential
parameters are never part of a tool's schema; their values are merged in at
call time from the credential provider.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from automation_engine.errors import AgentToolError
from automation_engine.registry import ModulePath, ModuleRegistry, RegistryEntry

if TYPE_CHECKING:
    from automation_engine.credentials import CredentialProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolFilter:
    """Which registry entries become tools.

    `names` accepts tool names (`utilities_math_evaluate`) or module paths
    (`utilities.math.evaluate`). With neither names, categories nor
    `include_all`, no tools are selected.
    """

    names: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    include_all: bool = False
    max_tools: int | None = None

    @classmethod
    def all(cls, max_tools: int | None = None) -> ToolFilter:
        return cls(include_all=True, max_tools=max_tools)

    @classmethod
    def preset(cls, name: str, max_tools: int | None = None) -> ToolFilter:
        try:
            base = PRESETS[name]
        except KeyError:
            raise ValueError(
                f"Unknown tool preset {name!r}; expected one of {', '.join(sorted(PRESETS))}"
            ) from None
        return cls(
            names=base.names,
            categories=base.categories,
            include_all=base.include_all,
            max_tools=max_tools if max_tools is not None else base.max_tools,
        )

    @classmethod
    def from_options(
        cls,
        *,
        preset: str | None = None,
        categories: Iterable[str] = (),
        names: Iterable[str] = (),
        max_tools: int | None = None,
    ) -> ToolFilter:
        """A preset, else explicit names/categories, else every tool."""
        if preset:
            return cls.preset(preset, max_tools=max_tools)
        categories, names = tuple(categories), tuple(names)
        if categories or names:
            return cls(names=names, categories=categories, max_tools=max_tools)
        return cls.all(max_tools=max_tools)

    def matches(self, entry: RegistryEntry) -> bool:
        if self.include_all:
            return True
        if entry.category in {c.lower() for c in self.categories}:
            return True
        return entry.path.tool_name in self.names or str(entry.path) in self.names


PRESETS: dict[str, ToolFilter] = {
    "social": ToolFilter(categories=("social",)),
    "communication": ToolFilter(categories=("communication",)),
    "ai": ToolFilter(categories=("ai",)),
    "utilities": ToolFilter(categories=("utilities",)),
    "all": ToolFilter(include_all=True),
}


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    name: str
    description: str
    parameters: dict[str, Any]
    path: ModulePath
    platform: str | None = None
    credential_param: str | None = None

    @classmethod
    def from_entry(cls, entry: RegistryEntry) -> ToolDescriptor:
        credential_param = entry.spec.credential_param
        exclude = (credential_param,) if credential_param else ()
        needs_credentials = entry.spec.platform is not None or credential_param is not None
        return cls(
            name=entry.path.tool_name,
            description=entry.description,
            parameters=entry.json_schema(exclude=exclude),
            path=entry.path,
            platform=entry.platform if needs_credentials else None,
            credential_param=credential_param,
        )

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def bind(self, toolset: ToolSet) -> BoundTool:
        return BoundTool(descriptor=self, toolset=toolset)


@dataclass(frozen=True, slots=True)
class BoundTool:
    descriptor: ToolDescriptor
    toolset: ToolSet

    async def __call__(self, arguments: Mapping[str, Any]) -> Any:
        return await self.toolset.invoke(self.descriptor.name, arguments)


def merge_credentials(
    entry: RegistryEntry, arguments: Mapping[str, Any], secret: Any
) -> dict[str, Any]:
    merged = dict(arguments)
    if secret is None:
        return merged
    credential_param = entry.spec.credential_param
    if credential_param is not None:
        if isinstance(secret, Mapping) and credential_param in secret:
            merged[credential_param] = secret[credential_param]
        else:
            merged[credential_param] = secret
    elif isinstance(secret, Mapping):
        for p in entry.parameters:
            if p.name in secret:
                merged.setdefault(p.name, secret[p.name])
    return merged


@dataclass
class ToolSet:
    """The tools offered to one agent invocation, with their invokers."""

    registry: ModuleRegistry
    credentials: CredentialProvider
    descriptors: list[ToolDescriptor]
    engine: Any = None
    _secrets: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self._by_name = {d.name: d for d in self.descriptors}

    def __len__(self) -> int:
        return len(self.descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def tools(self) -> dict[str, BoundTool]:
        return {d.name: d.bind(self) for d in self.descriptors}

    def to_openai(self) -> list[dict[str, Any]]:
        return [d.to_openai() for d in self.descriptors]

    async def _secret(self, platform: str) -> Any:
        if platform not in self._secrets:
            self._secrets[platform] = await self.credentials.get(platform)
        return self._secrets[platform]

    async def invoke(self, name: str, arguments: Mapping[str, Any]) -> Any:
        """Invoke a tool; every failure surfaces as `AgentToolError`."""
        descriptor = self._by_name.get(name)
        if descriptor is None:
            raise AgentToolError(name, "unknown tool")

        entry = self.registry.find(descriptor.path)
        if entry is None:
            raise AgentToolError(name, f"module {descriptor.path} is no longer registered")

        secret = None
        if descriptor.platform is not None:
            try:
                secret = await self._secret(descriptor.platform)
            except Exception as e:
                logger.warning(
                    "Credential lookup failed",
                    extra={"tool": name, "platform": descriptor.platform, "error": str(e)},
                )
                raise AgentToolError(
                    name,
                    f"credential lookup for platform {descriptor.platform!r} failed: "
                    f"{str(e) or type(e).__name__}",
                ) from e
            if secret is None and descriptor.credential_param is not None:
                raise AgentToolError(
                    name, f"no credentials configured for platform {descriptor.platform!r}"
                )

        try:
            return await entry.invoke(
                merge_credentials(entry, arguments, secret), engine=self.engine
            )
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors(include_url=False)
            )
            raise AgentToolError(name, f"invalid arguments: {details}") from e
        except AgentToolError:
            raise
        except Exception as e:
            logger.warning(
                "Tool invocation failed",
                extra={"tool": name, "module_path": str(descriptor.path), "error": str(e)},
            )
            raise AgentToolError(name, str(e) or type(e).__name__) from e


class ToolGenerator:
    def __init__(self, registry: ModuleRegistry, *, default_max_tools: int | None = None) -> None:
        self.registry = registry
        self.default_max_tools = default_max_tools

    def descriptors(self, tool_filter: ToolFilter) -> list[ToolDescriptor]:
        selected = sorted(
            (
                entry
                for entry in self.registry
                if not entry.spec.needs_engine and tool_filter.matches(entry)
            ),
            key=lambda e: str(e.path),
        )
        limit = tool_filter.max_tools if tool_filter.max_tools is not None else self.default_max_tools
        if limit is not None and len(selected) > limit:
            logger.info(
                "Tool set truncated",
                extra={"available": len(selected), "max_tools": limit},
            )
            selected = selected[:limit]
        return [ToolDescriptor.from_entry(entry) for entry in selected]

    def generate(
        self,
        tool_filter: ToolFilter,
        credentials: CredentialProvider,
        *,
        engine: Any = None,
    ) -> ToolSet:
        return ToolSet(
            registry=self.registry,
            credentials=credentials,
            descriptors=self.descriptors(tool_filter),
            engine=engine,
        )

    def list_tools(self, tool_filter: ToolFilter) -> list[dict[str, str]]:
        return [
            {"name": d.name, "description": d.description, "path": str(d.path)}
            for d in self.descriptors(tool_filter)
        ]

    def count_tools(self, tool_filter: ToolFilter) -> int:
        return len(self.descriptors(tool_filter))
