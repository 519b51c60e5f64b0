"""Credential providers and required-credential analysis.

Secrets are decrypted and stored elsewhere; the engine only sees a provider
mapping a platform name to a secret (a string or a mapping of fields) or to
nothing. A run fetches its credentials once, at start, and never refreshes
them mid-run.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal, Protocol

from automation_engine.workflow.templates import CREDENTIAL_NAMESPACES, find_expressions

if TYPE_CHECKING:
    from automation_engine.workflow.models import WorkflowDefinition

logger = logging.getLogger(__name__)

OAUTH_PLATFORMS: frozenset[str] = frozenset(
    {"twitter", "youtube", "instagram", "discord", "telegram", "github"}
)

_DISPLAY_NAMES: dict[str, str] = {
    "twitter": "Twitter",
    "youtube": "YouTube",
    "instagram": "Instagram",
    "discord": "Discord",
    "telegram": "Telegram",
    "github": "GitHub",
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "rapidapi": "RapidAPI",
    "stripe": "Stripe",
    "airtable": "Airtable",
    "sendgrid": "SendGrid",
    "slack": "Slack",
}


class CredentialProvider(Protocol):
    async def get(self, platform: str) -> Any | None: ...


class StaticCredentialProvider:
    """In-memory provider, e.g. for tests or single-tenant deployments."""

    def __init__(self, secrets: Mapping[str, Any] | None = None) -> None:
        self._secrets = {k.lower(): v for k, v in (secrets or {}).items()}

    async def get(self, platform: str) -> Any | None:
        return self._secrets.get(platform.lower())


class EnvCredentialProvider:
    """Reads `<PREFIX><PLATFORM>` environment variables.

    Values that parse as a JSON object are returned as mappings so that
    multi-field credentials (OAuth key pairs) can be walked with
    `{{credential.twitter.apiKey}}`.
    """

    def __init__(
        self, prefix: str = "AUTOMATION_CREDENTIAL_", environ: Mapping[str, str] | None = None
    ) -> None:
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    async def get(self, platform: str) -> Any | None:
        key = self.prefix + platform.upper().replace("-", "_")
        raw = self._environ.get(key)
        if raw is None or not raw.strip():
            return None
        if raw.lstrip().startswith("{"):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return raw
            if isinstance(parsed, dict):
                return parsed
        return raw


class BoundCredentialProvider:
    """Applies a workflow's credential bindings (platform -> credential key)."""

    def __init__(self, base: CredentialProvider, bindings: Mapping[str, str]) -> None:
        self._base = base
        self._bindings = dict(bindings)

    async def get(self, platform: str) -> Any | None:
        return await self._base.get(self._bindings.get(platform, platform))


class RunCredentialProvider:
    """One run's credentials, handed to operations that need the engine.

    Serves the values loaded at run start. A platform the workflow did not
    reference (an agent tool's, say) is fetched from the run's provider on
    first use and remembered for the rest of the run.
    """

    def __init__(
        self,
        base: CredentialProvider,
        loaded: Mapping[str, Any],
        fetched: Iterable[str] = (),
    ) -> None:
        self._base = base
        self._values: dict[str, Any] = dict(loaded)
        self._fetched: set[str] = set(fetched) | set(loaded)

    async def get(self, platform: str) -> Any | None:
        if platform not in self._fetched:
            self._values[platform] = await self._base.get(platform)
            self._fetched.add(platform)
        return self._values.get(platform)


async def load_credentials(
    provider: CredentialProvider, platforms: Iterable[str]
) -> Mapping[str, Any]:
    """Fetch every platform once; missing platforms are simply absent."""

    names = sorted(set(platforms))
    values = await asyncio.gather(*(provider.get(name) for name in names))
    loaded = {name: value for name, value in zip(names, values, strict=True) if value is not None}
    missing = [name for name in names if name not in loaded]
    if missing:
        logger.warning("Credentials not available", extra={"platforms": missing})
    return MappingProxyType(loaded)


@dataclass(frozen=True, slots=True)
class RequiredCredential:
    platform: str
    type: Literal["oauth", "api_key"]
    variable: str

    def to_json(self) -> dict[str, str]:
        return {"platform": self.platform, "type": self.type, "variable": self.variable}


def referenced_platforms(value: Any) -> set[str]:
    """Platforms referenced as `{{credential.<platform>...}}` (or `user.`)."""
    platforms: set[str] = set()
    for expression in find_expressions(value):
        if expression.root in CREDENTIAL_NAMESPACES and expression.path:
            platforms.add(str(expression.path[0]))
    return platforms


def analyze_credentials(definition: WorkflowDefinition) -> list[RequiredCredential]:
    """Every credential a definition needs, declared or referenced."""

    platforms = set(definition.metadata.requires_credentials)
    for step in definition.config.steps:
        platforms |= referenced_platforms(step.inputs)
    if definition.config.return_value is not None:
        platforms |= referenced_platforms(definition.config.return_value)

    return [
        RequiredCredential(
            platform=platform,
            type="oauth" if platform in OAUTH_PLATFORMS else "api_key",
            variable=f"credential.{platform}",
        )
        for platform in sorted(platforms)
    ]


def platform_display_name(platform: str) -> str:
    return _DISPLAY_NAMES.get(platform, platform[:1].upper() + platform[1:])
