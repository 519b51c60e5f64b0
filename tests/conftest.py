"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from fakes import ScriptedChatModel, reply

from automation_engine.core.config import AgentConfig, EngineConfig, LLMConfig
from automation_engine.credentials import StaticCredentialProvider
from automation_engine.engine import EngineContext
from automation_engine.llm.provider import ChatResponse
from automation_engine.operations import default_registry
from automation_engine.registry import ModuleRegistry


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def engine_config(llm_config: LLMConfig) -> EngineConfig:
    """Provide a test engine configuration."""
    return EngineConfig(
        log_level="DEBUG",
        debug=True,
        llm=llm_config,
        agent=AgentConfig(max_steps=5, max_tools=50),
    )


@pytest.fixture
def registry() -> ModuleRegistry:
    return default_registry()


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    return StaticCredentialProvider({"github": "ghp_test", "openai": "sk-test"})


@pytest.fixture
def make_engine(
    engine_config: EngineConfig,
    registry: ModuleRegistry,
    credentials: StaticCredentialProvider,
) -> Callable[..., EngineContext]:
    """Build an engine around a scripted model and, optionally, a custom registry."""

    def _make(
        responses: list[ChatResponse] | None = None,
        *,
        registry_override: ModuleRegistry | None = None,
        credentials_override: Any = None,
    ) -> EngineContext:
        model = ScriptedChatModel(responses or [reply("done")])
        return EngineContext(
            registry=registry_override if registry_override is not None else registry,
            credentials=credentials_override if credentials_override is not None else credentials,
            config=engine_config,
            model_factory=lambda _config: model,
        )

    return _make


@pytest.fixture
def engine(make_engine: Callable[..., EngineContext]) -> EngineContext:
    return make_engine()
