"""The engine context shared by pipeline runs and agents."""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType

from automation_engine.core.config import EngineConfig, LLMConfig
from automation_engine.credentials import CredentialProvider, EnvCredentialProvider
from automation_engine.llm.factory import LLMFactory
from automation_engine.llm.provider import LLMProvider
from automation_engine.registry import ModuleRegistry

logger = logging.getLogger(__name__)

ModelFactory = Callable[[LLMConfig], LLMProvider]


class EngineContext:
    """Registry, credential provider, chat model factory and settings.

    Constructed explicitly and passed to the orchestrator and the agent. The
    registry is read-only and may be shared by concurrent runs; the chat model
    is created on first use and released by `close()`.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        credentials: CredentialProvider,
        config: EngineConfig | None = None,
        model_factory: ModelFactory | None = None,
    ) -> None:
        self.registry = registry
        self.credentials = credentials
        self.config = config or EngineConfig()
        self._model_factory: ModelFactory = model_factory or LLMFactory.create
        self._model: LLMProvider | None = None

    @classmethod
    def create(
        cls,
        config: EngineConfig | None = None,
        *,
        registry: ModuleRegistry | None = None,
        credentials: CredentialProvider | None = None,
        model_factory: ModelFactory | None = None,
    ) -> EngineContext:
        """Build a context with the built-in operations and environment credentials."""
        from automation_engine.operations import default_registry

        config = config or EngineConfig()
        engine = cls(
            registry=registry if registry is not None else default_registry(),
            credentials=(
                credentials
                if credentials is not None
                else EnvCredentialProvider(prefix=config.credential_env_prefix)
            ),
            config=config,
            model_factory=model_factory,
        )
        logger.info("Engine initialized", extra={"operations": len(engine.registry)})
        return engine

    def chat_model(self) -> LLMProvider:
        if self._model is None:
            self._model = self._model_factory(self.config.llm)
        return self._model

    async def close(self) -> None:
        if self._model is not None:
            await self._model.aclose()
            self._model = None

    async def __aenter__(self) -> EngineContext:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
