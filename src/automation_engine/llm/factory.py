"""Factory for creating chat model providers."""

import logging

from automation_engine.core.config import LLMConfig
from automation_engine.llm.openai_provider import OpenAIProvider
from automation_engine.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for creating chat model provider instances."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Create a provider based on configuration.

        Args:
            config: LLM configuration specifying the provider.

        Returns:
            Configured provider instance.

        Raises:
            ValueError: If provider type is not supported.
        """
        logger.info(f"Creating LLM provider: {config.provider}")

        if config.provider == "openai":
            return OpenAIProvider(config)
        raise ValueError(f"Unsupported LLM provider: {config.provider}")
