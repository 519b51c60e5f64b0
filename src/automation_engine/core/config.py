"""Core configuration for the automation engine."""

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """Configuration for chat model providers."""

    provider: Literal["openai"] = Field(
        default="openai",
        description="Chat model provider to use",
    )

    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override the OpenAI API base URL (compatible gateways)",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-request timeout for model calls",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_LLM_",
        env_file=".env",
        extra="ignore",
    )


class AgentConfig(BaseSettings):
    """Configuration for the tool-calling agent."""

    max_steps: int = Field(
        default=10,
        ge=1,
        description="Maximum reasoning turns before the agent stops",
    )
    max_tools: int | None = Field(
        default=50,
        ge=1,
        description="Upper bound on tools offered to the model (None = unbounded)",
    )
    system_prompt: str = Field(
        default=(
            "You are a helpful automation assistant. Use the available tools when they "
            "help answer the request, then reply with a concise final answer."
        ),
        description="Default system prompt for agent runs",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_AGENT_",
        env_file=".env",
        extra="ignore",
    )


class EngineConfig(BaseSettings):
    """Main configuration for the engine."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    credential_env_prefix: str = Field(
        default="AUTOMATION_CREDENTIAL_",
        description="Environment prefix read by the environment credential provider",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="Chat model configuration",
    )
    agent: AgentConfig = Field(
        default_factory=AgentConfig,
        description="Agent configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        if self.debug:
            logging.getLogger("automation_engine").setLevel(logging.DEBUG)
