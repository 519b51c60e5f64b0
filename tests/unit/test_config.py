"""Unit tests for configuration."""

import pytest
from pydantic import ValidationError

from automation_engine.core.config import AgentConfig, EngineConfig, LLMConfig


def test_llm_config_defaults() -> None:
    """Test LLM config default values."""
    config = LLMConfig(openai_api_key="test-key")

    assert config.provider == "openai"
    assert config.openai_model == "gpt-4o-mini"
    assert config.openai_temperature == 0.7
    assert config.openai_base_url is None


def test_agent_config_defaults() -> None:
    """Test agent config default values."""
    config = AgentConfig()

    assert config.max_steps == 10
    assert config.max_tools == 50
    assert "automation assistant" in config.system_prompt


def test_agent_config_rejects_zero_steps() -> None:
    with pytest.raises(ValidationError):
        AgentConfig(max_steps=0)


def test_engine_config_composition() -> None:
    """Test engine config with nested configs."""
    config = EngineConfig(
        log_level="DEBUG",
        debug=True,
    )

    assert config.log_level == "DEBUG"
    assert config.debug is True
    assert config.credential_env_prefix == "AUTOMATION_CREDENTIAL_"
    assert isinstance(config.llm, LLMConfig)
    assert isinstance(config.agent, AgentConfig)


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTOMATION_LLM_OPENAI_MODEL", "gpt-4o")
    monkeypatch.setenv("AUTOMATION_AGENT_MAX_STEPS", "3")
    monkeypatch.setenv("AUTOMATION_LOG_LEVEL", "WARNING")

    config = EngineConfig()

    assert config.log_level == "WARNING"
    assert config.llm.openai_model == "gpt-4o"
    assert config.agent.max_steps == 3
