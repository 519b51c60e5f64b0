"""Core package initialization."""

from automation_engine.core.config import AgentConfig, EngineConfig, LLMConfig

__all__ = [
    "AgentConfig",
    "EngineConfig",
    "LLMConfig",
]
