"""LLM package initialization."""

from automation_engine.llm.factory import LLMFactory
from automation_engine.llm.provider import (
    ChatChunk,
    ChatResponse,
    LLMProvider,
    ToolCallRequest,
    Usage,
)

__all__ = [
    "ChatChunk",
    "ChatResponse",
    "LLMFactory",
    "LLMProvider",
    "ToolCallRequest",
    "Usage",
]
