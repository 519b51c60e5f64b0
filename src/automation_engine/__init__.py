"""Workflow Automation Engine.

Runs declarative multi-step workflows and a tool-calling agent over a shared
catalog of operations:
- settings loaded from the environment and `.env`
- structured logging
- a FastAPI server and an `automation` CLI
"""

__version__ = "0.1.0"

from automation_engine.core.config import EngineConfig
from automation_engine.engine import EngineContext

__all__ = ["__version__", "EngineConfig", "EngineContext"]
