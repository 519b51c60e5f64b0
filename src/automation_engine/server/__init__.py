"""FastAPI server adapter for the automation engine.

Design intent:
- Keep execution logic in `automation_engine.workflow` and `automation_engine.agent`
- Keep server-specific concerns (routing, CORS, the workflow store) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from automation_engine.server.app import create_app
