#!/usr/bin/env python3
"""Programmatic workflow run example.

This demonstrates using the engine components directly:

* load settings from `.env`
* validate a workflow definition against the built-in operations
* run it and print the `{success, output}` result

The message is passed as an argument and becomes `{{trigger.message}}`.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Sequence

from automation_engine import EngineConfig, EngineContext
from automation_engine.core.logging import configure_logging
from automation_engine.workflow.pipeline import execute_workflow
from automation_engine.workflow.validation import validate_workflow

WORKFLOW: dict[str, Any] = {
    "name": "Word stats",
    "description": "Split a message into words and report how many there are",
    "config": {
        "steps": [
            {
                "id": "split",
                "module": "utilities.string.split",
                "inputs": {"text": "{{trigger.message}}", "separator": " "},
                "outputAs": "words",
            },
            {
                "id": "count",
                "module": "utilities.array.count",
                "inputs": {"items": "{{words}}"},
                "outputAs": "total",
            },
            {
                "id": "shout",
                "module": "utilities.string.upper",
                "inputs": {"text": "{{trigger.message}}"},
                "outputAs": "loud",
            },
        ],
        "returnValue": {"words": "{{total}}", "loud": "{{loud}}"},
    },
}


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a small workflow (programmatic example).")
    parser.add_argument("--message", required=True, help="Text handed to the workflow trigger")
    return parser.parse_args(argv)


async def _run(engine: EngineContext, message: str) -> int:
    report = validate_workflow(WORKFLOW, engine.registry)
    if not report.valid or report.definition is None:
        print(json.dumps(report.to_json(), indent=2))
        return 1

    async with engine:
        result = await execute_workflow(engine, report.definition, {"message": message})
    print(json.dumps(result.to_json(), indent=2))
    return 0 if result.success else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    config = EngineConfig()
    configure_logging(config.log_level)

    return asyncio.run(_run(EngineContext.create(config), args.message))


if __name__ == "__main__":
    raise SystemExit(main())
