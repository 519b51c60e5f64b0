"""CLI entrypoint: validate and run workflows, inspect the registry, run the agent."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from automation_engine import __version__
from automation_engine.agent import ToolCallingAgent, ToolFilter, ToolGenerator
from automation_engine.core.config import EngineConfig
from automation_engine.core.logging import configure_logging
from automation_engine.engine import EngineContext
from automation_engine.errors import AutomationError
from automation_engine.workflow.pipeline import execute_workflow
from automation_engine.workflow.validation import parse_workflow, validate_workflow

logger = logging.getLogger(__name__)


def _load_json_arg(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    if value.startswith("@"):
        value = Path(value[1:]).read_text(encoding="utf-8")
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        raise ValueError("Trigger data must be a JSON object")
    return parsed


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="automation",
        description="Workflow automation engine",
    )
    parser.add_argument(
        "--version", action="version", version=f"workflow-automation-engine {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a workflow definition file")
    validate.add_argument("file", type=Path, help="Workflow JSON file")

    run = subparsers.add_parser("run", help="Run a workflow definition file")
    run.add_argument("file", type=Path, help="Workflow JSON file")
    run.add_argument(
        "--trigger",
        default=None,
        help="Trigger payload as JSON, or @path to a JSON file",
    )

    modules = subparsers.add_parser("modules", help="List registered operations")
    modules.add_argument("--category", default=None, help="Only this category")
    modules.add_argument(
        "--markdown",
        action="store_true",
        help="Print the markdown catalog used in model prompts",
    )

    tools = subparsers.add_parser("tools", help="List the tools an agent would be offered")
    tool_source = tools.add_mutually_exclusive_group()
    tool_source.add_argument(
        "--preset", default=None, help="social, communication, ai, utilities or all"
    )
    tool_source.add_argument(
        "--category", action="append", default=[], help="Restrict to a category (repeatable)"
    )
    tools.add_argument("--max-tools", type=int, default=None, help="Upper bound on tools")

    agent = subparsers.add_parser("agent", help="Run the tool-calling agent on a prompt")
    agent.add_argument("prompt", help="Task for the agent")
    agent.add_argument("--preset", default=None, help="Tool preset")
    agent.add_argument(
        "--category", action="append", default=[], help="Restrict tools to a category (repeatable)"
    )
    agent.add_argument("--tool", action="append", default=[], help="Offer this tool (repeatable)")
    agent.add_argument("--max-steps", type=int, default=None, help="Reasoning turn budget")
    agent.add_argument("--stream", action="store_true", help="Print text as it is generated")

    serve = subparsers.add_parser("serve", help="Start the REST server")
    serve.add_argument("--host", default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port")

    return parser


async def _run_workflow(engine: EngineContext, args: argparse.Namespace) -> int:
    definition = parse_workflow(args.file.read_text(encoding="utf-8"))
    result = await execute_workflow(engine, definition, _load_json_arg(args.trigger))
    _print_json(result.to_json())
    return 0 if result.success else 1


async def _run_agent(engine: EngineContext, args: argparse.Namespace) -> int:
    agent = ToolCallingAgent(
        engine,
        max_steps=args.max_steps,
        tool_filter=ToolFilter.from_options(
            preset=args.preset, categories=args.category, names=args.tool
        ),
    )
    if args.stream:
        result = await agent.run_streaming(
            args.prompt, on_text_delta=lambda text: print(text, end="", flush=True)
        )
        print()
    else:
        result = await agent.run(args.prompt)
        print(result.text)
    logger.info(
        "Agent finished",
        extra={
            "state": result.state.value,
            "tool_calls": len(result.tool_calls),
            "usage": result.usage.to_json(),
        },
    )
    return 0 if not result.budget_exceeded else 3


async def _dispatch(engine: EngineContext, args: argparse.Namespace) -> int:
    async with engine:
        if args.command == "run":
            return await _run_workflow(engine, args)
        if args.command == "agent":
            return await _run_agent(engine, args)
    raise AssertionError(f"Unhandled command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = EngineConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(config.log_level)

    try:
        if args.command == "serve":
            import uvicorn

            from automation_engine.server import create_app
            from automation_engine.server.config import ServerSettings

            settings = ServerSettings()
            uvicorn.run(
                create_app(EngineContext.create(config), settings),
                host=args.host or settings.host,
                port=args.port or settings.port,
            )
            return 0

        engine = EngineContext.create(config)

        if args.command == "validate":
            report = validate_workflow(args.file.read_text(encoding="utf-8"), engine.registry)
            _print_json(report.to_json())
            return 0 if report.valid else 1

        if args.command == "modules":
            if args.markdown:
                print(engine.registry.render_documentation(), end="")
                return 0
            categories = [args.category] if args.category else None
            for entry in sorted(engine.registry.entries(categories), key=lambda e: str(e.path)):
                print(f"{entry.path}  {entry.signature}  - {entry.description}")
            return 0

        if args.command == "tools":
            generator = ToolGenerator(engine.registry)
            tool_filter = ToolFilter.from_options(
                preset=args.preset, categories=args.category, max_tools=args.max_tools
            )
            listed = generator.list_tools(tool_filter)
            for tool in listed:
                print(f"{tool['name']}  ({tool['path']})  - {tool['description']}")
            print(f"{len(listed)} tool(s)")
            return 0

        return asyncio.run(_dispatch(engine, args))

    except (OSError, ValueError) as e:
        logger.error("Invalid input", extra={"error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except AutomationError as e:
        logger.error("Command failed", extra={"error": str(e), "error_type": type(e).__name__})
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
