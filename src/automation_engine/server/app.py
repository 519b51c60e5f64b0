"""FastAPI app factory.

Endpoints are thin wrappers over the engine: the workflow store, the pipeline
and the agent. All routes live under `/api/v1`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from automation_engine import __version__
from automation_engine.agent import ToolCallingAgent, ToolFilter, ToolGenerator
from automation_engine.credentials import BoundCredentialProvider, analyze_credentials
from automation_engine.engine import EngineContext
from automation_engine.errors import AutomationError
from automation_engine.server.config import ServerSettings
from automation_engine.server.models import (
    AgentRunRequest,
    ChatRequest,
    CredentialBindingsRequest,
    RunRequest,
    WorkflowDetail,
    WorkflowSummary,
)
from automation_engine.workflow.models import TriggerDefinition, TriggerType
from automation_engine.workflow.pipeline import RunResult, execute_workflow
from automation_engine.workflow.store import WorkflowRecord, WorkflowStore
from automation_engine.workflow.validation import validate_workflow

logger = logging.getLogger(__name__)


def _to_detail(record: WorkflowRecord) -> WorkflowDetail:
    summary = WorkflowSummary.from_record(record)
    return WorkflowDetail(
        **summary.model_dump(),
        definition=record.definition.to_document(),
        credential_bindings=record.credential_bindings,
        required_credentials=[c.to_json() for c in analyze_credentials(record.definition)],
    )


def _run_response(result: RunResult) -> JSONResponse:
    return JSONResponse(
        status_code=200 if result.success else 500,
        content=jsonable_encoder(result.to_json()),
    )


def _agent_filter(req: AgentRunRequest) -> ToolFilter:
    try:
        return ToolFilter.from_options(
            preset=req.preset, categories=req.categories, names=req.tools, max_tools=req.max_tools
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def create_app(
    engine: EngineContext | None = None, settings: ServerSettings | None = None
) -> FastAPI:
    settings = settings or ServerSettings()
    engine = engine or EngineContext.create()
    store = WorkflowStore(settings.workflow_store_path)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await engine.close()

    app = FastAPI(
        title="Workflow Automation Engine",
        version=__version__,
        description="REST API over the workflow pipeline and the tool-calling agent.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _get_record(workflow_id: str) -> WorkflowRecord:
        record = store.get(workflow_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Workflow not found")
        return record

    def _require_trigger(record: WorkflowRecord, expected: TriggerType) -> None:
        if record.trigger.type != expected:
            raise HTTPException(
                status_code=409,
                detail=f"Workflow trigger is {record.trigger.type!r}, not {expected!r}",
            )

    async def _run(record: WorkflowRecord, trigger_data: dict[str, Any]) -> JSONResponse:
        credentials = engine.credentials
        if record.credential_bindings:
            credentials = BoundCredentialProvider(credentials, record.credential_bindings)
        result = await execute_workflow(
            engine, record.definition, trigger_data, credentials=credentials
        )
        if not result.success:
            logger.error(
                "Workflow run failed",
                extra={
                    "workflow_id": record.id,
                    "error_step": result.error_step,
                    "error": result.error,
                },
            )
        return _run_response(result)

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/modules")
    def list_modules(category: str | None = Query(default=None)) -> list[dict[str, Any]]:
        entries = engine.registry.entries([category] if category else None)
        return [
            {
                "path": str(entry.path),
                "description": entry.description,
                "signature": entry.signature,
                "parameters": entry.json_schema(),
                "example": entry.spec.example,
            }
            for entry in sorted(entries, key=lambda e: str(e.path))
        ]

    @app.get("/api/v1/tools")
    def list_tools(
        preset: str | None = Query(default=None),
        category: list[str] | None = Query(default=None),
        max_tools: int | None = Query(default=None, ge=1),
    ) -> dict[str, Any]:
        try:
            tool_filter = ToolFilter.from_options(
                preset=preset, categories=category or (), max_tools=max_tools
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        generator = ToolGenerator(engine.registry)
        tools = generator.list_tools(tool_filter)
        return {"count": len(tools), "tools": tools}

    @app.post("/api/v1/workflows/validate")
    def validate(document: dict[str, Any] = Body(...)) -> dict[str, Any]:
        return validate_workflow(document, engine.registry).to_json()

    @app.post("/api/v1/workflows/import", response_model=WorkflowDetail, status_code=201)
    def import_workflow(document: dict[str, Any] = Body(...)) -> WorkflowDetail:
        report = validate_workflow(document, engine.registry)
        if not report.valid or report.definition is None:
            raise HTTPException(
                status_code=400,
                detail={"message": "Invalid workflow definition", "errors": report.errors},
            )
        record = store.import_definition(report.definition)
        logger.info(
            "Workflow imported",
            extra={"workflow_id": record.id, "workflow": record.definition.name},
        )
        return _to_detail(record)

    @app.get("/api/v1/workflows", response_model=list[WorkflowSummary])
    def list_workflows() -> list[WorkflowSummary]:
        return [WorkflowSummary.from_record(r) for r in store.list()]

    @app.get("/api/v1/workflows/{workflow_id}", response_model=WorkflowDetail)
    def get_workflow(workflow_id: str) -> WorkflowDetail:
        return _to_detail(_get_record(workflow_id))

    @app.put("/api/v1/workflows/{workflow_id}/trigger", response_model=WorkflowDetail)
    def update_trigger(workflow_id: str, trigger: TriggerDefinition) -> WorkflowDetail:
        _get_record(workflow_id)
        return _to_detail(store.update_trigger(workflow_id, trigger))

    @app.put("/api/v1/workflows/{workflow_id}/credentials", response_model=WorkflowDetail)
    def update_credentials(workflow_id: str, req: CredentialBindingsRequest) -> WorkflowDetail:
        _get_record(workflow_id)
        return _to_detail(store.update_credentials(workflow_id, req.bindings))

    @app.post("/api/v1/workflows/{workflow_id}/run")
    async def run_workflow(workflow_id: str, req: RunRequest | None = None) -> JSONResponse:
        record = _get_record(workflow_id)
        return await _run(record, req.trigger if req else {})

    @app.post("/api/v1/workflows/{workflow_id}/webhook")
    async def webhook(workflow_id: str, request: Request) -> JSONResponse:
        record = _get_record(workflow_id)
        _require_trigger(record, "webhook")
        raw = await request.body()
        try:
            payload = json.loads(raw) if raw else {}
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail="Webhook body must be JSON") from e
        trigger_data = payload if isinstance(payload, dict) else {"body": payload}
        return await _run(record, trigger_data)

    @app.post("/api/v1/workflows/{workflow_id}/chat")
    async def chat(workflow_id: str, req: ChatRequest) -> JSONResponse:
        record = _get_record(workflow_id)
        _require_trigger(record, "chat")
        return await _run(record, {"message": req.message, "history": req.history})

    @app.post("/api/v1/agent/run")
    async def agent_run(req: AgentRunRequest) -> dict[str, Any]:
        agent = ToolCallingAgent(
            engine,
            max_steps=req.max_steps,
            system_prompt=req.system_prompt,
            tool_filter=_agent_filter(req),
        )
        try:
            result = await agent.run(req.prompt)
        except AutomationError as e:
            logger.exception("Agent run failed")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return result.to_json()

    @app.post("/api/v1/agent/stream")
    async def agent_stream(req: AgentRunRequest) -> StreamingResponse:
        agent = ToolCallingAgent(
            engine,
            max_steps=req.max_steps,
            system_prompt=req.system_prompt,
            tool_filter=_agent_filter(req),
        )

        async def _events() -> AsyncIterator[str]:
            try:
                async for event in agent.stream(req.prompt):
                    yield json.dumps(event.to_json(), ensure_ascii=False, default=str) + "\n"
            except AutomationError as e:
                logger.exception("Agent stream failed")
                yield json.dumps({"type": "error", "message": str(e)}) + "\n"

        return StreamingResponse(_events(), media_type="application/x-ndjson")

    return app
