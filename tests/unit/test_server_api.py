"""Tests for the REST server."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fakes import reply, tool_call
from fastapi.testclient import TestClient

from automation_engine.engine import EngineContext
from automation_engine.server import create_app
from automation_engine.server.config import ServerSettings

SHOUT = {
    "name": "Shout",
    "description": "Uppercase the incoming message",
    "config": {
        "steps": [
            {
                "id": "shout",
                "module": "utilities.string.upper",
                "inputs": {"text": "{{trigger.message}}"},
                "outputAs": "up",
            }
        ],
        "returnValue": "{{up}}",
    },
}


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ServerSettings:
    monkeypatch.setenv("AUTOMATION_WORKFLOW_STORE", str(tmp_path / "workflows.json"))
    return ServerSettings()


@pytest.fixture
def make_client(
    make_engine: Callable[..., EngineContext], settings: ServerSettings
) -> Iterator[Callable[..., TestClient]]:
    clients: list[TestClient] = []

    def _make(responses: list[Any] | None = None) -> TestClient:
        client = TestClient(create_app(engine=make_engine(responses), settings=settings))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()


def _import(client: TestClient, document: dict[str, Any]) -> dict[str, Any]:
    resp = client.post("/api/v1/workflows/import", json=document)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client: TestClient) -> None:
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_settings_read_store_path(settings: ServerSettings, tmp_path: Path) -> None:
    assert settings.workflow_store_path == tmp_path / "workflows.json"
    assert settings.parsed_cors_origins() == ["http://localhost:3000", "http://127.0.0.1:3000"]


def test_modules_listing(client: TestClient) -> None:
    resp = client.get("/api/v1/modules", params={"category": "devtools"})
    assert resp.status_code == 200
    modules = resp.json()
    assert {m["path"] for m in modules} == {
        "devtools.github.create_issue",
        "devtools.github.get_issue",
        "devtools.github.list_issues",
    }
    assert all("signature" in m and "parameters" in m for m in modules)


def test_tools_listing(client: TestClient) -> None:
    resp = client.get("/api/v1/tools", params={"category": "utilities", "max_tools": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert all(t["path"].startswith("utilities.") for t in body["tools"])

    bad = client.get("/api/v1/tools", params={"preset": "nonsense"})
    assert bad.status_code == 400


def test_validate_endpoint(client: TestClient) -> None:
    ok = client.post("/api/v1/workflows/validate", json=SHOUT)
    assert ok.status_code == 200
    assert ok.json()["valid"] is True

    broken = {**SHOUT, "config": {"steps": [{"id": "x", "module": "nope.missing.fn"}]}}
    report = client.post("/api/v1/workflows/validate", json=broken).json()
    assert report["valid"] is False
    assert report["errors"]


def test_import_rejects_invalid_definitions(client: TestClient) -> None:
    resp = client.post("/api/v1/workflows/import", json={"name": "x", "config": {"steps": []}})
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "Invalid workflow definition"


def test_import_list_and_get(client: TestClient) -> None:
    created = _import(client, SHOUT)
    assert created["status"] == "draft"
    assert created["trigger"] == {"type": "manual", "config": {}}
    assert created["definition"]["config"]["steps"][0]["outputAs"] == "up"
    assert "createdAt" in created and "credentialBindings" in created

    listed = client.get("/api/v1/workflows").json()
    assert [w["id"] for w in listed] == [created["id"]]

    fetched = client.get(f"/api/v1/workflows/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Shout"

    missing = client.get("/api/v1/workflows/nope")
    assert missing.status_code == 404
    assert missing.json() == {"detail": "Workflow not found"}


def test_manual_run(client: TestClient) -> None:
    created = _import(client, SHOUT)
    resp = client.post(
        f"/api/v1/workflows/{created['id']}/run", json={"trigger": {"message": "hi"}}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["output"] == "HI"
    assert body["runId"]


def test_failed_run_reports_step(client: TestClient) -> None:
    created = _import(client, SHOUT)
    resp = client.post(f"/api/v1/workflows/{created['id']}/run", json={"trigger": {}})
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["errorStep"] == "shout"


def test_webhook_requires_webhook_trigger(client: TestClient) -> None:
    created = _import(client, SHOUT)
    url = f"/api/v1/workflows/{created['id']}/webhook"
    assert client.post(url, json={"message": "hi"}).status_code == 409

    updated = client.put(
        f"/api/v1/workflows/{created['id']}/trigger", json={"type": "webhook", "config": {}}
    )
    assert updated.status_code == 200
    assert updated.json()["trigger"]["type"] == "webhook"

    resp = client.post(url, json={"message": "hook"})
    assert resp.status_code == 200
    assert resp.json()["output"] == "HOOK"


def test_webhook_wraps_non_object_bodies(client: TestClient) -> None:
    document = json.loads(json.dumps(SHOUT))
    document["trigger"] = {"type": "webhook"}
    document["config"]["steps"][0]["inputs"]["text"] = "{{trigger.body[0]}}"
    created = _import(client, document)
    resp = client.post(f"/api/v1/workflows/{created['id']}/webhook", json=["abc"])
    assert resp.json()["output"] == "ABC"


def test_chat_trigger(client: TestClient) -> None:
    document = {**SHOUT, "trigger": {"type": "chat"}}
    created = _import(client, document)
    resp = client.post(
        f"/api/v1/workflows/{created['id']}/chat", json={"message": "hello", "history": []}
    )
    assert resp.status_code == 200
    assert resp.json()["output"] == "HELLO"


def test_credential_bindings_apply_to_runs(client: TestClient) -> None:
    document = json.loads(json.dumps(SHOUT))
    document["config"]["steps"][0]["inputs"]["text"] = "{{credential.github}}"
    created = _import(client, document)
    assert created["requiredCredentials"] == [
        {"platform": "github", "type": "oauth", "variable": "credential.github"}
    ]

    bound = client.put(
        f"/api/v1/workflows/{created['id']}/credentials", json={"bindings": {"github": "openai"}}
    )
    assert bound.json()["credentialBindings"] == {"github": "openai"}

    resp = client.post(f"/api/v1/workflows/{created['id']}/run", json={"trigger": {}})
    assert resp.json()["output"] == "SK-TEST"


def test_agent_run(make_client: Callable[..., TestClient]) -> None:
    client = make_client(
        [
            reply(tool_calls=[tool_call("utilities_math_evaluate", {"expression": "2+2"})]),
            reply("The answer is 4"),
        ]
    )
    resp = client.post(
        "/api/v1/agent/run", json={"prompt": "What is 2+2?", "preset": "utilities", "maxSteps": 3}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["text"] == "The answer is 4"
    assert body["toolCalls"][0]["result"] == 4
    assert body["state"] == "finished"


def test_agent_stream_is_ndjson(make_client: Callable[..., TestClient]) -> None:
    client = make_client(
        [
            reply(tool_calls=[tool_call("utilities_string_upper", {"text": "x"})]),
            reply("done"),
        ]
    )
    resp = client.post("/api/v1/agent/stream", json={"prompt": "go", "categories": ["utilities"]})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/x-ndjson")
    events = [json.loads(line) for line in resp.text.splitlines() if line]
    assert [e["type"] for e in events] == ["tool-call", "tool-result", "text-delta", "finish"]
    assert events[1]["result"] == "X"


def test_agent_bad_preset(client: TestClient) -> None:
    resp = client.post("/api/v1/agent/run", json={"prompt": "x", "preset": "nonsense"})
    assert resp.status_code == 400
