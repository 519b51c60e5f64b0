"""Unit tests for the persisted workflow store."""

from __future__ import annotations

from pathlib import Path

import pytest

from automation_engine.workflow.models import TriggerDefinition
from automation_engine.workflow.store import WorkflowStore
from automation_engine.workflow.validation import parse_workflow


def _definition() -> object:
    return parse_workflow(
        {
            "id": "incoming",
            "name": "Shout",
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
    )


def test_empty_store(tmp_path: Path) -> None:
    store = WorkflowStore(tmp_path / "workflows.json")
    assert store.list() == []
    assert store.get("missing") is None


def test_import_assigns_id_and_persists(tmp_path: Path) -> None:
    path = tmp_path / "state" / "workflows.json"
    store = WorkflowStore(path)
    record = store.import_definition(_definition())  # type: ignore[arg-type]

    assert record.id != "incoming"
    assert record.definition.id == record.id
    assert record.status == "draft"
    assert path.exists()
    assert '"outputAs": "up"' in path.read_text(encoding="utf-8")

    reloaded = WorkflowStore(path).get(record.id)
    assert reloaded is not None
    assert reloaded.definition.steps[0].output_as == "up"
    assert reloaded.definition.config.return_value == "{{up}}"


def test_update_trigger_and_bindings(tmp_path: Path) -> None:
    store = WorkflowStore(tmp_path / "workflows.json")
    record = store.import_definition(_definition())  # type: ignore[arg-type]

    updated = store.update_trigger(record.id, TriggerDefinition(type="webhook"))
    assert updated.trigger.type == "webhook"

    bound = store.update_credentials(record.id, {"github": "github-work"})
    assert bound.credential_bindings == {"github": "github-work"}
    assert bound.trigger.type == "webhook"

    active = store.set_status(record.id, "active")
    assert active.status == "active"
    assert store.get(record.id).status == "active"  # type: ignore[union-attr]


def test_updates_to_unknown_workflow_raise(tmp_path: Path) -> None:
    store = WorkflowStore(tmp_path / "workflows.json")
    with pytest.raises(KeyError):
        store.update_trigger("nope", TriggerDefinition())
    with pytest.raises(KeyError):
        store.set_status("nope", "active")


def test_corrupt_file_reads_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "workflows.json"
    path.write_text("{not json", encoding="utf-8")
    assert WorkflowStore(path).list() == []
