"""Persisted workflow records.

Definitions, trigger settings and credential bindings are kept in a single
local JSON file. Run history is not persisted.
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from automation_engine.workflow.models import TriggerDefinition, WorkflowDefinition


class WorkflowRecord(BaseModel):
    id: str
    definition: WorkflowDefinition
    status: str = "draft"
    credential_bindings: dict[str, str] = Field(default_factory=dict)
    created_at: str
    updated_at: str

    @property
    def trigger(self) -> TriggerDefinition:
        return self.definition.trigger


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass
class WorkflowStore:
    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[WorkflowRecord]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return []
        if not isinstance(raw, list):
            return []
        return [WorkflowRecord.model_validate(item) for item in raw]

    def _save_unlocked(self, records: list[WorkflowRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json", by_alias=True) for r in records]
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def list(self) -> list[WorkflowRecord]:
        with self._lock:
            return self._load_unlocked()

    def get(self, workflow_id: str) -> WorkflowRecord | None:
        with self._lock:
            for record in self._load_unlocked():
                if record.id == workflow_id:
                    return record
            return None

    def import_definition(self, definition: WorkflowDefinition) -> WorkflowRecord:
        """Store a new definition; assigns a fresh id (any incoming id is ignored)."""
        with self._lock:
            records = self._load_unlocked()
            now = _utc_iso_now()
            workflow_id = uuid.uuid4().hex
            record = WorkflowRecord(
                id=workflow_id,
                definition=definition.model_copy(update={"id": workflow_id}),
                status="draft",
                created_at=now,
                updated_at=now,
            )
            records.append(record)
            self._save_unlocked(records)
            return record

    def _update(self, workflow_id: str, **updates: Any) -> WorkflowRecord:
        with self._lock:
            records = self._load_unlocked()
            for idx, record in enumerate(records):
                if record.id != workflow_id:
                    continue
                merged = record.model_copy(update={"updated_at": _utc_iso_now(), **updates})
                records[idx] = merged
                self._save_unlocked(records)
                return merged
            raise KeyError(workflow_id)

    def update_trigger(self, workflow_id: str, trigger: TriggerDefinition) -> WorkflowRecord:
        record = self.get(workflow_id)
        if record is None:
            raise KeyError(workflow_id)
        definition = record.definition.model_copy(update={"trigger": trigger})
        return self._update(workflow_id, definition=definition)

    def update_credentials(self, workflow_id: str, bindings: dict[str, str]) -> WorkflowRecord:
        """Replace the platform -> credential key bindings."""
        return self._update(workflow_id, credential_bindings=dict(bindings))

    def set_status(self, workflow_id: str, status: str) -> WorkflowRecord:
        return self._update(workflow_id, status=status)
