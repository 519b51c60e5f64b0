"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from automation_engine.workflow.models import TriggerDefinition
from automation_engine.workflow.store import WorkflowRecord


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WorkflowSummary(ApiModel):
    id: str
    name: str
    description: str
    status: str
    trigger: TriggerDefinition
    created_at: str = Field(serialization_alias="createdAt")
    updated_at: str = Field(serialization_alias="updatedAt")

    @classmethod
    def from_record(cls, record: WorkflowRecord) -> WorkflowSummary:
        return cls(
            id=record.id,
            name=record.definition.name,
            description=record.definition.description,
            status=record.status,
            trigger=record.definition.trigger,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class WorkflowDetail(WorkflowSummary):
    definition: dict[str, Any]
    credential_bindings: dict[str, str] = Field(serialization_alias="credentialBindings")
    required_credentials: list[dict[str, str]] = Field(
        default_factory=list, serialization_alias="requiredCredentials"
    )


class CredentialBindingsRequest(ApiModel):
    bindings: dict[str, str] = Field(
        default_factory=dict, description="Platform name -> credential key"
    )


class RunRequest(ApiModel):
    trigger: dict[str, Any] = Field(default_factory=dict, description="Trigger payload")


class ChatRequest(ApiModel):
    message: str = Field(min_length=1)
    history: list[dict[str, Any]] = Field(default_factory=list)


class AgentRunRequest(ApiModel):
    prompt: str = Field(min_length=1)
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    preset: str | None = None
    categories: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    max_steps: int | None = Field(default=None, ge=1, alias="maxSteps")
    max_tools: int | None = Field(default=None, ge=1, alias="maxTools")

