"""Workflow definition documents."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TriggerType = Literal["manual", "cron", "webhook", "telegram", "discord", "chat"]
DisplayType = Literal["table", "list", "text", "markdown", "json", "image", "images", "number"]
ColumnType = Literal["text", "link", "date", "number", "image"]


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class StepDefinition(_Document):
    id: str = Field(min_length=1)
    module: str = Field(min_length=1, description="category.module.function")
    inputs: dict[str, Any] = Field(default_factory=dict)
    output_as: str | None = Field(default=None, alias="outputAs")
    name: str | None = None


class TriggerDefinition(_Document):
    type: TriggerType = "manual"
    config: dict[str, Any] = Field(default_factory=dict)


class OutputColumn(_Document):
    key: str
    label: str | None = None
    type: ColumnType | None = None


class OutputDisplay(_Document):
    type: DisplayType
    columns: list[OutputColumn] | None = None
    content: str | None = None


class WorkflowConfig(_Document):
    steps: list[StepDefinition] = Field(min_length=1)
    return_value: Any = Field(default=None, alias="returnValue")
    output_display: OutputDisplay | None = Field(default=None, alias="outputDisplay")


class WorkflowMetadata(_Document):
    author: str | None = None
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    requires_credentials: list[str] = Field(default_factory=list, alias="requiresCredentials")


class WorkflowDefinition(_Document):
    id: str | None = None
    version: str = "1.0"
    name: str = Field(min_length=1)
    description: str = ""
    trigger: TriggerDefinition = Field(default_factory=TriggerDefinition)
    config: WorkflowConfig
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)

    @property
    def steps(self) -> list[StepDefinition]:
        return self.config.steps

    def module_paths(self) -> list[str]:
        return [step.module for step in self.config.steps]

    def to_document(self) -> dict[str, Any]:
        """Serialize with the wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
