from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None


class PremiseModel(BaseModel):
    state: Literal["ok", "warn", "block"]
    message: str | None = None


class ProcessorSummary(BaseModel):
    id: str
    backend: Literal["container", "remote"]
    resources: bool = False
    description: str | None = None


class ProcessorsListResponse(BaseModel):
    processors: list[ProcessorSummary]


class SelectOptionModel(BaseModel):
    value: str
    selected: bool = False
    label: str | None = None
    disabled: bool = False


class FieldModel(BaseModel):
    argument: str
    kind: Literal["string", "selection", "integer", "decimal", "boolean", "object"]
    default: Any = None
    label: str | None = None
    description: str | None = None
    options: list[SelectOptionModel] = Field(default_factory=list)
    multiple: bool = False
    minimum: float | None = None
    maximum: float | None = None
    step: float | None = None
    content_type: str | None = None


class ProcessorDetail(BaseModel):
    id: str
    backend: Literal["container", "remote"]
    description: str
    categories: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    advice: str
    premise: PremiseModel
    fields: list[FieldModel]


class FormResponse(BaseModel):
    id: str
    fields: list[FieldModel]


class WorkspaceModel(BaseModel):
    processor_workspace: str
    output: str
    snapshot_track: list[int] = Field(default_factory=list)
    parent_snapshot_track: list[int] = Field(default_factory=list)
    output_relative: str | None = None
    mets: str | None = None
    mets_group: str | None = None
    projects: str | None = None
    opt: str | None = None
    uid: str | None = None
    gid: str | None = None


class RunRequest(BaseModel):
    workspace: WorkspaceModel
    params: dict[str, Any] = Field(default_factory=dict)


class RunResponse(BaseModel):
    run_id: str
    processor: str
    state: Literal["pending", "running", "canceled", "interrupted", "completed"]
    progress: float
    input_group: str | None = None
    output_group: str | None = None
    message: str | None = None
    failed_step: str | None = None
    error_code: str | None = None
    exit_code: int | None = None
    ignored: list[str] = Field(default_factory=list)
    stdout: list[str] = Field(default_factory=list)
    stderr: list[str] = Field(default_factory=list)


class RunRegistryRow(BaseModel):
    run_id: str
    processor: str
    state: str
    input_group: str | None = None
    output_group: str | None = None
    created_ts: str
    duration_ms: int
    message: str | None = None


class RunsListResponse(BaseModel):
    runs: list[RunRegistryRow]
