from __future__ import annotations

import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Response

from processors.api.models import (
    ErrorResponse,
    FieldModel,
    FormResponse,
    PremiseModel,
    ProcessorDetail,
    ProcessorsListResponse,
    ProcessorSummary,
    RunRegistryRow,
    RunRequest,
    RunResponse,
    RunsListResponse,
)
from processors.description.types import FieldSchema
from processors.errors import ConfigError, DescriptionError, ProcessorError
from processors.orchestrator.adapter import ProcessorAdapter, build_adapters, load_registry
from processors.orchestrator.core import RunCallbacks
from processors.orchestrator.workspace import Workspace
from processors.settings import ProvidersConfig, load_providers

CONFIG_ENV = "PROCESSORS_CONFIG"

app = FastAPI()

logger = logging.getLogger("processors.api")

# providers config and adapters, loaded on first use
_STATE: dict[str, Any] = {}


def _load_config() -> ProvidersConfig:
    path = os.environ.get(CONFIG_ENV)
    return load_providers(Path(path) if path else None)


def _config() -> ProvidersConfig:
    if "config" not in _STATE:
        _STATE["config"] = _load_config()
    return _STATE["config"]


def _adapters() -> dict[str, ProcessorAdapter]:
    if "adapters" not in _STATE:
        _STATE["adapters"] = build_adapters(_config())
    return _STATE["adapters"]


def _enter(endpoint: str, **extra: Any) -> float:
    logger.info(json.dumps({"event": "api_enter", "endpoint": endpoint, **extra}))
    return time.time()


def _exit(endpoint: str, t0: float, **extra: Any) -> None:
    dt = time.time() - t0
    logger.info(json.dumps({"event": "api_exit", "endpoint": endpoint, "dt_s": round(dt, 6), **extra}))


def _field_model(fs: FieldSchema) -> FieldModel:
    return FieldModel.model_validate(fs.to_dict())


def _not_found(response: Response, processor_id: str) -> ErrorResponse:
    response.status_code = 404
    return ErrorResponse(error="not_found", detail=f"unknown processor '{processor_id}'")


def _error(response: Response, e: ProcessorError) -> ErrorResponse:
    response.status_code = 502 if isinstance(e, DescriptionError) else 422
    return ErrorResponse(error=e.code.value.lower(), detail=e.user_message)


@app.get("/health")  # type: ignore[misc]
def health() -> dict[str, Any]:
    t0 = _enter("/health")
    out = {
        "ok": True,
        "version": "0.1.0",
        "time": datetime.now(timezone.utc).isoformat(),
    }
    _exit("/health", t0)
    return out


@app.get("/processors", response_model=ProcessorsListResponse | ErrorResponse)  # type: ignore[misc]
def list_processors(response: Response) -> ProcessorsListResponse | ErrorResponse:
    t0 = _enter("/processors")
    try:
        adapters = _adapters()
    except ConfigError as e:
        response.status_code = 500
        return ErrorResponse(error="config_error", detail=e.message)
    out = ProcessorsListResponse(
        processors=[
            ProcessorSummary(
                id=a.id,
                backend=a.entry.backend,
                resources=a.entry.resources,
                description=a.entry.description,
            )
            for a in adapters.values()
        ]
    )
    _exit("/processors", t0, count=len(out.processors))
    return out


@app.get("/processors/{processor_id}", response_model=ProcessorDetail | ErrorResponse)  # type: ignore[misc]
def get_processor(
    processor_id: str, response: Response, opt: str | None = None
) -> ProcessorDetail | ErrorResponse:
    t0 = _enter("/processors/{processor_id}", processor_id=processor_id)
    adapter = _adapters().get(processor_id)
    if adapter is None:
        return _not_found(response, processor_id)
    opt_path = Path(opt) if opt else None
    try:
        desc = adapter.describe()
        premise = adapter.premise(opt_path)
    except ProcessorError as e:
        return _error(response, e)
    out = ProcessorDetail(
        id=adapter.id,
        backend=adapter.entry.backend,
        description=adapter.description_text,
        categories=list(desc.categories or ()),
        steps=list(desc.steps or ()),
        advice=desc.advice,
        premise=PremiseModel(state=premise.state.value, message=premise.message),
        fields=[_field_model(fs) for fs in desc.fields],
    )
    _exit("/processors/{processor_id}", t0, premise=premise.state.value)
    return out


@app.get("/processors/{processor_id}/form", response_model=FormResponse | ErrorResponse)  # type: ignore[misc]
def get_form(processor_id: str, response: Response, opt: str | None = None) -> FormResponse | ErrorResponse:
    t0 = _enter("/processors/{processor_id}/form", processor_id=processor_id)
    adapter = _adapters().get(processor_id)
    if adapter is None:
        return _not_found(response, processor_id)
    try:
        fields = adapter.form(Path(opt) if opt else None)
    except ProcessorError as e:
        return _error(response, e)
    out = FormResponse(id=adapter.id, fields=[_field_model(fs) for fs in fields])
    _exit("/processors/{processor_id}/form", t0, count=len(out.fields))
    return out


@app.post("/processors/{processor_id}/runs", response_model=RunResponse | ErrorResponse)  # type: ignore[misc]
def start_run(processor_id: str, req: RunRequest, response: Response) -> RunResponse | ErrorResponse:
    t0 = _enter("/processors/{processor_id}/runs", processor_id=processor_id)
    adapter = _adapters().get(processor_id)
    if adapter is None:
        return _not_found(response, processor_id)
    stdout: list[str] = []
    stderr: list[str] = []
    callbacks = RunCallbacks(on_stdout=stdout.append, on_stderr=stderr.append)
    workspace = Workspace.from_dict(req.workspace.model_dump())
    try:
        outcome = adapter.run(workspace, req.params, callbacks=callbacks)
    except ProcessorError as e:
        return _error(response, e)
    groups = outcome.file_groups
    out = RunResponse(
        run_id=outcome.key,
        processor=adapter.id,
        state=outcome.state.value,
        progress=outcome.progress,
        input_group=groups.input if groups else None,
        output_group=groups.output if groups else None,
        message=outcome.message,
        failed_step=outcome.failed_step,
        error_code=outcome.error_code.value if outcome.error_code else None,
        exit_code=outcome.exit_code,
        ignored=outcome.ignored,
        stdout=stdout,
        stderr=stderr,
    )
    _exit("/processors/{processor_id}/runs", t0, run_id=outcome.key, state=outcome.state.value)
    return out


@app.get("/runs", response_model=RunsListResponse | ErrorResponse)  # type: ignore[misc]
def list_runs(response: Response) -> RunsListResponse | ErrorResponse:
    """List runs recorded in the registry parquet.

    Returns 404 if no registry root is configured.
    """
    t0 = _enter("/runs")
    root = _config().settings.registry_root
    if not root:
        response.status_code = 404
        return ErrorResponse(error="not_found", detail="registry not configured")
    rows = load_registry(Path(root))
    out = RunsListResponse(runs=[RunRegistryRow.model_validate(r) for r in rows])
    _exit("/runs", t0, count=len(out.runs))
    return out
