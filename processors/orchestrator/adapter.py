from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd

from pipeline.io.files import append_parquet_row
from pipeline.io.validate import load_schema, schema_path, validate_obj
from processors.backends import ContainerBackend, Premise, PremiseState, RemoteBackend
from processors.backends.container import list_models, processor_resources
from processors.description import ProcessorDescription, parse_description
from processors.description.types import FieldSchema
from processors.errors import ProcessorError
from processors.marshaller import Overrides, build_form, values_from_mapping
from processors.providers import model_overrides
from processors.settings import ProcessorEntry, ProviderSettings, ProvidersConfig, load_providers

from .core import RunCallbacks, RunControl, RunOutcome, run_processor
from .workspace import Workspace

logger = logging.getLogger("processors.orchestrator.adapter")

REGISTRY_RELATIVE = Path("registry") / "runs.parquet"


def _utc_now_iso() -> str:
    now = datetime.now(timezone.utc)
    ms = int(now.microsecond / 1000)
    return f"{now.strftime('%Y-%m-%dT%H:%M:%S')}.{ms:03d}Z"


def registry_path(registry_root: Path) -> Path:
    return registry_root / REGISTRY_RELATIVE


def append_registry_row(row: Mapping[str, Any], registry_root: Path, schemas_root: Path | None = None) -> Path:
    schema = load_schema(schema_path("runs_registry", schemas_root))
    validate_obj(schema, dict(row))
    path = registry_path(registry_root)
    append_parquet_row(dict(row), path)
    return path


def load_registry(registry_root: Path) -> list[dict[str, Any]]:
    path = registry_path(registry_root)
    if not path.exists():
        return []
    df = pd.read_parquet(path)
    df = df.astype(object).where(pd.notna(df), None)
    return list(df.to_dict(orient="records"))


class ProcessorAdapter:
    """One configured processor: discovery, form, pre-flight check and runs.

    The description is fetched and parsed once; every later form and run
    reuses it. Each run gets a fresh backend handle.
    """

    def __init__(
        self,
        entry: ProcessorEntry,
        settings: ProviderSettings,
        *,
        overrides: Overrides | None = None,
        backend_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.entry = entry
        self.settings = settings
        self._overrides = overrides
        self._backend_factory = backend_factory
        self._description: ProcessorDescription | None = None
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self.entry.id

    def new_backend(self) -> Any:
        if self._backend_factory is not None:
            return self._backend_factory()
        if self.entry.backend == "remote":
            return RemoteBackend(self.settings)
        return ContainerBackend(self.settings)

    def describe(self) -> ProcessorDescription:
        with self._lock:
            if self._description is None:
                text = self.new_backend().fetch_description(self.id)
                self._description = parse_description(text)
            return self._description

    @property
    def description_text(self) -> str:
        parsed = self.describe().description
        return parsed or self.entry.description or self.id

    def overrides(self, opt: Path | None = None) -> Overrides:
        base = self._overrides or Overrides()
        if self.entry.resources:
            return base.merged(model_overrides(self.entry, self.settings, opt))
        return base

    def form(self, opt: Path | None = None) -> list[FieldSchema]:
        return build_form(self.describe(), self.overrides(opt))

    def premise(self, opt: Path | None = None) -> Premise:
        premise = self.new_backend().premise()
        if premise.state is PremiseState.BLOCK:
            return premise
        if self.entry.resources and opt is not None:
            folder = processor_resources(self.settings, opt, self.id)
            if not list_models(folder, self.entry.model_source, self.entry.model_extension):
                return Premise.warn(f"no models available for {self.id} in {folder}.")
        return premise

    def run(
        self,
        workspace: Workspace,
        params: Mapping[str, Any],
        *,
        control: RunControl | None = None,
        callbacks: RunCallbacks | None = None,
        verbose: bool = False,
        schemas_root: Path | None = None,
    ) -> RunOutcome:
        description = self.describe()
        values = values_from_mapping(description, params)
        key = str(uuid.uuid4())
        created = _utc_now_iso()
        t0 = time.time()
        if verbose:
            print(f"[orchestrator] run={key} processor={self.id}", file=sys.stderr)

        outcome = run_processor(
            self.id,
            description,
            values,
            workspace,
            self.new_backend(),
            overrides=self.overrides(workspace.opt),
            control=control,
            callbacks=callbacks,
            key=key,
            resources=self.entry.resources,
            label=self.entry.description or self.id,
        )

        if verbose:
            print(
                f"[orchestrator] run={key} state={outcome.state.value} progress={outcome.progress}",
                file=sys.stderr,
            )
        if self.settings.registry_root:
            groups = outcome.file_groups
            row = {
                "run_id": key,
                "processor": self.id,
                "state": outcome.state.value,
                "input_group": groups.input if groups else None,
                "output_group": groups.output if groups else None,
                "created_ts": created,
                "duration_ms": int((time.time() - t0) * 1000),
                "message": outcome.message,
            }
            try:
                append_registry_row(row, Path(self.settings.registry_root), schemas_root)
            except OSError as e:
                logger.error(json.dumps({"event": "registry_write_failed", "run_id": key, "error": str(e)}))
        return outcome


def build_adapters(config: ProvidersConfig) -> dict[str, ProcessorAdapter]:
    return {e.id: ProcessorAdapter(e, config.settings) for e in config.processors}


def _load_json(path: Path) -> dict[str, Any]:
    return dict(json.loads(path.read_text(encoding="utf-8")))


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m processors.orchestrator",
        description="Describe, render and run configured processors",
    )
    p.add_argument("--config", type=Path, required=True, help="Providers file (YAML or JSON)")
    p.add_argument("--config-kv", nargs="*", help="Overrides like settings.docker_image=ocrd/all:medium")
    p.add_argument("--verbose", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    d = sub.add_parser("describe", help="Print the parsed processor description")
    d.add_argument("--processor", required=True)

    f = sub.add_parser("form", help="Print the form fields of a processor")
    f.add_argument("--processor", required=True)
    f.add_argument("--opt", type=Path, help="Target opt directory holding model resources")

    r = sub.add_parser("run", help="Run a processor against a workspace")
    r.add_argument("--processor", required=True)
    r.add_argument("--workspace", type=Path, required=True, help="Workspace JSON")
    r.add_argument("--params", type=Path, help="Parameter values JSON")
    return p


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        config = load_providers(args.config, args.config_kv)
        adapter = ProcessorAdapter(config.entry(args.processor), config.settings)
        if args.command == "describe":
            desc = adapter.describe()
            out: Any = {
                "id": adapter.id,
                "description": adapter.description_text,
                "categories": list(desc.categories or ()),
                "steps": list(desc.steps or ()),
                "fields": [fs.to_dict() for fs in desc.fields],
            }
        elif args.command == "form":
            out = [fs.to_dict() for fs in adapter.form(args.opt)]
        else:
            workspace = Workspace.from_dict(_load_json(args.workspace))
            params = _load_json(args.params) if args.params else {}
            callbacks = RunCallbacks(
                on_stdout=lambda s: print(s, file=sys.stderr),
                on_stderr=lambda s: print(s, file=sys.stderr),
            )
            outcome = adapter.run(workspace, params, callbacks=callbacks, verbose=bool(args.verbose))
            out = {
                "run_id": outcome.key,
                "state": outcome.state.value,
                "progress": outcome.progress,
                "message": outcome.message,
            }
            print(json.dumps(out, indent=2))
            return 0 if outcome.state.value == "completed" else 2
    except (ProcessorError, OSError, ValueError) as e:
        print(f"[orchestrator] error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(out, indent=2))
    return 0
