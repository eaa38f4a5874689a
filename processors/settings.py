from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from pipeline.io.validate import error_location, load_schema, schema_path, validate_obj
from processors.errors import ConfigError


def _coerce_scalar(val: str) -> int | float | bool | str:
    lower = val.lower()
    if lower in ("true", "false"):
        return lower == "true"
    try:
        if "." in val:
            return float(val)
        return int(val)
    except ValueError:
        return val


def load_config(config_path: Path | None, inline_kv: Sequence[str] | None = None) -> dict[str, Any]:
    cfg: dict[str, Any] = {}
    if config_path:
        text = config_path.read_text(encoding="utf-8")
        if config_path.suffix.lower() in (".yaml", ".yml"):
            import yaml  # lazy

            try:
                cfg = dict(yaml.safe_load(text) or {})
            except yaml.YAMLError as e:
                raise ValueError(f"Failed to parse YAML config {config_path}: {e}") from e
        else:
            cfg = dict(json.loads(text))
    if inline_kv:
        for item in inline_kv:
            if "=" not in item:
                continue
            k, v = item.split("=", 1)
            _set_dotted(cfg, k.strip(), _coerce_scalar(v.strip()))
    return cfg


def _set_dotted(cfg: dict[str, Any], key: str, value: Any) -> None:
    # settings.docker_image=foo lands in cfg["settings"]["docker_image"]
    head, _, tail = key.partition(".")
    if not tail:
        cfg[head] = value
        return
    sub = cfg.get(head)
    if not isinstance(sub, dict):
        sub = {}
        cfg[head] = sub
    _set_dotted(sub, tail, value)


@dataclass
class ProviderSettings:
    # container
    docker_command: str = "docker"
    docker_image: str = "ocrd/all:maximum"
    docker_resources: str = "/usr/local/share/ocrd-resources"
    docker_stop_wait_kill_seconds: int = 2
    # effective user/group inside the container; platform identity is the fallback
    uid: str | None = None
    gid: str | None = None
    # resources on the host, relative to the target opt directory
    opt_folder: str = "ocr-d"
    opt_resources: str = "resources"
    describe_flag: str = "-J"
    # remote worker
    msa_url: str | None = None
    msa_protocol: str = "http"
    http_timeout_seconds: float = 30.0
    registry_root: str | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any] | None) -> ProviderSettings:
        if not d:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in d.items() if k in known}
        for key in ("uid", "gid"):
            if kwargs.get(key) is not None:
                kwargs[key] = str(kwargs[key]).strip() or None
        return cls(**kwargs)

    @property
    def msa_base_url(self) -> str | None:
        if not self.msa_url:
            return None
        return f"{self.msa_protocol}://{self.msa_url}"


@dataclass
class ProcessorEntry:
    """One configured processor: the fixed values a per-tool adapter feeds the engine."""

    id: str
    backend: str = "container"
    resources: bool = False
    description: str | None = None
    model_argument: str | None = None
    model_source: str = "folders"
    model_extension: str | None = None
    default_model: str | None = None
    join: str | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> ProcessorEntry:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass
class ProvidersConfig:
    settings: ProviderSettings = field(default_factory=ProviderSettings)
    processors: list[ProcessorEntry] = field(default_factory=list)

    def entry(self, processor_id: str) -> ProcessorEntry:
        for e in self.processors:
            if e.id == processor_id:
                return e
        raise ConfigError(f"unknown processor '{processor_id}'")


def load_providers(
    config_path: Path | None,
    inline_kv: Sequence[str] | None = None,
    *,
    schemas_root: Path | None = None,
) -> ProvidersConfig:
    try:
        cfg = load_config(config_path, inline_kv)
    except (ValueError, OSError) as e:
        raise ConfigError(str(e)) from e
    schema = load_schema(schema_path("providers", schemas_root))
    try:
        validate_obj(schema, cfg)
    except ValidationError as e:
        raise ConfigError(f"invalid providers config at {error_location(e)}: {e.message}") from e
    entries = [ProcessorEntry.from_dict(p) for p in cfg.get("processors", [])]
    seen: set[str] = set()
    for e in entries:
        if e.id in seen:
            raise ConfigError(f"duplicate processor id '{e.id}'")
        seen.add(e.id)
    return ProvidersConfig(
        settings=ProviderSettings.from_dict(cfg.get("settings")),
        processors=entries,
    )
