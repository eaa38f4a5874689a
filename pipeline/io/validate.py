from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from jsonschema.validators import Draft202012Validator as Validator

SCHEMAS_ROOT = Path(__file__).resolve().parents[1] / "schemas"


def load_schema(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        schema = yaml.safe_load(f)
    Validator.check_schema(schema)
    return schema


def schema_path(name: str, schemas_root: Path | None = None) -> Path:
    return (schemas_root or SCHEMAS_ROOT) / f"{name}.schema.yaml"


def validate_obj(schema: dict[str, Any], obj: Any) -> None:
    """Validate ``obj`` and raise the most relevant ``ValidationError``."""
    validator = Validator(schema)
    errors = sorted(validator.iter_errors(obj), key=lambda e: list(e.absolute_path))
    if errors:
        raise errors[0]


def error_location(err: Exception) -> str:
    path = getattr(err, "absolute_path", None)
    if not path:
        return "$"
    return "$." + ".".join(str(p) for p in path)
