from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from pipeline.io.validate import error_location, load_schema, schema_path, validate_obj
from processors.errors import DescriptionError

from .types import JSON_CONTENT_TYPE, FieldKind, FieldSchema, ProcessorDescription, SelectOption

logger = logging.getLogger("processors.description")

_TYPES = ("string", "number", "boolean", "object")
_INTEGER_FORMATS = ("integer", "int")


def _reject_duplicates(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise DescriptionError(f"duplicate key '{key}' in JSON processor description.")
        out[key] = value
    return out


def _text(spec: Mapping[str, Any], key: str) -> str | None:
    # Non-empty strings only; any other JSON type counts as absent
    value = spec.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return _is_int(value) or isinstance(value, float)


def _as_list(value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(v if isinstance(v, str) else json.dumps(v) for v in value)


def _bound(spec: Mapping[str, Any], key: str) -> float | None:
    value = spec.get(key)
    return value if _is_number(value) else None


def _field_type(parameter: str, spec: Any) -> str:
    name = _text(spec, "type") if isinstance(spec, Mapping) else None
    if name is None or not name.strip():
        raise DescriptionError(f"undefined required type for parameter '{parameter}'.")
    normalized = name.strip().lower()
    if normalized not in _TYPES:
        raise DescriptionError(f"unknown type '{name}' for parameter '{parameter}'.")
    return normalized


def _number_format(spec: Mapping[str, Any]) -> FieldKind:
    fmt = _text(spec, "format")
    if fmt is not None and fmt.strip().lower() in _INTEGER_FORMATS:
        return FieldKind.INTEGER
    # "float", unknown formats and a missing format all mean decimal
    return FieldKind.DECIMAL


def parse_field(parameter: str, spec: Any) -> FieldSchema:
    ftype = _field_type(parameter, spec)
    description = _text(spec, "description")
    common = {"argument": parameter, "label": parameter, "description": description}

    if ftype == "string":
        if "enum" in spec:
            candidates = spec["enum"]
            if not isinstance(candidates, list) or not all(isinstance(c, str) for c in candidates):
                raise DescriptionError(
                    f"the field 'enum' for parameter '{parameter}' is not an enumeration."
                )
            default = _text(spec, "default")
            options = tuple(
                SelectOption(value=c, selected=c == default) for c in candidates if c.strip()
            )
            return FieldSchema(
                kind=FieldKind.SELECTION,
                default=[o.value for o in options if o.selected],
                options=options,
                **common,
            )
        return FieldSchema(
            kind=FieldKind.STRING,
            default=_text(spec, "default"),
            content_type=_text(spec, "content-type"),
            **common,
        )

    if ftype == "number":
        kind = _number_format(spec)
        raw = spec.get("default")
        if kind is FieldKind.INTEGER:
            default = raw if _is_int(raw) else None
        else:
            default = float(raw) if _is_number(raw) else None
        return FieldSchema(
            kind=kind,
            default=default,
            minimum=_bound(spec, "minimum"),
            maximum=_bound(spec, "maximum"),
            **common,
        )

    if ftype == "boolean":
        raw = spec.get("default")
        return FieldSchema(
            kind=FieldKind.BOOLEAN,
            default=raw if isinstance(raw, bool) else None,
            **common,
        )

    # object: the default travels as a pre-serialized fragment, "{}" means none
    raw = spec.get("default")
    default = None
    if isinstance(raw, dict) and raw:
        default = json.dumps(raw, separators=(",", ":"))
    return FieldSchema(
        kind=FieldKind.OBJECT,
        default=default,
        content_type=JSON_CONTENT_TYPE,
        **common,
    )


def parse_description(
    source: str | bytes | Mapping[str, Any],
    *,
    schemas_root: Path | None = None,
) -> ProcessorDescription:
    """Parse a processor self-description into an ordered field schema.

    ``source`` is the raw JSON text (as printed by the processor) or an
    already decoded mapping. Raises ``DescriptionError`` for malformed JSON,
    a non-object ``parameters`` member, duplicate parameter names, missing or
    unknown parameter types and non-string enumerations.
    """
    if isinstance(source, Mapping):
        root: Any = dict(source)
        raw = json.dumps(root, separators=(",", ":"))
    else:
        raw = source.decode("utf-8") if isinstance(source, bytes) else source
        raw = raw.strip()
        if not raw:
            raise DescriptionError("empty JSON processor description.")
        try:
            root = json.loads(raw, object_pairs_hook=_reject_duplicates)
        except json.JSONDecodeError as e:
            raise DescriptionError(f"could not parse JSON processor description - {e}") from e

    if not isinstance(root, dict):
        raise DescriptionError(
            f"expecting a JSON object for the processor description, got {type(root).__name__}."
        )

    schema = load_schema(schema_path("processor_description", schemas_root))
    try:
        validate_obj(schema, root)
    except ValidationError as e:
        raise DescriptionError(
            f"invalid JSON processor description at {error_location(e)}: {e.message}"
        ) from e

    desc = root.get("description")
    if isinstance(desc, (dict, list)) or desc is None:
        description = None
    else:
        description = desc if isinstance(desc, str) else json.dumps(desc)

    fields: list[FieldSchema] = []
    object_arguments: set[str] = set()
    for parameter, spec in (root.get("parameters") or {}).items():
        fs = parse_field(parameter, spec)
        if fs.is_object:
            object_arguments.add(parameter)
        fields.append(fs)

    parsed = ProcessorDescription(
        json=raw,
        description=description,
        categories=_as_list(root.get("categories")),
        steps=_as_list(root.get("steps")),
        fields=tuple(fields),
        object_arguments=frozenset(object_arguments),
    )
    logger.info(
        json.dumps(
            {
                "event": "description_parsed",
                "fields": len(parsed.fields),
                "object_arguments": sorted(parsed.object_arguments),
            }
        )
    )
    return parsed
