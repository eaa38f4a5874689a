from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from processors.description.types import FieldKind, ParameterValue, ProcessorDescription
from processors.errors import MarshallingError


def value_from_raw(argument: str, raw: Any, kind: FieldKind | None = None) -> ParameterValue | None:
    """Bind a plain JSON value to ``argument``, guided by the schema kind when known."""
    if raw is None:
        return None
    if kind is FieldKind.OBJECT:
        return ParameterValue.string(argument, raw if isinstance(raw, str) else json.dumps(raw))
    if kind is FieldKind.SELECTION or isinstance(raw, list):
        items = raw if isinstance(raw, list) else [raw]
        return ParameterValue.selection(argument, [str(v) for v in items])
    if isinstance(raw, bool):
        return ParameterValue.boolean(argument, raw)
    if isinstance(raw, int) and kind is not FieldKind.DECIMAL:
        return ParameterValue.integer(argument, raw)
    if isinstance(raw, (int, float)):
        return ParameterValue.decimal(argument, float(raw))
    if isinstance(raw, str):
        return ParameterValue.string(argument, raw)
    raise MarshallingError(argument, f"unsupported value of type '{type(raw).__name__}' for argument '{argument}'.")


def values_from_mapping(description: ProcessorDescription, raw: Mapping[str, Any]) -> list[ParameterValue]:
    out: list[ParameterValue] = []
    for argument, value in raw.items():
        fs = description.get_field(argument)
        pv = value_from_raw(argument, value, fs.kind if fs is not None else None)
        if pv is not None:
            out.append(pv)
    return out
