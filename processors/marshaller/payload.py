from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from processors.description.types import FieldKind, ParameterValue, ProcessorDescription
from processors.errors import MarshallingError
from validators import Rules, validate_value

from .overrides import NO_OVERRIDES, Overrides

logger = logging.getLogger("processors.marshaller")

InvocationPayload = dict[str, Any]


@dataclass
class MarshalResult:
    payload: InvocationPayload
    ignored: list[str] = field(default_factory=list)


def _apply_argument_overrides(
    values: Sequence[ParameterValue], overrides: Overrides
) -> list[ParameterValue]:
    out: list[ParameterValue] = []
    for value in values:
        override = overrides.arguments.get(value.argument)
        if override is None:
            out.append(value)
            continue
        try:
            out.extend(override.apply(value))
        except ValueError as e:
            raise MarshallingError(value.argument, f"override for argument '{value.argument}' failed - {e}") from e
    return out


def _convert(value: ParameterValue, description: ProcessorDescription, overrides: Overrides) -> Any:
    """Return the JSON value for ``value``, or ``None`` when no entry is produced."""
    arg = value.argument
    if value.value is None:
        return None

    if value.kind is FieldKind.SELECTION:
        selected = list(value.value)
        separator = overrides.joins.get(arg)
        if separator is not None:
            return separator.join(selected) if selected else None
        return selected[0] if selected else None

    if value.kind is FieldKind.STRING:
        text = value.value
        if arg in description.object_arguments:
            if not text.strip():
                return None
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise MarshallingError(
                    arg, f"The JSON value of argument '{arg}' can not be parsed - {e}"
                ) from e
        return text

    if value.kind is FieldKind.INTEGER:
        return int(value.value)
    if value.kind is FieldKind.DECIMAL:
        return float(value.value)
    if value.kind is FieldKind.BOOLEAN:
        return bool(value.value)

    raise MarshallingError(
        arg,
        f"The argument '{arg}' of kind '{value.kind.value}' is not supported.",
        details={"kind": value.kind.value},
    )


def build_payload(
    description: ProcessorDescription,
    values: Sequence[ParameterValue],
    overrides: Overrides | None = None,
) -> MarshalResult:
    """Marshal submitted values into the processor's parameter payload.

    Only arguments present in the description reach the payload; others are
    reported in ``MarshalResult.ignored``. Schema arguments without a
    submitted value get no entry so the processor default applies.
    """
    overrides = overrides or NO_OVERRIDES
    handled = _apply_argument_overrides(list(overrides.extra_values) + list(values), overrides)

    known = set(description.arguments)
    payload: InvocationPayload = {}
    ignored: list[str] = []
    for value in handled:
        if value.argument not in known:
            if value.argument not in ignored:
                ignored.append(value.argument)
                logger.warning(json.dumps({"event": "argument_ignored", "argument": value.argument}))
            continue

        check = validate_value(
            description.get_field(value.argument),
            value,
            Rules(
                allow_multiple=value.argument in overrides.joins,
                check_candidates=value.argument not in overrides.fields,
                accept_selection=value.argument in overrides.fields or value.argument in overrides.joins,
            ),
        )
        if not check.valid:
            raise MarshallingError(
                value.argument,
                check.detail or f"invalid value for argument '{value.argument}'.",
                details={"reasons": [r.value for r in check.reasons]},
            )

        converted = _convert(value, description, overrides)
        if converted is not None:
            payload[value.argument] = converted
    return MarshalResult(payload=payload, ignored=ignored)


def serialize_payload(payload: InvocationPayload) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
