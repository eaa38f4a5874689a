"""Mapping between the parsed schema and a concrete processor invocation."""

from .form import build_form
from .overrides import ArgumentOverride, FieldOverride, OverrideAction, Overrides
from .payload import InvocationPayload, MarshalResult, build_payload, serialize_payload
from .values import value_from_raw, values_from_mapping

__all__ = [
    "build_form",
    "build_payload",
    "serialize_payload",
    "value_from_raw",
    "values_from_mapping",
    "ArgumentOverride",
    "FieldOverride",
    "InvocationPayload",
    "MarshalResult",
    "OverrideAction",
    "Overrides",
]
