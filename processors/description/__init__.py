"""Processor self-description parsing.

Turns the JSON a processor prints for its describe flag into an ordered,
immutable list of ``FieldSchema`` entries.
"""

from .parser import parse_description
from .types import FieldKind, FieldSchema, ParameterValue, ProcessorDescription, SelectOption

__all__ = [
    "parse_description",
    "FieldKind",
    "FieldSchema",
    "ParameterValue",
    "ProcessorDescription",
    "SelectOption",
]
