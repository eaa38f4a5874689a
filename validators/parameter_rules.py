"""Checks a submitted ``ParameterValue`` against its ``FieldSchema``."""

from __future__ import annotations

import math

from processors.description.types import FieldKind, FieldSchema, ParameterValue

from .types import InvalidReason, Rules, ValidationResult


def _invalid(reason: InvalidReason, detail: str) -> ValidationResult:
    return ValidationResult(valid=False, reasons=[reason], detail=detail)


def _check_selection(schema: FieldSchema | None, value: ParameterValue, rules: Rules) -> ValidationResult:
    values = value.value
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        return _invalid(InvalidReason.WRONG_VALUE_TYPE, "selection values must be strings")
    multiple = rules.allow_multiple or (schema is not None and schema.multiple)
    if len(values) > 1 and not multiple:
        return _invalid(
            InvalidReason.MULTIPLE_NOT_ALLOWED,
            f"the select argument '{value.argument}' allows only one value.",
        )
    if (
        rules.check_candidates
        and schema is not None
        and schema.kind is FieldKind.SELECTION
        and schema.options
    ):
        known = {o.value for o in schema.options}
        unknown = [v for v in values if v not in known]
        if unknown:
            return _invalid(
                InvalidReason.UNKNOWN_CANDIDATE,
                f"unknown value(s) {unknown} for the select argument '{value.argument}'.",
            )
    return ValidationResult(valid=True)


def _check_number(schema: FieldSchema | None, value: ParameterValue, rules: Rules) -> ValidationResult:
    v = value.value
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return _invalid(InvalidReason.WRONG_VALUE_TYPE, f"'{value.argument}' expects a number")
    if value.kind is FieldKind.INTEGER and not isinstance(v, int):
        return _invalid(InvalidReason.WRONG_VALUE_TYPE, f"'{value.argument}' expects an integer")
    if not math.isfinite(v):
        return _invalid(InvalidReason.NOT_FINITE, f"value {v} of '{value.argument}' is not a finite number.")
    if rules.check_bounds and schema is not None:
        if schema.minimum is not None and v < schema.minimum:
            return _invalid(
                InvalidReason.BELOW_MINIMUM,
                f"value {v} of '{value.argument}' is below the minimum {schema.minimum}.",
            )
        if schema.maximum is not None and v > schema.maximum:
            return _invalid(
                InvalidReason.ABOVE_MAXIMUM,
                f"value {v} of '{value.argument}' is above the maximum {schema.maximum}.",
            )
    return ValidationResult(valid=True)


def _kind_accepted(declared: FieldKind, submitted: FieldKind, rules: Rules) -> bool:
    if submitted is declared:
        return True
    if submitted is FieldKind.SELECTION:
        return rules.accept_selection
    # object values are submitted as JSON text
    return (declared, submitted) in (
        (FieldKind.OBJECT, FieldKind.STRING),
        (FieldKind.DECIMAL, FieldKind.INTEGER),
    )


def validate_value(
    schema: FieldSchema | None,
    value: ParameterValue,
    rules: Rules | None = None,
) -> ValidationResult:
    """Validate one submitted value. Pure function with no I/O."""
    rules = rules or Rules()
    if schema is not None and not _kind_accepted(schema.kind, value.kind, rules):
        return _invalid(
            InvalidReason.KIND_MISMATCH,
            f"the argument '{value.argument}' of kind '{schema.kind.value}'"
            f" does not accept a '{value.kind.value}' value.",
        )
    if value.kind is FieldKind.SELECTION:
        return _check_selection(schema, value, rules)
    if value.kind in (FieldKind.INTEGER, FieldKind.DECIMAL):
        return _check_number(schema, value, rules)
    if value.kind is FieldKind.BOOLEAN and not isinstance(value.value, bool):
        return _invalid(InvalidReason.WRONG_VALUE_TYPE, f"'{value.argument}' expects a boolean")
    if value.kind is FieldKind.STRING and not isinstance(value.value, str):
        return _invalid(InvalidReason.WRONG_VALUE_TYPE, f"'{value.argument}' expects a string")
    return ValidationResult(valid=True)
