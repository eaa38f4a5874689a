from __future__ import annotations

from processors.description import FieldKind, FieldSchema, ParameterValue, SelectOption
from validators import InvalidReason, Rules, validate_value

SELECT = FieldSchema(
    argument="model",
    kind=FieldKind.SELECTION,
    options=(SelectOption("a", selected=True), SelectOption("b")),
)
LEVEL = FieldSchema(argument="level", kind=FieldKind.INTEGER, minimum=0, maximum=5)


def test_single_selection_is_valid() -> None:
    assert validate_value(SELECT, ParameterValue.selection("model", "b")).valid


def test_multiple_selection_needs_permission() -> None:
    value = ParameterValue.selection("model", ["a", "b"])
    res = validate_value(SELECT, value)
    assert not res.valid
    assert res.reasons == [InvalidReason.MULTIPLE_NOT_ALLOWED]
    assert validate_value(SELECT, value, Rules(allow_multiple=True)).valid
    assert validate_value(SELECT.with_changes(multiple=True), value).valid


def test_unknown_candidate() -> None:
    value = ParameterValue.selection("model", ["zzz"])
    assert validate_value(SELECT, value).reasons == [InvalidReason.UNKNOWN_CANDIDATE]
    assert validate_value(SELECT, value, Rules(check_candidates=False)).valid


def test_numeric_bounds() -> None:
    assert validate_value(LEVEL, ParameterValue.integer("level", 5)).valid
    assert validate_value(LEVEL, ParameterValue.integer("level", -1)).reasons == [InvalidReason.BELOW_MINIMUM]
    assert validate_value(LEVEL, ParameterValue.integer("level", 6)).reasons == [InvalidReason.ABOVE_MAXIMUM]
    assert validate_value(LEVEL, ParameterValue.integer("level", 6), Rules(check_bounds=False)).valid


def test_wrong_value_types() -> None:
    assert validate_value(LEVEL, ParameterValue.integer("level", True)).reasons == [
        InvalidReason.WRONG_VALUE_TYPE
    ]
    assert validate_value(LEVEL, ParameterValue.integer("level", 1.5)).reasons == [
        InvalidReason.WRONG_VALUE_TYPE
    ]
    assert not validate_value(None, ParameterValue.boolean("flag", "yes")).valid
    assert not validate_value(None, ParameterValue.string("name", 3)).valid


def test_missing_schema_skips_schema_checks() -> None:
    assert validate_value(None, ParameterValue.decimal("free", 1e9)).valid


def test_value_kind_must_match_the_field() -> None:
    threshold = FieldSchema(argument="t", kind=FieldKind.DECIMAL, maximum=1.0)
    res = validate_value(threshold, ParameterValue.string("t", "5"))
    assert res.reasons == [InvalidReason.KIND_MISMATCH]
    assert "'decimal'" in res.detail and "'string'" in res.detail
    assert validate_value(LEVEL, ParameterValue.decimal("level", 2.5)).reasons == [InvalidReason.KIND_MISMATCH]
    assert validate_value(LEVEL, ParameterValue.boolean("level", True)).reasons == [InvalidReason.KIND_MISMATCH]
    assert validate_value(LEVEL, ParameterValue.selection("level", ["1"])).reasons == [
        InvalidReason.KIND_MISMATCH
    ]


def test_accepted_kind_pairs() -> None:
    threshold = FieldSchema(argument="t", kind=FieldKind.DECIMAL, maximum=1.0)
    assert validate_value(threshold, ParameterValue.integer("t", 1)).valid
    assert validate_value(threshold, ParameterValue.integer("t", 2)).reasons == [InvalidReason.ABOVE_MAXIMUM]
    config = FieldSchema(argument="config", kind=FieldKind.OBJECT)
    assert validate_value(config, ParameterValue.string("config", "{}")).valid
    model = FieldSchema(argument="model", kind=FieldKind.STRING)
    assert validate_value(model, ParameterValue.selection("model", ["eng"]), Rules(accept_selection=True)).valid


def test_non_finite_numbers() -> None:
    threshold = FieldSchema(argument="t", kind=FieldKind.DECIMAL)
    for v in (float("nan"), float("inf"), float("-inf")):
        assert validate_value(threshold, ParameterValue.decimal("t", v)).reasons == [InvalidReason.NOT_FINITE]
