from __future__ import annotations

import pytest

from processors.description import FieldKind, FieldSchema, parse_description
from processors.marshaller import FieldOverride, OverrideAction, Overrides, build_form

DESCRIPTION = parse_description(
    {
        "parameters": {
            "model": {"type": "string", "default": "default"},
            "level": {"type": "number", "format": "int"},
            "debug": {"type": "boolean"},
        }
    }
)


def _note(name: str) -> FieldSchema:
    return FieldSchema(argument=name, kind=FieldKind.STRING)


def test_form_without_overrides_is_the_schema() -> None:
    assert build_form(DESCRIPTION) == list(DESCRIPTION.fields)


def test_before_and_after_entries_wrap_schema_fields() -> None:
    form = build_form(DESCRIPTION, Overrides(before=(_note("intro"),), after=(_note("outro"),)))
    assert [f.argument for f in form] == ["intro", "model", "level", "debug", "outro"]


def test_field_overrides() -> None:
    overrides = Overrides(
        fields={
            "model": FieldOverride(
                OverrideAction.REPLACE,
                build=lambda fs: [fs.with_changes(kind=FieldKind.SELECTION, default=["m1"])],
            ),
            "level": FieldOverride(OverrideAction.PREPEND, items=(_note("level-help"),)),
            "debug": FieldOverride(OverrideAction.APPEND, items=(_note("debug-help"),)),
        }
    )
    form = build_form(DESCRIPTION, overrides)
    assert [f.argument for f in form] == ["model", "level-help", "level", "debug", "debug-help"]
    assert form[0].kind is FieldKind.SELECTION
    assert form[0].default == ["m1"]


def test_drop_removes_field() -> None:
    form = build_form(DESCRIPTION, Overrides(fields={"level": FieldOverride(OverrideAction.DROP)}))
    assert [f.argument for f in form] == ["model", "debug"]


def test_replace_must_not_fan_out() -> None:
    override = FieldOverride(OverrideAction.REPLACE, items=(_note("a"), _note("b")))
    with pytest.raises(ValueError):
        build_form(DESCRIPTION, Overrides(fields={"model": override}))


def test_merged_overrides_combine_both_sides() -> None:
    left = Overrides(before=(_note("a"),), joins={"model": "+"})
    right = Overrides(after=(_note("z"),), joins={"level": ","})
    merged = left.merged(right)
    assert [f.argument for f in merged.before] == ["a"]
    assert [f.argument for f in merged.after] == ["z"]
    assert dict(merged.joins) == {"model": "+", "level": ","}
