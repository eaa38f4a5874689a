"""Per-argument override behaviours, passed to the marshaller as data.

An adapter that needs to customise one named field or argument registers an
override here instead of subclassing the engine. The set of actions is
closed; each action decides how the produced items relate to the original.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Generic, TypeVar

from processors.description.types import FieldSchema, ParameterValue

T = TypeVar("T")


class OverrideAction(str, Enum):
    REPLACE = "replace"
    DROP = "drop"
    FAN_OUT = "fan_out"
    PREPEND = "prepend"
    APPEND = "append"


@dataclass(frozen=True)
class _Override(Generic[T]):
    action: OverrideAction
    items: tuple[T, ...] = ()
    build: Callable[[T], Sequence[T] | None] | None = None

    def produce(self, original: T) -> list[T]:
        if self.build is not None:
            produced = self.build(original)
            return [p for p in (produced or []) if p is not None]
        return list(self.items)

    def apply(self, original: T) -> list[T]:
        if self.action is OverrideAction.DROP:
            return []
        produced = self.produce(original)
        if self.action is OverrideAction.REPLACE:
            if len(produced) > 1:
                raise ValueError("a replace override must produce at most one item; use fan_out")
            return produced
        if self.action is OverrideAction.FAN_OUT:
            return produced
        if self.action is OverrideAction.PREPEND:
            return produced + [original]
        return [original] + produced


class FieldOverride(_Override[FieldSchema]):
    """Override applied to one schema field when building the form."""


class ArgumentOverride(_Override[ParameterValue]):
    """Override applied to one submitted value before conversion."""


def _frozen(d: Mapping | None) -> Mapping:
    return MappingProxyType(dict(d or {}))


@dataclass(frozen=True)
class Overrides:
    """Everything an adapter contributes on top of the generic engine.

    ``before``/``after`` are unrelated form entries spliced around the
    schema-derived fields. ``joins`` maps a selection argument to the
    separator that concatenates several selected values.
    ``extra_values`` are submitted ahead of the user's values.
    """

    before: tuple[FieldSchema, ...] = ()
    after: tuple[FieldSchema, ...] = ()
    fields: Mapping[str, FieldOverride] = field(default_factory=dict)
    arguments: Mapping[str, ArgumentOverride] = field(default_factory=dict)
    joins: Mapping[str, str] = field(default_factory=dict)
    extra_values: tuple[ParameterValue, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", _frozen(self.fields))
        object.__setattr__(self, "arguments", _frozen(self.arguments))
        object.__setattr__(self, "joins", _frozen(self.joins))

    def merged(self, other: Overrides | None) -> Overrides:
        if other is None:
            return self
        return Overrides(
            before=self.before + other.before,
            after=self.after + other.after,
            fields={**self.fields, **other.fields},
            arguments={**self.arguments, **other.arguments},
            joins={**self.joins, **other.joins},
            extra_values=self.extra_values + other.extra_values,
        )


NO_OVERRIDES = Overrides()
