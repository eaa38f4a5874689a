"""Types shared by the description parser and the argument marshaller."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

JSON_CONTENT_TYPE = "application/json"


class FieldKind(str, Enum):
    STRING = "string"
    SELECTION = "selection"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    OBJECT = "object"


@dataclass(frozen=True)
class SelectOption:
    value: str
    selected: bool = False
    label: str | None = None
    disabled: bool = False


@dataclass(frozen=True)
class FieldSchema:
    """One configurable processor parameter.

    ``default`` holds a native value for scalar kinds, the list of
    pre-selected candidates for selections, and a compact JSON fragment
    (or ``None``) for opaque objects.
    """

    argument: str
    kind: FieldKind
    default: Any = None
    label: str | None = None
    description: str | None = None
    options: tuple[SelectOption, ...] = ()
    multiple: bool = False
    minimum: float | None = None
    maximum: float | None = None
    step: float | None = None
    content_type: str | None = None

    @property
    def display_label(self) -> str:
        return self.label or self.argument

    @property
    def is_object(self) -> bool:
        return self.kind is FieldKind.OBJECT

    def with_changes(self, **changes: Any) -> FieldSchema:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind.value
        d["label"] = self.display_label
        return d


@dataclass(frozen=True)
class ParameterValue:
    """A submitted value bound to ``FieldSchema.argument``.

    Selections carry a list of strings (one entry for a single choice); the
    other kinds carry the native scalar.
    """

    argument: str
    kind: FieldKind
    value: Any

    @classmethod
    def selection(cls, argument: str, values: list[str] | tuple[str, ...] | str) -> ParameterValue:
        if isinstance(values, str):
            values = [values]
        return cls(argument, FieldKind.SELECTION, list(values))

    @classmethod
    def string(cls, argument: str, value: str) -> ParameterValue:
        return cls(argument, FieldKind.STRING, value)

    @classmethod
    def integer(cls, argument: str, value: int) -> ParameterValue:
        return cls(argument, FieldKind.INTEGER, value)

    @classmethod
    def decimal(cls, argument: str, value: float) -> ParameterValue:
        return cls(argument, FieldKind.DECIMAL, value)

    @classmethod
    def boolean(cls, argument: str, value: bool) -> ParameterValue:
        return cls(argument, FieldKind.BOOLEAN, value)


@dataclass(frozen=True)
class ProcessorDescription:
    json: str
    description: str | None = None
    categories: tuple[str, ...] | None = None
    steps: tuple[str, ...] | None = None
    fields: tuple[FieldSchema, ...] = ()
    object_arguments: frozenset[str] = field(default_factory=frozenset)

    @property
    def arguments(self) -> list[str]:
        return [f.argument for f in self.fields]

    def get_field(self, argument: str) -> FieldSchema | None:
        for f in self.fields:
            if f.argument == argument:
                return f
        return None

    @property
    def advice(self) -> str:
        return "JSON processor description:\n" + self.json
