from __future__ import annotations

from processors.description.types import FieldSchema, ProcessorDescription

from .overrides import NO_OVERRIDES, Overrides


def build_form(description: ProcessorDescription, overrides: Overrides | None = None) -> list[FieldSchema]:
    """Render the schema as form fields, applying per-field overrides in order."""
    overrides = overrides or NO_OVERRIDES
    entries: list[FieldSchema] = list(overrides.before)
    for fs in description.fields:
        override = overrides.fields.get(fs.argument)
        if override is None:
            entries.append(fs)
        else:
            entries.extend(override.apply(fs))
    entries.extend(overrides.after)
    return entries
