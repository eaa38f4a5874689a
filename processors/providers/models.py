"""Model selection for processors that need pre-staged resources.

Replaces the free-text model argument of a processor description with a
selection of the models found in its resources folder.
"""

from __future__ import annotations

from pathlib import Path

from processors.backends.container import list_models, processor_resources
from processors.description.types import FieldKind, FieldSchema, SelectOption
from processors.marshaller.overrides import ArgumentOverride, FieldOverride, OverrideAction, Overrides
from processors.settings import ProcessorEntry, ProviderSettings

EMPTY_MODEL = "empty"


def available_models(entry: ProcessorEntry, settings: ProviderSettings, opt: Path) -> list[str]:
    folder = processor_resources(settings, opt, entry.id)
    return list_models(folder, entry.model_source, entry.model_extension)


def _schema_default(fs: FieldSchema) -> list[str]:
    if fs.default is None:
        return []
    if isinstance(fs.default, (list, tuple)):
        return [str(v) for v in fs.default]
    return [str(fs.default)]


def model_field_override(entry: ProcessorEntry, models: list[str]) -> FieldOverride:
    def build(fs: FieldSchema) -> list[FieldSchema]:
        if not models:
            options = (SelectOption(EMPTY_MODEL, disabled=True),)
            default: list[str] = []
        else:
            default = [entry.default_model] if entry.default_model else _schema_default(fs)
            options = tuple(SelectOption(m, selected=m in default) for m in models)
            default = [m for m in default if m in models]
        return [
            fs.with_changes(
                kind=FieldKind.SELECTION,
                default=default,
                options=options,
                multiple=bool(entry.join),
                minimum=None,
                maximum=None,
                step=None,
            )
        ]

    return FieldOverride(OverrideAction.REPLACE, build=build)


def model_overrides(entry: ProcessorEntry, settings: ProviderSettings, opt: Path | None) -> Overrides:
    """Overrides for ``entry.model_argument``; empty when nothing is configured."""
    arg = entry.model_argument
    if not arg or opt is None:
        return Overrides()
    models = available_models(entry, settings, opt)
    arguments = {} if models else {arg: ArgumentOverride(OverrideAction.DROP)}
    joins = {arg: entry.join} if entry.join else {}
    return Overrides(fields={arg: model_field_override(entry, models)}, arguments=arguments, joins=joins)
