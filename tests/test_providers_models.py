from __future__ import annotations

from pathlib import Path

from processors.description import FieldKind, ParameterValue, parse_description
from processors.marshaller import build_form, build_payload
from processors.providers import EMPTY_MODEL, model_overrides
from processors.settings import ProcessorEntry, ProviderSettings

SETTINGS = ProviderSettings()
DESCRIPTION = parse_description(
    {
        "parameters": {
            "model": {"type": "string", "default": "eng"},
            "textequiv_level": {"type": "string", "enum": ["line", "word"], "default": "line"},
        }
    }
)


def _models(opt: Path, processor: str, *names: str, files: bool = False) -> None:
    folder = opt / "ocr-d" / "resources" / processor
    folder.mkdir(parents=True)
    for n in names:
        if files:
            (folder / f"{n}.traineddata").write_text("x")
        else:
            (folder / n).mkdir()


def test_model_folders_become_selection_with_default(tmp_path: Path) -> None:
    entry = ProcessorEntry(id="ocrd-calamari-recognize", resources=True, model_argument="model")
    _models(tmp_path, entry.id, "gt4histocr", "eng", "Fraktur")

    form = build_form(DESCRIPTION, model_overrides(entry, SETTINGS, tmp_path))
    model = form[0]
    assert model.kind is FieldKind.SELECTION
    assert [o.value for o in model.options] == ["eng", "Fraktur", "gt4histocr"]
    assert model.default == ["eng"]
    assert not model.multiple
    assert form[1] == DESCRIPTION.fields[1]


def test_configured_default_model_wins(tmp_path: Path) -> None:
    entry = ProcessorEntry(
        id="ocrd-calamari-recognize", resources=True, model_argument="model", default_model="Fraktur"
    )
    _models(tmp_path, entry.id, "eng", "Fraktur")
    model = build_form(DESCRIPTION, model_overrides(entry, SETTINGS, tmp_path))[0]
    assert model.default == ["Fraktur"]
    assert [o.selected for o in model.options] == [False, True]


def test_no_models_shows_disabled_empty_option_and_drops_value(tmp_path: Path) -> None:
    entry = ProcessorEntry(id="ocrd-calamari-recognize", resources=True, model_argument="model")
    overrides = model_overrides(entry, SETTINGS, tmp_path)
    model = build_form(DESCRIPTION, overrides)[0]
    assert [(o.value, o.disabled) for o in model.options] == [(EMPTY_MODEL, True)]
    assert model.default == []

    res = build_payload(DESCRIPTION, [ParameterValue.selection("model", [EMPTY_MODEL])], overrides)
    assert res.payload == {}


def test_model_files_joined_with_plus(tmp_path: Path) -> None:
    entry = ProcessorEntry(
        id="ocrd-tesserocr-recognize",
        resources=True,
        model_argument="model",
        model_source="files",
        model_extension="traineddata",
        join="+",
    )
    _models(tmp_path, entry.id, "eng", "deu", "frk", files=True)
    overrides = model_overrides(entry, SETTINGS, tmp_path)

    model = build_form(DESCRIPTION, overrides)[0]
    assert [o.value for o in model.options] == ["deu", "eng", "frk"]
    assert model.multiple

    res = build_payload(DESCRIPTION, [ParameterValue.selection("model", ["eng", "frk"])], overrides)
    assert res.payload == {"model": "eng+frk"}


def test_without_model_argument_nothing_changes(tmp_path: Path) -> None:
    entry = ProcessorEntry(id="ocrd-cis-ocropy-binarize")
    assert build_form(DESCRIPTION, model_overrides(entry, SETTINGS, tmp_path)) == list(DESCRIPTION.fields)
    entry = ProcessorEntry(id="ocrd-calamari-recognize", resources=True, model_argument="model")
    assert build_form(DESCRIPTION, model_overrides(entry, SETTINGS, None)) == list(DESCRIPTION.fields)
