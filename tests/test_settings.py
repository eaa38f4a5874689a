from __future__ import annotations

import json
from pathlib import Path

import pytest

from processors.errors import ConfigError
from processors.settings import ProviderSettings, load_config, load_providers

PROVIDERS_YAML = """
settings:
  docker_image: ocrd/all:medium
  uid: 1000
  msa_url: worker:9090
processors:
  - id: ocrd-cis-ocropy-binarize
    description: Ocropy binarize
  - id: ocrd-calamari-recognize
    resources: true
    model_argument: checkpoint_dir
  - id: ocrd-tesserocr-recognize
    backend: remote
    resources: true
    model_argument: model
    model_source: files
    model_extension: traineddata
    join: "+"
"""


def test_load_config_yaml_and_inline_overrides(tmp_path: Path) -> None:
    cfg_path = tmp_path / "cfg.yaml"
    cfg_path.write_text("a: 1\nsettings:\n  docker_image: x\n", encoding="utf-8")
    cfg = load_config(cfg_path, ["b=true", "c=2.5", "settings.docker_stop_wait_kill_seconds=7", "junk"])
    assert cfg["a"] == 1
    assert cfg["b"] is True
    assert cfg["c"] == 2.5
    assert cfg["settings"] == {"docker_image": "x", "docker_stop_wait_kill_seconds": 7}


def test_load_config_json(tmp_path: Path) -> None:
    cfg_path = tmp_path / "cfg.json"
    cfg_path.write_text(json.dumps({"settings": {"msa_protocol": "https"}}), encoding="utf-8")
    assert load_config(cfg_path) == {"settings": {"msa_protocol": "https"}}


def test_bad_yaml_config_message(tmp_path: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("processors: [oops\n", encoding="utf-8")
    with pytest.raises(ValueError) as ei:
        load_config(bad)
    assert "bad.yaml" in str(ei.value)


def test_settings_defaults_and_unknown_keys() -> None:
    s = ProviderSettings.from_dict({"docker_image": "img", "nope": 1, "uid": " ", "gid": 20})
    assert s.docker_image == "img"
    assert s.docker_command == "docker"
    assert s.docker_stop_wait_kill_seconds == 2
    assert s.uid is None
    assert s.gid == "20"
    assert s.msa_base_url is None
    assert ProviderSettings(msa_url="host:1").msa_base_url == "http://host:1"


def test_load_providers(tmp_path: Path) -> None:
    path = tmp_path / "providers.yaml"
    path.write_text(PROVIDERS_YAML, encoding="utf-8")
    config = load_providers(path)
    assert config.settings.docker_image == "ocrd/all:medium"
    assert config.settings.uid == "1000"
    assert [p.id for p in config.processors] == [
        "ocrd-cis-ocropy-binarize",
        "ocrd-calamari-recognize",
        "ocrd-tesserocr-recognize",
    ]
    tess = config.entry("ocrd-tesserocr-recognize")
    assert tess.backend == "remote"
    assert tess.model_source == "files"
    assert tess.join == "+"
    assert config.entry("ocrd-cis-ocropy-binarize").backend == "container"


def test_load_providers_without_file_is_empty() -> None:
    config = load_providers(None)
    assert config.processors == []
    assert config.settings == ProviderSettings()


def test_unknown_processor_entry(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="unknown processor"):
        load_providers(None).entry("missing")


@pytest.mark.parametrize(
    "text,fragment",
    [
        ("processors:\n  - id: a\n    backend: ssh\n", "$.processors.0.backend"),
        ("processors:\n  - description: x\n", "$.processors.0"),
        ("processors:\n  - id: a\n  - id: a\n", "duplicate processor id 'a'"),
        ("processors: [oops\n", "bad.yaml"),
    ],
)
def test_invalid_providers(tmp_path: Path, text: str, fragment: str) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as ei:
        load_providers(path)
    assert fragment in ei.value.message
