from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from httpx import AsyncClient

from processors.api import app as api_module
from processors.backends.base import DispatchResult, Invocation, Premise
from processors.orchestrator.adapter import ProcessorAdapter
from processors.settings import ProcessorEntry, ProviderSettings, ProvidersConfig

api_app = api_module.app

DESCRIPTION_JSON = json.dumps(
    {
        "description": "Binarize with ocropy",
        "categories": ["Image preprocessing"],
        "steps": ["preprocessing/optimization/binarization"],
        "parameters": {
            "threshold": {"type": "number", "format": "float", "default": 0.5, "minimum": 0, "maximum": 1},
            "method": {"type": "string", "enum": ["ocropy", "kraken"], "default": "ocropy"},
        },
    }
)


class FakeBackend:
    def fetch_description(self, processor: str) -> str:
        return DESCRIPTION_JSON

    def premise(self) -> Premise:
        return Premise.ok()

    def dispatch(self, invocation: Invocation, on_stdout=None, on_stderr=None) -> DispatchResult:
        if on_stdout:
            on_stdout(f"payload {invocation.payload_json}")
        out = invocation.workspace / invocation.output_group
        out.mkdir(parents=True, exist_ok=True)
        return DispatchResult(exit_code=0)

    def cancel(self) -> None:
        pass


@pytest.fixture
def configured(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    settings = ProviderSettings(registry_root=str(tmp_path / "data"))
    entry = ProcessorEntry(id="ocrd-cis-ocropy-binarize", description="Ocropy binarize")
    config = ProvidersConfig(settings=settings, processors=[entry])
    adapters = {entry.id: ProcessorAdapter(entry, settings, backend_factory=FakeBackend)}
    monkeypatch.setattr(api_module, "_STATE", {"config": config, "adapters": adapters})
    return tmp_path


def _client() -> AsyncClient:
    return AsyncClient(transport=httpx.ASGITransport(app=api_app), base_url="http://test")


@pytest.mark.anyio
async def test_health() -> None:
    async with _client() as ac:
        r = await ac.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


@pytest.mark.anyio
async def test_list_and_get_processor(configured: Path) -> None:
    async with _client() as ac:
        r = await ac.get("/processors")
        assert r.status_code == 200
        assert r.json()["processors"] == [
            {
                "id": "ocrd-cis-ocropy-binarize",
                "backend": "container",
                "resources": False,
                "description": "Ocropy binarize",
            }
        ]

        r = await ac.get("/processors/ocrd-cis-ocropy-binarize")
        assert r.status_code == 200
        body = r.json()
        assert body["description"] == "Binarize with ocropy"
        assert body["categories"] == ["Image preprocessing"]
        assert body["premise"] == {"state": "ok", "message": None}
        assert [f["argument"] for f in body["fields"]] == ["threshold", "method"]
        assert body["advice"].startswith("JSON processor description:\n")

        r = await ac.get("/processors/nope")
        assert r.status_code == 404


@pytest.mark.anyio
async def test_form(configured: Path) -> None:
    async with _client() as ac:
        r = await ac.get("/processors/ocrd-cis-ocropy-binarize/form")
    assert r.status_code == 200
    fields = r.json()["fields"]
    assert fields[0]["kind"] == "decimal"
    assert fields[0]["maximum"] == 1
    assert fields[1]["options"][0] == {"value": "ocropy", "selected": True, "label": None, "disabled": False}


@pytest.mark.anyio
async def test_run_and_registry(configured: Path) -> None:
    tmp_path = configured
    sandbox = tmp_path / "sandbox"
    sandbox.mkdir()
    (sandbox / "mets.xml").write_text("<mets/>", encoding="utf-8")
    req = {
        "workspace": {
            "processor_workspace": str(sandbox),
            "output": str(tmp_path / "snap"),
            "snapshot_track": [1, 4],
            "parent_snapshot_track": [1],
            "output_relative": "snap",
            "mets": str(sandbox / "mets.xml"),
        },
        "params": {"threshold": 0.3, "method": "kraken", "extra": True},
    }
    async with _client() as ac:
        r = await ac.post("/processors/ocrd-cis-ocropy-binarize/runs", json=req)
        assert r.status_code == 200
        body = r.json()
        assert body["state"] == "completed"
        assert body["progress"] == 1.0
        assert body["output_group"] == "OCR-D-OCR4ALL-1-4"
        assert body["ignored"] == ["extra"]
        assert 'payload {"threshold":0.3,"method":"kraken"}' in body["stdout"]

        r = await ac.get("/runs")
        assert r.status_code == 200
        runs = r.json()["runs"]
        assert [run["run_id"] for run in runs] == [body["run_id"]]


@pytest.mark.anyio
async def test_run_with_out_of_bounds_value_is_interrupted(configured: Path) -> None:
    tmp_path = configured
    sandbox = tmp_path / "sandbox"
    sandbox.mkdir()
    req = {
        "workspace": {"processor_workspace": str(sandbox), "output": str(tmp_path / "snap")},
        "params": {"threshold": 3.0},
    }
    async with _client() as ac:
        r = await ac.post("/processors/ocrd-cis-ocropy-binarize/runs", json=req)
    body = r.json()
    assert body["state"] == "interrupted"
    assert body["error_code"] == "MARSHALLING_ERROR"
    assert body["stderr"]


@pytest.mark.anyio
async def test_runs_without_registry_is_404(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(api_module, "_STATE", {"config": ProvidersConfig(), "adapters": {}})
    async with _client() as ac:
        r = await ac.get("/runs")
    assert r.status_code == 404
