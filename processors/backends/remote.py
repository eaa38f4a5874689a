"""Remote worker backend speaking the worker's HTTP API via httpx."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

import httpx

from processors.errors import ConfigError, DescriptionError, DispatchError, PreconditionError
from processors.settings import ProviderSettings

from .base import CANCELED_EXIT_CODE, DispatchResult, Invocation, OutputSink, Premise

logger = logging.getLogger("processors.backends.remote")

API_PREFIX = "/api/v1.0"
PING_PATH = API_PREFIX + "/scheduler/ping"
DESCRIPTION_PATH = API_PREFIX + "/processor/description/json/{processor}"
PROCESS_PATH = API_PREFIX + "/processor/process"


def workspace_path(workspace: Path, projects: Path | None) -> str:
    """Workspace path relative to the projects folder, which must strictly contain it."""
    if projects is None:
        raise PreconditionError("missed required projects folder.")
    ws = workspace.resolve()
    root = projects.resolve()
    if ws == root or root not in ws.parents:
        raise PreconditionError(
            f"invalid working directory '{workspace}', it must be a sub folder of '{projects}'."
        )
    return ws.relative_to(root).as_posix()


class RemoteBackend:
    def __init__(self, settings: ProviderSettings, *, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport
        self._canceled = threading.Event()

    def _client(self) -> httpx.Client:
        base = self.settings.msa_base_url
        if base is None:
            raise ConfigError("the remote worker url 'msa_url' is not configured.")
        return httpx.Client(
            base_url=base, timeout=self.settings.http_timeout_seconds, transport=self._transport
        )

    def ping(self) -> bool:
        try:
            with self._client() as client:
                resp = client.get(PING_PATH)
        except httpx.HTTPError as e:
            logger.warning(json.dumps({"event": "ping_failed", "error": str(e)}))
            return False
        return resp.is_success

    def premise(self) -> Premise:
        if self.ping():
            return Premise.ok()
        return Premise.block(f"the remote worker at {self.settings.msa_base_url} is not reachable.")

    def fetch_description(self, processor: str) -> str:
        if not self.ping():
            raise DescriptionError(f"the remote worker is not reachable to describe '{processor}'.")
        try:
            with self._client() as client:
                resp = client.get(
                    DESCRIPTION_PATH.format(processor=processor), headers={"Accept": "application/json"}
                )
                resp.raise_for_status()
                body: Any = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DescriptionError(f"cannot query description of '{processor}' - {e}") from e
        desc = body.get("description") if isinstance(body, dict) else None
        if desc is None:
            raise DescriptionError(f"the remote worker returned no description for '{processor}'.")
        if isinstance(desc, str):
            return desc
        return json.dumps(desc)

    def request_body(self, invocation: Invocation) -> dict[str, Any]:
        parameters: list[str] = []
        if invocation.payload_json is not None:
            parameters = ["-p", invocation.payload_json]
        return {
            "key": invocation.key,
            "processor": invocation.processor,
            "path": workspace_path(invocation.workspace, invocation.projects),
            "input": invocation.input_group,
            "output": invocation.output_group,
            "parameters": parameters,
        }

    def dispatch(
        self,
        invocation: Invocation,
        on_stdout: OutputSink | None = None,
        on_stderr: OutputSink | None = None,
    ) -> DispatchResult:
        body = self.request_body(invocation)
        if self._canceled.is_set():
            return DispatchResult(exit_code=CANCELED_EXIT_CODE)
        if not self.ping():
            raise DispatchError(f"the remote worker at {self.settings.msa_base_url} is not reachable.")
        if self._canceled.is_set():
            return DispatchResult(exit_code=CANCELED_EXIT_CODE)

        logger.info(json.dumps({"event": "dispatch_start", "backend": "remote", "key": invocation.key}))
        try:
            with self._client() as client:
                resp = client.post(PROCESS_PATH, json=body)
        except httpx.HTTPError as e:
            raise DispatchError(f"troubles calling the remote worker for {invocation.processor} - {e}.") from e

        logger.info(
            json.dumps(
                {"event": "dispatch_exit", "backend": "remote", "key": invocation.key, "status": resp.status_code}
            )
        )
        if resp.is_success:
            if on_stdout:
                on_stdout(f"Remote worker accepted {invocation.processor} run '{invocation.key}'.")
            return DispatchResult(exit_code=0, stdout=resp.text)
        if on_stderr and resp.text:
            on_stderr(resp.text)
        return DispatchResult(exit_code=resp.status_code, stderr=resp.text)

    def cancel(self) -> None:
        # no remote stop endpoint; only a run that has not been posted yet is prevented
        self._canceled.set()
