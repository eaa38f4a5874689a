"""Local container backend: runs the processor image with the docker CLI."""

from __future__ import annotations

import json
import logging
import os
import posixpath
import shutil
import subprocess
import threading
import uuid
from pathlib import Path

from processors.errors import DescriptionError, DispatchError, PreconditionError
from processors.settings import ProviderSettings

from .base import CANCELED_EXIT_CODE, DispatchResult, Invocation, OutputSink, Premise

logger = logging.getLogger("processors.backends.container")

CONTAINER_WORKDIR = "/data"
CONTAINER_PREFIX = "ocr4all-"


def resources_root(settings: ProviderSettings, opt: Path) -> Path:
    return Path(os.path.normpath(opt / settings.opt_folder / settings.opt_resources))


def processor_resources(settings: ProviderSettings, opt: Path, processor: str) -> Path:
    """Host directory holding the pre-staged models of ``processor``.

    Raises PreconditionError when the processor id would escape the
    configured opt folder.
    """
    base = Path(os.path.normpath(opt / settings.opt_folder))
    folder = Path(os.path.normpath(resources_root(settings, opt) / processor))
    if folder == base or base not in folder.parents:
        raise PreconditionError(f"resources folder for '{processor}' is outside of {base}")
    return folder


def list_models(folder: Path, source: str = "folders", extension: str | None = None) -> list[str]:
    """Non-hidden subfolders (or files with ``extension``, stripped), case-insensitively sorted."""
    if not folder.is_dir():
        return []
    names: list[str] = []
    for p in folder.iterdir():
        if p.name.startswith("."):
            continue
        if source == "files":
            if not p.is_file():
                continue
            if extension:
                suffix = extension if extension.startswith(".") else "." + extension
                if not p.name.lower().endswith(suffix.lower()) or len(p.name) == len(suffix):
                    continue
                names.append(p.name[: -len(suffix)])
            else:
                names.append(p.stem)
        elif p.is_dir():
            names.append(p.name)
    return sorted(names, key=str.lower)


def _user_spec(uid: str | None, gid: str | None) -> str | None:
    if not uid:
        return None
    return f"{uid}:{gid}" if gid else uid


class ContainerBackend:
    def __init__(self, settings: ProviderSettings) -> None:
        self.settings = settings
        self._lock = threading.Lock()
        self._process: subprocess.Popen[str] | None = None
        self._name: str | None = None
        self._cancel_requested = False

    def premise(self) -> Premise:
        if shutil.which(self.settings.docker_command) is None:
            return Premise.block(f"docker command '{self.settings.docker_command}' is not available.")
        return Premise.ok()

    def fetch_description(self, processor: str) -> str:
        cmd = [
            self.settings.docker_command,
            "run",
            "--rm",
            self.settings.docker_image,
            processor,
            self.settings.describe_flag,
        ]
        try:
            res = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise DescriptionError(f"cannot query description of '{processor}' - {e}") from e
        if res.returncode != 0:
            raise DescriptionError(
                f"cannot query description of '{processor}', exit code {res.returncode}.",
                details={"stderr": res.stderr},
            )
        return res.stdout

    def command(self, invocation: Invocation, name: str) -> list[str]:
        s = self.settings
        cmd = [s.docker_command, "run", "--rm", "--name", name]
        user = _user_spec(s.uid or invocation.uid, s.gid or invocation.gid)
        if user:
            cmd += ["-u", user]
        if invocation.resources and invocation.opt is not None:
            folder = processor_resources(s, invocation.opt, invocation.processor)
            if folder.is_dir():
                target = posixpath.join(s.docker_resources, invocation.processor)
                cmd += ["-v", f"{folder}:{target}:ro"]
        cmd += [
            "-v",
            f"{invocation.workspace}:{CONTAINER_WORKDIR}",
            "-w",
            CONTAINER_WORKDIR,
            "--",
            s.docker_image,
            invocation.processor,
            "-I",
            invocation.input_group,
            "-O",
            invocation.output_group,
        ]
        if invocation.payload_json is not None:
            cmd += ["-p", invocation.payload_json]
        return cmd

    def stop_command(self, name: str) -> list[str]:
        return [
            self.settings.docker_command,
            "stop",
            f"--time={self.settings.docker_stop_wait_kill_seconds}",
            name,
        ]

    def dispatch(
        self,
        invocation: Invocation,
        on_stdout: OutputSink | None = None,
        on_stderr: OutputSink | None = None,
    ) -> DispatchResult:
        name = CONTAINER_PREFIX + str(uuid.uuid4())
        cmd = self.command(invocation, name)
        # cancel() takes the same lock, so it either prevents the launch or sees the process
        with self._lock:
            if self._cancel_requested:
                logger.info(json.dumps({"event": "dispatch_skipped", "backend": "container", "key": invocation.key}))
                return DispatchResult(exit_code=CANCELED_EXIT_CODE)
            logger.info(
                json.dumps({"event": "dispatch_start", "backend": "container", "key": invocation.key, "name": name})
            )
            try:
                proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
            except OSError as e:
                raise DispatchError(f"troubles running {invocation.processor} - {e}.") from e
            self._process = proc
            self._name = name

        if on_stdout:
            on_stdout(f"Execute docker process '{cmd[0]}' with parameters: {cmd[1:]}.")
        out, err = proc.communicate()
        if out and on_stdout:
            on_stdout(out)
        if err and on_stderr:
            on_stderr(err)
        logger.info(
            json.dumps(
                {"event": "dispatch_exit", "backend": "container", "key": invocation.key, "exit_code": proc.returncode}
            )
        )
        return DispatchResult(exit_code=proc.returncode, stdout=out or "", stderr=err or "")

    def cancel(self) -> None:
        with self._lock:
            self._cancel_requested = True
            proc, name = self._process, self._name
        if proc is None or name is None or proc.poll() is not None:
            return
        self._stop(proc, name)

    def _stop(self, proc: subprocess.Popen[str], name: str) -> None:
        # grace period is enforced by docker itself; kill only if stop could not be issued
        wait = int(self.settings.docker_stop_wait_kill_seconds)
        try:
            res = subprocess.run(
                self.stop_command(name), capture_output=True, text=True, timeout=wait + 30, check=False
            )
            if res.returncode == 0:
                return
            logger.warning(json.dumps({"event": "container_stop_failed", "name": name, "stderr": res.stderr}))
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(json.dumps({"event": "container_stop_failed", "name": name, "error": str(e)}))
        proc.kill()
