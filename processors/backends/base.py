from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

OutputSink = Callable[[str], None]


@dataclass(frozen=True)
class Invocation:
    """Everything a backend needs to start one processor run."""

    key: str
    processor: str
    workspace: Path
    input_group: str
    output_group: str
    payload_json: str | None = None
    resources: bool = False
    uid: str | None = None
    gid: str | None = None
    projects: Path | None = None
    opt: Path | None = None


# exit code reported for a run that was canceled before anything was started
CANCELED_EXIT_CODE = 130


@dataclass(frozen=True)
class DispatchResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class PremiseState(str, Enum):
    OK = "ok"
    WARN = "warn"
    BLOCK = "block"


@dataclass(frozen=True)
class Premise:
    state: PremiseState = PremiseState.OK
    message: str | None = None

    @classmethod
    def ok(cls) -> Premise:
        return cls(PremiseState.OK)

    @classmethod
    def warn(cls, message: str) -> Premise:
        return cls(PremiseState.WARN, message)

    @classmethod
    def block(cls, message: str) -> Premise:
        return cls(PremiseState.BLOCK, message)


class InvocationBackend(Protocol):
    """Transport for one run. A fresh handle is built per run.

    ``dispatch`` blocks until the external process or HTTP call has fully
    completed; output sinks are called in-line from that call. ``cancel``
    may be called from another thread while ``dispatch`` is blocked.
    """

    def dispatch(
        self,
        invocation: Invocation,
        on_stdout: OutputSink | None = None,
        on_stderr: OutputSink | None = None,
    ) -> DispatchResult: ...

    def cancel(self) -> None: ...
