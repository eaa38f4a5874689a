"""Drives one processor run from submitted values to the updated workspace."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from processors.backends.base import Invocation, InvocationBackend
from processors.description.types import ParameterValue, ProcessorDescription
from processors.errors import (
    ConfigError,
    DispatchError,
    ErrorCodes,
    MarshallingError,
    PostProcessingError,
    PreconditionError,
)
from processors.marshaller import Overrides, build_payload, serialize_payload

from .workspace import FileGroupPair, Workspace, move_output, rewrite_mets, rewrite_xml_paths

logger = logging.getLogger("processors.orchestrator")

PROGRESS_START = 0.01
PROGRESS_DISPATCHED = 0.097
PROGRESS_XML_UPDATED = 0.098
PROGRESS_MOVED = 0.099
PROGRESS_DONE = 1.0

STEP_ERROR_CODES = {
    "marshal": ErrorCodes.MARSHALLING_ERROR,
    "precondition": ErrorCodes.PRECONDITION_ERROR,
    "dispatch": ErrorCodes.DISPATCH_ERROR,
    "rewrite_xml": ErrorCodes.POSTPROCESS_ERROR,
    "move_output": ErrorCodes.POSTPROCESS_ERROR,
    "rewrite_mets": ErrorCodes.POSTPROCESS_ERROR,
}


class RunState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    CANCELED = "canceled"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


class StickyError:
    """Keeps the first recorded failure; later ones are ignored."""

    def __init__(self) -> None:
        self._first: tuple[str, str] | None = None

    def record(self, step: str, message: str) -> bool:
        if self._first is not None:
            return False
        self._first = (step, message)
        return True

    @property
    def first(self) -> tuple[str, str] | None:
        return self._first

    def __bool__(self) -> bool:
        return self._first is not None


@dataclass
class RunCallbacks:
    on_stdout: Callable[[str], None] | None = None
    on_stderr: Callable[[str], None] | None = None
    on_progress: Callable[[float], None] | None = None
    on_state: Callable[[RunState], None] | None = None

    def stdout(self, text: str) -> None:
        if self.on_stdout:
            self.on_stdout(text)

    def stderr(self, text: str) -> None:
        if self.on_stderr:
            self.on_stderr(text)


class RunControl:
    """Cooperative cancellation shared between the caller and a running dispatch."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._backend: InvocationBackend | None = None

    @property
    def canceled(self) -> bool:
        return self._event.is_set()

    def attach(self, backend: InvocationBackend) -> None:
        with self._lock:
            self._backend = backend
            canceled = self._event.is_set()
        if canceled:
            backend.cancel()

    def detach(self) -> None:
        with self._lock:
            self._backend = None

    def cancel(self) -> None:
        with self._lock:
            self._event.set()
            backend = self._backend
        if backend is not None:
            backend.cancel()


@dataclass
class RunOutcome:
    key: str
    state: RunState
    progress: float = 0.0
    file_groups: FileGroupPair | None = None
    message: str | None = None
    failed_step: str | None = None
    error_code: ErrorCodes | None = None
    exit_code: int | None = None
    ignored: list[str] = field(default_factory=list)


class _Run:
    def __init__(self, key: str, processor: str, callbacks: RunCallbacks) -> None:
        self.outcome = RunOutcome(key=key, state=RunState.PENDING)
        self.processor = processor
        self.callbacks = callbacks

    def progress(self, value: float) -> None:
        if value <= self.outcome.progress:
            return
        self.outcome.progress = value
        if self.callbacks.on_progress:
            self.callbacks.on_progress(value)

    def state(self, state: RunState) -> None:
        self.outcome.state = state
        if self.callbacks.on_state:
            self.callbacks.on_state(state)

    def finish(
        self, state: RunState, step: str | None = None, message: str | None = None, *, emit: bool = True
    ) -> RunOutcome:
        if message and emit:
            self.callbacks.stderr(message)
        self.outcome.failed_step = step
        self.outcome.error_code = STEP_ERROR_CODES.get(step) if step else None
        self.outcome.message = message
        logger.info(
            json.dumps(
                {
                    "event": "run_state",
                    "key": self.outcome.key,
                    "processor": self.processor,
                    "state": state.value,
                    "step": step,
                }
            )
        )
        self.state(state)
        return self.outcome


def _log_payload(payload: dict) -> str | None:
    try:
        return json.dumps(payload, allow_nan=False, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.warning(json.dumps({"event": "payload_serialize_failed", "error": str(e)}))
        return None


def _dispatch_failed(run: _Run, control: RunControl, step: str, message: str) -> RunOutcome:
    if control.canceled:
        return run.finish(RunState.CANCELED)
    return run.finish(RunState.INTERRUPTED, step, message)


def run_processor(
    processor: str,
    description: ProcessorDescription,
    values: Sequence[ParameterValue],
    workspace: Workspace,
    backend: InvocationBackend,
    *,
    overrides: Overrides | None = None,
    control: RunControl | None = None,
    callbacks: RunCallbacks | None = None,
    key: str | None = None,
    resources: bool = False,
    label: str | None = None,
) -> RunOutcome:
    """Run ``processor`` once and return its terminal outcome.

    Never raises for run failures: every fatal error ends in
    ``RunState.INTERRUPTED`` with a stderr message naming the failing step.
    Cancellation observed at any checkpoint wins over a failure seen there.
    """
    control = control or RunControl()
    callbacks = callbacks or RunCallbacks()
    label = label or processor
    run = _Run(key or str(uuid.uuid4()), processor, callbacks)

    if control.canceled:
        return run.finish(RunState.CANCELED)

    try:
        marshalled = build_payload(description, values, overrides)
        payload_json = serialize_payload(marshalled.payload)
    except MarshallingError as e:
        return run.finish(RunState.INTERRUPTED, "marshal", f"invalid parameters for {label} - {e.message}")
    except (TypeError, ValueError) as e:
        return run.finish(RunState.INTERRUPTED, "marshal", f"invalid parameters for {label} - {e}")
    run.outcome.ignored = marshalled.ignored
    if marshalled.ignored:
        callbacks.stdout(f"Ignored unnecessary parameters: {marshalled.ignored}.")

    logged = _log_payload(marshalled.payload)
    if logged is not None:
        callbacks.stdout(f"Using parameters: {logged}.")

    if control.canceled:
        return run.finish(RunState.CANCELED)

    run.progress(PROGRESS_START)

    if workspace.output_relative is None:
        return run.finish(RunState.INTERRUPTED, "precondition", "Inconsistent processor workspace path.")
    if workspace.mets is None:
        return run.finish(RunState.INTERRUPTED, "precondition", "Missed required mets file path.")

    groups = FileGroupPair.from_workspace(workspace)
    run.outcome.file_groups = groups
    invocation = Invocation(
        key=run.outcome.key,
        processor=processor,
        workspace=workspace.processor_workspace,
        input_group=groups.input,
        output_group=groups.output,
        payload_json=payload_json,
        resources=resources,
        uid=workspace.uid,
        gid=workspace.gid,
        projects=workspace.projects,
        opt=workspace.opt,
    )

    run.state(RunState.RUNNING)
    control.attach(backend)
    if control.canceled:
        control.detach()
        return run.finish(RunState.CANCELED)
    try:
        result = backend.dispatch(invocation, callbacks.on_stdout, callbacks.on_stderr)
    except PreconditionError as e:
        return _dispatch_failed(run, control, "precondition", e.message)
    except (DispatchError, ConfigError) as e:
        return _dispatch_failed(run, control, "dispatch", f"troubles running {label} - {e.message}")
    finally:
        control.detach()

    if control.canceled:
        return run.finish(RunState.CANCELED)
    run.outcome.exit_code = result.exit_code
    if not result.ok:
        return run.finish(
            RunState.INTERRUPTED, "dispatch", f"Cannot run {label}, exit code {result.exit_code}."
        )
    run.progress(PROGRESS_DISPATCHED)

    sticky = StickyError()
    relative = workspace.output_relative

    def attempt(step: str, what: str, fn: Callable[[], object], checkpoint: float | None) -> None:
        try:
            fn()
        except PostProcessingError as e:
            msg = f"troubles {what} of {label} - {e.message}."
            logger.error(json.dumps({"event": "postprocess_failed", "step": step, "error": e.message}))
            sticky.record(step, msg)
            callbacks.stderr(msg)
            return
        if checkpoint is not None and not sticky:
            run.progress(checkpoint)

    callbacks.stdout("Update paths in xml files.")
    attempt(
        "rewrite_xml",
        "updating xml files",
        lambda: rewrite_xml_paths(workspace.processor_workspace / groups.output, groups.output, relative),
        PROGRESS_XML_UPDATED,
    )
    callbacks.stdout("Move processor output directory to snapshot sandbox.")
    attempt("move_output", "moving output directory", lambda: move_output(workspace, groups), PROGRESS_MOVED)
    callbacks.stdout("Update paths in mets file.")
    attempt(
        "rewrite_mets",
        "updating mets file",
        lambda: rewrite_mets(workspace.mets, groups.output, relative),
        None,
    )

    if sticky.first is not None:
        step, message = sticky.first
        return run.finish(RunState.INTERRUPTED, step, message, emit=False)
    run.progress(PROGRESS_DONE)
    return run.finish(RunState.COMPLETED)
