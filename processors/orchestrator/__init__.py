"""Execution orchestrator for processor runs.

Sequences one run: marshal the submitted values, dispatch through a
backend, then rewrite and relocate the output into the snapshot.

CLI usage is available via `python -m processors.orchestrator`.
"""

from .core import RunCallbacks, RunControl, RunOutcome, RunState, StickyError, run_processor
from .workspace import FileGroupPair, Workspace

__all__ = [
    "FileGroupPair",
    "RunCallbacks",
    "RunControl",
    "RunOutcome",
    "RunState",
    "StickyError",
    "Workspace",
    "run_processor",
]
