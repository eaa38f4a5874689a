"""Workspace context of one run and the file operations done after dispatch."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pipeline.io.files import replace_path
from processors.errors import PostProcessingError

DEFAULT_METS_GROUP = "OCR-D-OCR4ALL"


def _path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value))


def _track(value: Sequence[Any] | None) -> tuple[int, ...]:
    return tuple(int(v) for v in (value or ()))


@dataclass(frozen=True)
class Workspace:
    """Paths and identities the platform hands to a run.

    ``processor_workspace`` is where the processor runs and writes its output
    file group; ``output`` is the snapshot location that output ends up in.
    ``output_relative`` and ``mets`` may be unresolvable, which makes the run
    fail before dispatch.
    """

    processor_workspace: Path
    output: Path
    snapshot_track: tuple[int, ...] = ()
    parent_snapshot_track: tuple[int, ...] = ()
    output_relative: str | None = None
    mets: Path | None = None
    mets_group: str = DEFAULT_METS_GROUP
    projects: Path | None = None
    opt: Path | None = None
    uid: str | None = None
    gid: str | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> Workspace:
        return cls(
            processor_workspace=Path(str(d["processor_workspace"])),
            output=Path(str(d["output"])),
            snapshot_track=_track(d.get("snapshot_track")),
            parent_snapshot_track=_track(d.get("parent_snapshot_track")),
            output_relative=d.get("output_relative") or None,
            mets=_path(d.get("mets")),
            mets_group=str(d.get("mets_group") or DEFAULT_METS_GROUP),
            projects=_path(d.get("projects")),
            opt=_path(d.get("opt")),
            uid=str(d["uid"]) if d.get("uid") is not None else None,
            gid=str(d["gid"]) if d.get("gid") is not None else None,
        )


@dataclass(frozen=True)
class FileGroupPair:
    input: str
    output: str

    @staticmethod
    def file_group(prefix: str, track: Sequence[int]) -> str:
        return prefix + "".join(f"-{i}" for i in track)

    @classmethod
    def from_workspace(cls, ws: Workspace) -> FileGroupPair:
        """Input comes from the parent snapshot's track, output from the run's own."""
        return cls(
            input=cls.file_group(ws.mets_group, ws.parent_snapshot_track),
            output=cls.file_group(ws.mets_group, ws.snapshot_track),
        )


def _rewrite(path: Path, group: str, relative: str) -> bool:
    try:
        text = path.read_text(encoding="utf-8")
        updated = text.replace(f'="{group}/', f'="{relative}/')
        if updated == text:
            return False
        path.write_text(updated, encoding="utf-8")
    except OSError as e:
        raise PostProcessingError(f"cannot update {path} - {e}") from e
    return True


def rewrite_xml_paths(folder: Path, group: str, relative: str) -> int:
    """Point file references in every XML file below ``folder`` at ``relative``.

    Returns the number of files changed. A missing folder is an error.
    """
    if not folder.is_dir():
        raise PostProcessingError(f"output folder {folder} does not exist")
    changed = 0
    for path in sorted(folder.rglob("*.xml")):
        if path.is_file() and _rewrite(path, group, relative):
            changed += 1
    return changed


def rewrite_mets(mets: Path, group: str, relative: str) -> bool:
    return _rewrite(mets, group, relative)


def move_output(ws: Workspace, groups: FileGroupPair) -> Path:
    src = ws.processor_workspace / groups.output
    if not src.exists():
        raise PostProcessingError(f"processor output {src} does not exist")
    try:
        replace_path(src, ws.output)
    except OSError as e:
        raise PostProcessingError(f"cannot move {src} to {ws.output} - {e}") from e
    return ws.output
