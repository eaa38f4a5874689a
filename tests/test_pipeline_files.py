from __future__ import annotations

from pathlib import Path

import pandas as pd

from pipeline.io.files import append_parquet_row, replace_path


def test_append_parquet_row_creates_then_appends(tmp_path: Path) -> None:
    path = tmp_path / "registry" / "runs.parquet"
    append_parquet_row({"run_id": "a", "n": 1}, path)
    df = append_parquet_row({"run_id": "b", "n": 2}, path)
    assert list(df["run_id"]) == ["a", "b"]
    assert list(pd.read_parquet(path)["n"]) == [1, 2]
    assert not path.with_suffix(".parquet.tmp").exists()


def test_replace_path_overwrites_file_and_directory(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    (src / "new.txt").write_text("new")
    dest = tmp_path / "nested" / "dest"
    dest.mkdir(parents=True)
    (dest / "old.txt").write_text("old")

    replace_path(src, dest)
    assert sorted(p.name for p in dest.iterdir()) == ["new.txt"]

    other = tmp_path / "file.txt"
    other.write_text("f")
    replace_path(other, dest)
    assert dest.read_text() == "f"
