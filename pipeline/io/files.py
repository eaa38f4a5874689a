from __future__ import annotations

import errno
import os
import shutil
from pathlib import Path

import pandas as pd


def write_parquet(df: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    df.to_parquet(tmp)  # type: ignore[call-arg]
    tmp.replace(path)


def append_parquet_row(row: dict, path: Path) -> pd.DataFrame:
    """Append one row to a parquet table, creating it on first use."""
    if path.exists():
        existing = pd.read_parquet(path)
        df = pd.concat([existing, pd.DataFrame([row])], ignore_index=True)
    else:
        df = pd.DataFrame([row])
    write_parquet(df, path)
    return df


def replace_path(src: Path, dest: Path) -> None:
    """Move ``src`` to ``dest``, removing whatever already sits at ``dest``.

    Uses an atomic rename when both live on the same filesystem and falls
    back to a copying move across devices.
    """
    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    elif dest.is_dir():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(src, dest)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.move(str(src), str(dest))
