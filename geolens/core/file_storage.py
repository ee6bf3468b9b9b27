"""Shared utilities for on-disk dataset artifacts with atomic writes."""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

__all__ = [
    "atomic_binary_writer",
]


@contextmanager
def atomic_binary_writer(target_path: Path) -> Iterator[BinaryIO]:
    """Write ``target_path`` atomically: temp file in the same dir, fsync, rename.

    Concurrent writers of the same target each use their own temp file, so a
    reader only ever sees a missing file or a complete one.
    """

    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        prefix=f"{target_path.name}.", suffix=".tmp", dir=target_path.parent
    )
    temp_file = Path(temp_path)

    try:
        with os.fdopen(temp_fd, "wb") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())

        os.replace(temp_file, target_path)

    except BaseException:
        if temp_file.exists():
            temp_file.unlink()
        raise
