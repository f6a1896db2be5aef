from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import shutil
from typing import Iterator
import uuid

TMP_ROOT = Path(__file__).resolve().parent / "_tmp"


@contextmanager
def local_tmp_dir(prefix: str = "flowlog") -> Iterator[Path]:
    """Scratch directory under the test package, removed on exit."""
    TMP_ROOT.mkdir(parents=True, exist_ok=True)
    path = TMP_ROOT / f"{prefix}-{uuid.uuid4().hex}"
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
