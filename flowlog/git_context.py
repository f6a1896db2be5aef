from __future__ import annotations

import logging
from pathlib import Path
import shutil
import subprocess

from .session import GitContext

logger = logging.getLogger(__name__)


def short_commit(commit: str) -> str:
    return commit[:7] if len(commit) > 7 else commit


class GitCliDetector:
    """Reads branch, HEAD commit and dirty files through the ``git`` executable.

    Any failure (git missing, not a repository, timeout) yields ``None``;
    repository context is optional metadata for a session.
    """

    def __init__(self, git_bin: str | None = None, timeout: float = 3.0) -> None:
        self.git_bin = git_bin or shutil.which("git")
        self.timeout = timeout

    def is_available(self) -> bool:
        return self.git_bin is not None

    def detect(self, working_dir: Path | None = None) -> GitContext | None:
        if not self.is_available():
            return None
        cwd = Path(working_dir) if working_dir else Path.cwd()
        if not cwd.is_dir():
            return None

        branch = self._run(cwd, "rev-parse", "--abbrev-ref", "HEAD")
        if branch is None:
            return None
        commit = self._run(cwd, "rev-parse", "HEAD") or ""
        status = self._run(cwd, "status", "--porcelain", keep_indent=True) or ""

        if branch == "HEAD":
            branch = "HEAD detached"
        return GitContext(
            branch=branch,
            commit=commit,
            modified_files=tuple(_parse_porcelain(status)),
        )

    def _run(self, cwd: Path, *args: str, keep_indent: bool = False) -> str | None:
        try:
            result = subprocess.run(
                [str(self.git_bin), *args],
                cwd=str(cwd),
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.debug("git %s failed in %s: %s", " ".join(args), cwd, exc)
            return None
        if result.returncode != 0:
            return None
        if keep_indent:
            return result.stdout.rstrip()
        return result.stdout.strip()


def _parse_porcelain(text: str) -> list[str]:
    files: list[str] = []
    for line in text.splitlines():
        if len(line) < 4 or line.startswith("??"):
            continue
        path = line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        files.append(path.strip().strip('"'))
    return files
