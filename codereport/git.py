"""Local git access: repo discovery, working-tree blame, content fingerprints."""

from __future__ import annotations

import hashlib
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from codereport.errors import OwnershipUnresolved

GIT_TIMEOUT_SECONDS = 30

# git blame reports lines that are not committed yet under the null commit
UNCOMMITTED_SHA = "0" * 40


@dataclass(frozen=True)
class BlameLine:
    commit: str
    author: str
    email: str
    timestamp: int  # author-time, seconds since epoch

    @property
    def identity(self) -> str:
        return self.email or self.author

    @property
    def committed(self) -> bool:
        return self.commit != UNCOMMITTED_SHA


def find_repo_root(start: str | Path) -> Path | None:
    """Walk up from start until a directory containing .git is found."""
    current = Path(start).resolve()
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


def file_fingerprint(path: str | Path) -> str | None:
    """Hash a file's contents for change detection. None if the file is unreadable."""
    try:
        content = Path(path).read_bytes()
    except (FileNotFoundError, IsADirectoryError, PermissionError):
        return None
    return hashlib.sha256(content).hexdigest()[:16]


def git_available() -> bool:
    return shutil.which("git") is not None


def blame_range(repo_root: str | Path, path: str, start: int, end: int) -> list[BlameLine]:
    """Blame lines start..end (inclusive) of path as it is in the working tree.

    Returns an empty list when git has nothing to say about the file (untracked
    file, no commits). Raises OwnershipUnresolved when git itself cannot be run.
    """
    if not git_available():
        raise OwnershipUnresolved("git executable not found on PATH")

    cmd = ["git", "blame", "--line-porcelain", "-L", f"{start},{end}", "--", path]
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(repo_root),
            capture_output=True,
            encoding="utf-8",
            # Porcelain output carries raw source lines in whatever encoding the file uses
            errors="replace",
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        raise OwnershipUnresolved(f"git blame failed for {path}: {e}") from e

    if proc.returncode != 0:
        # Untracked files, ranges past EOF and empty repos all land here
        return []
    return parse_line_porcelain(proc.stdout)


def parse_line_porcelain(output: str) -> list[BlameLine]:
    """Parse `git blame --line-porcelain` output into one BlameLine per source line."""
    lines: list[BlameLine] = []
    commit = ""
    fields: dict[str, str] = {}

    for raw in output.splitlines():
        if raw.startswith("\t"):
            # Content line closes the record for this source line
            lines.append(
                BlameLine(
                    commit=commit,
                    author=fields.get("author", ""),
                    email=fields.get("author-mail", "").strip("<>"),
                    timestamp=_to_int(fields.get("author-time", "0")),
                )
            )
            commit = ""
            fields = {}
            continue
        if not commit:
            commit = raw.split(" ", 1)[0]
            continue
        key, _, value = raw.partition(" ")
        fields[key] = value

    return lines


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0
