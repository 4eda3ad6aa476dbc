"""CODEOWNERS lookup.

Rules follow GitHub's precedence: the last matching pattern in the file is the
most specific one and decides ownership.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

CODEOWNERS_LOCATIONS = (
    ".github/CODEOWNERS",
    "CODEOWNERS",
    "docs/CODEOWNERS",
    ".git/CODEOWNERS",
)


@dataclass(frozen=True)
class CodeownersRule:
    pattern: str
    owners: tuple[str, ...]
    regex: re.Pattern

    def matches(self, path: str) -> bool:
        return bool(self.regex.match(path.lstrip("/")))


def find_codeowners_file(repo_root: str | Path) -> Path | None:
    root = Path(repo_root)
    for rel in CODEOWNERS_LOCATIONS:
        candidate = root / rel
        if candidate.is_file():
            return candidate
    return None


def load_codeowners(repo_root: str | Path) -> list[CodeownersRule]:
    """Parse the first CODEOWNERS file found in the repo. Empty if there is none."""
    path = find_codeowners_file(repo_root)
    if path is None:
        return []
    try:
        text = path.read_text(errors="replace")
    except OSError:
        return []
    return parse_codeowners(text)


def parse_codeowners(text: str) -> list[CodeownersRule]:
    rules = []
    for line in text.splitlines():
        line = line.split(" #", 1)[0].strip()
        if not line or line.startswith("#"):
            continue
        tokens = line.split()
        pattern, owners = tokens[0], tuple(tokens[1:])
        rules.append(CodeownersRule(pattern=pattern, owners=owners, regex=pattern_to_regex(pattern)))
    return rules


def owners_for_path(rules: list[CodeownersRule], path: str) -> tuple[str, ...]:
    """Owners of the last rule matching path. Empty when unowned."""
    path = path.replace("\\", "/")
    for rule in reversed(rules):
        if rule.matches(path):
            return rule.owners
    return ()


def pattern_to_regex(pattern: str) -> re.Pattern:
    """Translate a gitignore-style CODEOWNERS pattern to a regex over repo-relative paths."""
    # A slash anywhere but the end anchors the pattern to the repo root
    anchored = "/" in pattern.rstrip("/")
    dir_only = pattern.endswith("/")
    body = pattern.strip("/")

    out = []
    i = 0
    while i < len(body):
        if body.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif body.startswith("**", i):
            out.append(".*")
            i += 2
        elif body[i] == "*":
            out.append("[^/]*")
            i += 1
        elif body[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(body[i]))
            i += 1

    prefix = "^" if anchored else "^(?:.*/)?"
    if dir_only:
        suffix = "/.*$"
    elif body.endswith("/*"):
        # docs/* owns docs/a.md but not docs/sub/b.md
        suffix = "$"
    else:
        suffix = "(?:/.*)?$"
    return re.compile(prefix + "".join(out) + suffix)
