"""Shared fixtures for codereport tests."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from codereport.config import CodeReportConfig
from codereport.models import LineRange, Owner, OwnerSource
from codereport.ownership import OwnerStrategy, OwnershipResolver
from codereport.store import ReportStore


class FixedOwner(OwnerStrategy):
    """Strategy that always answers with the same owner and counts calls."""

    name = "fixed"

    def __init__(self, owner: Owner | None):
        self.owner = owner
        self.calls: list[tuple[str, LineRange]] = []

    def try_resolve(self, path, line_range):
        self.calls.append((path, line_range))
        return self.owner


@pytest.fixture
def repo(tmp_path):
    """A minimal repo: a .git marker and a couple of source files."""
    (tmp_path / ".git").mkdir()
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("".join(f"line {i}\n" for i in range(1, 41)))
    (tmp_path / "src" / "b.py").write_text("x = 1\ny = 2\n")
    (tmp_path / "README.md").write_text("# demo\n")
    return tmp_path


@pytest.fixture
def config():
    return CodeReportConfig()


@pytest.fixture
def fixed_owner():
    return FixedOwner(Owner(OwnerSource.CODEOWNER, "@platform"))


@pytest.fixture
def store(repo, config, fixed_owner):
    return ReportStore(repo, config, resolver=OwnershipResolver([fixed_owner]))


@pytest.fixture
def write_config(repo):
    """Write .codereports/config.yaml into the repo and return its path."""

    def _write(content: str) -> Path:
        p = repo / ".codereports" / "config.yaml"
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(textwrap.dedent(content))
        return p

    return _write
