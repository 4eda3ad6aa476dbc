"""Ownership resolution for new reports.

An ordered chain of strategies is tried in turn and the first owner found
wins: CODEOWNERS (intended ownership), then git blame through the local cache
(actual authorship). When every strategy comes up empty the owner is
``unknown``; resolution never fails the caller.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from codereport.cache import BlameCache
from codereport.codeowners import CodeownersRule, load_codeowners, owners_for_path
from codereport.errors import OwnershipUnresolved
from codereport.git import BlameLine, blame_range, file_fingerprint
from codereport.models import LineRange, Owner, OwnerSource

logger = logging.getLogger(__name__)

BlameFn = Callable[[Path, str, int, int], list[BlameLine]]


class OwnerStrategy(ABC):
    """One step of the ownership chain."""

    name: str = "base"

    @abstractmethod
    def try_resolve(self, path: str, line_range: LineRange) -> Owner | None:
        """Return an owner, None to defer to the next strategy.

        May raise OwnershipUnresolved on operational failure; the resolver
        logs it and moves on.
        """
        ...


class CodeownersStrategy(OwnerStrategy):
    name = "codeowners"

    def __init__(self, repo_root: str | Path, rules: list[CodeownersRule] | None = None):
        self.repo_root = Path(repo_root)
        self._rules = rules

    @property
    def rules(self) -> list[CodeownersRule]:
        if self._rules is None:
            self._rules = load_codeowners(self.repo_root)
        return self._rules

    def try_resolve(self, path: str, line_range: LineRange) -> Owner | None:
        owners = owners_for_path(self.rules, path)
        if not owners:
            return None
        return Owner(OwnerSource.CODEOWNER, owners[0])


class BlameStrategy(OwnerStrategy):
    """Majority author of the line range, memoized by file content fingerprint."""

    name = "git-blame"

    def __init__(
        self,
        repo_root: str | Path,
        cache: BlameCache | None = None,
        blame: BlameFn = blame_range,
    ):
        self.repo_root = Path(repo_root)
        self.cache = cache if cache is not None else BlameCache.for_repo(self.repo_root)
        self.blame = blame

    def try_resolve(self, path: str, line_range: LineRange) -> Owner | None:
        fingerprint = file_fingerprint(self.repo_root / path)
        if fingerprint is None:
            return None

        cached = self.cache.get(path, fingerprint, line_range)
        if cached is not None:
            logger.debug("Blame cache hit for %s:%s", path, line_range)
            return Owner(OwnerSource.GIT_BLAME, cached.identity)

        lines = self.blame(self.repo_root, path, line_range.start, line_range.end)
        identity = majority_author(lines)
        if identity is None:
            return None

        self.cache.put(path, fingerprint, line_range, identity)
        return Owner(OwnerSource.GIT_BLAME, identity)


def majority_author(lines: list[BlameLine]) -> str | None:
    """Identity owning the most committed lines.

    Ties go to the author with the most recent commit, then to the
    alphabetically first identity so the result is deterministic.
    """
    counts: dict[str, int] = {}
    latest: dict[str, int] = {}
    for line in lines:
        if not line.committed or not line.identity:
            continue
        counts[line.identity] = counts.get(line.identity, 0) + 1
        latest[line.identity] = max(latest.get(line.identity, 0), line.timestamp)

    if not counts:
        return None
    return min(counts, key=lambda ident: (-counts[ident], -latest[ident], ident))


class OwnershipResolver:
    def __init__(self, strategies: list[OwnerStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def for_repo(cls, repo_root: str | Path) -> OwnershipResolver:
        return cls([CodeownersStrategy(repo_root), BlameStrategy(repo_root)])

    def resolve(self, path: str, line_range: LineRange) -> Owner:
        for strategy in self.strategies:
            try:
                owner = strategy.try_resolve(path, line_range)
            except OwnershipUnresolved as e:
                logger.warning("Ownership lookup via %s failed for %s: %s", strategy.name, path, e)
                continue
            if owner is not None:
                return owner

        logger.warning("Could not resolve an owner for %s:%s; recording it as unknown", path, line_range)
        return Owner.unknown()
