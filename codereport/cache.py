"""Local blame cache.

Maps (path, content fingerprint, start, end) to the resolved blame owner so
repeated lookups on unchanged files skip git. A changed fingerprint is simply
a miss; nothing is ever evicted. The file is local-only and optional: a missing
or unreadable cache behaves as an empty one, and write failures are ignored.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from codereport.config import REPORTS_DIR
from codereport.files import atomic_write_text
from codereport.models import LineRange

logger = logging.getLogger(__name__)

BLAME_CACHE_FILENAME = ".blame-cache"


@dataclass(frozen=True)
class BlameCacheEntry:
    path: str
    fingerprint: str
    start: int
    end: int
    identity: str
    resolved_at: str = ""

    @property
    def key(self) -> tuple[str, str, int, int]:
        return (self.path, self.fingerprint, self.start, self.end)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "fingerprint": self.fingerprint,
            "start": self.start,
            "end": self.end,
            "identity": self.identity,
            "resolved_at": self.resolved_at,
        }


class BlameCache:
    """Reads the cache file lazily and rewrites it in full on every put."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._entries: dict[tuple[str, str, int, int], BlameCacheEntry] | None = None

    @classmethod
    def for_repo(cls, repo_root: str | Path) -> BlameCache:
        return cls(Path(repo_root) / REPORTS_DIR / BLAME_CACHE_FILENAME)

    def get(self, path: str, fingerprint: str, line_range: LineRange) -> BlameCacheEntry | None:
        return self._load().get((path, fingerprint, line_range.start, line_range.end))

    def put(self, path: str, fingerprint: str, line_range: LineRange, identity: str) -> BlameCacheEntry:
        entry = BlameCacheEntry(
            path=path,
            fingerprint=fingerprint,
            start=line_range.start,
            end=line_range.end,
            identity=identity,
            resolved_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
        entries = self._load()
        entries[entry.key] = entry
        self._save(entries)
        return entry

    def __len__(self) -> int:
        return len(self._load())

    def _load(self) -> dict[tuple[str, str, int, int], BlameCacheEntry]:
        if self._entries is not None:
            return self._entries

        self._entries = {}
        if not self.path.exists():
            return self._entries

        try:
            data = json.loads(self.path.read_text())
            for raw in data.get("entries", []):
                entry = BlameCacheEntry(
                    path=str(raw["path"]),
                    fingerprint=str(raw["fingerprint"]),
                    start=int(raw["start"]),
                    end=int(raw["end"]),
                    identity=str(raw["identity"]),
                    resolved_at=str(raw.get("resolved_at", "")),
                )
                self._entries[entry.key] = entry
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug("Ignoring unreadable blame cache %s: %s", self.path, e)
            self._entries = {}

        return self._entries

    def _save(self, entries: dict[tuple[str, str, int, int], BlameCacheEntry]) -> None:
        ordered = sorted(entries.values(), key=lambda e: e.key)
        payload = {"entries": [e.to_dict() for e in ordered]}
        try:
            atomic_write_text(self.path, json.dumps(payload, indent=2) + "\n")
        except OSError as e:
            logger.debug("Could not write blame cache %s: %s", self.path, e)
