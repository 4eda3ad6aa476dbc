"""Core data models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

REPORT_ID_PREFIX = "CR-"
REPORT_ID_WIDTH = 6

_REPORT_ID_RE = re.compile(r"^(?:CR-)?(\d+)$", re.IGNORECASE)


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BLOCKING = "blocking"


class ReportStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class OwnerSource(str, Enum):
    CODEOWNER = "codeowner"  # Matched a CODEOWNERS rule
    GIT_BLAME = "git-blame"  # Majority author of the line range
    UNKNOWN = "unknown"


class ExpirationState(str, Enum):
    NONE = "none"  # Tag had no expiration when the report was created
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


def format_report_id(seq: int) -> str:
    """6 -> 'CR-000006'."""
    return f"{REPORT_ID_PREFIX}{seq:0{REPORT_ID_WIDTH}d}"


def parse_report_id(report_id: str) -> int | None:
    """Sequence number of an ID ('CR-000042', 'cr-42' or '42'), or None."""
    m = _REPORT_ID_RE.match(report_id.strip())
    if not m:
        return None
    return int(m.group(1))


def normalize_report_id(report_id: str) -> str:
    """Canonical form of a user-supplied ID. Unparseable input is returned stripped."""
    seq = parse_report_id(report_id)
    if seq is None:
        return report_id.strip()
    return format_report_id(seq)


@dataclass(frozen=True)
class LineRange:
    start: int
    end: int

    @property
    def is_valid(self) -> bool:
        return 1 <= self.start <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class Owner:
    source: OwnerSource
    identity: str = ""

    @classmethod
    def unknown(cls) -> Owner:
        return cls(OwnerSource.UNKNOWN, "")

    def __str__(self) -> str:
        if self.source == OwnerSource.UNKNOWN:
            return "unknown"
        return f"{self.identity} ({self.source.value})"


@dataclass
class Report:
    id: str
    path: str  # Relative to repo root, '/' separated
    range: LineRange
    tag: str
    message: str
    owner: Owner = field(default_factory=Owner.unknown)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: date | None = None  # Snapshot taken at creation
    status: ReportStatus = ReportStatus.OPEN

    @property
    def seq(self) -> int:
        return parse_report_id(self.id) or 0

    @property
    def is_open(self) -> bool:
        return self.status == ReportStatus.OPEN

    @property
    def location(self) -> str:
        return f"{self.path}:{self.range}"

    def to_dict(self) -> dict[str, Any]:
        # Key order is the on-disk order; keep it stable for minimal diffs.
        return {
            "id": self.id,
            "path": self.path,
            "range": {"start": self.range.start, "end": self.range.end},
            "tag": self.tag,
            "message": self.message,
            "owner": {"source": self.owner.source.value, "identity": self.owner.identity},
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Report:
        """Build a Report from its serialized form.

        Raises KeyError, TypeError or ValueError on malformed input; the store
        reports those as corruption.
        """
        rng = raw["range"]
        return cls(
            id=str(raw["id"]),
            path=str(raw["path"]),
            range=LineRange(int(rng["start"]), int(rng["end"])),
            tag=str(raw["tag"]),
            message=str(raw["message"]),
            owner=_owner_from_raw(raw),
            created_at=_to_datetime(raw["created_at"]),
            expires_at=_to_date(raw.get("expires_at")),
            status=ReportStatus(raw.get("status", "open")),
        )


@dataclass(frozen=True)
class Evaluation:
    """Derived policy state of a report on a given day."""

    is_open: bool
    severity: Severity
    expiration_state: ExpirationState
    is_blocking: bool


def _owner_from_raw(raw: dict[str, Any]) -> Owner:
    owner = raw.get("owner")
    if owner:
        if not isinstance(owner, dict):
            raise TypeError(f"owner must be a mapping, got {owner!r}")
        return Owner(OwnerSource(owner["source"]), str(owner.get("identity") or ""))
    # Older ledgers stored {git, codeowner} side by side
    author = raw.get("author") or {}
    if not isinstance(author, dict):
        raise TypeError(f"author must be a mapping, got {author!r}")
    if author.get("codeowner"):
        return Owner(OwnerSource.CODEOWNER, str(author["codeowner"]))
    if author.get("git"):
        return Owner(OwnerSource.GIT_BLAME, str(author["git"]))
    return Owner.unknown()


def _to_datetime(value: Any) -> datetime:
    # YAML turns unquoted timestamps and dates into objects
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())
