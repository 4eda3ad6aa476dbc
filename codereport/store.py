"""Report store: the only way reports are created, resolved or deleted.

The whole ledger lives in one YAML file that is reparsed on every call and
rewritten in full, sorted by ID, on every mutation. The next sequence number
is persisted next to the records so IDs are never reused after a delete.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import yaml

from codereport.config import REPORTS_DIR, CodeReportConfig
from codereport.errors import (
    EmptyMessage,
    InvalidPath,
    InvalidRange,
    NotFound,
    StoreCorrupt,
    UnknownTag,
)
from codereport.files import atomic_write_text
from codereport.models import (
    LineRange,
    Report,
    ReportStatus,
    format_report_id,
    normalize_report_id,
    parse_report_id,
)
from codereport.ownership import OwnershipResolver
from codereport.policy import compute_expires_at

REPORTS_VERSION = 1
REPORTS_FILENAME = "reports.yaml"


@dataclass
class Ledger:
    """In-memory form of reports.yaml."""

    next_id: int = 1
    reports: list[Report] = field(default_factory=list)
    version: int = REPORTS_VERSION

    def find(self, report_id: str) -> Report | None:
        wanted = normalize_report_id(report_id)
        for report in self.reports:
            if report.id == wanted:
                return report
        return None

    def allocate_id(self) -> str:
        report_id = format_report_id(self.next_id)
        self.next_id += 1
        return report_id

    def to_dict(self) -> dict:
        ordered = sorted(self.reports, key=lambda r: r.seq)
        return {
            "version": self.version,
            "next_id": self.next_id,
            "entries": [r.to_dict() for r in ordered],
        }


class ReportStore:
    def __init__(
        self,
        repo_root: str | Path,
        config: CodeReportConfig,
        resolver: OwnershipResolver | None = None,
    ):
        self.repo_root = Path(repo_root)
        self.config = config
        self._resolver = resolver

    @property
    def path(self) -> Path:
        return self.repo_root / REPORTS_DIR / REPORTS_FILENAME

    @property
    def resolver(self) -> OwnershipResolver:
        if self._resolver is None:
            self._resolver = OwnershipResolver.for_repo(self.repo_root)
        return self._resolver

    # -- reads ---------------------------------------------------------------

    def load(self) -> Ledger:
        """Parse reports.yaml. A missing file is an empty ledger; anything unparseable is StoreCorrupt."""
        if not self.path.exists():
            return Ledger()

        try:
            raw = yaml.safe_load(self.path.read_text())
        except yaml.YAMLError as e:
            raise StoreCorrupt(self.path, f"not valid YAML: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise StoreCorrupt(self.path, f"unreadable: {e}") from e

        if not isinstance(raw, dict):
            raise StoreCorrupt(self.path, "expected a mapping with 'version' and 'entries'")

        version = raw.get("version")
        if version != REPORTS_VERSION:
            raise StoreCorrupt(
                self.path, f"unsupported reports version: {version} (expected {REPORTS_VERSION})"
            )

        entries = raw.get("entries", [])
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise StoreCorrupt(self.path, "'entries' must be a list")

        reports = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            try:
                report = Report.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                raise StoreCorrupt(self.path, f"entry #{index + 1} is malformed: {e!r}") from e
            seq = parse_report_id(report.id)
            if seq is None or seq < 1:
                raise StoreCorrupt(self.path, f"entry #{index + 1} has an invalid id: {report.id}")
            # Hand-edited ids like '5' or 'cr-5' are stored canonically on the next write
            report.id = format_report_id(seq)
            if not report.range.is_valid:
                raise StoreCorrupt(
                    self.path, f"{report.id} has an invalid line range: {report.range}"
                )
            if report.id in seen:
                raise StoreCorrupt(self.path, f"duplicate id: {report.id}")
            seen.add(report.id)
            reports.append(report)

        highest = max((r.seq for r in reports), default=0)
        next_id = raw.get("next_id", highest + 1)
        if isinstance(next_id, bool) or not isinstance(next_id, int) or next_id < 1:
            raise StoreCorrupt(self.path, f"invalid next_id: {next_id!r}")
        # Never hand out an ID that is already taken, even if next_id was hand-edited
        next_id = max(next_id, highest + 1)

        return Ledger(next_id=next_id, reports=sorted(reports, key=lambda r: r.seq), version=version)

    def get(self, report_id: str) -> Report:
        report = self.load().find(report_id)
        if report is None:
            raise NotFound(report_id)
        return report

    def list(self, tag: str | None = None, status: str | ReportStatus | None = None) -> list[Report]:
        """Reports in ascending ID order, narrowed by every filter given."""
        reports = self.load().reports
        if tag is not None:
            reports = [r for r in reports if r.tag.lower() == tag.lower()]
        if status is not None:
            wanted = ReportStatus(status.lower() if isinstance(status, str) else status)
            reports = [r for r in reports if r.status == wanted]
        return reports

    # -- mutations -----------------------------------------------------------

    def create(
        self,
        path: str,
        line_range: LineRange,
        tag: str,
        message: str,
        now: datetime | None = None,
    ) -> Report:
        """Validate, attribute and persist a new open report."""
        if not message or not message.strip():
            raise EmptyMessage()
        if not line_range.is_valid:
            raise InvalidRange(line_range.start, line_range.end)
        tag = self._validate_tag(tag)
        rel_path = self._validate_path(path)

        ledger = self.load()
        owner = self.resolver.resolve(rel_path, line_range)
        created_at = _timestamp(now)

        report = Report(
            id=ledger.allocate_id(),
            path=rel_path,
            range=line_range,
            tag=tag,
            message=message.strip(),
            owner=owner,
            created_at=created_at,
            expires_at=compute_expires_at(created_at, self.config, tag),
            status=ReportStatus.OPEN,
        )
        ledger.reports.append(report)
        self._save(ledger)
        return report

    def resolve(self, report_id: str) -> Report:
        """Mark a report resolved. Resolving twice is a no-op."""
        ledger = self.load()
        report = ledger.find(report_id)
        if report is None:
            raise NotFound(report_id)
        if report.status != ReportStatus.RESOLVED:
            report.status = ReportStatus.RESOLVED
            self._save(ledger)
        return report

    def delete(self, report_id: str) -> Report:
        """Remove a report for good. Its ID is never handed out again."""
        ledger = self.load()
        report = ledger.find(report_id)
        if report is None:
            raise NotFound(report_id)
        ledger.reports.remove(report)
        self._save(ledger)
        return report

    # -- helpers -------------------------------------------------------------

    def _validate_tag(self, tag: str) -> str:
        key = (tag or "").strip().lower()
        policy = self.config.policy_for(key)
        if policy is None:
            raise UnknownTag(key)
        if not policy.enabled:
            raise UnknownTag(key, reason="is disabled in config")
        return key

    def _validate_path(self, path: str) -> str:
        rel = normalize_path(path)
        if not rel:
            raise InvalidPath(path, "path is empty")
        if Path(rel).is_absolute() or rel.startswith("../") or rel == "..":
            raise InvalidPath(path, "path must be relative to the repository root")

        root = self.repo_root.resolve()
        target = (root / rel).resolve()
        if root != target and root not in target.parents:
            raise InvalidPath(path, "path is outside the repository")
        if not target.is_file():
            raise InvalidPath(path, "no such file in the repository")
        return rel

    def _save(self, ledger: Ledger) -> None:
        text = yaml.safe_dump(ledger.to_dict(), sort_keys=False, allow_unicode=True, width=1000)
        atomic_write_text(self.path, text)


def _timestamp(now: datetime | None) -> datetime:
    """Creation timestamp in local time, second precision, always timezone-aware."""
    ts = now or datetime.now()
    return ts.astimezone().replace(microsecond=0)


def normalize_path(path: str) -> str:
    """Repo-relative, forward-slash form: '.\\src\\a.py' -> 'src/a.py'."""
    rel = path.strip().replace("\\", "/")
    while rel.startswith("./"):
        rel = rel[2:]
    return rel
