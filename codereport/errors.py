"""Error taxonomy.

Validation errors are raised before anything is written. The CLI turns every
CodeReportError into a click error with a non-zero exit.
"""

from __future__ import annotations


class CodeReportError(Exception):
    """Base class for all codereport errors."""


class InvalidRange(CodeReportError):
    def __init__(self, start: int, end: int):
        self.start = start
        self.end = end
        super().__init__(f"invalid range {start}-{end} (start >= 1, end >= start)")


class UnknownTag(CodeReportError):
    def __init__(self, tag: str, reason: str = "is not defined in config"):
        self.tag = tag
        super().__init__(f"tag '{tag}' {reason}")


class EmptyMessage(CodeReportError):
    def __init__(self):
        super().__init__("message must not be empty")


class InvalidPath(CodeReportError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"{path}: {reason}")


class NotFound(CodeReportError):
    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"report not found: {report_id}")


class StoreCorrupt(CodeReportError):
    def __init__(self, path, detail: str):
        self.path = path
        super().__init__(
            f"{path} is corrupt ({detail}). "
            "Inspect the file or restore it from version control; it is never repaired automatically."
        )


class ConfigInvalid(CodeReportError):
    def __init__(self, path, detail: str):
        self.path = path
        super().__init__(f"invalid {path}: {detail}")


class OwnershipUnresolved(CodeReportError):
    """Soft failure inside an ownership strategy. Logged, never propagated to callers of add."""
