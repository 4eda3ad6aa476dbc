"""Severity and expiration policy.

``evaluate`` is the single definition of a violating report. The CI check and
the dashboard both go through it.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from codereport.config import CodeReportConfig
from codereport.models import Evaluation, ExpirationState, Report, Severity

EXPIRING_SOON_DAYS = 7


def compute_expires_at(created_at: datetime, config: CodeReportConfig, tag: str) -> date | None:
    """Expiration snapshot for a new report; None when the tag never expires."""
    policy = config.policy_for(tag)
    if policy is None:
        return None
    return policy.expires_at(created_at.date())


def expiration_state(expires_at: date | None, today: date) -> ExpirationState:
    if expires_at is None:
        return ExpirationState.NONE
    if expires_at < today:
        return ExpirationState.EXPIRED
    if expires_at < today + timedelta(days=EXPIRING_SOON_DAYS):
        return ExpirationState.EXPIRING_SOON
    return ExpirationState.ACTIVE


def evaluate(report: Report, config: CodeReportConfig, today: date) -> Evaluation:
    is_open = report.is_open
    severity = config.effective_policy(report.tag).severity
    state = expiration_state(report.expires_at, today)
    is_blocking = is_open and (severity == Severity.BLOCKING or state == ExpirationState.EXPIRED)
    return Evaluation(
        is_open=is_open,
        severity=severity,
        expiration_state=state,
        is_blocking=is_blocking,
    )


def find_violations(reports: Iterable[Report], config: CodeReportConfig, today: date) -> list[Report]:
    """Blocking reports in ascending ID order."""
    violating = [r for r in reports if evaluate(r, config, today).is_blocking]
    return sorted(violating, key=lambda r: r.seq)


def format_violation(report: Report) -> str:
    """The CI log line for a violation. CI log diffing depends on this exact format."""
    return f"{report.id}  {report.path}  {report.tag}  {report.message}"


def unknown_tags(reports: Iterable[Report], config: CodeReportConfig) -> list[str]:
    """Tags used by reports that have no policy in config."""
    return sorted({r.tag for r in reports if config.policy_for(r.tag) is None})
