"""HTML dashboard generation."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from html import escape
from pathlib import Path

from codereport.config import REPORTS_DIR, CodeReportConfig
from codereport.files import atomic_write_text
from codereport.models import ExpirationState, Report, Severity
from codereport.policy import evaluate

HTML_DIRNAME = "html"
MAX_HEATMAP_FILES = 30


@dataclass
class DashboardStats:
    total: int = 0
    open: int = 0
    resolved: int = 0
    blocking: int = 0  # Open reports failing `check`
    blocking_severity: int = 0
    expired: int = 0
    expiring_soon: int = 0


@dataclass
class ChartData:
    tag_counts: list[tuple[str, int]]
    file_counts: list[tuple[str, int]]
    heatmap: dict[str, dict[str, int]]


def compute_stats(reports: list[Report], config: CodeReportConfig, today: date) -> DashboardStats:
    stats = DashboardStats(total=len(reports))
    for report in reports:
        ev = evaluate(report, config, today)
        if not ev.is_open:
            stats.resolved += 1
            continue
        stats.open += 1
        if ev.is_blocking:
            stats.blocking += 1
        if ev.severity == Severity.BLOCKING:
            stats.blocking_severity += 1
        if ev.expiration_state == ExpirationState.EXPIRED:
            stats.expired += 1
        elif ev.expiration_state == ExpirationState.EXPIRING_SOON:
            stats.expiring_soon += 1
    return stats


def compute_chart_data(reports: list[Report]) -> ChartData:
    """Per-tag and per-file counts of open reports plus a file x tag heatmap, most frequent first."""
    reports = [r for r in reports if r.is_open]
    tags = Counter(r.tag for r in reports)
    files = Counter(r.path for r in reports)
    heatmap: dict[str, dict[str, int]] = {}
    for r in reports:
        row = heatmap.setdefault(r.path, {})
        row[r.tag] = row.get(r.tag, 0) + 1

    def by_count(item: tuple[str, int]) -> tuple[int, str]:
        return (-item[1], item[0])

    return ChartData(
        tag_counts=sorted(tags.items(), key=by_count),
        file_counts=sorted(files.items(), key=by_count),
        heatmap=heatmap,
    )


def render_html(reports: list[Report], config: CodeReportConfig, today: date) -> str:
    stats = compute_stats(reports, config, today)
    charts = compute_chart_data(reports)

    kpis = [
        ("Total", stats.total, ""),
        ("Open", stats.open, ""),
        ("Resolved", stats.resolved, "ok"),
        ("Blocking", stats.blocking, "bad" if stats.blocking else "ok"),
        ("Expired", stats.expired, "bad" if stats.expired else ""),
        ("Expiring soon", stats.expiring_soon, "warn" if stats.expiring_soon else ""),
    ]
    kpi_html = "".join(
        f'<div class="kpi {cls}"><span class="kpi-value">{value}</span>'
        f'<span class="kpi-label">{label}</span></div>'
        for label, value, cls in kpis
    )

    max_tag = max((count for _, count in charts.tag_counts), default=1)
    bars = "".join(
        f'<div class="bar-row"><span class="bar-label">{escape(tag)}</span>'
        f'<div class="bar-wrap"><div class="bar tag-{_slug(tag)}" style="width:{count / max_tag * 100:.0f}%"></div></div>'
        f'<span class="bar-value">{count}</span></div>'
        for tag, count in charts.tag_counts
    )

    tags = [tag for tag, _ in charts.tag_counts]
    head = "".join(f"<th>{escape(t)}</th>" for t in tags)
    rows = []
    for path, _ in charts.file_counts[:MAX_HEATMAP_FILES]:
        cells = []
        for tag in tags:
            count = charts.heatmap.get(path, {}).get(tag, 0)
            level = "hi" if count >= 3 else "mid" if count == 2 else "lo"
            cells.append(f'<td class="heat {level}">{count}</td>' if count else "<td>-</td>")
        rows.append(f'<tr><td class="path">{escape(path)}</td>{"".join(cells)}</tr>')

    table_rows = []
    for r in sorted(reports, key=lambda r: r.seq):
        ev = evaluate(r, config, today)
        flag = "blocking" if ev.is_blocking else ev.expiration_state.value
        expires = r.expires_at.isoformat() if r.expires_at else "-"
        table_rows.append(
            f'<tr class="{flag}"><td>{escape(r.id)}</td><td>{escape(r.location)}</td>'
            f"<td>{escape(r.tag)}</td><td>{ev.severity.value}</td><td>{r.status.value}</td>"
            f"<td>{escape(str(r.owner))}</td><td>{expires}</td><td>{escape(r.message)}</td></tr>"
        )

    return _PAGE.format(
        today=today.isoformat(),
        kpis=kpi_html,
        bars=bars or "<p>No open reports.</p>",
        heat_head=head,
        heat_rows="".join(rows),
        report_rows="".join(table_rows),
    )


def generate_dashboard(
    repo_root: str | Path,
    reports: list[Report],
    config: CodeReportConfig,
    today: date,
) -> Path:
    """Write .codereports/html/index.html and return its path."""
    out = Path(repo_root) / REPORTS_DIR / HTML_DIRNAME / "index.html"
    atomic_write_text(out, render_html(reports, config, today))
    return out


def _slug(tag: str) -> str:
    return "".join(c if c.isalnum() else "-" for c in tag.lower())


_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>codereport dashboard</title>
<style>
body {{ font-family: system-ui, sans-serif; margin: 2rem; color: #1f2328; }}
.kpis {{ display: flex; gap: 1rem; flex-wrap: wrap; }}
.kpi {{ border: 1px solid #d0d7de; border-radius: 6px; padding: .75rem 1rem; min-width: 7rem; }}
.kpi-value {{ display: block; font-size: 1.6rem; font-weight: 600; }}
.kpi.bad .kpi-value {{ color: #cf222e; }}
.kpi.warn .kpi-value {{ color: #9a6700; }}
.kpi.ok .kpi-value {{ color: #1a7f37; }}
.bar-row {{ display: flex; align-items: center; gap: .5rem; margin: .25rem 0; }}
.bar-label {{ width: 6rem; }}
.bar-wrap {{ flex: 1; background: #f6f8fa; height: .8rem; }}
.bar {{ height: 100%; background: #0969da; }}
.bar.tag-critical {{ background: #cf222e; }}
.bar.tag-buggy {{ background: #bc4c00; }}
.bar.tag-refactor {{ background: #8250df; }}
table {{ border-collapse: collapse; margin-top: 1rem; }}
td, th {{ border: 1px solid #d0d7de; padding: .25rem .5rem; text-align: left; }}
td.heat.lo {{ background: #ddf4ff; }}
td.heat.mid {{ background: #80ccff; }}
td.heat.hi {{ background: #0969da; color: #fff; }}
tr.blocking td {{ background: #ffebe9; }}
tr.expiring_soon td {{ background: #fff8c5; }}
</style>
</head>
<body>
<h1>codereport</h1>
<p>As of {today}</p>
<div class="kpis">{kpis}</div>
<h2>Open reports by tag</h2>
{bars}
<h2>Open hotspots</h2>
<table><tr><th>File</th>{heat_head}</tr>{heat_rows}</table>
<h2>Reports</h2>
<table>
<tr><th>ID</th><th>Location</th><th>Tag</th><th>Severity</th><th>Status</th><th>Owner</th><th>Expires</th><th>Message</th></tr>
{report_rows}
</table>
</body>
</html>
"""
