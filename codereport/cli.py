"""CLI entrypoint for codereport."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import click

from codereport import __version__
from codereport.config import REPORTS_DIR, config_path, load_config, write_default_config
from codereport.dashboard import compute_stats, generate_dashboard
from codereport.errors import CodeReportError
from codereport.git import find_repo_root
from codereport.models import LineRange, ReportStatus
from codereport.policy import find_violations, format_violation, unknown_tags
from codereport.store import ReportStore

logger = logging.getLogger(__name__)

GITIGNORE_MARKER = "# codereport"
GITIGNORE_BLOCK = (
    "# codereport (generated dashboard and local blame cache)\n"
    ".codereports/html/\n"
    ".codereports/.blame-cache\n"
)


def parse_location(location: str) -> tuple[str, LineRange]:
    """Split 'src/foo.py:42-88' into ('src/foo.py', LineRange(42, 88)).

    A single line ('src/foo.py:42') is a one-line range. Range validity is
    checked by the store, not here.
    """
    path, sep, range_part = location.rpartition(":")
    if not sep:
        raise click.BadParameter("expected path:start-end", param_hint="LOCATION")
    path = path.strip()
    if not path:
        raise click.BadParameter("path is empty", param_hint="LOCATION")

    start_s, dash, end_s = range_part.partition("-")
    try:
        start = int(start_s.strip())
        end = int(end_s.strip()) if dash else start
    except ValueError:
        raise click.BadParameter(f"invalid line range: {range_part!r}", param_hint="LOCATION")
    return path, LineRange(start, end)


def _repo_root(ctx: click.Context) -> Path:
    root = ctx.obj["root"]
    if root:
        return Path(root)
    found = find_repo_root(Path.cwd())
    if found is None:
        raise click.ClickException("not inside a git repository (no .git found)")
    return found


def _open_store(ctx: click.Context) -> ReportStore:
    root = _repo_root(ctx)
    return ReportStore(root, load_config(root))


def _warn_unknown_tags(store: ReportStore, reports) -> None:
    for tag in unknown_tags(reports, store.config):
        logger.warning(
            "Tag '%s' is not in %s; treating it as low severity with no expiry",
            tag,
            config_path(store.repo_root),
        )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--root",
    default=None,
    envvar="CODEREPORT_ROOT",
    type=click.Path(file_okay=False),
    help="Repository root (default: nearest parent directory containing .git)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx, root, verbose):
    """codereport: track code follow-ups next to the code and gate CI on them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["root"] = root


@main.command()
@click.pass_context
def init(ctx):
    """Create .codereports/ with a default config."""
    root = _repo_root(ctx)
    (root / REPORTS_DIR).mkdir(parents=True, exist_ok=True)

    try:
        _ensure_gitignore(root)
    except OSError as e:
        raise click.ClickException(f"failed to update {root / '.gitignore'}: {e}")

    if not config_path(root).exists():
        write_default_config(root)
    click.echo(f"Initialized {REPORTS_DIR}/ in {root}")


@main.command()
@click.argument("location")
@click.option("--tag", "-t", required=True, help="Report tag (todo, refactor, buggy, critical, ...)")
@click.option("--message", "-m", required=True, help="What needs doing")
@click.pass_context
def add(ctx, location, tag, message):
    """Add a report for LOCATION (path:start-end)."""
    path, line_range = parse_location(location)
    try:
        store = _open_store(ctx)
        report = store.create(path, line_range, tag, message)
    except CodeReportError as e:
        raise click.ClickException(str(e))
    click.echo(f"Added {report.id} {report.location} (owner: {report.owner})")


@main.command("list")
@click.option("--tag", "-t", default=None, help="Only reports with this tag")
@click.option(
    "--status",
    "-s",
    type=click.Choice([s.value for s in ReportStatus], case_sensitive=False),
    default=None,
    help="Only open or only resolved reports",
)
@click.pass_context
def list_reports(ctx, tag, status):
    """List reports in ID order."""
    try:
        store = _open_store(ctx)
        reports = store.list(tag=tag, status=status)
    except CodeReportError as e:
        raise click.ClickException(str(e))

    _warn_unknown_tags(store, reports)
    for r in reports:
        click.echo(f"{r.id}  {r.path}  {r.range}  {r.tag}  {r.status.value}  {r.owner}  {r.message}")


@main.command()
@click.argument("report_id")
@click.pass_context
def delete(ctx, report_id):
    """Delete a report permanently."""
    try:
        report = _open_store(ctx).delete(report_id)
    except CodeReportError as e:
        raise click.ClickException(str(e))
    click.echo(f"Deleted {report.id}")


@main.command()
@click.argument("report_id")
@click.pass_context
def resolve(ctx, report_id):
    """Mark a report as resolved."""
    try:
        report = _open_store(ctx).resolve(report_id)
    except CodeReportError as e:
        raise click.ClickException(str(e))
    click.echo(f"Resolved {report.id}")


@main.command()
@click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Evaluate as of this date (default: today)",
)
@click.pass_context
def check(ctx, today):
    """CI gate: fail on open blocking or expired reports."""
    as_of = today.date() if today else date.today()
    try:
        store = _open_store(ctx)
        reports = store.list()
    except CodeReportError as e:
        raise click.ClickException(str(e))

    violations = find_violations(reports, store.config, as_of)
    # Violation lines come first and contiguous so CI logs diff cleanly
    for report in violations:
        click.echo(format_violation(report), err=True)
    _warn_unknown_tags(store, reports)
    if violations:
        raise SystemExit(1)


@main.command()
@click.option("--no-open", is_flag=True, help="Do not open the dashboard in a browser")
@click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Evaluate as of this date (default: today)",
)
@click.pass_context
def html(ctx, no_open, today):
    """Generate the HTML dashboard."""
    as_of = today.date() if today else date.today()
    try:
        store = _open_store(ctx)
        reports = store.list()
    except CodeReportError as e:
        raise click.ClickException(str(e))

    _warn_unknown_tags(store, reports)
    index = generate_dashboard(store.repo_root, reports, store.config, as_of)
    stats = compute_stats(reports, store.config, as_of)
    click.echo(f"Generated {index}")
    click.echo(
        f"  {stats.open} open, {stats.resolved} resolved, {stats.blocking} blocking, "
        f"{stats.expired} expired, {stats.expiring_soon} expiring soon"
    )

    if not no_open:
        if click.launch(str(index)) != 0:
            logger.warning("Could not open %s in a browser", index)


def _ensure_gitignore(root: Path) -> None:
    """Append the codereport ignore block to the repo root .gitignore once."""
    gitignore = root / ".gitignore"
    content = gitignore.read_text() if gitignore.exists() else ""
    if GITIGNORE_MARKER in content or ".codereports/html/" in content:
        return
    if content.strip():
        content = content.rstrip("\n") + "\n\n" + GITIGNORE_BLOCK
    else:
        content = GITIGNORE_BLOCK
    gitignore.write_text(content)


if __name__ == "__main__":
    main()
