"""Tests for the CLI (via Click test runner)."""

from __future__ import annotations

import click
import pytest
import yaml
from click.testing import CliRunner

from codereport.cli import main, parse_location
from codereport.models import LineRange


@pytest.fixture
def cli_repo(repo):
    (repo / "CODEOWNERS").write_text("* @team\nsrc/b.py @bee\n")
    return repo


def _invoke(repo, *args):
    runner = CliRunner()
    return runner.invoke(main, ["--root", str(repo), *args])


class TestParseLocation:
    def test_range(self):
        assert parse_location("src/foo.py:42-88") == ("src/foo.py", LineRange(42, 88))

    def test_single_line(self):
        assert parse_location("src/foo.py:7") == ("src/foo.py", LineRange(7, 7))

    def test_spaces(self):
        assert parse_location("src/foo.py: 1 - 3") == ("src/foo.py", LineRange(1, 3))

    def test_reversed_range_left_to_store(self):
        assert parse_location("a.py:9-3") == ("a.py", LineRange(9, 3))

    @pytest.mark.parametrize("location", ["src/foo.py", ":1-2", "a.py:x-2", "a.py:1-y", "a.py:"])
    def test_rejects(self, location):
        with pytest.raises(click.BadParameter):
            parse_location(location)


class TestInit:
    def test_creates_config_and_gitignore(self, repo):
        result = _invoke(repo, "init")
        assert result.exit_code == 0, result.output
        assert (repo / ".codereports" / "config.yaml").exists()
        gitignore = (repo / ".gitignore").read_text()
        assert ".codereports/html/" in gitignore
        assert ".codereports/.blame-cache" in gitignore

    def test_idempotent(self, repo):
        (repo / ".gitignore").write_text("node_modules/\n")
        _invoke(repo, "init")
        (repo / ".codereports" / "config.yaml").write_text("tags:\n  todo:\n    expires: 5\n")
        result = _invoke(repo, "init")
        assert result.exit_code == 0
        gitignore = (repo / ".gitignore").read_text()
        assert gitignore.startswith("node_modules/\n")
        assert gitignore.count(".codereports/html/") == 1
        assert "expires: 5" in (repo / ".codereports" / "config.yaml").read_text()


class TestAdd:
    def test_add(self, cli_repo):
        result = _invoke(cli_repo, "add", "src/a.py:10-20", "--tag", "todo", "--message", "x")
        assert result.exit_code == 0, result.output
        assert "Added CR-000001 src/a.py:10-20" in result.stdout
        assert "@team" in result.stdout

    def test_codeowner_specific_rule(self, cli_repo):
        result = _invoke(cli_repo, "add", "src/b.py:1-2", "-t", "buggy", "-m", "y")
        assert "@bee" in result.stdout

    @pytest.mark.parametrize(
        "args,needle",
        [
            (["src/a.py:20-10", "--tag", "todo", "--message", "x"], "invalid range"),
            (["src/a.py:0-3", "--tag", "todo", "--message", "x"], "invalid range"),
            (["src/a.py:1-3", "--tag", "someday", "--message", "x"], "someday"),
            (["src/a.py:1-3", "--tag", "todo", "--message", "  "], "message"),
            (["src/nope.py:1-3", "--tag", "todo", "--message", "x"], "no such file"),
        ],
    )
    def test_validation_errors(self, cli_repo, args, needle):
        result = _invoke(cli_repo, "add", *args)
        assert result.exit_code == 1
        assert needle in result.stderr
        assert not (cli_repo / ".codereports" / "reports.yaml").exists()

    def test_bad_location(self, cli_repo):
        result = _invoke(cli_repo, "add", "src/a.py", "--tag", "todo", "--message", "x")
        assert result.exit_code != 0

    def test_requires_tag_and_message(self, cli_repo):
        assert _invoke(cli_repo, "add", "src/a.py:1-2").exit_code != 0


class TestList:
    def test_lists_in_id_order(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "first")
        _invoke(cli_repo, "add", "src/b.py:1-1", "-t", "buggy", "-m", "second")
        result = _invoke(cli_repo, "list")
        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0].startswith("CR-000001  src/a.py  1-2  todo  open")
        assert lines[0].endswith("first")
        assert lines[1].startswith("CR-000002  src/b.py  1-1  buggy  open")

    def test_filters(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "first")
        _invoke(cli_repo, "add", "src/b.py:1-1", "-t", "buggy", "-m", "second")
        _invoke(cli_repo, "resolve", "CR-000001")

        result = _invoke(cli_repo, "list", "--tag", "buggy")
        assert "CR-000002" in result.stdout and "CR-000001" not in result.stdout

        result = _invoke(cli_repo, "list", "--status", "resolved")
        assert "CR-000001" in result.stdout and "CR-000002" not in result.stdout

    def test_bad_status(self, cli_repo):
        assert _invoke(cli_repo, "list", "--status", "wontfix").exit_code != 0

    def test_empty(self, cli_repo):
        result = _invoke(cli_repo, "list")
        assert result.exit_code == 0
        assert result.stdout == ""


class TestResolveDelete:
    def test_resolve(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "x")
        result = _invoke(cli_repo, "resolve", "CR-000001")
        assert result.exit_code == 0
        assert "Resolved CR-000001" in result.stdout
        assert _invoke(cli_repo, "resolve", "CR-000001").exit_code == 0

    def test_delete(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "x")
        result = _invoke(cli_repo, "delete", "1")
        assert result.exit_code == 0
        assert "Deleted CR-000001" in result.stdout
        assert _invoke(cli_repo, "list").stdout == ""

    @pytest.mark.parametrize("command", ["resolve", "delete"])
    def test_not_found(self, cli_repo, command):
        result = _invoke(cli_repo, command, "CR-000042")
        assert result.exit_code == 1
        assert "report not found: CR-000042" in result.stderr


class TestCheck:
    def test_clean(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "x")
        result = _invoke(cli_repo, "check")
        assert result.exit_code == 0
        assert result.stderr == ""

    def test_blocking_report_fails(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "fine")
        _invoke(cli_repo, "add", "src/a.py:5-9", "-t", "critical", "-m", "data race")
        result = _invoke(cli_repo, "check")
        assert result.exit_code == 1
        assert result.stderr == "CR-000002  src/a.py  critical  data race\n"
        assert result.stdout == ""

    def test_resolved_does_not_fail(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:5-9", "-t", "critical", "-m", "data race")
        _invoke(cli_repo, "resolve", "CR-000001")
        assert _invoke(cli_repo, "check").exit_code == 0

    def test_expired_fails_on_later_date(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "buggy", "-m", "off by one")
        assert _invoke(cli_repo, "check").exit_code == 0
        result = _invoke(cli_repo, "check", "--today", "2999-01-01")
        assert result.exit_code == 1
        assert "CR-000001  src/a.py  buggy  off by one" in result.stderr

    def test_unknown_tag_in_store_does_not_crash(self, cli_repo):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "x")
        path = cli_repo / ".codereports" / "reports.yaml"
        raw = yaml.safe_load(path.read_text())
        raw["entries"][0]["tag"] = "legacy"
        path.write_text(yaml.safe_dump(raw, sort_keys=False))
        result = _invoke(cli_repo, "check")
        assert result.exit_code == 0

    def test_violations_lead_stderr_before_warnings(self, cli_repo, caplog):
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "todo", "-m", "x")
        _invoke(cli_repo, "add", "src/a.py:5-9", "-t", "critical", "-m", "data race")
        path = cli_repo / ".codereports" / "reports.yaml"
        raw = yaml.safe_load(path.read_text())
        raw["entries"][0]["tag"] = "legacy"
        path.write_text(yaml.safe_dump(raw, sort_keys=False))

        result = _invoke(cli_repo, "check")
        assert result.exit_code == 1
        assert result.stderr.splitlines()[0] == "CR-000002  src/a.py  critical  data race"
        assert "Tag 'legacy'" in caplog.text

    def test_invalid_config_is_fatal(self, cli_repo):
        (cli_repo / ".codereports").mkdir()
        (cli_repo / ".codereports" / "config.yaml").write_text("tags: [oops")
        result = _invoke(cli_repo, "check")
        assert result.exit_code == 1
        assert "Error:" in result.stderr


class TestHtml:
    def test_generates_without_opening(self, cli_repo, monkeypatch):
        launched = []
        monkeypatch.setattr("codereport.cli.click.launch", lambda *a, **kw: launched.append(a) or 0)
        _invoke(cli_repo, "add", "src/a.py:1-2", "-t", "critical", "-m", "x")
        result = _invoke(cli_repo, "html", "--no-open")
        assert result.exit_code == 0, result.output
        assert (cli_repo / ".codereports" / "html" / "index.html").exists()
        assert "1 blocking" in result.stdout
        assert launched == []

    def test_opens_browser(self, cli_repo, monkeypatch):
        launched = []
        monkeypatch.setattr("codereport.cli.click.launch", lambda *a, **kw: launched.append(a) or 0)
        result = _invoke(cli_repo, "html")
        assert result.exit_code == 0
        assert len(launched) == 1


class TestRepoDiscovery:
    def test_discovers_root_from_subdir(self, cli_repo, monkeypatch):
        monkeypatch.chdir(cli_repo / "src")
        result = CliRunner().invoke(main, ["add", "src/a.py:1-2", "-t", "todo", "-m", "x"])
        assert result.exit_code == 0, result.output
        assert (cli_repo / ".codereports" / "reports.yaml").exists()

    def test_outside_repo(self, tmp_path, monkeypatch):
        plain = tmp_path / "plain"
        plain.mkdir()
        monkeypatch.chdir(plain)
        monkeypatch.setattr("codereport.cli.find_repo_root", lambda start: None)
        result = CliRunner().invoke(main, ["list"])
        assert result.exit_code == 1
        assert "not inside a git repository" in result.stderr
