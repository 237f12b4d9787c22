"""
CLI tests via typer's CliRunner.
"""

import json

import pytest
from rich.console import Console
from typer.testing import CliRunner

from checkup import main
from checkup.checkers import build_topics

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, tmp_path):
    """Home во временной папке и широкая консоль для таблиц."""
    monkeypatch.setenv("CHECKUP_HOME", str(tmp_path))
    monkeypatch.setattr(main, "console", Console(width=200, highlight=False))
    return tmp_path


def with_fake_collectors(monkeypatch, values):
    """Подменить каталог: только topic'и из values с фиксированными фактами."""

    def fake_build_topics(policy, today=None):
        topics = [topic for topic in build_topics(policy, today=today) if topic.key in values]
        for topic in topics:
            value = values[topic.key]
            topic.collector = lambda policy, value=value: value
        return topics

    monkeypatch.setattr(main, "build_topics", fake_build_topics)


def test_topics_lists_catalogue():
    result = runner.invoke(main.app, ["topics"])

    assert result.exit_code == 0
    assert "network-reachable" in result.output
    assert "prerequisite" in result.output
    assert "snapshot" in result.output


def test_missing_env_file_is_an_error(tmp_path):
    result = runner.invoke(main.app, ["run", "--env-file", str(tmp_path / "absent.env"), "--no-update"])

    assert result.exit_code == main.EXIT_ERRORS
    assert "does not exist" in result.output


class TestPromote:
    def test_promote(self, cli_env):
        folder = cli_env / "checkup_files"
        folder.mkdir()
        (folder / "timers.current.txt").write_text("a.timer a.service\n", encoding="utf-8")

        result = runner.invoke(main.app, ["promote", "timers"])

        assert result.exit_code == 0
        assert "CHECKED timers" in result.output
        assert (folder / "timers.saved.txt").read_text(encoding="utf-8") == "a.timer a.service\n"

    def test_promote_without_capture(self, cli_env):
        (cli_env / "checkup_files").mkdir()

        result = runner.invoke(main.app, ["promote", "timers"])

        assert result.exit_code == main.EXIT_ERRORS
        assert "ERROR:" in result.output


class TestRun:
    def test_clean_run(self, monkeypatch):
        with_fake_collectors(monkeypatch, {"firewall-enabled": "Status: active\n"})

        result = runner.invoke(main.app, ["run", "--no-update"])

        assert result.exit_code == main.EXIT_OK
        assert "CHECKED" in result.output
        assert "*** DONE (success) ***" in result.output

    def test_errors_give_nonzero_exit(self, monkeypatch):
        with_fake_collectors(monkeypatch, {"firewall-enabled": "Status: inactive\n", "disk-usage": 90})

        result = runner.invoke(main.app, ["run", "--no-update"])

        assert result.exit_code == main.EXIT_ERRORS
        assert "*** DONE with 1 error + 1 warning ***" in result.output

    def test_json_report(self, monkeypatch, tmp_path):
        with_fake_collectors(monkeypatch, {"disk-usage": 10})
        report_dir = tmp_path / "reports"

        result = runner.invoke(
            main.app, ["run", "--no-update", "--report-format", "json", "--report-dir", str(report_dir)]
        )

        assert result.exit_code == main.EXIT_OK
        (report,) = report_dir.glob("checkup_report_*.json")
        data = json.loads(report.read_text(encoding="utf-8"))
        assert [o["topic_key"] for o in data["outcomes"]] == ["disk-usage"]


@pytest.mark.parametrize(
    "args, expected",
    [
        ([], (False, False)),
        (["--auto"], (True, False)),
        (["--all"], (False, True)),
    ],
)
def test_update_modes(monkeypatch, args, expected):
    calls = []

    def fake_update_flow(policy, verbose=False, auto=False, close_apps=False):
        calls.append((auto, close_apps))
        return True

    monkeypatch.setattr(main, "run_update_flow", fake_update_flow)

    result = runner.invoke(main.app, ["update", *args])

    assert result.exit_code == main.EXIT_OK
    assert calls == [expected]


def test_failed_update_exit_code(monkeypatch):
    monkeypatch.setattr(main, "run_update_flow", lambda policy, **kwargs: False)

    result = runner.invoke(main.app, ["update", "--auto"])

    assert result.exit_code == main.EXIT_ERRORS
