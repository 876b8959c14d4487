"""Tests for CLI commands using Click's CliRunner."""

from __future__ import annotations

import re
from pathlib import Path

from click.testing import CliRunner

from querykill.cli import main


def _watch(snapshot_path: Path, tmp_path: Path, *args: str) -> list[str]:
    return [
        "watch",
        "--test-matching",
        str(snapshot_path),
        "--sentinel",
        str(tmp_path / "sentinel"),
        "--interval",
        "0.1",
        "--run-time",
        "0.25",
        *args,
    ]


def test_main_help():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "querykill" in result.output
    assert "watch" in result.output
    assert "stop" in result.output


def test_main_version():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_watch_help_lists_filters():
    runner = CliRunner()
    result = runner.invoke(main, ["watch", "--help"])
    assert result.exit_code == 0
    for option in ("--match-command", "--ignore-user", "--execute-command", "--sentinel"):
        assert option in result.output


def test_watch_requires_an_action(snapshot_path: Path, tmp_path: Path):
    runner = CliRunner()
    result = runner.invoke(main, _watch(snapshot_path, tmp_path, "--match-command", "Query"))
    assert result.exit_code == 2
    assert "at least one of" in result.output


def test_watch_requires_a_source(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("QUERYKILL_DSN", raising=False)
    runner = CliRunner()
    result = runner.invoke(main, ["watch", "--print", "--match-all"])
    assert result.exit_code == 2
    assert "--dsn" in result.output


def test_watch_bad_regex_is_usage_error(snapshot_path: Path, tmp_path: Path):
    runner = CliRunner()
    result = runner.invoke(
        main, _watch(snapshot_path, tmp_path, "--print", "--match-info", "(")
    )
    assert result.exit_code == 2
    assert "Invalid pattern" in result.output


def test_watch_unreachable_source_is_fatal(tmp_path: Path):
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["watch", "--dsn", "host=127.0.0.1 port=1 connect_timeout=1", "--print", "--match-all"],
    )
    assert result.exit_code == 1
    assert "Cannot connect" in result.output


def test_execute_without_print_writes_nothing_to_stdout(snapshot_path: Path, tmp_path: Path):
    out = tmp_path / "out"
    runner = CliRunner()
    result = runner.invoke(
        main,
        _watch(
            snapshot_path,
            tmp_path,
            "--match-command",
            "^Query$",
            "--execute-command",
            f"echo hello > {out}",
        ),
    )
    assert result.exit_code == 0, result.output
    assert "KILL" not in result.output
    assert out.read_text() == "hello\n"


def test_print_and_execute(snapshot_path: Path, tmp_path: Path):
    out = tmp_path / "out"
    runner = CliRunner()
    result = runner.invoke(
        main,
        _watch(
            snapshot_path,
            tmp_path,
            "--match-info",
            "select sleep",
            "--print",
            "--execute-command",
            f"echo batty > {out}",
        ),
    )
    assert result.exit_code == 0, result.output
    assert re.search(r"KILL .+ select sleep\(2\)", result.output)
    assert "KILL 7" not in result.output
    assert out.read_text() == "batty\n"


def test_watch_with_rules_file(snapshot_path: Path, rules_path: Path, tmp_path: Path):
    runner = CliRunner()
    result = runner.invoke(
        main, _watch(snapshot_path, tmp_path, "--rules", str(rules_path), "--print")
    )
    assert result.exit_code == 0, result.output
    assert "KILL 4 " in result.output
    assert "KILL 7 " not in result.output
    assert "KILL 12 " not in result.output


def test_watch_stops_on_existing_sentinel(snapshot_path: Path, tmp_path: Path):
    (tmp_path / "sentinel").touch()
    runner = CliRunner()
    result = runner.invoke(
        main, _watch(snapshot_path, tmp_path, "--match-all", "--print")
    )
    assert result.exit_code == 0
    assert "KILL" not in result.output


def test_stop_creates_sentinel(tmp_path: Path):
    sentinel = tmp_path / "sentinel"
    runner = CliRunner()
    result = runner.invoke(main, ["stop", "--sentinel", str(sentinel)])
    assert result.exit_code == 0
    assert sentinel.exists()
    assert sentinel.stat().st_size == 0


def test_watch_ignore_only_matches_nothing(snapshot_path: Path, tmp_path: Path):
    runner = CliRunner()
    result = runner.invoke(
        main, _watch(snapshot_path, tmp_path, "--ignore-user", "^root$", "--print")
    )
    assert result.exit_code == 0, result.output
    assert "KILL" not in result.output


def test_stop_bad_env_interval_is_usage_error(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("QUERYKILL_INTERVAL", "soon")
    sentinel = tmp_path / "sentinel"
    runner = CliRunner()
    result = runner.invoke(main, ["stop", "--sentinel", str(sentinel)])
    assert result.exit_code == 2
    assert "Traceback" not in result.output
    assert not sentinel.exists()
