"""Tests for the daemon lifecycle — PID file, attached runs, detached end-to-end."""

from __future__ import annotations

import os
import subprocess
import sys
import time
from pathlib import Path

import psutil
import pytest

from querykill.runtime.daemon import (
    DaemonError,
    DaemonLifecycle,
    PidFile,
    open_log,
    pid_is_live,
)


def _wait_for(predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def test_pid_is_live():
    assert pid_is_live(os.getpid())
    assert not pid_is_live(0)


def test_pid_file_write_and_remove(tmp_path: Path):
    pid_file = PidFile(tmp_path / "qk.pid")

    pid_file.write(4242)
    assert (tmp_path / "qk.pid").read_text() == "4242\n"
    assert pid_file.read() == 4242

    pid_file.remove()
    assert not (tmp_path / "qk.pid").exists()
    pid_file.remove()


def test_pid_file_live_process_is_fatal(tmp_path: Path):
    sleeper = subprocess.Popen(["sleep", "5"])
    try:
        path = tmp_path / "qk.pid"
        path.write_text(f"{sleeper.pid}\n")

        with pytest.raises(DaemonError, match="is running"):
            PidFile(path).check()
    finally:
        sleeper.kill()
        sleeper.wait()


def test_pid_file_stale_is_overwritten(tmp_path: Path):
    finished = subprocess.Popen(["true"])
    finished.wait()
    path = tmp_path / "qk.pid"
    path.write_text(f"{finished.pid}\n")
    pid_file = PidFile(path)

    pid_file.check()
    pid_file.write()

    assert pid_file.read() == os.getpid()


def test_pid_file_garbage_is_ignored(tmp_path: Path):
    path = tmp_path / "qk.pid"
    path.write_text("not a pid\n")

    assert PidFile(path).read() is None
    PidFile(path).check()


def test_pid_dir_not_writable(tmp_path: Path):
    with pytest.raises(DaemonError):
        PidFile(tmp_path / "missing" / "qk.pid").check_writable()


def test_open_log_appends(tmp_path: Path):
    log = tmp_path / "qk.log"
    log.write_text("earlier\n")

    fd = open_log(log)
    os.write(fd, b"later\n")
    os.close(fd)

    assert log.read_text() == "earlier\nlater\n"


def test_open_log_unwritable(tmp_path: Path):
    with pytest.raises(DaemonError, match="log file"):
        open_log(tmp_path / "missing" / "qk.log")


def test_attached_run_skips_daemon_steps(make_config, tmp_path: Path):
    pid = tmp_path / "qk.pid"
    config = make_config(pid_file=pid, log_file=tmp_path / "qk.log")
    calls: list[str] = []

    code = DaemonLifecycle(config).run(lambda: calls.append("body"))

    assert code == 0
    assert calls == ["body"]
    assert not pid.exists()
    assert not (tmp_path / "qk.log").exists()


def test_daemonized_run_refuses_live_pid_file(make_config, tmp_path: Path):
    pid = tmp_path / "qk.pid"
    pid.write_text(f"{os.getppid()}\n")
    config = make_config(daemonize=True, pid_file=pid)

    with pytest.raises(DaemonError):
        DaemonLifecycle(config).run(lambda: None)


@pytest.mark.skipif(sys.platform == "win32", reason="needs fork")
def test_daemon_end_to_end(tmp_path: Path, snapshot_path: Path):
    pid = tmp_path / "qk.pid"
    log = tmp_path / "qk.log"
    sentinel = tmp_path / "sentinel"
    out = tmp_path / "out"

    result = subprocess.run(
        [
            sys.executable,
            "-m",
            "querykill",
            "--verbose",
            "watch",
            "--test-matching",
            str(snapshot_path),
            "--match-info",
            "select sleep",
            "--execute-command",
            f"echo zombie > {out}",
            "--interval",
            "0.2",
            "--daemonize",
            "--pid",
            str(pid),
            "--log",
            str(log),
            "--sentinel",
            str(sentinel),
        ],
        capture_output=True,
        text=True,
        timeout=30,
    )
    assert result.returncode == 0, result.stderr

    assert _wait_for(pid.exists)
    daemon_pid = int(pid.read_text())
    try:
        assert _wait_for(lambda: log.exists() and "Executed echo zombie" in log.read_text())
        assert _wait_for(lambda: out.exists() and out.read_text() == "zombie\n")

        time.sleep(0.5)
        children = psutil.Process(daemon_pid).children()
        assert not [c for c in children if c.status() == psutil.STATUS_ZOMBIE]
    finally:
        sentinel.touch()

    assert _wait_for(lambda: not pid.exists())
    assert _wait_for(lambda: not pid_is_live(daemon_pid))
    assert "Stopping: sentinel file found" in log.read_text()
