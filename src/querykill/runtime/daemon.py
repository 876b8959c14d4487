"""Daemon lifecycle — detach, PID file, log redirection, clean exit."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path

import psutil

from querykill.config import QueryKillConfig

logger = logging.getLogger(__name__)


class DaemonError(Exception):
    """Fatal startup condition; the process must exit nonzero."""


def pid_is_live(pid: int) -> bool:
    """True if ``pid`` names a running, non-zombie process."""
    if pid <= 0:
        return False
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, psutil.ZombieProcess):
        return False
    except psutil.AccessDenied:
        return True


class PidFile:
    """Single-line decimal PID file owned by the daemon for its lifetime."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> int | None:
        try:
            text = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise DaemonError(f"Cannot read PID file {self.path}: {e}") from e
        try:
            return int(text.split()[0]) if text else None
        except ValueError:
            return None

    def check(self) -> None:
        """Raise DaemonError if the file names a process that is still alive."""
        pid = self.read()
        if pid is None:
            return
        if pid != os.getpid() and pid_is_live(pid):
            raise DaemonError(
                f"PID file {self.path} exists and process {pid} is running"
            )
        logger.warning("Overwriting stale PID file %s (PID %d)", self.path, pid)

    def check_writable(self) -> None:
        directory = self.path.parent
        if not directory.is_dir() or not os.access(directory, os.W_OK):
            raise DaemonError(f"Cannot write PID file in {directory}")

    def write(self, pid: int | None = None) -> None:
        try:
            self.path.write_text(f"{pid or os.getpid()}\n", encoding="utf-8")
        except OSError as e:
            raise DaemonError(f"Cannot write PID file {self.path}: {e}") from e

    def remove(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Cannot remove PID file %s: %s", self.path, e)


def open_log(path: str | Path) -> int:
    """Open the log file for appending and return its descriptor."""
    try:
        return os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
    except OSError as e:
        raise DaemonError(f"Cannot open log file {path}: {e}") from e


class DaemonLifecycle:
    """Runs the poll loop either attached or as a detached daemon.

    Attached runs skip detachment, the PID file and log redirection but keep
    every stop condition. Daemonized runs check the PID and log files before
    forking so fatal conditions still reach the invoking shell.
    """

    def __init__(self, config: QueryKillConfig) -> None:
        self._config = config
        self._pid_file = PidFile(config.pid_file) if config.pid_file else None

    def run(
        self,
        body: Callable[[], object],
        before_detach: Callable[[], None] | None = None,
    ) -> int:
        """Run ``body`` and return the process exit code.

        ``before_detach`` runs in the foreground process right before forking,
        e.g. to close connections that must not be shared with the daemon.
        """
        if not self._config.daemonize:
            body()
            return 0

        log_fd = self._prepare()
        if before_detach is not None:
            before_detach()
        self._detach()

        self._redirect_output(log_fd)
        try:
            if self._pid_file is not None:
                self._pid_file.write()
            logger.info("Daemon started with PID %d", os.getpid())
            body()
        except Exception:
            logger.critical("Daemon stopped on fatal error", exc_info=True)
            return 1
        finally:
            if self._pid_file is not None:
                self._pid_file.remove()

        logger.info("Daemon stopped")
        return 0

    def _prepare(self) -> int | None:
        if self._pid_file is not None:
            self._pid_file.check()
            self._pid_file.check_writable()
        if self._config.log_file is not None:
            return open_log(self._config.log_file)
        return None

    def _detach(self) -> None:
        """Double fork. Returns only in the grandchild, which leads no terminal."""
        sys.stdout.flush()
        sys.stderr.flush()

        pid = os.fork()
        if pid > 0:
            os.waitpid(pid, 0)
            os._exit(0)

        os.setsid()

        pid = os.fork()
        if pid > 0:
            os._exit(0)

        os.umask(0o022)

    def _redirect_output(self, log_fd: int | None) -> None:
        devnull = os.open(os.devnull, os.O_RDWR)
        os.dup2(devnull, 0)
        target = log_fd if log_fd is not None else devnull
        os.dup2(target, 1)
        os.dup2(target, 2)
        os.close(devnull)
        if log_fd is not None:
            os.close(log_fd)
        sys.stdout.reconfigure(line_buffering=True)
        sys.stderr.reconfigure(line_buffering=True)
