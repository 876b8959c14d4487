"""Process supervisor — spawns external commands and guarantees every child is reaped."""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from dataclasses import dataclass, field

from querykill.runtime.context import RunContext

logger = logging.getLogger(__name__)


class SpawnError(Exception):
    """An external command could not be started."""


@dataclass
class ChildProcess:
    """Handle for a spawned command. The control thread never waits on it."""

    command: str
    popen: subprocess.Popen[bytes]
    started: float = field(default_factory=time.monotonic)
    reaper: threading.Thread | None = None

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def returncode(self) -> int | None:
        return self.popen.returncode


class ProcessSupervisor:
    """Owns every child process spawned during a run.

    Each child gets a reaper thread that blocks in ``wait()`` and removes the
    child from the run context's registry on exit, so no zombie outlives its
    command and the poll loop never blocks on a child.
    """

    def __init__(self, context: RunContext) -> None:
        self._ctx = context

    @property
    def in_flight(self) -> int:
        with self._ctx.lock:
            return len(self._ctx.children)

    def spawn(self, command: str) -> ChildProcess:
        """Start ``command`` through the shell and return immediately."""
        try:
            popen = subprocess.Popen(
                command,
                shell=True,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            with self._ctx.lock:
                self._ctx.stats.spawn_failures += 1
            raise SpawnError(f"Cannot start '{command}': {e}") from e

        child = ChildProcess(command=command, popen=popen)
        with self._ctx.lock:
            self._ctx.children[popen.pid] = child
            self._ctx.stats.spawned += 1

        child.reaper = threading.Thread(
            target=self._reap,
            args=(child,),
            name=f"reaper-{popen.pid}",
            daemon=True,
        )
        child.reaper.start()
        return child

    def drain(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for in-flight children.

        Children still running afterwards are logged and counted, never killed.
        """
        deadline = time.monotonic() + timeout
        while True:
            with self._ctx.lock:
                pending = list(self._ctx.children.values())
            if not pending:
                return 0
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            reaper = pending[0].reaper
            if reaper is not None:
                reaper.join(timeout=remaining)

        with self._ctx.lock:
            pending = list(self._ctx.children.values())
        for child in pending:
            logger.warning(
                "Command still running at shutdown (PID %d, %.1fs): %s",
                child.pid,
                time.monotonic() - child.started,
                child.command,
            )
        with self._ctx.lock:
            self._ctx.stats.unfinished = len(pending)
        return len(pending)

    def _reap(self, child: ChildProcess) -> None:
        returncode = child.popen.wait()
        with self._ctx.lock:
            self._ctx.children.pop(child.pid, None)
            self._ctx.stats.completed += 1

        if returncode == 0:
            logger.info("Command exited with status 0 (PID %d): %s", child.pid, child.command)
        else:
            logger.warning(
                "Command exited with status %d (PID %d): %s",
                returncode,
                child.pid,
                child.command,
            )
