"""Poll scheduler — fetch, match, act on a fixed cadence until told to stop."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from querykill.actions.dispatcher import ActionDispatcher
from querykill.process.supervisor import ProcessSupervisor
from querykill.rules.matcher import MatchEngine
from querykill.runtime.context import RunContext
from querykill.session.models import ActionRecord, LifecyclePhase
from querykill.source.base import SessionSource, SourceError

logger = logging.getLogger(__name__)

STOP_RUN_TIME = "run time elapsed"
STOP_SENTINEL = "sentinel file found"
STOP_REQUESTED = "stop requested"


class PollScheduler:
    """Drives ticks at ``start + k * interval`` on a single control thread.

    After each tick the run-time deadline is checked, then the sentinel file.
    Either one moves the run to stopping, which drains in-flight commands
    before the run is stopped.
    """

    def __init__(
        self,
        context: RunContext,
        source: SessionSource,
        engine: MatchEngine,
        dispatcher: ActionDispatcher,
        supervisor: ProcessSupervisor,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ctx = context
        self._source = source
        self._engine = engine
        self._dispatcher = dispatcher
        self._supervisor = supervisor
        self._clock = clock
        self._stop_event = threading.Event()
        self._deadline: float | None = None

    def stop(self) -> None:
        """Ask the loop to stop at its next wait. Safe from any thread."""
        self._stop_event.set()

    def tick(self) -> list[ActionRecord]:
        """One fetch → match → act pass. Fetch errors skip the tick."""
        self._ctx.stats.ticks += 1
        try:
            snapshot = self._source.list_sessions()
        except SourceError as e:
            self._ctx.stats.fetch_errors += 1
            logger.warning("Skipping tick, cannot fetch sessions: %s", e)
            return []

        matches = self._engine.match(snapshot)
        logger.debug(
            "Tick %d: %d sessions, %d matched",
            self._ctx.stats.ticks,
            len(snapshot),
            len(matches),
        )
        return self._dispatcher.dispatch(matches)

    def run(self) -> str:
        """Run until the deadline, the sentinel or stop(). Returns the stop reason."""
        config = self._ctx.config
        self._ctx.advance(LifecyclePhase.RUNNING)

        start = self._clock()
        if config.run_time is not None:
            self._deadline = start + config.run_time
        logger.info(
            "Polling every %.2fs%s, sentinel %s",
            config.interval,
            f" for {config.run_time:g}s" if config.run_time is not None else "",
            config.sentinel,
        )

        reason = self._sentinel_reason()
        if reason:
            logger.warning("Sentinel file %s exists, not starting", config.sentinel)

        k = 0
        while not reason:
            reason = self._wait_until(start + k * config.interval)
            if reason:
                break
            self.tick()
            reason = self._deadline_reason() or self._sentinel_reason()
            k = max(k + 1, int((self._clock() - start) // config.interval) + 1)

        self._shutdown(reason)
        return reason

    def _wait_until(self, when: float) -> str:
        if self._deadline is not None:
            when = min(when, self._deadline)
        delay = when - self._clock()
        if self._stop_event.wait(timeout=max(0.0, delay)):
            return STOP_REQUESTED
        return self._deadline_reason()

    def _deadline_reason(self) -> str:
        if self._deadline is not None and self._clock() >= self._deadline:
            return STOP_RUN_TIME
        return ""

    def _sentinel_reason(self) -> str:
        if self._ctx.config.sentinel.exists():
            return STOP_SENTINEL
        return ""

    def _shutdown(self, reason: str) -> None:
        self._ctx.advance(LifecyclePhase.STOPPING)
        self._ctx.stop_reason = reason
        logger.info("Stopping: %s", reason)

        remaining = self._supervisor.drain(self._ctx.config.drain_timeout)
        if remaining:
            logger.warning("%d command(s) still running after drain", remaining)

        self._ctx.advance(LifecyclePhase.STOPPED)
