"""Run context — the one owned object holding a run's mutable state."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from querykill.config import QueryKillConfig
from querykill.session.models import LifecyclePhase

if TYPE_CHECKING:
    from querykill.process.supervisor import ChildProcess


@dataclass
class RunStats:
    """Counters reported in the shutdown summary."""

    ticks: int = 0
    fetch_errors: int = 0
    matches: int = 0
    actions_ok: int = 0
    actions_failed: int = 0
    spawned: int = 0
    spawn_failures: int = 0
    completed: int = 0
    unfinished: int = 0


@dataclass
class RunContext:
    """Shared state passed explicitly to scheduler, dispatcher and supervisor.

    ``children`` and ``stats.completed`` are written by reaper threads and
    must be accessed under ``lock``; everything else belongs to the control
    thread.
    """

    config: QueryKillConfig
    phase: LifecyclePhase = LifecyclePhase.NOT_STARTED
    stats: RunStats = field(default_factory=RunStats)
    children: dict[int, ChildProcess] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)
    stop_reason: str = ""

    def advance(self, phase: LifecyclePhase) -> None:
        """Move to ``phase``; each phase is entered once, never backwards."""
        if phase.rank <= self.phase.rank:
            raise RuntimeError(
                f"Invalid lifecycle transition {self.phase.value} -> {phase.value}"
            )
        self.phase = phase
