"""Session data models — live sessions, action records, lifecycle phases."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field


class LifecyclePhase(enum.Enum):
    """Phase of a run. Transitions only move forward."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"

    @property
    def rank(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = (
    LifecyclePhase.NOT_STARTED,
    LifecyclePhase.RUNNING,
    LifecyclePhase.STOPPING,
    LifecyclePhase.STOPPED,
)


@dataclass(frozen=True)
class Session:
    """One row of the server's live session table.

    Identifiers are unique within a snapshot only; a session seen on one tick
    may be gone on the next.
    """

    id: int
    user: str = ""
    host: str = ""
    db: str = ""
    command: str = ""
    time: int = 0
    state: str = ""
    info: str = ""


class ActionKind(enum.Enum):
    """What was done to a matched session."""

    PRINT = "print"
    TERMINATE = "terminate"
    TERMINATE_QUERY = "terminate_query"
    EXECUTE = "execute"


@dataclass(frozen=True)
class ActionRecord:
    """Outcome of one action on one session. Only ever logged."""

    session_id: int
    kind: ActionKind
    ok: bool
    message: str = ""
    timestamp: float = field(default_factory=time.time)
