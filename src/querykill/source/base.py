"""SessionSource protocol — every database adapter must satisfy this."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from querykill.session.models import Session


class SourceError(Exception):
    """The session source could not be reached or queried."""


class TerminateError(Exception):
    """A session could not be terminated (already gone, no privilege)."""


@runtime_checkable
class SessionSource(Protocol):
    """Protocol for live-session backends."""

    def open(self) -> None:
        """Establish the connection. Raises SourceError if unreachable."""
        ...

    def list_sessions(self) -> list[Session]:
        """Return a fresh snapshot of the currently active sessions."""
        ...

    def terminate(self, session_id: int, query_only: bool = False) -> None:
        """Terminate a session, or only its running query. Raises TerminateError."""
        ...

    def close(self) -> None:
        """Release the connection."""
        ...
