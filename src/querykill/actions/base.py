"""Action handler protocol — what to do with a matched session."""

from __future__ import annotations

from typing import Protocol

from querykill.session.models import ActionRecord, Session


class ActionHandler(Protocol):
    """Protocol for match response actions."""

    def execute(self, session: Session) -> ActionRecord:
        """Act on the session. Failures are reported in the record, not raised."""
        ...
