"""Terminate action — ask the server to kill the matched session."""

from __future__ import annotations

import logging

from querykill.session.models import ActionKind, ActionRecord, Session
from querykill.source.base import SessionSource, TerminateError

logger = logging.getLogger(__name__)


class TerminateAction:
    """Terminates a session server-side, or only its running query."""

    def __init__(self, source: SessionSource, query_only: bool = False) -> None:
        self._source = source
        self._query_only = query_only
        self._kind = ActionKind.TERMINATE_QUERY if query_only else ActionKind.TERMINATE

    def execute(self, session: Session) -> ActionRecord:
        what = "query of session" if self._query_only else "session"
        try:
            self._source.terminate(session.id, query_only=self._query_only)
        except TerminateError as e:
            logger.warning("Could not terminate %s %d: %s", what, session.id, e)
            return ActionRecord(
                session_id=session.id, kind=self._kind, ok=False, message=str(e)
            )

        logger.info(
            "Terminated %s %d (%s@%s, %ds): %s",
            what,
            session.id,
            session.user,
            session.host,
            session.time,
            session.info,
        )
        return ActionRecord(session_id=session.id, kind=self._kind, ok=True)
