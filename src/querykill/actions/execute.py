"""Execute action — run an external command for each matched session."""

from __future__ import annotations

import logging
import re
import shlex

from querykill.process.supervisor import ProcessSupervisor, SpawnError
from querykill.session.models import ActionKind, ActionRecord, Session

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(id|user|host|db|command|time|state|info)\}")


def render_command(template: str, session: Session) -> str:
    """Substitute ``{field}`` placeholders with shell-quoted session values.

    Braces that do not name a session field are left untouched.
    """
    values = {
        "id": str(session.id),
        "user": session.user,
        "host": session.host,
        "db": session.db,
        "command": session.command,
        "time": str(session.time),
        "state": session.state,
        "info": session.info,
    }
    return _PLACEHOLDER.sub(lambda m: shlex.quote(values[m.group(1)]), template)


class ExecuteAction:
    """Hands the rendered command to the supervisor; never waits for it."""

    def __init__(self, template: str, supervisor: ProcessSupervisor) -> None:
        self._template = template
        self._supervisor = supervisor

    def execute(self, session: Session) -> ActionRecord:
        command = render_command(self._template, session)
        try:
            child = self._supervisor.spawn(command)
        except SpawnError as e:
            logger.error("Failed to execute command for session %d: %s", session.id, e)
            return ActionRecord(
                session_id=session.id, kind=ActionKind.EXECUTE, ok=False, message=str(e)
            )

        logger.info("Executed %s", command)
        return ActionRecord(
            session_id=session.id,
            kind=ActionKind.EXECUTE,
            ok=True,
            message=f"pid {child.pid}",
        )
