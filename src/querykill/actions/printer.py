"""Print action — human-readable preview of each match on stdout."""

from __future__ import annotations

import time

import click

from querykill.session.models import ActionKind, ActionRecord, Session


class PrintAction:
    """Writes one ``KILL`` line per match, whether or not anything is killed."""

    def __init__(self, query_only: bool = False) -> None:
        self._verb = "KILL QUERY" if query_only else "KILL"

    def format(self, session: Session) -> str:
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S")
        info = " ".join(session.info.split())
        return (
            f"# {stamp} {self._verb} {session.id} "
            f"({session.command or '-'} {session.time} sec) {info}"
        )

    def execute(self, session: Session) -> ActionRecord:
        click.echo(self.format(session))
        return ActionRecord(session_id=session.id, kind=ActionKind.PRINT, ok=True)
