"""Action dispatcher — runs the configured actions on each matched session."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from querykill.actions.base import ActionHandler
from querykill.actions.execute import ExecuteAction
from querykill.actions.printer import PrintAction
from querykill.actions.terminate import TerminateAction
from querykill.process.supervisor import ProcessSupervisor
from querykill.runtime.context import RunContext
from querykill.session.models import ActionRecord, Session
from querykill.source.base import SessionSource

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Applies print, terminate and execute, in that order, to each match."""

    def __init__(
        self,
        context: RunContext,
        source: SessionSource,
        supervisor: ProcessSupervisor,
    ) -> None:
        self._ctx = context
        self.handlers = _build_handlers(context, source, supervisor)

    def act(self, session: Session) -> list[ActionRecord]:
        """Run every configured action on one session."""
        records = [handler.execute(session) for handler in self.handlers]
        for record in records:
            if record.ok:
                self._ctx.stats.actions_ok += 1
            else:
                self._ctx.stats.actions_failed += 1
        return records

    def dispatch(self, matches: Iterable[Session]) -> list[ActionRecord]:
        """Act on each match once, in the order given."""
        done: set[int] = set()
        records: list[ActionRecord] = []
        for session in matches:
            if session.id in done:
                logger.debug("Session %d already handled this tick", session.id)
                continue
            done.add(session.id)
            self._ctx.stats.matches += 1
            records.extend(self.act(session))
        return records


def _build_handlers(
    context: RunContext,
    source: SessionSource,
    supervisor: ProcessSupervisor,
) -> list[ActionHandler]:
    config = context.config
    handlers: list[ActionHandler] = []
    if config.print_matches:
        handlers.append(PrintAction(query_only=config.terminate_query and not config.terminate))
    if config.terminate:
        handlers.append(TerminateAction(source))
    elif config.terminate_query:
        handlers.append(TerminateAction(source, query_only=True))
    if config.execute_command:
        handlers.append(ExecuteAction(config.execute_command, supervisor))
    return handlers
