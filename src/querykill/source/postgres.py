"""PostgreSQL session source backed by pg_stat_activity."""

from __future__ import annotations

import logging

import psycopg2
import psycopg2.extras

from querykill.session.models import Session
from querykill.source.base import SourceError, TerminateError

logger = logging.getLogger(__name__)

_ACTIVITY_SQL = """
SELECT pid,
       COALESCE(usename, '') AS usename,
       COALESCE(host(client_addr), client_hostname, 'local') AS client,
       COALESCE(datname, '') AS datname,
       COALESCE(state, '') AS state,
       COALESCE(query, '') AS query,
       COALESCE(EXTRACT(EPOCH FROM (now() - state_change))::bigint, 0) AS elapsed
FROM pg_stat_activity
WHERE pid <> pg_backend_pid()
  AND backend_type = 'client backend'
ORDER BY pid
"""

# pg_stat_activity.state -> processlist-style command kind
_COMMANDS = {
    "active": "Query",
    "idle": "Sleep",
    "idle in transaction": "Sleep",
    "idle in transaction (aborted)": "Sleep",
    "fastpath function call": "Query",
    "disabled": "Unknown",
}


class PostgresSource:
    """Lists and terminates PostgreSQL backends.

    The connection is opened lazily and dropped on any connectivity error so
    the next call reconnects.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._conn = None

    def open(self) -> None:
        if self._conn is not None and not self._conn.closed:
            return
        try:
            self._conn = psycopg2.connect(self._dsn)
        except psycopg2.Error as e:
            raise SourceError(f"Cannot connect to PostgreSQL: {e}") from e
        self._conn.autocommit = True
        logger.debug("Connected to PostgreSQL")

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except psycopg2.Error:
                logger.debug("Error closing connection", exc_info=True)
            self._conn = None

    def list_sessions(self) -> list[Session]:
        self.open()
        try:
            with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(_ACTIVITY_SQL)
                rows = cur.fetchall()
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            self.close()
            raise SourceError(f"Cannot read pg_stat_activity: {e}") from e
        return [_row_to_session(row) for row in rows]

    def terminate(self, session_id: int, query_only: bool = False) -> None:
        func = "pg_cancel_backend" if query_only else "pg_terminate_backend"
        try:
            self.open()
            with self._conn.cursor() as cur:
                cur.execute(f"SELECT {func}(%s)", (session_id,))
                row = cur.fetchone()
        except SourceError as e:
            raise TerminateError(str(e)) from e
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            self.close()
            raise TerminateError(f"Lost connection terminating {session_id}: {e}") from e
        except psycopg2.Error as e:
            raise TerminateError(f"{func}({session_id}) failed: {e}") from e

        if not row or not row[0]:
            raise TerminateError(f"Session {session_id} no longer exists")


def _row_to_session(row: dict) -> Session:
    state = row["state"]
    return Session(
        id=int(row["pid"]),
        user=row["usename"],
        host=row["client"],
        db=row["datname"],
        command=_COMMANDS.get(state, "Unknown"),
        time=int(row["elapsed"]),
        state=state,
        info=row["query"],
    )
