"""Read-only session source that replays a YAML snapshot file.

Used to test matching options without a live server. The file is re-read on
every tick, so editing it changes what the next tick sees.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from querykill.session.models import Session
from querykill.source.base import SourceError, TerminateError

logger = logging.getLogger(__name__)


class SnapshotFileSource:
    """Serves sessions from a YAML file: a list, or a mapping with ``sessions``."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def open(self) -> None:
        if not self._path.is_file():
            raise SourceError(f"Snapshot file not found: {self._path}")

    def close(self) -> None:
        pass

    def list_sessions(self) -> list[Session]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise SourceError(f"Cannot read snapshot {self._path}: {e}") from e
        try:
            return parse_snapshot(text)
        except (yaml.YAMLError, ValueError, KeyError, TypeError) as e:
            raise SourceError(f"Malformed snapshot {self._path}: {e}") from e

    def terminate(self, session_id: int, query_only: bool = False) -> None:
        raise TerminateError(f"Snapshot sessions are read-only (session {session_id})")


def parse_snapshot(text: str) -> list[Session]:
    """Parse snapshot YAML into sessions."""
    data = yaml.safe_load(text)
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("sessions") or []
    if not isinstance(data, list):
        raise ValueError("Snapshot YAML must be a list or contain 'sessions'")

    sessions: list[Session] = []
    for row in data:
        if not isinstance(row, dict):
            raise ValueError(f"Snapshot rows must be mappings, got: {row!r}")
        sessions.append(
            Session(
                id=int(row["id"]),
                user=str(row.get("user") or ""),
                host=str(row.get("host") or ""),
                db=str(row.get("db") or ""),
                command=str(row.get("command") or ""),
                time=int(row.get("time") or 0),
                state=str(row.get("state") or ""),
                info=str(row.get("info") or ""),
            )
        )
    return sessions
