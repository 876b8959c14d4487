"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from querykill.config import QueryKillConfig
from querykill.rules.models import Attribute, Comparator, Rule, RuleSet
from querykill.session.models import Session
from querykill.source.base import SourceError, TerminateError


class FakeSource:
    """In-memory session source with scripted snapshots and terminate results."""

    def __init__(self, snapshots: list[list[Session]] | None = None) -> None:
        self.snapshots = list(snapshots or [])
        self.sessions: list[Session] = []
        self.terminated: list[tuple[int, bool]] = []
        self.gone: set[int] = set()
        self.fail_fetches = 0
        self.opened = False
        self.closed = False
        self.fetches = 0

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def list_sessions(self) -> list[Session]:
        self.fetches += 1
        if self.fail_fetches:
            self.fail_fetches -= 1
            raise SourceError("server unreachable")
        if self.snapshots:
            self.sessions = self.snapshots.pop(0)
        return list(self.sessions)

    def terminate(self, session_id: int, query_only: bool = False) -> None:
        if session_id in self.gone:
            raise TerminateError(f"Session {session_id} no longer exists")
        self.terminated.append((session_id, query_only))


def _make_session(id: int = 1, **fields: object) -> Session:
    defaults: dict[str, object] = {
        "user": "app",
        "host": "10.0.0.5",
        "db": "shop",
        "command": "Query",
        "time": 10,
        "state": "active",
        "info": "select 1",
    }
    defaults.update(fields)
    return Session(id=id, **defaults)


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def snapshot_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "snapshot.yaml"


@pytest.fixture
def rules_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "rules.yaml"


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def query_rule_set() -> RuleSet:
    return RuleSet(
        rules=(
            Rule(attribute=Attribute.COMMAND, comparator=Comparator.EQUALS, value="Query"),
        )
    )


@pytest.fixture
def make_config(tmp_path: Path, query_rule_set: RuleSet):
    def _make(**overrides: object) -> QueryKillConfig:
        values: dict[str, object] = {
            "interval": 0.05,
            "rule_set": query_rule_set,
            "sentinel": tmp_path / "sentinel",
            "drain_timeout": 2.0,
        }
        values.update(overrides)
        return QueryKillConfig(**values)

    return _make


@pytest.fixture
def make_session():
    return _make_session


@pytest.fixture
def source_factory():
    return FakeSource
