"""Rule data models — immutable dataclasses describing which sessions to act on."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Attribute(enum.Enum):
    """Session attributes a rule can inspect."""

    ID = "id"
    USER = "user"
    HOST = "host"
    DB = "db"
    COMMAND = "command"
    TIME = "time"
    STATE = "state"
    INFO = "info"

    @property
    def numeric(self) -> bool:
        return self in (Attribute.ID, Attribute.TIME)


class Comparator(enum.Enum):
    """How a rule compares an attribute with its value."""

    EQUALS = "equals"
    MATCHES = "matches"
    LONGER_THAN = "longer_than"


@dataclass(frozen=True)
class Rule:
    """A single attribute test. ``negate`` turns it into an ignore rule."""

    attribute: Attribute
    comparator: Comparator
    value: str | int
    negate: bool = False

    def describe(self) -> str:
        op = {
            Comparator.EQUALS: "==",
            Comparator.MATCHES: "=~",
            Comparator.LONGER_THAN: ">=",
        }[self.comparator]
        prefix = "not " if self.negate else ""
        return f"{prefix}{self.attribute.value} {op} {self.value}"


@dataclass(frozen=True)
class RuleSet:
    """Conjunction of rules active for a run.

    A rule set with no selecting (non-negated) rule matches nothing unless
    ``match_all`` is set. Ignore rules only narrow a selection, so an
    unconfigured or ignore-only run never acts on every session.
    """

    rules: tuple[Rule, ...] = ()
    match_all: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.match_all and all(r.negate for r in self.rules)
