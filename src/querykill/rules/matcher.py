"""Match engine — hot path, selects sessions from a snapshot with compiled rules."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from querykill.rules.models import Attribute, Comparator, Rule, RuleSet
from querykill.session.models import Session

_ACCESSORS: dict[Attribute, Callable[[Session], str | int]] = {
    Attribute.ID: lambda s: s.id,
    Attribute.USER: lambda s: s.user,
    Attribute.HOST: lambda s: s.host,
    Attribute.DB: lambda s: s.db,
    Attribute.COMMAND: lambda s: s.command,
    Attribute.TIME: lambda s: s.time,
    Attribute.STATE: lambda s: s.state,
    Attribute.INFO: lambda s: s.info,
}


@dataclass
class _CompiledRule:
    """A rule with its regex or threshold prepared for fast evaluation."""

    rule: Rule
    accessor: Callable[[Session], str | int]
    regex: re.Pattern[str] | None = None
    threshold: int | None = None


class MatchEngine:
    """Evaluates snapshots against a compiled rule set. All rules must hold."""

    def __init__(self, rule_set: RuleSet) -> None:
        self.rule_set = rule_set
        self._compiled = [_compile_rule(rule) for rule in rule_set.rules]

    def matches(self, session: Session) -> bool:
        if self.rule_set.is_empty:
            return False
        return all(_evaluate(cr, session) for cr in self._compiled)

    def match(self, snapshot: Iterable[Session]) -> list[Session]:
        """Return the matching sessions, ascending by id.

        Duplicate ids collapse to their first occurrence so that no session
        can be acted on twice within one tick.
        """
        if self.rule_set.is_empty:
            return []

        seen: set[int] = set()
        selected: list[Session] = []
        for session in sorted(snapshot, key=lambda s: s.id):
            if session.id in seen:
                continue
            seen.add(session.id)
            if self.matches(session):
                selected.append(session)
        return selected


def match(snapshot: Iterable[Session], rule_set: RuleSet) -> list[Session]:
    """Select the sessions of ``snapshot`` satisfying every rule in ``rule_set``."""
    return MatchEngine(rule_set).match(snapshot)


def _compile_rule(rule: Rule) -> _CompiledRule:
    compiled = _CompiledRule(rule=rule, accessor=_ACCESSORS[rule.attribute])

    if rule.comparator is Comparator.MATCHES:
        if rule.attribute.numeric:
            raise ValueError(f"Cannot regex-match numeric attribute: {rule.describe()}")
        try:
            compiled.regex = re.compile(str(rule.value))
        except re.error as e:
            raise ValueError(f"Invalid pattern in rule '{rule.describe()}': {e}") from e
    elif rule.comparator is Comparator.LONGER_THAN:
        if not rule.attribute.numeric:
            raise ValueError(f"Threshold needs a numeric attribute: {rule.describe()}")
        compiled.threshold = int(rule.value)
    elif rule.attribute.numeric:
        compiled.threshold = int(rule.value)

    return compiled


def _evaluate(cr: _CompiledRule, session: Session) -> bool:
    return _compare(cr, cr.accessor(session)) != cr.rule.negate


def _compare(cr: _CompiledRule, actual: str | int) -> bool:
    comparator = cr.rule.comparator

    if comparator is Comparator.MATCHES:
        if cr.regex is None or not actual:
            return False
        return cr.regex.search(str(actual)) is not None

    if comparator is Comparator.LONGER_THAN:
        return int(actual) >= cr.threshold

    # EQUALS
    if cr.threshold is not None:
        return int(actual) == cr.threshold
    return actual == str(cr.rule.value)
