"""Load RuleSet objects from YAML files and command-line options."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import yaml

from querykill.rules.models import Attribute, Comparator, Rule, RuleSet


def load_rules(path: str | Path) -> RuleSet:
    """Load a rule set from a YAML file path."""
    text = Path(path).read_text(encoding="utf-8")
    return load_rules_from_string(text)


def load_rules_from_string(text: str) -> RuleSet:
    """Parse a YAML string into a RuleSet."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Rules YAML is malformed: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Rules YAML must be a mapping")
    return RuleSet(
        rules=tuple(_parse_rules(data.get("rules") or [])),
        match_all=bool(data.get("match_all", False)),
    )


def rules_from_options(
    match: Iterable[tuple[Attribute, str]] = (),
    ignore: Iterable[tuple[Attribute, str]] = (),
    busy_time: int | None = None,
) -> tuple[Rule, ...]:
    """Build rules from ``--match-*``/``--ignore-*``/``--busy-time`` values.

    Match and ignore values are regular expressions; ignore rules are negated.
    """
    rules: list[Rule] = [
        Rule(attribute=attr, comparator=Comparator.MATCHES, value=pattern)
        for attr, pattern in match
        if pattern
    ]
    rules.extend(
        Rule(attribute=attr, comparator=Comparator.MATCHES, value=pattern, negate=True)
        for attr, pattern in ignore
        if pattern
    )
    if busy_time is not None:
        rules.append(
            Rule(attribute=Attribute.TIME, comparator=Comparator.LONGER_THAN, value=busy_time)
        )
    return tuple(rules)


def merge(base: RuleSet, extra: Iterable[Rule], match_all: bool = False) -> RuleSet:
    """Append ``extra`` rules after ``base`` rules."""
    return RuleSet(
        rules=base.rules + tuple(extra),
        match_all=base.match_all or match_all,
    )


def _parse_rules(rules_data: list) -> list[Rule]:
    rules: list[Rule] = []
    for r in rules_data:
        if not isinstance(r, dict):
            raise ValueError(f"Rule entries must be mappings, got: {r!r}")
        try:
            attribute = Attribute(r["attribute"])
        except KeyError:
            raise ValueError(f"Rule is missing 'attribute': {r!r}") from None
        comparator = Comparator(r.get("compare", "matches"))
        if "value" not in r:
            raise ValueError(f"Rule is missing 'value': {r!r}")
        value = r["value"]
        rules.append(
            Rule(
                attribute=attribute,
                comparator=comparator,
                value=int(value) if attribute.numeric else str(value),
                negate=bool(r.get("negate", False)),
            )
        )
    return rules
