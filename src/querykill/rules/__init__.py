"""Match rules: models, YAML loading and the match engine."""

from querykill.rules.matcher import MatchEngine, match
from querykill.rules.models import Attribute, Comparator, Rule, RuleSet

__all__ = ["Attribute", "Comparator", "MatchEngine", "Rule", "RuleSet", "match"]
