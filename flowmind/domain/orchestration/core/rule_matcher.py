from typing import Iterable, List, NamedTuple, Optional
import structlog

from flowmind.domain.models.term import Bindings, unify
from flowmind.domain.models.thought import Rule, Thought, short_id

logger = structlog.get_logger(__name__)


class RuleMatch(NamedTuple):
    rule: Rule
    bindings: Bindings


def _ranking_key(match: RuleMatch):
    created = match.rule.metadata.created_at
    return (
        match.rule.priority,
        match.rule.belief.score(),
        created.timestamp() if created else 0.0,
    )


class RuleMatcher:
    """Selects the single best rule whose pattern unifies with a thought.

    Selection is deterministic: priority, then belief score, then the
    newest rule.
    """

    @staticmethod
    def find_matches(thought: Thought, rules: Iterable[Rule]) -> List[RuleMatch]:
        matches = []
        for rule in rules:
            bindings = unify(rule.pattern, thought.content)
            if bindings is not None:
                matches.append(RuleMatch(rule, bindings))
        return matches

    @staticmethod
    def match(thought: Thought, rules: Iterable[Rule]) -> Optional[RuleMatch]:
        matches = RuleMatcher.find_matches(thought, rules)
        if not matches:
            return None
        if len(matches) == 1:
            return matches[0]

        best = max(matches, key=_ranking_key)
        logger.debug(
            "Multiple rule matches",
            thought_id=short_id(thought.id),
            candidates=len(matches),
            rule_id=short_id(best.rule.id),
            priority=best.rule.priority,
            score=round(best.rule.belief.score(), 3)
        )
        return best
