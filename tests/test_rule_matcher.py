from datetime import timedelta

from flowmind.domain.models.belief import Belief
from flowmind.domain.models.term import Atom, Struct, Variable
from flowmind.domain.models.thought import Category, Rule, RuleMetadata, Thought, utc_now
from flowmind.domain.orchestration.core.rule_matcher import RuleMatcher


def make_rule(pattern, priority=None, belief=None, created_at=None) -> Rule:
    return Rule(
        pattern=pattern,
        action=Struct("CoreTool", [Atom("set_status"), Atom("self"), Atom("done")]),
        belief=belief or Belief(),
        metadata=RuleMetadata(priority=priority, created_at=created_at)
    )


def thought_with(content) -> Thought:
    return Thought(category=Category.INPUT, content=content)


def test_no_match_returns_none():
    assert RuleMatcher.match(thought_with(Atom("x")), [make_rule(Atom("y"))]) is None


def test_single_match_returns_bindings():
    rule = make_rule(Struct("trip", [Variable("Dest")]))
    match = RuleMatcher.match(thought_with(Struct("trip", [Atom("rome")])), [rule])
    assert match.rule.id == rule.id
    assert match.bindings == {"Dest": Atom("rome")}


def test_highest_priority_wins():
    low = make_rule(Variable("Any"), priority=1)
    high = make_rule(Atom("ok"), priority=10)
    unset = make_rule(Atom("ok"))
    match = RuleMatcher.match(thought_with(Atom("ok")), [low, unset, high])
    assert match.rule.id == high.id


def test_belief_breaks_priority_ties():
    trusted = make_rule(Atom("ok"), priority=5, belief=Belief(pos=10, neg=0))
    doubtful = make_rule(Atom("ok"), priority=5, belief=Belief(pos=0, neg=10))
    match = RuleMatcher.match(thought_with(Atom("ok")), [doubtful, trusted])
    assert match.rule.id == trusted.id


def test_newest_rule_breaks_remaining_ties():
    now = utc_now()
    older = make_rule(Atom("ok"), created_at=now - timedelta(minutes=1))
    newer = make_rule(Atom("ok"), created_at=now)
    for ordering in ([older, newer], [newer, older]):
        assert RuleMatcher.match(thought_with(Atom("ok")), ordering).rule.id == newer.id


def test_find_matches_keeps_every_unifying_rule():
    rules = [make_rule(Variable("X")), make_rule(Atom("ok")), make_rule(Atom("no"))]
    assert len(RuleMatcher.find_matches(thought_with(Atom("ok")), rules)) == 2
