from typing import List
import structlog

from flowmind.domain.models.belief import Belief
from flowmind.domain.models.term import Atom, Struct, Term, Variable
from flowmind.domain.models.thought import Rule, RuleMetadata
from flowmind.domain.store.rule_store import RuleStore

logger = structlog.get_logger(__name__)

BOOTSTRAP_PROVENANCE = "bootstrap"


def _rule(description: str, pattern: Term, action: Term, priority: float) -> Rule:
    return Rule(
        pattern=pattern,
        action=action,
        belief=Belief(),
        metadata=RuleMetadata(priority=priority, description=description, provenance=BOOTSTRAP_PROVENANCE)
    )


def bootstrap_rules() -> List[Rule]:
    """Default rule set for an empty rule store"""

    return [
        _rule(
            "Fact -> Add to Memory",
            Struct("fact", [Variable("C")]),
            Struct("MemoryTool", [Atom("add"), Variable("C")]),
            priority=10
        ),
        _rule(
            "Ask User How to Handle Failure Log",
            Struct("failure", [
                Struct("thoughtId", [Variable("FailedId")]),
                Struct("content", [Variable("FailedContent")]),
                Struct("error", [Variable("ErrorMsg")]),
            ]),
            Struct("UserInteractionTool", [
                Atom("prompt"),
                Atom("HANDLE_FAILURE"),
                Struct("context", [
                    Atom("failedThoughtId:?FailedId"),
                    Atom("content:?FailedContent"),
                    Atom("error:?ErrorMsg"),
                ]),
            ]),
            priority=30
        ),
    ]


async def install_bootstrap_rules(rules: RuleStore) -> int:
    """Install the default rules when the store is empty; returns how many were added"""

    if await rules.count() > 0:
        return 0
    defaults = bootstrap_rules()
    for rule in defaults:
        await rules.add(rule)
    logger.info("Bootstrapped rules", count=len(defaults))
    return len(defaults)
