from typing import Optional
import structlog

from flowmind.domain.models.term import Struct, Term, to_text
from flowmind.domain.models.thought import Rule, RuleMetadata, Thought, short_id
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput
from flowmind.domain.tool.tool_validator import ActionValidator
from .base_tool import BaseTool

logger = structlog.get_logger(__name__)


class RuleManager(BaseTool):
    """Lets rules rewrite the rule set at runtime"""
    name = "RuleManager"
    description = (
        "Manages rules: add_rule(pattern, action, priority?, description?), "
        "delete_rule(rule), modify_priority(rule, delta)."
    )

    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        operation = ActionValidator.operation(action)
        logger.warning("Rule set change requested", operation=operation, thought_id=short_id(trigger.id))
        if operation == "add_rule":
            return await self._add_rule(action, context, trigger)
        if operation == "delete_rule":
            return await self._delete_rule(action, context)
        if operation == "modify_priority":
            return await self._modify_priority(action, context)
        return self.fail("unsupported_operation", operation or "missing")

    async def _add_rule(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        pattern = ActionValidator.arg(action, 1)
        rule_action = ActionValidator.arg(action, 2)
        if pattern is None or not isinstance(rule_action, Struct):
            return self.fail("invalid_params", "add_rule(pattern, action, priority?, description?)")

        priority_term = ActionValidator.arg(action, 3)
        priority = _number(priority_term) if priority_term is not None else 0.0
        if priority is None:
            return self.fail("invalid_priority", to_text(priority_term))

        description_term = ActionValidator.arg(action, 4)
        rule = await context.rules.add(Rule(
            pattern=pattern,
            action=rule_action,
            metadata=RuleMetadata(
                priority=priority,
                description=to_text(description_term) if description_term is not None else f"Added by {short_id(trigger.id)}",
                provenance=f"{self.name} ({short_id(trigger.id)})"
            )
        ))
        logger.warning("Rule added", rule_id=short_id(rule.id), thought_id=short_id(trigger.id))
        return self.ok("rule_added", rule.id)

    async def _delete_rule(self, action: Struct, context: ToolContext) -> ToolOutput:
        rule = await self._find_rule(action, context)
        if rule is None:
            return self.fail("rule_not_found", ActionValidator.atom_arg(action, 1))

        await context.rules.delete(rule.id)
        logger.warning("Rule deleted", rule_id=short_id(rule.id))
        return self.ok("rule_deleted", short_id(rule.id))

    async def _modify_priority(self, action: Struct, context: ToolContext) -> ToolOutput:
        delta = _number(ActionValidator.arg(action, 2))
        if delta is None:
            return self.fail("invalid_params", "modify_priority(rule, delta)")

        rule = await self._find_rule(action, context)
        if rule is None:
            return self.fail("rule_not_found", ActionValidator.atom_arg(action, 1))

        previous = rule.priority
        rule.metadata.priority = previous + delta
        await context.rules.update(rule)
        logger.warning("Rule priority changed", rule_id=short_id(rule.id), previous=previous, priority=rule.metadata.priority)
        return self.ok("priority_modified", f"{short_id(rule.id)}:{rule.metadata.priority:g}")

    async def _find_rule(self, action: Struct, context: ToolContext) -> Optional[Rule]:
        ref = ActionValidator.atom_arg(action, 1)
        return await context.rules.find_by_id_prefix(ref) if ref else None


def _number(term: Optional[Term]) -> Optional[float]:
    if term is None:
        return None
    try:
        return float(to_text(term))
    except ValueError:
        return None
