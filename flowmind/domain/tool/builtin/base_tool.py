from abc import ABC, abstractmethod
from typing import Dict, Optional
import uuid
import structlog

from flowmind.domain.models.results import ToolResult
from flowmind.domain.models.term import Atom, Bindings, Struct, Term, Variable, format_term, substitute, to_text, unify
from flowmind.domain.models.thought import Thought
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput

logger = structlog.get_logger(__name__)

SELF = "self"


class BaseTool(ABC):
    """Shared helpers for the built-in tools"""
    name: str = ""
    description: str = ""

    @abstractmethod
    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        """Run the action on behalf of `trigger`"""
        pass

    def ok(self, code: str, message: Optional[str] = None, value: Optional[Term] = None) -> ToolResult:
        return ToolResult.success(value=value, code=f"{self.name}.{code}", message=message)

    def fail(self, code: str, message: Optional[str] = None) -> ToolResult:
        return ToolResult.failure(f"{self.name}.{code}", message)

    async def rule_bindings(self, trigger: Thought, context: ToolContext) -> Bindings:
        """Re-derive the bindings of the rule recorded on the trigger"""

        if not trigger.metadata.rule_id:
            return {}
        rule = await context.rules.get(trigger.metadata.rule_id)
        if rule is None:
            return {}
        return unify(rule.pattern, trigger.content) or {}

    async def extract_context_args(self, term: Optional[Term], trigger: Thought, context: ToolContext) -> Dict[str, str]:
        """Read a context(...) term into template values.

        Accepts `key:value` atoms (with `?Var` resolved against the rule
        bindings) and `key(Term)` structs.
        """

        values: Dict[str, str] = {}
        if not isinstance(term, Struct) or term.name != "context":
            return values

        bindings = await self.rule_bindings(trigger, context)
        for arg in term.args:
            if isinstance(arg, Atom) and ":" in arg.name:
                key, value = arg.name.split(":", 1)
                if value.startswith("?") and value[1:] in bindings:
                    value = to_text(substitute(Variable(value[1:]), bindings))
                values[key] = value
            elif isinstance(arg, Struct) and len(arg.args) == 1:
                values[arg.name] = to_text(substitute(arg.args[0], bindings))
            else:
                logger.warning("Unreadable context argument", tool=self.name, argument=format_term(arg))
        return values

    async def resolve_target_id(self, term: Optional[Term], trigger: Thought, context: ToolContext) -> Optional[str]:
        """Resolve `self`, an id prefix, or a full id to a thought/rule id"""

        if not isinstance(term, Atom):
            return None
        if term.name == SELF:
            return trigger.id

        thought = await context.thoughts.find_by_id_prefix(term.name)
        if thought is not None:
            return thought.id
        rule = await context.rules.find_by_id_prefix(term.name)
        if rule is not None:
            return rule.id
        return term.name if _is_uuid(term.name) else None


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True
