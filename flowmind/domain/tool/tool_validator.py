from typing import Optional

from flowmind.domain.errors import MalformedAction
from flowmind.domain.models.term import Atom, Struct, Term, format_term


class ActionValidator:
    """Shape checks and argument accessors for action terms"""

    @staticmethod
    def require_struct(action: Term) -> Struct:
        if not isinstance(action, Struct):
            raise MalformedAction(
                f"Invalid action term kind: {action.kind} ({format_term(action)})",
                action=format_term(action)
            )
        return action

    @staticmethod
    def arg(action: Struct, index: int) -> Optional[Term]:
        return action.args[index] if index < len(action.args) else None

    @staticmethod
    def atom_arg(action: Struct, index: int) -> Optional[str]:
        term = ActionValidator.arg(action, index)
        return term.name if isinstance(term, Atom) else None

    @staticmethod
    def operation(action: Struct) -> Optional[str]:
        """First argument names the operation, e.g. MemoryTool(add, ...)"""
        return ActionValidator.atom_arg(action, 0)
