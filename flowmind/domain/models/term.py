from typing import Annotated, Dict, Iterable, Literal, Optional, Sequence, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field


class Atom(BaseModel):
    """A constant symbol"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["Atom"] = "Atom"
    name: str

    def __init__(self, name: str, **data):
        super().__init__(name=name, **data)


class Variable(BaseModel):
    """A logic variable, bound during unification"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["Variable"] = "Variable"
    name: str

    def __init__(self, name: str, **data):
        super().__init__(name=name, **data)


class Struct(BaseModel):
    """A named compound term with ordered arguments"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["Struct"] = "Struct"
    name: str
    args: Tuple["Term", ...] = ()

    def __init__(self, name: str, args: Sequence["Term"] = (), **data):
        super().__init__(name=name, args=tuple(args), **data)


class ListTerm(BaseModel):
    """An ordered sequence of terms"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["List"] = "List"
    elements: Tuple["Term", ...] = ()

    def __init__(self, elements: Sequence["Term"] = (), **data):
        super().__init__(elements=tuple(elements), **data)


Term = Annotated[Union[Atom, Variable, Struct, ListTerm], Field(discriminator="kind")]
Bindings = Dict[str, Term]

Struct.model_rebuild()
ListTerm.model_rebuild()


def resolve(term: Term, bindings: Bindings) -> Term:
    """Follow a chain of variable bindings to its end"""

    while isinstance(term, Variable) and term.name in bindings:
        term = bindings[term.name]
    return term


def occurs_in(name: str, term: Term, bindings: Bindings) -> bool:
    """Check whether variable `name` appears anywhere inside `term`"""

    term = resolve(term, bindings)
    if isinstance(term, Variable):
        return term.name == name
    if isinstance(term, Struct):
        return any(occurs_in(name, arg, bindings) for arg in term.args)
    if isinstance(term, ListTerm):
        return any(occurs_in(name, element, bindings) for element in term.elements)
    return False


def _bind(variable: Variable, value: Term, bindings: Bindings) -> Optional[Bindings]:
    if occurs_in(variable.name, value, bindings):
        return None
    extended = dict(bindings)
    extended[variable.name] = value
    return extended


def _unify_all(left: Iterable[Term], right: Iterable[Term], bindings: Bindings) -> Optional[Bindings]:
    current: Optional[Bindings] = bindings
    for a, b in zip(left, right):
        current = unify(a, b, current)
        if current is None:
            return None
    return current


def unify(t1: Term, t2: Term, bindings: Optional[Bindings] = None) -> Optional[Bindings]:
    """Unify two terms.

    Returns the extended bindings, or None when the terms cannot be made
    equal. The bindings passed in are never modified.
    """

    bindings = {} if bindings is None else bindings
    left = resolve(t1, bindings)
    right = resolve(t2, bindings)

    if isinstance(left, Variable):
        if isinstance(right, Variable) and right.name == left.name:
            return bindings
        return _bind(left, right, bindings)
    if isinstance(right, Variable):
        return _bind(right, left, bindings)

    if isinstance(left, Atom) and isinstance(right, Atom):
        return bindings if left.name == right.name else None
    if isinstance(left, Struct) and isinstance(right, Struct):
        if left.name != right.name or len(left.args) != len(right.args):
            return None
        return _unify_all(left.args, right.args, bindings)
    if isinstance(left, ListTerm) and isinstance(right, ListTerm):
        if len(left.elements) != len(right.elements):
            return None
        return _unify_all(left.elements, right.elements, bindings)
    return None


def substitute(term: Term, bindings: Bindings) -> Term:
    """Replace bound variables throughout `term`, building new terms"""

    term = resolve(term, bindings)
    if isinstance(term, Struct):
        return Struct(term.name, [substitute(arg, bindings) for arg in term.args])
    if isinstance(term, ListTerm):
        return ListTerm([substitute(element, bindings) for element in term.elements])
    return term


def to_text(term: Optional[Term]) -> str:
    """Plain-text rendering used for prompts and memory entries"""

    if term is None:
        return ""
    if isinstance(term, Atom):
        return term.name
    if isinstance(term, Variable):
        return f"?{term.name}"
    if isinstance(term, Struct):
        return f"{term.name}: " + "; ".join(to_text(arg) for arg in term.args)
    return ", ".join(to_text(element) for element in term.elements)


def format_term(term: Optional[Term]) -> str:
    """Compact notation for logs: f(a, ?X), [a, b]"""

    if term is None:
        return "null"
    if isinstance(term, Atom):
        return term.name
    if isinstance(term, Variable):
        return f"?{term.name}"
    if isinstance(term, Struct):
        return f"{term.name}(" + ", ".join(format_term(arg) for arg in term.args) + ")"
    return "[" + ", ".join(format_term(element) for element in term.elements) + "]"


def bindings_to_text(bindings: Bindings) -> Dict[str, str]:
    return {name: to_text(substitute(value, bindings)) for name, value in bindings.items()}
