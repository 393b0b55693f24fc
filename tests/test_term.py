import pytest

from flowmind.domain.models.term import (
    Atom, ListTerm, Struct, Variable, bindings_to_text, format_term, substitute, to_text, unify
)


@pytest.mark.parametrize("term", [
    Atom("a"),
    Variable("X"),
    Struct("f", [Atom("a"), Variable("Y")]),
    ListTerm([Atom("a"), Struct("g", [])]),
])
def test_identical_terms_unify_without_new_bindings(term):
    bindings = {"Z": Atom("z")}
    assert unify(term, term, bindings) == bindings


def test_distinct_atoms_fail():
    assert unify(Atom("a"), Atom("b")) is None


def test_struct_name_and_arity_mismatch_fail():
    assert unify(Struct("f", [Atom("a")]), Struct("g", [Atom("a")])) is None
    assert unify(Struct("f", [Atom("a")]), Struct("f", [Atom("a"), Atom("b")])) is None


def test_mismatched_kinds_fail():
    assert unify(Atom("f"), Struct("f", [])) is None
    assert unify(ListTerm([]), Struct("f", [])) is None


def test_occurs_check_rejects_cyclic_binding():
    assert unify(Variable("X"), Struct("f", [Variable("X")])) is None


def test_binds_variables_inside_structs():
    bindings = unify(
        Struct("trip", [Variable("From"), Atom("paris")]),
        Struct("trip", [Atom("london"), Variable("To")])
    )
    assert bindings == {"From": Atom("london"), "To": Atom("paris")}


def test_variable_chains_are_dereferenced():
    bindings = unify(Variable("X"), Variable("Y"))
    bindings = unify(Variable("Y"), Atom("a"), bindings)
    assert unify(Variable("X"), Atom("b"), bindings) is None
    assert unify(Variable("X"), Atom("a"), bindings) is not None


def test_lists_unify_elementwise():
    bindings = unify(ListTerm([Variable("H"), Atom("b")]), ListTerm([Atom("a"), Atom("b")]))
    assert bindings == {"H": Atom("a")}
    assert unify(ListTerm([Atom("a")]), ListTerm([Atom("a"), Atom("b")])) is None


def test_failed_unification_leaves_caller_bindings_untouched():
    bindings = {"A": Atom("1")}
    result = unify(
        Struct("f", [Variable("X"), Atom("b")]),
        Struct("f", [Atom("a"), Atom("c")]),
        bindings
    )
    assert result is None
    assert bindings == {"A": Atom("1")}


def test_substitute_is_idempotent():
    bindings = {"X": Atom("a"), "Y": Struct("g", [Variable("X")])}
    term = Struct("f", [Variable("X"), Variable("Y"), ListTerm([Variable("Z")])])

    once = substitute(term, bindings)
    assert once == Struct("f", [Atom("a"), Struct("g", [Atom("a")]), ListTerm([Variable("Z")])])
    assert substitute(once, bindings) == once


def test_text_renderings():
    term = Struct("failure", [Atom("x"), ListTerm([Atom("a"), Variable("B")])])
    assert format_term(term) == "failure(x, [a, ?B])"
    assert to_text(term) == "failure: x; a, ?B"
    assert to_text(None) == ""
    assert bindings_to_text({"X": Struct("f", [Atom("a")])}) == {"X": "f: a"}


def test_terms_round_trip_through_tagged_json():
    term = Struct("f", [Atom("a"), Variable("X"), ListTerm([Atom("b")])])
    data = term.model_dump(mode="json")
    assert data["kind"] == "Struct"
    assert data["args"][2]["kind"] == "List"
    assert Struct.model_validate(data) == term
