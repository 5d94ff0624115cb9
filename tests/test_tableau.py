import sys
sys.path.append(".")
import pytest
from logic_prove import ContractViolationException, atom, predicate, neg, conj, disj, imp, bicond, xor, identity, forall, exists
from logic_prove.context import ProofContext, ProverSettings
from logic_prove.tableau import Tableau, TruthTree, ClosedTreeDeterminer, validate_argument, prove_with_premises


P, Q, R = atom("P"), atom("Q"), atom("R")


def test_contradiction_closes():
    tableau = Tableau(conj(P, neg(P)))
    result = tableau.build()
    assert result.all_closed
    assert result.some_closed
    assert not result.timed_out
    rows = list(tableau.traverse())
    assert [row["formula"] for row in rows] == ["P ∧ ¬P", "P", "¬P"]
    assert [row["shape"] for row in rows] == ["stack", "stack", "leaf"]
    assert rows[-1]["closed"]
    assert rows[1]["derived_from"] == rows[0]["identifier"]


def test_excluded_middle_stays_open():
    tableau = Tableau(disj(P, neg(P)))
    result = tableau.build()
    assert not result.all_closed
    assert not result.some_closed
    leaves = tableau.get_leaves(tableau.root)
    assert len(leaves) == 2
    assert len(tableau.open_branches()) == 2
    assert tableau.nodes[tableau.root].right is not None


def test_build_is_cached():
    tableau = Tableau(conj(P, Q))
    first = tableau.build()
    assert tableau.build() is first


def test_rebuilding_gives_same_verdict():
    argument = ([forall("x", imp(predicate("P", "x"), predicate("Q", "x"))), predicate("P", "a")], predicate("Q", "a"))
    first = validate_argument(*argument)
    second = validate_argument(*argument)
    assert first.all_closed == second.all_closed == True
    assert first.iterations == second.iterations


def test_closed_tree_determiner_accepts_formula():
    assert ClosedTreeDeterminer(conj(P, neg(P))).has_all_closed()
    assert not ClosedTreeDeterminer(imp(P, Q)).has_all_closed()


def test_prove_with_premises():
    # 1. 기본 유효   P(a),  ∀x( P(x) → Q(x) ) ⊢ Q(a)
    prem1 = predicate("P", "a")
    prem2 = forall("x", imp(predicate("P", "x"), predicate("Q", "x")))
    goal = predicate("Q", "a")
    assert True == prove_with_premises([prem1, prem2], goal)[0]
    # ----------------------------------------------
    # 2. 동일 변수 반복 (무효)  ∀x P(x) ⊬ Q(a)
    prem1 = forall("x", predicate("P", "x"))
    goal = predicate("Q", "a")
    proved, branches = prove_with_premises([prem1], goal)
    assert False == proved
    assert len(branches) == 1
    # ----------------------------------------------
    # 3. ∧ 제거  P(a) ∧ R(a) ⊢ R(a)
    prem1 = conj(predicate("P", "a"), predicate("R", "a"))
    goal = predicate("R", "a")
    assert True == prove_with_premises([prem1], goal)[0]
    # ----------------------------------------------
    # 4. ∃ 제거  ∃y (R(y) ∧ P(y)) , ∀x (R(x) → Q(x)) ⊢ ∃z Q(z)
    prem1 = exists("y", conj(predicate("R", "y"), predicate("P", "y")))
    prem2 = forall("x", imp(predicate("R", "x"), predicate("Q", "x")))
    goal = exists("z", predicate("Q", "z"))
    assert True == prove_with_premises([prem1, prem2], goal)[0]
    # ----------------------------------------------
    # 5. double-negation  ¬¬P(b) ⊢ P(b)
    prem1 = neg(neg(predicate("P", "b")))
    goal = predicate("P", "b")
    assert True == prove_with_premises([prem1], goal)[0]
    # ----------------------------------------------
    # 6. De Morgan  ¬(P(a) ∧ Q(a)) ⊢ ¬P(a) ∨ ¬Q(a)
    prem1 = neg(conj(predicate("P", "a"), predicate("Q", "a")))
    goal = disj(neg(predicate("P", "a")), neg(predicate("Q", "a")))
    assert True == prove_with_premises([prem1], goal)[0]
    # ----------------------------------------------
    # 7. 조건부의 역 (무효)  P(a) → Q(a)  ⊬ Q(a) → P(a)
    prem1 = imp(predicate("P", "a"), predicate("Q", "a"))
    goal = imp(predicate("Q", "a"), predicate("P", "a"))
    assert False == prove_with_premises([prem1], goal)[0]
    # ----------------------------------------------
    # 8. ∀/∃ 혼합   ∀x (P(x) → ∃y R(x,y)) , P(c) ⊢ ∃y R(c,y)
    prem1 = forall("x", imp(predicate("P", "x"), exists("y", predicate("R", "x", "y"))))
    prem2 = predicate("P", "c")
    goal = exists("y", predicate("R", "c", "y"))
    assert True == prove_with_premises([prem1, prem2], goal)[0]


def test_propositional_arguments():
    # modus ponens, hypothetical syllogism, disjunctive syllogism
    assert validate_argument([imp(P, Q), P], Q).all_closed
    assert validate_argument([imp(P, Q), imp(Q, R)], imp(P, R)).all_closed
    assert validate_argument([disj(P, Q), neg(P)], Q).all_closed
    # constructive dilemma by cases
    assert validate_argument([disj(P, Q), imp(P, R), imp(Q, R)], R).all_closed
    # biconditional and exclusive or
    assert validate_argument([bicond(P, Q), P], Q).all_closed
    assert validate_argument([xor(P, Q), P], neg(Q)).all_closed
    assert validate_argument([neg(xor(P, Q)), P], Q).all_closed
    assert validate_argument([neg(bicond(P, Q)), P], neg(Q)).all_closed
    # affirming the consequent
    assert not validate_argument([imp(P, Q), Q], P).all_closed


def test_universal_seeds_constant():
    tableau = Tableau(forall("x", predicate("P", "x")))
    result = tableau.build()
    assert not result.all_closed
    formulas = [row["formula"] for row in tableau.traverse()]
    assert formulas == ["∀x P(x)", "P(a)"]


def test_existential_uses_fresh_constant():
    tableau = Tableau.from_chain([predicate("Q", "a"), exists("x", predicate("P", "x"))])
    tableau.build()
    formulas = [row["formula"] for row in tableau.traverse()]
    assert "P(b)" in formulas
    assert "P(a)" not in formulas


def test_identity_substitution():
    # a = b, P(a) ⊢ P(b)
    assert validate_argument([identity("a", "b"), predicate("P", "a")], predicate("P", "b")).all_closed
    # a = b ⊢ b = a closes on commutation alone
    assert validate_argument([identity("a", "b")], identity("b", "a")).all_closed
    # ¬(a = a) is contradictory by itself
    assert Tableau(neg(identity("a", "a"))).build().all_closed
    # a = b ⊬ P(a)
    assert not validate_argument([identity("a", "b")], predicate("P", "a")).all_closed


def test_identity_node_is_repeatable():
    tableau = Tableau.from_chain([identity("a", "b"), predicate("P", "a")])
    tableau.build()
    rows = list(tableau.traverse())
    assert rows[0]["repeatable"]
    assert not rows[1]["repeatable"]
    assert "P(b)" in [row["formula"] for row in rows]


def test_timeout():
    context = ProofContext(ProverSettings(tableau_timeout=2))
    result = validate_argument([disj(P, Q), imp(P, R), imp(Q, R)], R, context)
    assert result.timed_out
    assert not result.all_closed
    assert context.saw_error()
    assert context.errors[0].source == "tableau"
    assert context.errors[0].message.startswith("Timeout error")


def test_constant_exhaustion_is_reported_as_timeout():
    premises = [exists("x", predicate(letter, "x")) for letter in "ABCDEFGHIJKLMNOPQRSTU"]
    context = ProofContext()
    result = validate_argument(premises, atom("Z"), context)
    assert result.timed_out
    assert not result.all_closed
    assert context.errors[-1].message == "all constants from a to t are in use"


def test_proved_requires_no_timeout():
    context = ProofContext(ProverSettings(tableau_timeout=1))
    proved, _ = prove_with_premises([imp(P, Q), P], Q, context)
    assert not proved


def test_center_child_contract():
    tree = TruthTree(P, 0, None, None, 1, set())
    tree.add_left(1)
    tree.add_right(2)
    with pytest.raises(ContractViolationException):
        tree.add_center(3)
    with pytest.raises(ContractViolationException):
        tree.get_center()


def test_shared_context_needs_reset():
    context = ProofContext(ProverSettings(tableau_timeout=2))
    validate_argument([disj(P, Q), imp(P, R), imp(Q, R)], R, context)
    assert context.saw_error()
    context.reset()
    assert not context.saw_error()
    context.settings = ProverSettings()
    assert validate_argument([imp(P, Q), P], Q, context).all_closed
    assert not context.saw_error()


def test_identity_substitutes_both_directions():
    # a = b, R(a, b): each constant is swapped for the other
    tableau = Tableau.from_chain([identity("a", "b"), predicate("R", "a", "b")])
    tableau.build()
    formulas = [row["formula"] for row in tableau.traverse()]
    assert "R(b, b)" in formulas
    assert "R(a, a)" in formulas
    assert tableau.nodes[tableau.root].substitutions == {"a": {"b"}, "b": {"a"}}
