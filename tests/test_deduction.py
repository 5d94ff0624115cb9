import sys
sys.path.append(".")
import pytest
from logic_prove import ContractViolationException, atom, neg, conj, disj, imp, bicond, negation_depth
from logic_prove.context import ProofContext, ProverSettings
from logic_prove.deduction import NaturalDeduction, NDStep, ProofType, natural_deduction_proof


P, Q, R, S = atom("P"), atom("Q"), atom("R"), atom("S")


def lines_of(validator):
    proof = validator.get_natural_deduction_proof()
    assert proof is not None
    return validator.get_lines(proof)


def test_modus_ponens():
    validator = NaturalDeduction([imp(P, Q), P], Q)
    lines = lines_of(validator)
    assert [line.formula for line in lines] == ["P", "P → Q", "Q"]
    assert [line.step for line in lines] == ["Ass.", "Ass.", "MP"]
    assert lines[2].parents == [1, 2]
    assert lines[2].step_name == "Modus Ponens"
    assert validator.conclusion_wff.derived_parent_indices == [3]


def test_hypothetical_syllogism():
    lines = lines_of(NaturalDeduction([imp(P, Q), imp(Q, R)], imp(P, R)))
    assert len(lines) == 3
    assert lines[-1].step == "HS"
    assert lines[-1].formula == "P → R"
    assert lines[-1].parents == [1, 2]


def test_modus_tollens():
    lines = lines_of(NaturalDeduction([imp(P, Q), neg(Q)], neg(P)))
    assert [line.formula for line in lines] == ["¬Q", "P → Q", "¬P"]
    assert lines[-1].step == "MT"


def test_disjunctive_syllogism():
    lines = lines_of(NaturalDeduction([disj(P, Q), neg(P)], Q))
    assert lines[-1].step == "DS"
    assert lines[-1].parents == [1, 2]


def test_conjunction_elimination_and_introduction():
    lines = lines_of(NaturalDeduction([conj(P, Q)], conj(Q, P)))
    assert [line.step for line in lines] == ["Ass.", "&E", "&E", "&I"]
    assert lines[-1].formula == "Q ∧ P"
    assert lines[-1].parents == [2, 3]


def test_disjunction_introduction():
    lines = lines_of(NaturalDeduction([P], disj(Q, P)))
    assert [line.step for line in lines] == ["Ass.", "∨I"]


def test_biconditional():
    lines = lines_of(NaturalDeduction([bicond(P, Q), P], Q))
    assert "↔E" in [line.step for line in lines]
    assert lines[-1].formula == "Q"
    lines = lines_of(NaturalDeduction([imp(P, Q), imp(Q, P)], bicond(P, Q)))
    assert lines[-1].step == "↔I"
    assert lines[-1].parents == [1, 2]


def test_double_negation():
    lines = lines_of(NaturalDeduction([neg(neg(P))], P))
    assert lines[-1].step == "DNE"
    lines = lines_of(NaturalDeduction([P], neg(neg(P))))
    assert lines[-1].step == "DNI"


def test_de_morgan():
    lines = lines_of(NaturalDeduction([neg(conj(P, Q))], disj(neg(P), neg(Q))))
    assert lines[-1].step == "DeM"
    lines = lines_of(NaturalDeduction([conj(neg(P), neg(Q))], neg(disj(P, Q))))
    assert lines[-1].step == "DeM"


def test_transposition():
    lines = lines_of(NaturalDeduction([imp(P, Q)], imp(neg(Q), neg(P))))
    assert [line.step for line in lines] == ["Ass.", "TP"]


def test_material_implication():
    lines = lines_of(NaturalDeduction([imp(P, Q)], disj(neg(P), Q)))
    assert lines[-1].step == "MI"
    lines = lines_of(NaturalDeduction([disj(neg(P), Q)], imp(P, Q)))
    assert lines[-1].step == "MI"


def test_material_implication_needs_a_goal():
    validator = NaturalDeduction([imp(P, Q), P], Q)
    validator.get_natural_deduction_proof()
    assert all(nd.step != NDStep.MI for nd in validator.nodes)


def test_constructive_dilemma():
    lines = lines_of(NaturalDeduction([disj(P, Q), imp(P, R), imp(Q, S)], disj(R, S)))
    assert lines[-1].step == "CD"
    assert lines[-1].parents == [1, 2, 3]


def test_destructive_dilemma():
    lines = lines_of(NaturalDeduction([disj(neg(R), neg(S)), imp(P, R), imp(Q, S)], disj(neg(P), neg(Q))))
    assert lines[-1].step == "DD"


def test_premise_is_conclusion():
    lines = lines_of(NaturalDeduction([imp(P, Q), Q], Q))
    assert len(lines) == 1
    assert lines[0].step == "Ass."


def test_redundant_premise_is_dropped():
    validator = NaturalDeduction([conj(P, P), imp(P, Q), P], Q)
    assert len(validator.nodes) == 2
    assert not any(nd.wff.is_and() for nd in validator.nodes)
    assert len(lines_of(validator)) == 3


def test_duplicate_premise_is_dropped():
    validator = NaturalDeduction([P, conj(P, Q, "&"), P, conj(P, Q, "∧")], Q)
    assert len(validator.nodes) == 2


def test_premises_sorted_simple_first():
    validator = NaturalDeduction([imp(P, Q), conj(P, Q), P], R)
    assert [nd.step for nd in validator.nodes] == [NDStep.P, NDStep.P, NDStep.P]
    assert validator.nodes[0].wff.is_atom()
    assert validator.nodes[1].wff.is_and()
    assert validator.nodes[2].wff.is_imp()


def test_unused_lines_are_dropped():
    # R → S never helps
    lines = lines_of(NaturalDeduction([imp(R, S), imp(P, Q), P, R], Q))
    assert [line.formula for line in lines] == ["P", "P → Q", "Q"]


def test_contradictory_premises():
    lines = lines_of(NaturalDeduction([P, neg(P)], Q))
    assert [line.step for line in lines] == ["Ass.", "Ass.", "⊥I", "⊥E"]
    assert lines[2].parents == [1, 2]
    assert lines[3].parents == [3]


def test_indirect_proof():
    validator = NaturalDeduction([imp(P, Q), P], Q, ProofType.INDIRECT)
    lines = lines_of(validator)
    steps = [line.step for line in lines]
    assert "Ass. for RAA" in steps
    assert "⊥I" in steps
    assert steps[-1] == "⊥E"
    assert lines[-1].formula == "Q"
    assumption = steps.index("Ass. for RAA") + 1
    assert assumption in lines[-1].parents


def test_no_proof():
    context = ProofContext()
    validator = NaturalDeduction([imp(P, Q)], P, context=context)
    assert validator.get_natural_deduction_proof() is None
    assert context.saw_warning()
    assert not context.saw_error()


def test_timeout():
    context = ProofContext(ProverSettings(deduction_timeout=1))
    validator = NaturalDeduction([imp(Q, R), imp(P, Q), P], R, context=context)
    assert validator.get_natural_deduction_proof() is None
    assert context.errors[0].source == "natural_deduction"
    assert context.errors[0].message.startswith("Timeout error")

    lines = lines_of(NaturalDeduction([imp(Q, R), imp(P, Q), P], R))
    assert lines[-1].formula == "R"


def test_rules_are_applied_once():
    # a second application of any rule to the same line would raise
    validator = NaturalDeduction([conj(P, Q), imp(P, R), bicond(R, S), disj(neg(S), Q)], S)
    proof = validator.get_natural_deduction_proof()
    assert proof is not None
    assert proof[-1].wff.string_equals(S)
    assert NDStep.AE in validator.nodes[0].flags
    with pytest.raises(ContractViolationException):
        validator.nodes[0].set_flag(NDStep.AE)


def test_derivation_parents_point_backwards():
    lines = lines_of(NaturalDeduction([disj(P, Q), imp(P, R), imp(Q, R), neg(R)], neg(P)))
    for line in lines:
        assert all(parent < line.line for parent in line.parents)


def test_natural_deduction_proof():
    proof = natural_deduction_proof([imp(P, Q), P], Q)
    assert [nd.step for nd in proof] == [NDStep.P, NDStep.P, NDStep.MP]
    assert str(proof[-1]) == "Q\tMP 1, 2"
    assert natural_deduction_proof([imp(P, Q)], P) is None


def test_double_negation_lookahead():
    # P ⊢ ¬¬¬¬P through two introductions
    lines = lines_of(NaturalDeduction([P], neg(neg(neg(neg(P))))))
    assert [line.formula for line in lines] == ["P", "¬¬P", "¬¬¬¬P"]
    assert [line.step for line in lines] == ["Ass.", "DNI", "DNI"]
    assert lines[2].parents == [2]


def test_double_negation_lookahead_is_bounded():
    six = P
    for _ in range(6):
        six = neg(six)
    validator = NaturalDeduction([P], six)
    assert validator.get_natural_deduction_proof() is None
    assert all(nd.step != NDStep.DNI for nd in validator.nodes)


def test_stacked_negations_are_capped():
    # Q ↔ ¬Q feeds transposition and hypothetical syllogism into each other
    context = ProofContext()
    validator = NaturalDeduction([bicond(Q, neg(Q))], R, context=context)
    validator.get_natural_deduction_proof()
    assert not context.saw_error()
    assert validator.passes < context.settings.deduction_timeout
    assert all(negation_depth(nd.wff) <= context.settings.max_negations for nd in validator.nodes)


def test_material_implication_targets_premises_and_conclusion():
    # ¬P ∨ Q only occurs inside a premise, so it is not rewritten towards
    validator = NaturalDeduction([imp(P, Q), imp(disj(neg(P), Q), R)], R)
    assert validator.get_natural_deduction_proof() is None
    assert all(nd.step != NDStep.MI for nd in validator.nodes)
