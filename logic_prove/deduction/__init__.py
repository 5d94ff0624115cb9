from enum import Enum
from functools import cmp_to_key
from typing import List, Optional, Set, Tuple
from pydantic import BaseModel, Field
import logging
from logic_prove import (WffTree, NodeType, ContractViolationException, strip_root, negate, negation_depth, flip,
                         conj, disj, imp, subformulas, falsum)
from logic_prove.substitution import ConstantExhaustedException, allocate_constant, instantiate, collect_constants
from logic_prove.context import ProofContext
from logic_prove.interpreter import wff2sentence


class NDStep(Enum):
    HS = ("HS", "Hypothetical Syllogism")
    MT = ("MT", "Modus Tollens")
    MP = ("MP", "Modus Ponens")
    II = ("II", "Implication Introduction")
    P = ("Ass.", "Assumption")
    PRAA = ("Ass. for RAA", "Assumption for Reductio Ad Absurdum")
    C = ("C", "Conclusion")
    DS = ("DS", "Disjunctive Syllogism")
    DNI = ("DNI", "Double Negation Introduction")
    DNE = ("DNE", "Double Negation Elimination")
    AE = ("&E", "Conjunction Elimination")
    AI = ("&I", "Conjunction Introduction")
    RI = ("⊥I", "Contradiction")
    RE = ("⊥E", "Contradiction Elimination")
    OI = ("∨I", "Disjunction Introduction")
    DEM = ("DeM", "De Morgan")
    BCI = ("↔I", "Biconditional Introduction")
    BCE = ("↔E", "Biconditional Elimination")
    MI = ("MI", "Material Implication")
    EI = ("∃I", "Existential Introduction")
    EE = ("∃E", "Existential Elimination")
    UI = ("UI", "Universal Introduction")
    UE = ("UE", "Universal Elimination")
    CD = ("CD", "Constructive Dilemma")
    DD = ("DD", "Destructive Dilemma")
    TP = ("TP", "Transposition")

    @property
    def step(self) -> str:
        return self.value[0]

    @property
    def text_step(self) -> str:
        return self.value[1]

    def __str__(self):
        return self.step


class ProofType(Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"


class DerivationLine(BaseModel):
    line: int = Field(description="1-based position in the finished proof")
    formula: str
    step: str = Field(description="short rule code")
    step_name: str = Field(description="long rule name")
    parents: List[int] = Field(default_factory=list, description="1-based lines this line is derived from")


_nd_values = {
    NodeType.ATOM: 0,
    NodeType.PREDICATE: 0,
    NodeType.IDENTITY: 1,
    NodeType.NEG: 2,
    NodeType.AND: 3,
    NodeType.OR: 4,
    NodeType.IMP: 5,
    NodeType.BICOND: 6,
    NodeType.XOR: 7,
    NodeType.EXISTENTIAL: 8,
    NodeType.UNIVERSAL: 9,
}


class NDWffTree:
    """One derivation line. ``derived_parents`` are indices into the validator's list."""

    def __init__(self, wff: WffTree, step: NDStep, derived_parents: Tuple[int, ...] = ()):
        self.wff = wff
        self.step = step
        self.derived_parents: List[int] = list(derived_parents)
        self.derived_parent_indices: List[int] = []
        self.active = False
        self.flags: Set[NDStep] = set()
        self.instantiated: Set[str] = set()
        self.rep = wff.standard_rep()
        self.value = _nd_values.get(wff.node_type, 10)

    def __repr__(self):
        return f"NDWffTree({self.rep!r}, {self.step.name})"

    def __str__(self):
        parents = ", ".join(str(i) for i in self.derived_parent_indices)
        return f"{wff2sentence(self.wff)}\t{self.step} {parents}".rstrip()

    def is_flagged(self, step: NDStep) -> bool:
        return step in self.flags

    def set_flag(self, step: NDStep):
        if step in self.flags:
            raise ContractViolationException(f"{step.text_step} was already applied to {self.rep}")
        self.flags.add(step)

    def to_line(self, line: int) -> DerivationLine:
        return DerivationLine(line=line, formula=wff2sentence(self.wff), step=self.step.step,
                              step_name=self.step.text_step, parents=list(self.derived_parent_indices))


def _compare(o1: NDWffTree, o2: NDWffTree) -> int:
    if o1.wff.node_type == o2.wff.node_type:
        return len(o1.rep) - len(o2.rep)
    return o1.value - o2.value


class NaturalDeduction:
    """Forward-chaining natural deduction search for propositional arguments.

    Rules run over the whole (growing) list of derived lines, pass after
    pass, until the conclusion shows up, a contradiction is found, a pass
    adds nothing, or the pass ceiling is hit. Only the lines the conclusion
    actually depends on are returned.
    """

    def __init__(self, premises: List[WffTree], conclusion: WffTree,
                 proof_type: ProofType = ProofType.DIRECT, context: Optional[ProofContext] = None):
        self.context = context if context is not None else ProofContext()
        self.proof_type = proof_type
        self.original_premises = [strip_root(premise) for premise in premises]
        self.conclusion_wff = NDWffTree(strip_root(conclusion), NDStep.C)
        self.nodes: List[NDWffTree] = []
        self.passes = 0
        self._found: Optional[int] = None

        premise_nodes: List[NDWffTree] = []
        for premise in self.original_premises:
            nd = NDWffTree(premise, NDStep.P)
            if self.is_redundant_tree(nd):
                logging.info(f"natural_deduction:init:redundant_premise={nd.rep}")
                continue
            if any(nd.rep == other.rep or nd.wff.string_equals(other.wff) for other in premise_nodes):
                continue
            premise_nodes.append(nd)
        premise_nodes.sort(key=cmp_to_key(_compare))
        for nd in premise_nodes:
            self._add(nd)

        if self.proof_type == ProofType.INDIRECT:
            self._add(NDWffTree(negate(self.conclusion_wff.wff), NDStep.PRAA))

        self._goals: List[WffTree] = []
        for tree in [self.conclusion_wff.wff] + self.original_premises:
            for sub in subformulas(tree):
                if not any(sub.string_equals(goal) for goal in self._goals):
                    self._goals.append(sub)

    # --- bookkeeping -----------------------------------------------------

    def is_redundant_tree(self, nd: NDWffTree) -> bool:
        """``A&A``, ``A∨A``, ``A→A``, ``A↔A`` and the like carry nothing a proof can use."""
        wff = nd.wff
        return wff.is_binary_op() and not wff.is_identity() and wff.get_child(0).string_equals(wff.get_child(1))

    def _find(self, wff: WffTree) -> Optional[int]:
        rep = wff.standard_rep()
        commutes = wff.is_identity() or wff.is_neg_identity()
        for i, nd in enumerate(self.nodes):
            if nd.rep == rep or (commutes and wff.string_equals(nd.wff)):
                return i
        return None

    def _find_negation(self, wff: WffTree) -> Optional[int]:
        """A line that contradicts ``wff``: either ``¬wff`` or, for ``wff = ¬X``, ``X``."""
        index = self._find(negate(wff))
        if index is None and wff.is_negation():
            index = self._find(wff.get_child(0))
        return index

    def _is_conclusion(self, wff: WffTree) -> bool:
        return wff.string_equals(self.conclusion_wff.wff)

    def _is_target(self, wff: WffTree) -> bool:
        """Rewriting rules (MI, DNI) only aim at a premise or the conclusion."""
        return self._is_conclusion(wff) or any(wff.string_equals(premise) for premise in self.original_premises)

    def _double_negation_goal(self, wff: WffTree, depth: int = 2) -> bool:
        if depth > self.context.settings.max_negations:
            return False
        candidate = wff
        for _ in range(depth):
            candidate = negate(candidate)
        return self._is_target(candidate) or self._double_negation_goal(wff, depth + 2)

    def _add(self, nd: NDWffTree) -> Optional[int]:
        if self._find(nd.wff) is not None:
            return None
        self.nodes.append(nd)
        index = len(self.nodes) - 1
        if self.proof_type == ProofType.DIRECT and self._found is None and self._is_conclusion(nd.wff):
            self._found = index
        return index

    def _derive(self, wff: WffTree, step: NDStep, *parents: int) -> Optional[int]:
        # TP, MT and HS can feed each other negations forever
        if negation_depth(wff) > self.context.settings.max_negations:
            return None
        return self._add(NDWffTree(wff, step, parents))

    # --- search ----------------------------------------------------------

    def get_natural_deduction_proof(self) -> Optional[List[NDWffTree]]:
        """Derivation lines ending in the conclusion, or None if no proof was found."""
        timeout = self.context.settings.deduction_timeout
        try:
            while self._found is None:
                contradiction = self._find_contradiction()
                if contradiction is not None:
                    return self._finalize(self._reductio(*contradiction))
                if self.passes >= timeout:
                    self.context.error("natural_deduction", f"Timeout error: no proof within {timeout} passes.")
                    return None

                self.passes += 1
                size = len(self.nodes)
                for i in range(size):
                    self._apply_rules(i)
                    if self._found is not None:
                        break
                if self._found is None:
                    self._apply_introductions()

                if self._found is None and len(self.nodes) == size:
                    contradiction = self._find_contradiction()
                    if contradiction is not None:
                        return self._finalize(self._reductio(*contradiction))
                    self.context.warning("natural_deduction", f"no proof found after {self.passes} passes")
                    return None
        except ConstantExhaustedException as e:
            self.context.error("natural_deduction", e.message)
            return None
        return self._finalize(self._found)

    def _apply_rules(self, i: int):
        nd = self.nodes[i]
        wff = nd.wff
        if wff.is_and():
            self._conjunction_elimination(i)
            self._de_morgan(i)
        elif wff.is_imp():
            self._modus_ponens(i)
            self._modus_tollens(i)
            self._hypothetical_syllogism(i)
            self._transposition(i)
            self._material_implication(i)
        elif wff.is_or():
            self._disjunctive_syllogism(i)
            self._constructive_dilemma(i)
            self._destructive_dilemma(i)
            self._material_implication(i)
            self._de_morgan(i)
        elif wff.is_bicond():
            self._biconditional_elimination(i)
        elif wff.is_negation():
            self._double_negation_elimination(i)
            self._de_morgan(i)
        self._double_negation_introduction(i)

    def _apply_introductions(self):
        for goal in self._goals:
            if self._found is not None:
                return
            if self._find(goal) is not None:
                continue
            if goal.is_and():
                left, right = self._find(goal.get_child(0)), self._find(goal.get_child(1))
                if left is not None and right is not None:
                    self._derive(goal.copy(), NDStep.AI, left, right)
            elif goal.is_or():
                left, right = self._find(goal.get_child(0)), self._find(goal.get_child(1))
                if left is not None or right is not None:
                    self._derive(goal.copy(), NDStep.OI, left if left is not None else right)
            elif goal.is_bicond():
                a, b = goal.children
                forward, backward = self._find(imp(a.copy(), b.copy())), self._find(imp(b.copy(), a.copy()))
                if forward is not None and backward is not None:
                    self._derive(goal.copy(), NDStep.BCI, forward, backward)

    # --- rules -----------------------------------------------------------

    def _conjunction_elimination(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.AE) or nd.step == NDStep.AI:
            return
        nd.set_flag(NDStep.AE)
        self._derive(nd.wff.get_child(0).copy(), NDStep.AE, i)
        self._derive(nd.wff.get_child(1).copy(), NDStep.AE, i)

    def _modus_ponens(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.MP):
            return
        antecedent = self._find(nd.wff.get_child(0))
        if antecedent is not None:
            nd.set_flag(NDStep.MP)
            self._derive(nd.wff.get_child(1).copy(), NDStep.MP, i, antecedent)

    def _modus_tollens(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.MT):
            return
        negated_consequent = self._find_negation(nd.wff.get_child(1))
        if negated_consequent is not None:
            nd.set_flag(NDStep.MT)
            self._derive(negate(nd.wff.get_child(0)), NDStep.MT, i, negated_consequent)

    def _hypothetical_syllogism(self, i: int):
        nd = self.nodes[i]
        a, b = nd.wff.children
        for j, other in enumerate(self.nodes):
            if j == i or not other.wff.is_imp():
                continue
            if nd.is_flagged(NDStep.HS) and other.is_flagged(NDStep.HS):
                continue
            if not b.string_equals(other.wff.get_child(0)):
                continue
            c = other.wff.get_child(1)
            if a.string_equals(c):
                continue
            for used in (nd, other):
                if not used.is_flagged(NDStep.HS):
                    used.set_flag(NDStep.HS)
            self._derive(imp(a.copy(), c.copy()), NDStep.HS, i, j)
            if self._found is not None:
                return

    def _transposition(self, i: int):
        nd = self.nodes[i]
        # a contrapositive of a contrapositive only stacks negations
        if nd.is_flagged(NDStep.TP) or nd.step == NDStep.TP or self._is_conclusion(nd.wff):
            return
        nd.set_flag(NDStep.TP)
        a, b = nd.wff.children
        self._derive(imp(negate(b), negate(a)), NDStep.TP, i)

    def _material_implication(self, i: int):
        # heuristic guard: only emit the dual when something asks for it
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.MI) or self._is_conclusion(nd.wff):
            return
        a, b = nd.wff.children
        if nd.wff.is_imp():
            dual = disj(negate(a), b.copy())
        elif a.is_negation():
            dual = imp(a.get_child(0).copy(), b.copy())
        else:
            return
        if self._is_target(dual):
            nd.set_flag(NDStep.MI)
            self._derive(dual, NDStep.MI, i)

    def _disjunctive_syllogism(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.DS):
            return
        a, b = nd.wff.children
        not_a, not_b = self._find_negation(a), self._find_negation(b)
        if not_a is not None and not_b is None:
            nd.set_flag(NDStep.DS)
            self._derive(b.copy(), NDStep.DS, i, not_a)
        elif not_b is not None and not_a is None:
            nd.set_flag(NDStep.DS)
            self._derive(a.copy(), NDStep.DS, i, not_b)

    def _implication_from(self, antecedent: WffTree) -> Optional[int]:
        for j, other in enumerate(self.nodes):
            if other.wff.is_imp() and antecedent.string_equals(other.wff.get_child(0)):
                return j
        return None

    def _implication_denied_by(self, disjunct: WffTree) -> Optional[int]:
        for j, other in enumerate(self.nodes):
            if other.wff.is_imp() and disjunct.string_equals(negate(other.wff.get_child(1))):
                return j
        return None

    def _constructive_dilemma(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.CD):
            return
        a, b = nd.wff.children
        left, right = self._implication_from(a), self._implication_from(b)
        if left is None or right is None:
            return
        nd.set_flag(NDStep.CD)
        r, s = self.nodes[left].wff.get_child(1), self.nodes[right].wff.get_child(1)
        self._derive(disj(r.copy(), s.copy()), NDStep.CD, i, left, right)
        self._derive(disj(s.copy(), r.copy()), NDStep.CD, i, left, right)

    def _destructive_dilemma(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.DD):
            return
        a, b = nd.wff.children
        left, right = self._implication_denied_by(a), self._implication_denied_by(b)
        if left is None or right is None:
            return
        nd.set_flag(NDStep.DD)
        p, q = self.nodes[left].wff.get_child(0), self.nodes[right].wff.get_child(0)
        self._derive(disj(negate(p), negate(q)), NDStep.DD, i, left, right)
        self._derive(disj(negate(q), negate(p)), NDStep.DD, i, left, right)

    def _biconditional_elimination(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.BCE):
            return
        nd.set_flag(NDStep.BCE)
        a, b = nd.wff.children
        self._derive(conj(imp(a.copy(), b.copy()), imp(b.copy(), a.copy())), NDStep.BCE, i)

    def _de_morgan(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.DEM) or self._is_conclusion(nd.wff):
            return
        wff = nd.wff
        if wff.is_neg_and() or wff.is_neg_or() or wff.is_neg_imp() or wff.is_neg_bicond():
            dual = flip(wff.get_child(0))
        elif (wff.is_and() or wff.is_or()) and wff.get_child(0).is_negation() and wff.get_child(1).is_negation():
            inner = wff.get_child(0).get_child(0).copy(), wff.get_child(1).get_child(0).copy()
            dual = negate(disj(*inner)) if wff.is_and() else negate(conj(*inner))
        else:
            return
        nd.set_flag(NDStep.DEM)
        self._derive(dual, NDStep.DEM, i)

    def _double_negation_elimination(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.DNE) or not nd.wff.is_double_negation():
            return
        nd.set_flag(NDStep.DNE)
        self._derive(nd.wff.get_child(0).get_child(0).copy(), NDStep.DNE, i)

    def _double_negation_introduction(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.DNI) or nd.step == NDStep.DNE:
            return
        if self._double_negation_goal(nd.wff):
            nd.set_flag(NDStep.DNI)
            self._derive(negate(negate(nd.wff)), NDStep.DNI, i)

    # --- contradiction ---------------------------------------------------

    def _find_contradiction(self) -> Optional[Tuple[int, int]]:
        for i, nd in enumerate(self.nodes):
            # ¬X against ¬¬X is left to double negation elimination
            if nd.wff.is_negation() or nd.wff.is_false():
                continue
            j = self._find(negate(nd.wff))
            if j is not None:
                return (i, j)
        return None

    def _reductio(self, positive: int, negative: int) -> int:
        self.nodes.append(NDWffTree(falsum(), NDStep.RI, (positive, negative)))
        contradiction = len(self.nodes) - 1
        parents = [contradiction]
        if self.proof_type == ProofType.INDIRECT:
            assumption = self._find(negate(self.conclusion_wff.wff))
            if assumption is not None:
                parents.append(assumption)
        self.nodes.append(NDWffTree(self.conclusion_wff.wff.copy(), NDStep.RE, tuple(parents)))
        logging.info(f"natural_deduction:reductio:lines=({positive + 1}, {negative + 1})")
        return len(self.nodes) - 1

    # --- finalization ----------------------------------------------------

    def _finalize(self, conclusion_index: int) -> List[NDWffTree]:
        for nd in self.nodes:
            nd.active = False
        stack = [conclusion_index]
        while stack:
            nd = self.nodes[stack.pop()]
            if nd.active:
                continue
            nd.active = True
            stack.extend(nd.derived_parents)

        active = [i for i, nd in enumerate(self.nodes) if nd.active]
        position = {index: line for line, index in enumerate(active, start=1)}
        arguments = []
        for index in active:
            nd = self.nodes[index]
            nd.derived_parent_indices = sorted(position[p] for p in nd.derived_parents if p in position)
            arguments.append(nd)

        self.conclusion_wff.derived_parents = [conclusion_index]
        self.conclusion_wff.derived_parent_indices = [position[conclusion_index]]
        logging.info(f"natural_deduction:proof:passes={self.passes}:lines={len(arguments)}:generated={len(self.nodes)}")
        return arguments

    def get_lines(self, proof: List[NDWffTree]) -> List[DerivationLine]:
        return [nd.to_line(line) for line, nd in enumerate(proof, start=1)]


class PredicateNaturalDeduction(NaturalDeduction):
    """Adds quantifier rules: existential/universal elimination and introduction."""

    def __init__(self, premises: List[WffTree], conclusion: WffTree,
                 proof_type: ProofType = ProofType.DIRECT, context: Optional[ProofContext] = None):
        super().__init__(premises, conclusion, proof_type, context)
        self.constants: Set[str] = set()
        for premise in self.original_premises:
            collect_constants(premise, self.constants)
        self.premise_constants = frozenset(self.constants)
        self.conclusion_constants = frozenset(collect_constants(self.conclusion_wff.wff))
        self.existential_constants: Set[str] = set()

    def _known_constants(self) -> Set[str]:
        return self.constants | self.conclusion_constants

    def _arbitrary_constants(self) -> Set[str]:
        return self.constants - self.premise_constants - self.conclusion_constants - self.existential_constants

    def _apply_rules(self, i: int):
        super()._apply_rules(i)
        if self._found is not None:
            return
        wff = self.nodes[i].wff
        if wff.is_existential():
            self._existential_elimination(i)
        elif wff.is_universal():
            self._universal_elimination(i)

    def _existential_elimination(self, i: int):
        nd = self.nodes[i]
        if nd.is_flagged(NDStep.EE):
            return
        constant = allocate_constant(self._known_constants())
        nd.set_flag(NDStep.EE)
        self.constants.add(constant)
        self.existential_constants.add(constant)
        self._derive(instantiate(nd.wff, constant), NDStep.EE, i)

    def _universal_elimination(self, i: int):
        nd = self.nodes[i]
        if len(self._known_constants()) == 0:
            self.constants.add('a')
        for constant in sorted(self._known_constants()):
            if constant in nd.instantiated:
                continue
            nd.instantiated.add(constant)
            self._derive(instantiate(nd.wff, constant), NDStep.UE, i)
            if self._found is not None:
                return

    def _apply_introductions(self):
        super()._apply_introductions()
        for goal in self._goals:
            if self._found is not None:
                return
            if not goal.is_quantifier() or self._find(goal) is not None:
                continue
            if goal.is_existential():
                candidates, step = self._known_constants(), NDStep.EI
            else:
                candidates, step = self._arbitrary_constants(), NDStep.UI
            for constant in sorted(candidates):
                instance = self._find(instantiate(goal, constant))
                if instance is not None:
                    self._derive(goal.copy(), step, instance)
                    break


def natural_deduction_proof(premises: List[WffTree], conclusion: WffTree,
                            proof_type: ProofType = ProofType.DIRECT,
                            context: Optional[ProofContext] = None) -> Optional[List[NDWffTree]]:
    """Picks the propositional or predicate validator and runs it."""
    trees = [strip_root(tree) for tree in premises] + [strip_root(conclusion)]
    if any(tree.is_predicate_wff() for tree in trees):
        validator = PredicateNaturalDeduction(premises, conclusion, proof_type, context)
    else:
        validator = NaturalDeduction(premises, conclusion, proof_type, context)
    return validator.get_natural_deduction_proof()
