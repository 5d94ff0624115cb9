from typing import List, Optional, Dict, Set, Tuple, TypedDict, Iterator
from collections import deque
from pydantic import BaseModel
import heapq
import logging
from logic_prove import WffTree, ContractViolationException, NodeType, strip_root, negate, flip, flip_quantifier
from logic_prove.substitution import (ConstantExhaustedException, allocate_constant, instantiate,
                                      substitute, collect_constants, contains_symbol)
from logic_prove.context import ProofContext
from logic_prove.interpreter import wff2sentence


def truth_tree_value(node: WffTree) -> int:
    """Processing precedence of a formula, lowest first.

    Universal has to come last so every constant on the branch is known
    before it gets instantiated.
    """
    if node.is_atom():
        return 0
    if node.is_double_negation():
        return 3
    if node.is_negation() and not node.is_neg_and() and not node.is_neg_imp() and not node.is_neg_or():
        return 4
    if node.is_existential():
        return 1
    if node.is_universal():
        return 13
    if node.is_and():
        return 6
    if node.is_neg_or() or node.is_neg_imp():
        return 7
    if node.is_or():
        return 8
    if node.is_neg_and():
        return 9
    if node.is_imp():
        return 10
    if node.is_bicond():
        return 11
    return 12


class TruthTree:
    """One tableau node. Links to other nodes are indices into the owning ``Tableau``."""

    def __init__(self, node: WffTree, index: int, parent: Optional[int], derived_parent: Optional[int],
                 identifier: int, available_constants: Set[str]):
        self.node = node
        self.index = index
        self.parent = parent
        self.derived_parent = derived_parent
        self.identifier = identifier
        self.value = truth_tree_value(node)
        self.left: Optional[int] = None
        self.right: Optional[int] = None
        self.closed = False
        self.available_constants: Set[str] = set(available_constants)
        self.substitutions: Dict[str, Set[str]] = {}

    def __repr__(self):
        leaf_signal = ""
        if self.is_leaf_node():
            leaf_signal = " X" if self.closed else " open"
        return f"TruthTree({self.identifier}: {self.node.string_rep()}{leaf_signal})"

    def __lt__(self, other: 'TruthTree'):
        return (self.value, self.identifier) < (other.value, other.identifier)

    def is_leaf_node(self) -> bool:
        return self.left is None and self.right is None

    def is_repeatable(self) -> bool:
        return self.node.is_universal() or self.node.is_identity()

    def add_left(self, index: int):
        self.left = index

    def add_right(self, index: int):
        self.right = index

    def add_center(self, index: int):
        if self.right is not None:
            raise ContractViolationException("Cannot add a center child to a tableau node that already branches.")
        self.left = index

    def get_center(self) -> Optional[int]:
        if self.right is not None:
            raise ContractViolationException("A branching tableau node has no center child.")
        return self.left


class TableauResult(BaseModel):
    all_closed: bool
    some_closed: bool
    timed_out: bool = False
    iterations: int = 0


class TableauRow(TypedDict):
    identifier: int
    depth: int
    formula: str
    shape: str
    closed: bool
    repeatable: bool
    derived_from: Optional[int]


class Tableau:
    """Semantic tableau over one formula, or over a chain of formulas.

    Nodes live in ``self.nodes``; every parent, child and provenance link is
    an index into that list. ``build()`` runs the rules and returns a
    ``TableauResult``.
    """

    def __init__(self, formula: WffTree, context: Optional[ProofContext] = None):
        self.context = context if context is not None else ProofContext()
        self.nodes: List[TruthTree] = []
        self.iterations = 0
        self.timed_out = False
        self._queue: List[Tuple[int, int, int]] = []
        self._built = False
        self._result: Optional[TableauResult] = None

        formula = strip_root(formula)
        constants = collect_constants(formula)
        self.root = self._new_node(formula, None, None, constants)
        self._enqueue(self.root)

    @classmethod
    def from_chain(cls, formulas: List[WffTree], context: Optional[ProofContext] = None) -> 'Tableau':
        """Tableau whose trunk stacks ``formulas`` in order, all of them pending."""
        if len(formulas) == 0:
            raise ContractViolationException("a tableau needs at least one formula")
        formulas = [strip_root(f) for f in formulas]
        tableau = cls(formulas[0], context)
        constants = set()
        for formula in formulas:
            collect_constants(formula, constants)
        tableau.nodes[tableau.root].available_constants |= constants
        curr = tableau.root
        for formula in formulas[1:]:
            curr = tableau._add_center(curr, formula, None)
            tableau._enqueue(curr)
        return tableau

    # --- arena -----------------------------------------------------------

    def _new_node(self, wff: WffTree, parent: Optional[int], derived_parent: Optional[int],
                  constants: Optional[Set[str]] = None) -> int:
        if constants is None:
            constants = self.nodes[parent].available_constants if parent is not None else set()
        index = len(self.nodes)
        self.nodes.append(TruthTree(wff, index, parent, derived_parent, self.context.next_identifier(), constants))
        return index

    def _enqueue(self, index: int):
        tree = self.nodes[index]
        heapq.heappush(self._queue, (tree.value, self.context.next_identifier(), index))

    def _add_center(self, parent: int, wff: WffTree, derived_parent: Optional[int]) -> int:
        index = self._new_node(wff, parent, derived_parent)
        self.nodes[parent].add_center(index)
        self._compute_closed(index)
        return index

    def _chain(self, first: int, formulas: List[WffTree], derived_parent: int) -> int:
        curr = first
        for wff in formulas:
            curr = self._add_center(curr, wff, derived_parent)
            self._enqueue(curr)
        return curr

    # --- queries ---------------------------------------------------------

    def get_leaves(self, index: int) -> List[int]:
        leaves = []
        stack = [index]
        while stack:
            curr = self.nodes[stack.pop()]
            if curr.is_leaf_node():
                leaves.append(curr.index)
                continue
            if curr.right is not None:
                stack.append(curr.right)
            if curr.left is not None:
                stack.append(curr.left)
        return leaves

    def branch(self, leaf: int) -> List[int]:
        """Indices from ``leaf`` up to the root."""
        path = []
        curr = leaf
        while curr is not None:
            path.append(curr)
            curr = self.nodes[curr].parent
        return path

    def tree_contains(self, leaf: int, wff: WffTree) -> bool:
        for index in self.branch(leaf):
            if wff.string_equals(self.nodes[index].node):
                return True
        return False

    def _closes(self, wff: WffTree, closables: List[WffTree]) -> bool:
        if wff.is_false():
            return True
        if wff.is_neg_identity():
            left, right = wff.get_child(0).children
            if left.string_equals(right):
                return True
        if not wff.is_closable():
            return False
        complement = wff.get_child(0) if wff.is_negation() else negate(wff)
        return any(complement.string_equals(other) for other in closables)

    def _compute_closed(self, leaf: int):
        tree = self.nodes[leaf]
        if tree.closed or not tree.is_leaf_node():
            return
        wffs = [self.nodes[index].node for index in self.branch(leaf)]
        closables = [wff for wff in wffs if wff.is_closable()]
        for wff in wffs:
            if self._closes(wff, closables):
                tree.closed = True
                return

    def compute_closed_branches(self, leaves: List[int]):
        for leaf in leaves:
            self._compute_closed(leaf)

    def open_branches(self) -> List[List[WffTree]]:
        branches = []
        for leaf in self.get_leaves(self.root):
            if not self.nodes[leaf].closed:
                branches.append([self.nodes[index].node for index in reversed(self.branch(leaf))])
        return branches

    # --- main loop -------------------------------------------------------

    def build(self) -> TableauResult:
        if self._built:
            return self._result
        self._built = True
        try:
            self._build_tree()
        except ConstantExhaustedException as e:
            self.timed_out = True
            self.context.error("tableau", e.message)
        self.compute_closed_branches(self.get_leaves(self.root))

        determiner = ClosedTreeDeterminer(self)
        self._result = TableauResult(all_closed=determiner.has_all_closed(),
                                     some_closed=determiner.has_some_closed(),
                                     timed_out=self.timed_out,
                                     iterations=self.iterations)
        logging.info(f"tableau:build:iterations={self.iterations}:all_closed={self._result.all_closed}"
                     f":timed_out={self.timed_out}")
        return self._result

    def _build_tree(self):
        timeout = self.context.settings.tableau_timeout
        while self._queue:
            self.iterations += 1
            if self.iterations >= timeout:
                self.timed_out = True
                self.context.error("tableau", f"Timeout error: cannot compute a tree this complex ({timeout} dispatches).")
                return

            _, _, index = heapq.heappop(self._queue)
            tree = self.nodes[index]
            curr = tree.node
            leaves = self.get_leaves(index)
            self.compute_closed_branches(leaves)
            leaves = [leaf for leaf in leaves if not self.nodes[leaf].closed]

            if len(leaves) == 0:
                continue
            elif curr.is_neg_bicond():
                # the plain De Morgan dual of a biconditional does not close directly
                a, b = curr.get_child(0).children
                self._branch(index, leaves, [a, negate(b)], [negate(a), b])
            elif curr.is_neg_imp():
                a, b = curr.get_child(0).children
                self._stack(index, leaves, [a, negate(b)])
            elif curr.is_neg_exclusive_or():
                a, b = curr.get_child(0).children
                self._branch(index, leaves, [a, b], [negate(a), negate(b)])
            elif curr.is_negation() and not (curr.get_child(0).is_atom() or curr.get_child(0).is_predicate()
                                             or curr.get_child(0).is_quantifier()
                                             or curr.get_child(0).is_identity()):
                self._stack(index, leaves, [flip(curr.get_child(0))])
            elif curr.is_neg_quantifier():
                self._stack(index, leaves, [flip_quantifier(curr.get_child(0))])
            elif curr.is_existential():
                self._existential_decomposition(index, leaves)
            elif curr.is_universal():
                self._universal_decomposition(index, leaves)
            elif curr.is_identity():
                self._identity_decomposition(index, leaves)
            elif curr.is_and():
                self._stack(index, leaves, list(curr.children))
            elif curr.is_or():
                a, b = curr.children
                self._branch(index, leaves, [a], [b])
            elif curr.is_imp():
                a, b = curr.children
                self._branch(index, leaves, [negate(a)], [b])
            elif curr.is_bicond():
                a, b = curr.children
                self._branch(index, leaves, [a, b], [negate(a), negate(b)])
            elif curr.is_exclusive_or():
                a, b = curr.children
                self._branch(index, leaves, [a, negate(b)], [negate(a), b])

    # --- rules -----------------------------------------------------------

    def _stack(self, derived: int, leaves: List[int], formulas: List[WffTree]):
        for leaf in leaves:
            curr = leaf
            for wff in formulas:
                if self.nodes[curr].closed:
                    break
                if self.tree_contains(curr, wff):
                    continue
                curr = self._add_center(curr, wff, derived)
                self._enqueue(curr)

    def _branch(self, derived: int, leaves: List[int], left: List[WffTree], right: List[WffTree]):
        for leaf in leaves:
            left_missing = [wff for wff in left if not self.tree_contains(leaf, wff)]
            right_missing = [wff for wff in right if not self.tree_contains(leaf, wff)]
            # one alternative already holds on this branch
            if len(left_missing) == 0 or len(right_missing) == 0:
                continue

            left_index = self._new_node(left_missing[0], leaf, derived)
            right_index = self._new_node(right_missing[0], leaf, derived)
            self.nodes[leaf].add_left(left_index)
            self.nodes[leaf].add_right(right_index)
            for index in (left_index, right_index):
                self._compute_closed(index)
                self._enqueue(index)
            if not self.nodes[left_index].closed:
                self._chain(left_index, left_missing[1:], derived)
            if not self.nodes[right_index].closed:
                self._chain(right_index, right_missing[1:], derived)

    def _gather_constants(self, index: int, leaves: List[int]) -> Set[str]:
        tree = self.nodes[index]
        for leaf in leaves:
            tree.available_constants |= self.nodes[leaf].available_constants
        return tree.available_constants

    def _existential_decomposition(self, index: int, leaves: List[int]):
        tree = self.nodes[index]
        if tree.node.node_type != NodeType.EXISTENTIAL:
            raise ContractViolationException(f"existential decomposition expects an existential node but got {tree.node.node_type}")

        constant = allocate_constant(self._gather_constants(index, leaves))
        for leaf in leaves:
            if self.nodes[leaf].closed:
                continue
            new_root = instantiate(tree.node, constant)
            if self.tree_contains(leaf, new_root):
                continue
            new_index = self._add_center(leaf, new_root, index)
            self.nodes[new_index].available_constants.add(constant)
            self._enqueue(new_index)

    def _universal_decomposition(self, index: int, leaves: List[int]):
        tree = self.nodes[index]
        if tree.node.node_type != NodeType.UNIVERSAL:
            raise ContractViolationException(f"universal decomposition expects a universal node but got {tree.node.node_type}")

        constants = self._gather_constants(index, leaves)
        if len(constants) == 0:
            constants.add('a')

        inserted = False
        for leaf in leaves:
            curr = leaf
            for constant in sorted(constants):
                if self.nodes[curr].closed:
                    break
                new_root = instantiate(tree.node, constant)
                if self.tree_contains(curr, new_root):
                    continue
                curr = self._add_center(curr, new_root, index)
                self.nodes[curr].available_constants.add(constant)
                self._enqueue(curr)
                inserted = True

        if inserted:
            self._enqueue(index)

    def _identity_decomposition(self, index: int, leaves: List[int]):
        tree = self.nodes[index]
        if tree.node.node_type != NodeType.IDENTITY:
            raise ContractViolationException(f"identity decomposition expects an identity node but got {tree.node.node_type}")

        constant_one = tree.node.get_child(0).symbol
        constant_two = tree.node.get_child(1).symbol
        if constant_one == constant_two:
            return
        tree.substitutions.setdefault(constant_one, set()).add(constant_two)
        tree.substitutions.setdefault(constant_two, set()).add(constant_one)

        inserted = False
        for leaf in leaves:
            end = leaf
            curr = leaf
            while curr is not None and not self.nodes[end].closed:
                wff = self.nodes[curr].node
                curr = self.nodes[curr].parent
                if not wff.is_closable():
                    continue
                for target, replacements in sorted(tree.substitutions.items()):
                    if self.nodes[end].closed or not contains_symbol(wff, target):
                        continue
                    for replacement in sorted(replacements):
                        new_leaf = substitute(wff, target, replacement)
                        trivial = new_leaf.is_identity() and new_leaf.get_child(0).string_equals(new_leaf.get_child(1))
                        if trivial or self.tree_contains(end, new_leaf):
                            continue
                        end = self._add_center(end, new_leaf, index)
                        self._enqueue(end)
                        inserted = True
                        if self.nodes[end].closed:
                            break

        if inserted:
            self._enqueue(index)

    # --- output ----------------------------------------------------------

    def traverse(self) -> Iterator[TableauRow]:
        """Pre-order walk of the finished tree for printers."""
        stack = [(self.root, 0)]
        while stack:
            index, depth = stack.pop()
            tree = self.nodes[index]
            if tree.is_leaf_node():
                shape = "leaf"
            elif tree.right is not None:
                shape = "branch"
            else:
                shape = "stack"
            derived = self.nodes[tree.derived_parent].identifier if tree.derived_parent is not None else None
            yield TableauRow(identifier=tree.identifier, depth=depth, formula=wff2sentence(tree.node),
                             shape=shape, closed=tree.closed, repeatable=tree.is_repeatable(),
                             derived_from=derived)
            if tree.right is not None:
                stack.append((tree.right, depth + 1))
            if tree.left is not None:
                stack.append((tree.left, depth + 1))


class ClosedTreeDeterminer:
    """Answers whether the leaves of a built tableau are closed."""

    def __init__(self, tree):
        if isinstance(tree, WffTree):
            tree = Tableau(tree)
            tree.build()
        self.tree: Tableau = tree

    def _leaves(self) -> Iterator[TruthTree]:
        queue = deque([self.tree.root])
        while len(queue) > 0:
            t = self.tree.nodes[queue.popleft()]
            if t.is_leaf_node():
                yield t
            if t.left is not None:
                queue.append(t.left)
            if t.right is not None:
                queue.append(t.right)

    def has_all_closed(self) -> bool:
        return all(leaf.closed for leaf in self._leaves())

    def has_some_closed(self) -> bool:
        return any(leaf.closed for leaf in self._leaves())


def validate_argument(premises: List[WffTree], conclusion: WffTree,
                      context: Optional[ProofContext] = None) -> TableauResult:
    """Refutation check: premises together with the negated conclusion.

    The argument is valid when every branch closes and the build did not time out.
    """
    formulas = [strip_root(premise) for premise in premises] + [negate(strip_root(conclusion))]
    return Tableau.from_chain(formulas, context).build()


def prove_with_premises(premises: List[WffTree], conclusion: WffTree,
                        context: Optional[ProofContext] = None) -> Tuple[bool, List[List[WffTree]]]:
    """Returns (is_proved, open branches) for ``premises ⊢ conclusion``."""
    formulas = [strip_root(premise) for premise in premises] + [negate(strip_root(conclusion))]
    tableau = Tableau.from_chain(formulas, context)
    result = tableau.build()
    return (result.all_closed and not result.timed_out, tableau.open_branches())
