from enum import Enum
from typing import List, Optional, Tuple
import re


class ContractViolationException(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


_default_symbols = {
    'neg': '¬',
    'and': '∧',
    'or': '∨',
    'imp': '→',
    'bicond': '↔',
    'xor': '⊕',
    'identity': '=',
    'all': '∀',
    'some': '∃',
    'false': '⊥'
}

# every spelling of a connective collapses onto one token; bicond before imp so "<->" survives
_standard_equivalents: List[Tuple[str, str]] = [
    (r"[⇔≡↔]|<->|<>|iff|IFF", "↔"),
    (r"[⊻≢⩒↮⊕]|xor|XOR", "⊕"),
    (r"[→⇒⊃]|->|>|implies|IMPLIES", "→"),
    (r"[~¬!]|not|NOT", "~"),
    (r"[∧^⋅&]|and|AND", "&"),
    (r"\|\||\||\+|[∨]|or|OR", "∨"),
    (r"[()]", "#"),
]
_standard_patterns = [(re.compile(pattern), token) for pattern, token in _standard_equivalents]

CONSTANT_SYMBOLS = "abcdefghijklmnopqrst"


class NodeType(Enum):
    ROOT = "root"
    ATOM = "atom"
    PREDICATE = "predicate"
    VARIABLE = "variable"
    CONSTANT = "constant"
    NEG = "neg"
    AND = "and"
    OR = "or"
    IMP = "imp"
    BICOND = "bicond"
    XOR = "xor"
    IDENTITY = "identity"
    UNIVERSAL = "all"
    EXISTENTIAL = "some"
    FALSE = "false"

    def is_unary_ops(self) -> bool:
        return self == NodeType.NEG

    def is_binary_ops(self) -> bool:
        return self in {
            NodeType.AND, NodeType.OR, NodeType.IMP,
            NodeType.BICOND, NodeType.XOR, NodeType.IDENTITY
        }

    def is_quantifiers(self) -> bool:
        return self in {NodeType.UNIVERSAL, NodeType.EXISTENTIAL}

    def is_terms(self) -> bool:
        return self in {NodeType.VARIABLE, NodeType.CONSTANT}


_standard_tokens = {
    NodeType.NEG: "~",
    NodeType.AND: "&",
    NodeType.OR: "∨",
    NodeType.IMP: "→",
    NodeType.BICOND: "↔",
    NodeType.XOR: "⊕",
}


def standardize(text: str) -> str:
    """Canonical projection of a formula string.

    Whitespace is dropped, each connective spelling becomes a single token
    and both parentheses become ``#``.
    """
    s = re.sub(r"\s+", "", text)
    for pattern, token in _standard_patterns:
        s = pattern.sub(token, s)
    return s


class WffTree:
    """A well-formed formula node.

    One class covers every formula kind; ``node_type`` is the tag and the
    ``is_*`` predicates are the only way the engines inspect it.
    """

    def __init__(self, node_type: NodeType = NodeType.ROOT, symbol: Optional[str] = None,
                 children: Optional[List['WffTree']] = None, variable_symbol: Optional[str] = None):
        self.node_type = node_type
        self.symbol = symbol
        self.children: List[WffTree] = list(children) if children else []
        self.variable_symbol = None
        if node_type.is_quantifiers():
            if variable_symbol is None or len(variable_symbol) != 1:
                raise ContractViolationException(
                    f"Variable for quantifier can only be one character long, got {variable_symbol!r}")
            self.variable_symbol = variable_symbol

    def __repr__(self):
        return f"WffTree({self.node_type.value}, {self.string_rep()!r})"

    def __str__(self):
        return self.string_rep()

    # --- structure ------------------------------------------------------

    def copy(self) -> 'WffTree':
        return WffTree(self.node_type, self.symbol,
                       [child.copy() for child in self.children], self.variable_symbol)

    def get_child(self, i: int) -> Optional['WffTree']:
        if 0 <= i < len(self.children):
            return self.children[i]
        return None

    def set_child(self, i: int, node: 'WffTree'):
        self.children[i] = node

    def add_child(self, node: 'WffTree'):
        self.children.append(node)

    # --- kinds ----------------------------------------------------------

    def is_root(self) -> bool:
        return self.node_type == NodeType.ROOT

    def is_atom(self) -> bool:
        return self.node_type == NodeType.ATOM

    def is_predicate(self) -> bool:
        return self.node_type == NodeType.PREDICATE

    def is_variable(self) -> bool:
        return self.node_type == NodeType.VARIABLE

    def is_constant(self) -> bool:
        return self.node_type == NodeType.CONSTANT

    def is_negation(self) -> bool:
        return self.node_type == NodeType.NEG

    def is_and(self) -> bool:
        return self.node_type == NodeType.AND

    def is_or(self) -> bool:
        return self.node_type == NodeType.OR

    def is_imp(self) -> bool:
        return self.node_type == NodeType.IMP

    def is_bicond(self) -> bool:
        return self.node_type == NodeType.BICOND

    def is_exclusive_or(self) -> bool:
        return self.node_type == NodeType.XOR

    def is_identity(self) -> bool:
        return self.node_type == NodeType.IDENTITY

    def is_false(self) -> bool:
        return self.node_type == NodeType.FALSE

    def is_existential(self) -> bool:
        return self.node_type == NodeType.EXISTENTIAL

    def is_universal(self) -> bool:
        return self.node_type == NodeType.UNIVERSAL

    def is_quantifier(self) -> bool:
        return self.node_type.is_quantifiers()

    def is_binary_op(self) -> bool:
        return self.node_type.is_binary_ops()

    def _is_neg_of(self, node_type: NodeType) -> bool:
        return (self.node_type == NodeType.NEG
                and self.get_child(0) is not None
                and self.get_child(0).node_type == node_type)

    def is_double_negation(self) -> bool:
        return self._is_neg_of(NodeType.NEG)

    def is_neg_predicate(self) -> bool:
        return self._is_neg_of(NodeType.PREDICATE)

    def is_neg_and(self) -> bool:
        return self._is_neg_of(NodeType.AND)

    def is_neg_or(self) -> bool:
        return self._is_neg_of(NodeType.OR)

    def is_neg_imp(self) -> bool:
        return self._is_neg_of(NodeType.IMP)

    def is_neg_bicond(self) -> bool:
        return self._is_neg_of(NodeType.BICOND)

    def is_neg_exclusive_or(self) -> bool:
        return self._is_neg_of(NodeType.XOR)

    def is_neg_identity(self) -> bool:
        return self._is_neg_of(NodeType.IDENTITY)

    def is_neg_quantifier(self) -> bool:
        return self.is_negation() and self.get_child(0) is not None and self.get_child(0).is_quantifier()

    def is_closable(self) -> bool:
        """Atoms, predicates, identities and single negations of those."""
        if self.is_atom() or self.is_predicate() or self.is_identity():
            return True
        child = self.get_child(0)
        return self.is_negation() and child is not None \
            and (child.is_atom() or child.is_predicate() or child.is_identity())

    def is_predicate_wff(self) -> bool:
        if self.is_predicate() or self.is_quantifier() or self.is_identity():
            return True
        return any(child.is_predicate_wff() for child in self.children)

    def is_propositional_wff(self) -> bool:
        return not self.is_predicate_wff()

    # --- string projection ---------------------------------------------

    def string_rep(self) -> str:
        t = self.node_type
        if t in {NodeType.ATOM, NodeType.VARIABLE, NodeType.CONSTANT}:
            return self.symbol
        if t == NodeType.PREDICATE:
            return self.symbol + "".join(child.string_rep() for child in self.children)
        if t == NodeType.FALSE:
            return self.symbol or _default_symbols['false']
        if t == NodeType.NEG:
            return (self.symbol or _default_symbols['neg']) + self.children[0].string_rep()
        if t == NodeType.IDENTITY:
            return f"{self.children[0].string_rep()}{self.symbol or '='}{self.children[1].string_rep()}"
        if t.is_binary_ops():
            op = self.symbol or _default_symbols[t.value]
            return f"({self.children[0].string_rep()}{op}{self.children[1].string_rep()})"
        if t.is_quantifiers():
            return f"({self.symbol or _default_symbols[t.value]}{self.variable_symbol})" \
                   + self.children[0].string_rep()
        return "".join(child.string_rep() for child in self.children)

    def standard_rep(self) -> str:
        """Same projection as ``standardize(self.string_rep())``, built node by node.

        Rendering per node keeps term letters (``o``, ``r``, ``n``...) from
        being read as a spelled-out connective.
        """
        t = self.node_type
        if t in {NodeType.ATOM, NodeType.VARIABLE, NodeType.CONSTANT}:
            return self.symbol
        if t == NodeType.PREDICATE:
            return self.symbol + "".join(child.standard_rep() for child in self.children)
        if t == NodeType.FALSE:
            return _default_symbols['false']
        if t == NodeType.NEG:
            return _standard_tokens[t] + self.children[0].standard_rep()
        if t == NodeType.IDENTITY:
            return f"{self.children[0].standard_rep()}={self.children[1].standard_rep()}"
        if t.is_binary_ops():
            return f"#{self.children[0].standard_rep()}{_standard_tokens[t]}{self.children[1].standard_rep()}#"
        if t.is_quantifiers():
            return f"#{_default_symbols[t.value]}{self.variable_symbol}#" + self.children[0].standard_rep()
        return "".join(child.standard_rep() for child in self.children)

    def string_equals(self, other: 'WffTree') -> bool:
        """Structural equality on the canonical string projection.

        Identities compare commutatively, also under a single negation.
        """
        if not isinstance(other, WffTree):
            raise ContractViolationException(f"Cannot compare WffTree with {type(other)}")
        if self.standard_rep() == other.standard_rep():
            return True
        if self.is_identity() and other.is_identity():
            return _identity_swapped(self).standard_rep() == other.standard_rep()
        if self.is_neg_identity() and other.is_neg_identity():
            return _identity_swapped(self.children[0]).standard_rep() == other.children[0].standard_rep()
        return False


def _identity_swapped(node: WffTree) -> WffTree:
    return WffTree(NodeType.IDENTITY, node.symbol, [node.children[1].copy(), node.children[0].copy()])


# --- builders -----------------------------------------------------------

def atom(letter: str) -> WffTree:
    return WffTree(NodeType.ATOM, letter)


def variable(symbol: str) -> WffTree:
    return WffTree(NodeType.VARIABLE, symbol)


def constant(symbol: str) -> WffTree:
    return WffTree(NodeType.CONSTANT, symbol)


def term(symbol: str) -> WffTree:
    # lower-case letters a..t are constants, the rest are variables
    if symbol in CONSTANT_SYMBOLS:
        return constant(symbol)
    return variable(symbol)


def predicate(letter: str, *params) -> WffTree:
    children = [term(p) if isinstance(p, str) else p for p in params]
    return WffTree(NodeType.PREDICATE, letter, children)


def neg(child: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.NEG, symbol, [child])


def conj(left: WffTree, right: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.AND, symbol, [left, right])


def disj(left: WffTree, right: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.OR, symbol, [left, right])


def imp(left: WffTree, right: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.IMP, symbol, [left, right])


def bicond(left: WffTree, right: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.BICOND, symbol, [left, right])


def xor(left: WffTree, right: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.XOR, symbol, [left, right])


def identity(left, right) -> WffTree:
    left = term(left) if isinstance(left, str) else left
    right = term(right) if isinstance(right, str) else right
    return WffTree(NodeType.IDENTITY, "=", [left, right])


def forall(var: str, body: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.UNIVERSAL, symbol, [body], variable_symbol=var)


def exists(var: str, body: WffTree, symbol: Optional[str] = None) -> WffTree:
    return WffTree(NodeType.EXISTENTIAL, symbol, [body], variable_symbol=var)


def falsum() -> WffTree:
    return WffTree(NodeType.FALSE, _default_symbols['false'])


def root(child: WffTree) -> WffTree:
    return WffTree(NodeType.ROOT, None, [child])


def strip_root(tree: WffTree) -> WffTree:
    while tree.is_root() and tree.get_child(0) is not None:
        tree = tree.get_child(0)
    return tree


def split_argument(trees: List[WffTree]) -> Tuple[List[WffTree], WffTree]:
    """All trees but the last are premises, the last one is the conclusion."""
    if len(trees) == 0:
        raise ContractViolationException("an argument needs at least a conclusion")
    trees = [strip_root(tree) for tree in trees]
    return trees[:-1], trees[-1]


# --- negation helpers ---------------------------------------------------

def negate(tree: WffTree) -> WffTree:
    return neg(tree.copy())


def negation_depth(tree: WffTree) -> int:
    """Longest run of directly stacked negations anywhere in ``tree``."""
    run = 0
    node = tree
    while node.is_negation():
        run += 1
        node = node.get_child(0)
    return max([run] + [negation_depth(child) for child in node.children])


def flip(tree: WffTree) -> WffTree:
    """Formula equivalent to ``¬tree`` with the negation pushed one level in."""
    t = tree.node_type
    if t == NodeType.NEG:
        return tree.children[0].copy()
    if t in {NodeType.AND, NodeType.OR, NodeType.IMP, NodeType.BICOND, NodeType.XOR}:
        a, b = tree.children[0], tree.children[1]
        if t == NodeType.AND:
            return disj(negate(a), negate(b))
        if t == NodeType.OR:
            return conj(negate(a), negate(b))
        if t == NodeType.IMP:
            return conj(a.copy(), negate(b))
        if t == NodeType.BICOND:
            return disj(conj(a.copy(), negate(b)), conj(negate(a), b.copy()))
        return bicond(a.copy(), b.copy())
    return negate(tree)


def flip_quantifier(tree: WffTree) -> WffTree:
    """``∀x φ`` becomes ``∃x ¬φ`` and ``∃x φ`` becomes ``∀x ¬φ``."""
    if tree.is_universal():
        return exists(tree.variable_symbol, negate(tree.children[0]))
    if tree.is_existential():
        return forall(tree.variable_symbol, negate(tree.children[0]))
    raise ContractViolationException(f"expected a quantifier but got {tree.node_type}")


def subformulas(tree: WffTree) -> List[WffTree]:
    result = [tree]
    if tree.node_type.is_terms() or tree.is_predicate():
        return result
    for child in tree.children:
        result.extend(subformulas(child))
    return result
