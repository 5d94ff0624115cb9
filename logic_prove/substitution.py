from typing import Iterable, Set
from logic_prove import WffTree, NodeType, CONSTANT_SYMBOLS, ContractViolationException, constant, variable


class ConstantExhaustedException(Exception):
    def __init__(self, message="all constants from a to t are in use"):
        super().__init__(message)
        self.message = message


def allocate_constant(unavailable: Iterable[str]) -> str:
    """First constant of ``a``..``t`` that is not in ``unavailable``.

    Twenty symbols is a hard ceiling; running out raises
    ``ConstantExhaustedException`` and the caller decides what that means.
    """
    used = set(unavailable)
    for ch in CONSTANT_SYMBOLS:
        if ch not in used:
            return ch
    raise ConstantExhaustedException()


def _replace_symbol(node: WffTree, target: str, replacement: str, as_constant: bool):
    for i, child in enumerate(node.children):
        if child.node_type.is_terms():
            if child.symbol == target:
                node.set_child(i, constant(replacement) if as_constant else variable(replacement))
        else:
            _replace_symbol(child, target, replacement, as_constant)


def substitute(tree: WffTree, target: str, replacement: str, as_constant: bool = True) -> WffTree:
    """Copy of ``tree`` with every variable/constant leaf named ``target`` replaced."""
    new_tree = tree.copy()
    if new_tree.node_type.is_terms():
        if new_tree.symbol == target:
            return constant(replacement) if as_constant else variable(replacement)
        return new_tree
    _replace_symbol(new_tree, target, replacement, as_constant)
    return new_tree


def instantiate(quantifier: WffTree, symbol: str) -> WffTree:
    """Body of ``quantifier`` with its bound variable replaced by the constant ``symbol``."""
    if not quantifier.is_quantifier():
        raise ContractViolationException(f"No instance for {quantifier.node_type}")
    return substitute(quantifier.get_child(0), quantifier.variable_symbol, symbol)


def collect_constants(tree: WffTree, constants: Set[str] = None) -> Set[str]:
    if constants is None:
        constants = set()
    if tree.node_type == NodeType.CONSTANT:
        constants.add(tree.symbol)
    for child in tree.children:
        collect_constants(child, constants)
    return constants


def contains_symbol(tree: WffTree, symbol: str) -> bool:
    if tree.node_type.is_terms():
        return tree.symbol == symbol
    return any(contains_symbol(child, symbol) for child in tree.children)
