from logic_prove import WffTree, NodeType, strip_root, _default_symbols


class Formula2StringConvertException(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


def operation2string(node_type: NodeType) -> str:
    return _default_symbols[node_type.value]


def _wrap(formula: WffTree) -> str:
    sentence = wff2sentence(formula)
    if formula.is_binary_op() and not formula.is_identity():
        return f"({sentence})"
    return sentence


def wff2sentence(formula: WffTree) -> str:
    """Printable form of a formula with the standard connective symbols."""
    formula = strip_root(formula)
    t = formula.node_type
    if t in {NodeType.ATOM, NodeType.VARIABLE, NodeType.CONSTANT}:
        return formula.symbol
    if t == NodeType.FALSE:
        return operation2string(t)
    if t == NodeType.PREDICATE:
        if len(formula.children) == 0:
            return formula.symbol
        return f"{formula.symbol}({', '.join(wff2sentence(param) for param in formula.children)})"
    if t.is_quantifiers():
        return f"{operation2string(t)}{formula.variable_symbol} {_wrap(formula.children[0])}"
    if t.is_unary_ops():
        if formula.children[0].is_identity():
            return f"{operation2string(t)}({wff2sentence(formula.children[0])})"
        return f"{operation2string(t)}{_wrap(formula.children[0])}"
    if t.is_binary_ops() and len(formula.children) == 2:
        return f"{_wrap(formula.children[0])} {operation2string(t)} {_wrap(formula.children[1])}"
    raise Formula2StringConvertException(f"formula to string convert error: {formula!r}")
