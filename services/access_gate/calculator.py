"""
Arithmetic for the calculator disguise.

Only numbers, + - * / and unary signs are accepted; the expression is
parsed with ast and walked by hand, never handed to eval().
"""

import ast
import math
import operator
from typing import Union

Number = Union[int, float]

# Longer than any calculator display
MAX_EXPRESSION_LENGTH = 100

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class CalculationError(ValueError):
    pass


def _divide(left: Number, right: Number) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1, right)
    return left / right


def _eval(node: ast.AST) -> Number:
    if isinstance(node, ast.Expression):
        return _eval(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        left, right = _eval(node.left), _eval(node.right)
        if isinstance(node.op, ast.Div):
            return _divide(left, right)
        return _BINARY[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY:
        return _UNARY[type(node.op)](_eval(node.operand))
    raise CalculationError("Invalid calculation")


def evaluate(expression: str) -> Number:
    expression = (expression or "").strip()
    if not expression or len(expression) > MAX_EXPRESSION_LENGTH:
        raise CalculationError("Invalid calculation")
    try:
        tree = ast.parse(expression, mode="eval")
    except (SyntaxError, ValueError, RecursionError, MemoryError) as e:
        raise CalculationError("Invalid calculation") from e
    try:
        return _eval(tree)
    except (RecursionError, MemoryError) as e:
        raise CalculationError("Invalid calculation") from e


def format_result(value: Number) -> str:
    """Render like a pocket calculator: 15 not 15.0, Infinity for 1/0."""
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)
