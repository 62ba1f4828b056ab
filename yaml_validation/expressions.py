"""
Restricted expression evaluation for the `sub` criterion.

A `sub` rule is a small predicate over the candidate value:

    age:
      sub: "int(value) % 2 == 0 and value != '0'"

Expressions are parsed with `ast` and walked node by node; nothing is ever
passed to eval(). Only these names exist: `value` and `_` (both bound to
the candidate), plus the whitelisted functions in FUNCTIONS. Attribute
access, comprehensions, lambdas and any other name raise ExpressionError.
"""

import ast
import operator
import re
from functools import lru_cache
from typing import Any

from .errors import ExpressionError

COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

UNARY_OPS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

FUNCTIONS = {
    "len": len,
    "int": int,
    "float": float,
    "str": str,
    "abs": abs,
    "bool": bool,
    "lower": lambda s: str(s).lower(),
    "upper": lambda s: str(s).upper(),
    "match": lambda pattern, s: re.search(pattern, str(s)) is not None,
}

VALUE_NAMES = ("value", "_")

MAX_SEQUENCE_LENGTH = 100000


@lru_cache(maxsize=256)
def compile_expression(expression: str) -> ast.Expression:
    """
    Parse an expression and reject anything outside the permitted subset.

    Raises:
        ExpressionError: On syntax errors or disallowed constructs
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"Invalid sub expression {expression!r}: {e.msg}") from e

    for node in ast.walk(tree):
        _check_node(node, expression)
    return tree


def _check_node(node, expression):
    allowed = (
        ast.Expression, ast.Constant, ast.Name, ast.Load, ast.Compare,
        ast.BoolOp, ast.And, ast.Or, ast.UnaryOp, ast.BinOp, ast.Call,
        ast.Subscript, ast.Slice, ast.List, ast.Tuple, ast.Set, ast.IfExp,
    )
    operators = tuple(COMPARE_OPS) + tuple(BINARY_OPS) + tuple(UNARY_OPS)
    if isinstance(node, operators):
        return
    if not isinstance(node, allowed):
        raise ExpressionError(
            f"Unsupported construct {type(node).__name__} in sub expression {expression!r}"
        )
    if isinstance(node, ast.Name) and node.id not in VALUE_NAMES and node.id not in FUNCTIONS:
        raise ExpressionError(f"Unauthorized name {node.id!r} in sub expression {expression!r}")
    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            raise ExpressionError(f"Only whitelisted functions may be called in {expression!r}")
        if node.keywords:
            raise ExpressionError(f"Keyword arguments are not allowed in {expression!r}")


def evaluate(expression: str, value: Any) -> bool:
    """
    Evaluate a `sub` expression against a candidate value.

    Errors raised while computing (int("abc"), "a" < 1, division by zero)
    make the expression false; only malformed expressions raise.

    Args:
        expression: Expression source from the rule set
        value: Candidate value, bound to `value` and `_`

    Returns:
        Truthiness of the expression result

    Raises:
        ExpressionError: If the expression is malformed or not permitted
    """
    tree = compile_expression(expression)
    try:
        return bool(_eval(tree.body, value))
    except ExpressionError:
        raise
    except (TypeError, ValueError, ArithmeticError, LookupError, re.error):
        return False


def _eval(node, value):
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        if node.id in VALUE_NAMES:
            return value
        return FUNCTIONS[node.id]
    if isinstance(node, (ast.List, ast.Tuple)):
        return [_eval(elt, value) for elt in node.elts]
    if isinstance(node, ast.Set):
        return {_eval(elt, value) for elt in node.elts}
    if isinstance(node, ast.Compare):
        left = _eval(node.left, value)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, value)
            if not COMPARE_OPS[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result = True
            for operand in node.values:
                result = _eval(operand, value)
                if not result:
                    return result
            return result
        result = False
        for operand in node.values:
            result = _eval(operand, value)
            if result:
                return result
        return result
    if isinstance(node, ast.UnaryOp):
        return UNARY_OPS[type(node.op)](_eval(node.operand, value))
    if isinstance(node, ast.BinOp):
        left, right = _eval(node.left, value), _eval(node.right, value)
        _check_size(node.op, left, right)
        return BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.IfExp):
        return _eval(node.body, value) if _eval(node.test, value) else _eval(node.orelse, value)
    if isinstance(node, ast.Subscript):
        return _eval(node.value, value)[_eval(node.slice, value)]
    if isinstance(node, ast.Slice):
        return slice(
            _eval(node.lower, value) if node.lower else None,
            _eval(node.upper, value) if node.upper else None,
            _eval(node.step, value) if node.step else None,
        )
    if isinstance(node, ast.Call):
        func = FUNCTIONS[node.func.id]
        return func(*[_eval(arg, value) for arg in node.args])
    raise ExpressionError(f"Unsupported expression type: {type(node).__name__}")


def _check_size(op, left, right):
    """Sequences built by * and + are capped so an expression can't exhaust memory."""
    size = None
    if isinstance(op, ast.Mult):
        for seq, count in ((left, right), (right, left)):
            if isinstance(seq, (str, list)) and isinstance(count, int):
                size = len(seq) * count
    elif isinstance(op, ast.Add) and isinstance(left, (str, list)) and isinstance(right, (str, list)):
        size = len(left) + len(right)
    if size is not None and size > MAX_SEQUENCE_LENGTH:
        raise ExpressionError(f"Sequences longer than {MAX_SEQUENCE_LENGTH} are not allowed")
