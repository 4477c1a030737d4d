"""Expression evaluation for log context declarations.

The injector only depends on the ``ExpressionEvaluator`` protocol. The default
``SimpleExpressionEvaluator`` understands a small SpEL-flavoured language:

    #id                    bound argument ``id``
    #customer.name         attribute (or mapping key) of a bound argument
    #items[0], #data['k']  subscripts
    'text', "text", 42     literals, plus null / true / false
    #a == #b, not #flag    comparisons, boolean and arithmetic operators
    #a if #flag else #b    conditionals

Anything else (calls, lambdas, comprehensions, private attributes) is
rejected with ``ExpressionEvaluationError``.
"""

from __future__ import annotations

import ast
import operator
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Protocol, runtime_checkable

from logcontext.main.exceptions import ExpressionEvaluationError

_ARG_PREFIX = "__arg__"

_LITERALS = {
    "null": None,
    "true": True,
    "false": False,
}

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}

_UNARY_OPERATORS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_COMPARISONS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


@runtime_checkable
class ExpressionEvaluator(Protocol):
    def evaluate(self, expression: str, bindings: Mapping[str, Any]) -> Any:
        """Return the value of ``expression`` or raise ``ExpressionEvaluationError``."""
        ...


def _rewrite_references(expression: str) -> str:
    """Turn ``#name`` references into plain identifiers, leaving string literals alone."""
    out = []
    quote = None
    i = 0
    length = len(expression)
    while i < length:
        char = expression[i]
        if quote is not None:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(expression[i + 1])
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
            out.append(char)
        elif char == "#":
            following = expression[i + 1 : i + 2]
            if not (following.isalpha() or following == "_"):
                raise ExpressionEvaluationError(expression, "'#' must be followed by a name")
            out.append(_ARG_PREFIX)
        else:
            out.append(char)
        i += 1

    if quote is not None:
        raise ExpressionEvaluationError(expression, "unterminated string literal")
    return "".join(out)


@lru_cache(maxsize=512)
def _compile(expression: str) -> ast.Expression:
    if not expression:
        raise ExpressionEvaluationError(expression, "empty expression")
    source = _rewrite_references(expression)
    try:
        return ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise ExpressionEvaluationError(expression, f"syntax error: {e.msg}") from e


def _read_property(value: Any, name: str, expression: str) -> Any:
    if value is None:
        raise ExpressionEvaluationError(
            expression, f"cannot read property '{name}' of null"
        )
    if name.startswith("_"):
        raise ExpressionEvaluationError(expression, f"property '{name}' is not accessible")
    if isinstance(value, Mapping) and name in value:
        return value[name]
    try:
        return getattr(value, name)
    except AttributeError:
        raise ExpressionEvaluationError(
            expression,
            f"property '{name}' cannot be found on object of type '{type(value).__name__}'",
        ) from None


class SimpleExpressionEvaluator:
    def evaluate(self, expression: str, bindings: Mapping[str, Any]) -> Any:
        tree = _compile(expression)
        try:
            return self._eval(tree.body, bindings, expression)
        except ExpressionEvaluationError:
            raise
        except (TypeError, ValueError, ArithmeticError, LookupError) as e:
            raise ExpressionEvaluationError(expression, str(e)) from e

    def _eval(self, node: ast.AST, bindings: Mapping[str, Any], expression: str) -> Any:
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            if node.id.startswith(_ARG_PREFIX):
                name = node.id[len(_ARG_PREFIX) :]
                if name not in bindings:
                    raise ExpressionEvaluationError(expression, f"unknown variable '#{name}'")
                return bindings[name]
            if node.id in _LITERALS:
                return _LITERALS[node.id]
            raise ExpressionEvaluationError(expression, f"unknown reference '{node.id}'")

        if isinstance(node, ast.Attribute):
            value = self._eval(node.value, bindings, expression)
            return _read_property(value, node.attr, expression)

        if isinstance(node, ast.Subscript):
            value = self._eval(node.value, bindings, expression)
            if value is None:
                raise ExpressionEvaluationError(expression, "cannot index into null")
            index = self._eval(node.slice, bindings, expression)
            return value[index]

        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
            operand = self._eval(node.operand, bindings, expression)
            return _UNARY_OPERATORS[type(node.op)](operand)

        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
            left = self._eval(node.left, bindings, expression)
            right = self._eval(node.right, bindings, expression)
            return _BINARY_OPERATORS[type(node.op)](left, right)

        if isinstance(node, ast.BoolOp):
            result = None
            for operand in node.values:
                result = self._eval(operand, bindings, expression)
                if isinstance(node.op, ast.And) and not result:
                    return result
                if isinstance(node.op, ast.Or) and result:
                    return result
            return result

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, bindings, expression)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, bindings, expression)
                if not _COMPARISONS[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            if self._eval(node.test, bindings, expression):
                return self._eval(node.body, bindings, expression)
            return self._eval(node.orelse, bindings, expression)

        if isinstance(node, (ast.Tuple, ast.List)):
            return [self._eval(element, bindings, expression) for element in node.elts]

        raise ExpressionEvaluationError(
            expression, f"unsupported syntax '{type(node).__name__}'"
        )
