"""Small expression language used by table filters and jump conditions.

Expressions use Python syntax but are never compiled to code: the source is
parsed with :mod:`ast`, checked against a closed set of node types, and then
interpreted against an explicit :class:`Environment`.
"""

import ast
import math
import operator
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from function_registry import FunctionRegistry, compare_values, parse_number
from table_errors import EvaluationError, ParseError, RegistryContextError, TableError

_ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.BinOp,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.Compare,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
    ast.In,
    ast.NotIn,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Subscript,
    ast.Slice,
)

_BINOPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_ORDERING = {
    ast.Lt: lambda c: c < 0,
    ast.LtE: lambda c: c <= 0,
    ast.Gt: lambda c: c > 0,
    ast.GtE: lambda c: c >= 0,
}

_CELL_NAME_RE = re.compile(r"^c(\d+)n?$")
_MAX_REPEAT = 10_000


@dataclass
class Environment:
    variables: dict = field(default_factory=dict)
    row: Optional[list] = None
    session: Any = None


def bind(row, row_index: int, column_count: int) -> Environment:
    """Bind ``c<N>``, ``c<N>n``, ``n`` and ``row`` for one data row."""
    variables = {"n": row_index, "row": list(row), "ncols": column_count}
    for idx in range(1, column_count + 1):
        text = row[idx - 1] if idx <= len(row) else ""
        variables[f"c{idx}"] = text if text != "" else None
        variables[f"c{idx}n"] = parse_number(text)
    return Environment(variables=variables, row=list(row))


def truthy(value) -> bool:
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_repeat(left, right):
    for seq, count in ((left, right), (right, left)):
        if isinstance(seq, (str, list, tuple)) and isinstance(count, int) and count > _MAX_REPEAT:
            raise OverflowError(f"repetition count {count} is too large")


class Expression:
    def __init__(self, source: str, registry: FunctionRegistry):
        self.source = source
        self.registry = registry
        text = (source or "").strip()
        if not text:
            raise ParseError("empty expression", source)
        try:
            self.tree = ast.parse(text, mode="eval")
        except SyntaxError:
            raise ParseError("invalid expression", source) from None
        self._validate()

    def __repr__(self):
        return f"Expression({self.source!r})"

    def _validate(self):
        for node in ast.walk(self.tree):
            if not isinstance(node, _ALLOWED_NODES):
                fragment = ast.get_source_segment(self.source.strip(), node)
                raise ParseError(
                    f"unsupported syntax {type(node).__name__}", fragment or self.source
                )
            if isinstance(node, ast.Call):
                self._validate_call(node)

    def _validate_call(self, node: ast.Call):
        if not isinstance(node.func, ast.Name):
            raise ParseError("only named functions can be called", self.source)
        if node.keywords:
            raise ParseError("keyword arguments are not supported", self.source)
        name = node.func.id
        if self.registry.is_foreign(name):
            raise RegistryContextError(
                f"function {name!r} is not available in {self.registry.context} expressions",
                self.source,
            )
        binding = self.registry.get(name)
        if binding is not None and not binding.accepts(len(node.args)):
            raise ParseError(
                f"{name} takes {binding.arity} argument(s), got {len(node.args)}",
                self.source,
            )

    def evaluate(self, env: Environment):
        try:
            return self._eval(self.tree.body, env)
        except TableError:
            raise
        except (TypeError, ValueError, ArithmeticError, IndexError, KeyError, re.error) as e:
            raise EvaluationError(f"error evaluating {self.source!r}: {e}") from e

    def matches(self, env: Environment) -> bool:
        return truthy(self.evaluate(env))

    # ---------- interpreter ----------
    def _eval(self, node, env):
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            return self._lookup(node.id, env)

        if isinstance(node, ast.BoolOp):
            value = None
            for child in node.values:
                value = self._eval(child, env)
                if isinstance(node.op, ast.And) and not truthy(value):
                    return value
                if isinstance(node.op, ast.Or) and truthy(value):
                    return value
            return value

        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand, env)
            if isinstance(node.op, ast.Not):
                return not truthy(operand)
            number = operand if _is_number(operand) else parse_number(operand)
            return -number if isinstance(node.op, ast.USub) else number

        if isinstance(node, ast.BinOp):
            left = self._eval(node.left, env)
            right = self._eval(node.right, env)
            if isinstance(node.op, ast.Pow) and _is_number(left) and _is_number(right):
                # float power overflows instead of growing without bound
                return math.pow(left, right)
            if isinstance(node.op, ast.Mult):
                _check_repeat(left, right)
            return _BINOPS[type(node.op)](left, right)

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, env)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, env)
                if not self._compare(op, left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            if truthy(self._eval(node.test, env)):
                return self._eval(node.body, env)
            return self._eval(node.orelse, env)

        if isinstance(node, ast.Call):
            return self._call(node, env)

        if isinstance(node, ast.List):
            return [self._eval(elt, env) for elt in node.elts]

        if isinstance(node, ast.Tuple):
            return tuple(self._eval(elt, env) for elt in node.elts)

        if isinstance(node, ast.Subscript):
            container = self._eval(node.value, env)
            return container[self._eval(node.slice, env)]

        if isinstance(node, ast.Slice):
            return slice(
                self._eval(node.lower, env) if node.lower else None,
                self._eval(node.upper, env) if node.upper else None,
                self._eval(node.step, env) if node.step else None,
            )

        raise EvaluationError(f"cannot evaluate {type(node).__name__} in {self.source!r}")

    def _lookup(self, name, env):
        if name in env.variables:
            return env.variables[name]
        if _CELL_NAME_RE.match(name):
            raise EvaluationError(f"column binding {name!r} is outside the table")
        raise EvaluationError(f"unbound name {name!r} in {self.source!r}")

    def _compare(self, op, left, right) -> bool:
        if isinstance(op, (ast.In, ast.NotIn)):
            found = left in right
            return found if isinstance(op, ast.In) else not found
        if isinstance(op, (ast.Eq, ast.NotEq)):
            if _is_number(left) != _is_number(right) and None not in (left, right):
                equal = compare_values(left, right) == 0
            else:
                equal = left == right
            return equal if isinstance(op, ast.Eq) else not equal
        if _is_number(left) and _is_number(right):
            result = (left > right) - (left < right)
            if math.isnan(left) or math.isnan(right):
                return False
        else:
            result = compare_values(left, right)
            if result is None:
                return False
        return _ORDERING[type(op)](result)

    def _call(self, node, env):
        name = node.func.id
        binding = self.registry.get(name)
        if binding is None:
            raise EvaluationError(f"unbound function {name!r} in {self.source!r}")
        args = [self._eval(arg, env) for arg in node.args]
        return binding.impl(env, *args)


def compile_expression(source, registry: FunctionRegistry) -> Expression:
    if isinstance(source, Expression):
        if source.registry.context != registry.context:
            return Expression(source.source, registry)
        return source
    return Expression(source, registry)
