"""Restricted evaluator for workflow conditions and inline scripts.

Configuration strings are parsed with :mod:`ast` and walked against an
allow-list of node types. Nothing is handed to ``eval``/``exec``; the only
free variable is ``context`` (plus the JavaScript-style literals ``true``,
``false``, ``null`` and ``undefined`` that existing configurations use).
"""

from __future__ import annotations

import ast
import logging
import operator
import re
from typing import Any, Callable, Dict, Mapping

from ..errors import ExpressionError
from ..utils.paths import MISSING

logger = logging.getLogger(__name__)

_LITERAL_NAMES: Dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "True": True,
    "False": False,
    "None": None,
}

_BIN_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_COMPARE_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "lower": lambda value: str(value).lower(),
    "upper": lambda value: str(value).upper(),
}

_STRING_METHODS = {"lower", "upper", "strip", "startswith", "endswith"}

_STRING_LITERAL = re.compile(r"(\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*')")
_JS_REWRITES = (
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"\?\."), "."),
    (re.compile(r"!(?!=)"), "not "),
)


def normalize_source(source: str) -> str:
    """Rewrite JavaScript-style operators outside string literals."""

    pieces = _STRING_LITERAL.split(source.strip())
    for index in range(0, len(pieces), 2):
        chunk = pieces[index]
        chunk = chunk.replace("!==", "\x00NE\x00").replace("===", "\x00EQ\x00")
        chunk = chunk.replace("!=", "\x00NE\x00").replace("==", "\x00EQ\x00")
        for pattern, replacement in _JS_REWRITES:
            chunk = pattern.sub(replacement, chunk)
        chunk = chunk.replace("\x00NE\x00", "!=").replace("\x00EQ\x00", "==")
        pieces[index] = chunk
    return "".join(pieces).strip()


class _Return(Exception):
    def __init__(self, value: Any) -> None:
        self.value = value


class _Evaluator:
    """Walks an allow-listed subset of the Python AST."""

    def __init__(self, names: Mapping[str, Any]) -> None:
        self.names: Dict[str, Any] = dict(names)

    # ------------------------------------------------------------------
    # Statements
    def run_block(self, statements: list[ast.stmt]) -> None:
        for statement in statements:
            self.run_statement(statement)

    def run_statement(self, node: ast.stmt) -> None:
        if isinstance(node, ast.Return):
            raise _Return(self.eval(node.value) if node.value is not None else None)
        if isinstance(node, ast.Assign):
            value = self.eval(node.value)
            for target in node.targets:
                if not isinstance(target, ast.Name) or target.id == "context":
                    raise ExpressionError("Only plain local names can be assigned")
                self.names[target.id] = value
            return
        if isinstance(node, ast.If):
            branch = node.body if self.truthy(self.eval(node.test)) else node.orelse
            self.run_block(branch)
            return
        if isinstance(node, ast.Expr):
            self.eval(node.value)
            return
        if isinstance(node, ast.Pass):
            return
        raise ExpressionError(f"Statement not allowed: {type(node).__name__}")

    # ------------------------------------------------------------------
    # Expressions
    def eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return self.eval(node.body)
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.Name):
            if node.id in self.names:
                return self.names[node.id]
            if node.id in _LITERAL_NAMES:
                return _LITERAL_NAMES[node.id]
            raise ExpressionError(f"Unknown name: {node.id}")
        if isinstance(node, ast.BoolOp):
            return self._bool_op(node)
        if isinstance(node, ast.UnaryOp):
            operand = self.eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not self.truthy(operand)
            if isinstance(node.op, ast.USub):
                return -operand
            if isinstance(node.op, ast.UAdd):
                return +operand
            raise ExpressionError(f"Operator not allowed: {type(node.op).__name__}")
        if isinstance(node, ast.BinOp):
            op = _BIN_OPS.get(type(node.op))
            if op is None:
                raise ExpressionError(f"Operator not allowed: {type(node.op).__name__}")
            return op(self.eval(node.left), self.eval(node.right))
        if isinstance(node, ast.Compare):
            return self._compare(node)
        if isinstance(node, ast.IfExp):
            return self.eval(node.body) if self.truthy(self.eval(node.test)) else self.eval(node.orelse)
        if isinstance(node, ast.Attribute):
            return self._member(self.eval(node.value), node.attr)
        if isinstance(node, ast.Subscript):
            return self._member(self.eval(node.value), self.eval(node.slice))
        if isinstance(node, (ast.List, ast.Tuple)):
            return [self.eval(element) for element in node.elts]
        if isinstance(node, ast.Dict):
            return {
                self.eval(key): self.eval(value)
                for key, value in zip(node.keys, node.values)
                if key is not None
            }
        if isinstance(node, ast.Call):
            return self._call(node)
        raise ExpressionError(f"Expression not allowed: {type(node).__name__}")

    def truthy(self, value: Any) -> bool:
        return False if value is MISSING else bool(value)

    def _bool_op(self, node: ast.BoolOp) -> Any:
        result: Any = None
        for value_node in node.values:
            result = self.eval(value_node)
            if isinstance(node.op, ast.And) and not self.truthy(result):
                return result
            if isinstance(node.op, ast.Or) and self.truthy(result):
                return result
        return result

    def _compare(self, node: ast.Compare) -> bool:
        left = self.eval(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            right = self.eval(comparator)
            op = _COMPARE_OPS.get(type(op_node))
            if op is None:
                raise ExpressionError(f"Comparison not allowed: {type(op_node).__name__}")
            try:
                if not op(left, right):
                    return False
            except TypeError:
                # mismatched types (e.g. None > 1) compare as false
                return False
            left = right
        return True

    def _member(self, target: Any, key: Any) -> Any:
        if target is None or target is MISSING:
            return None
        if isinstance(target, dict):
            return target.get(key)
        if isinstance(target, (list, tuple, str)) and isinstance(key, int):
            return target[key] if -len(target) <= key < len(target) else None
        if key == "length" and isinstance(target, (list, tuple, str, dict)):
            return len(target)
        if hasattr(target, "model_fields") and key in type(target).model_fields:
            return getattr(target, key)
        return None

    def _call(self, node: ast.Call) -> Any:
        if node.keywords:
            raise ExpressionError("Keyword arguments are not allowed")
        args = [self.eval(arg) for arg in node.args]
        func = node.func
        if isinstance(func, ast.Name):
            helper = _FUNCTIONS.get(func.id)
            if helper is None:
                raise ExpressionError(f"Function not allowed: {func.id}")
            return helper(*args)
        if isinstance(func, ast.Attribute) and func.attr in _STRING_METHODS:
            target = self.eval(func.value)
            if not isinstance(target, str):
                return None
            return getattr(target, func.attr)(*args)
        raise ExpressionError("Only whitelisted functions may be called")


def _parse(source: str, mode: str) -> ast.AST:
    try:
        return ast.parse(normalize_source(source), mode=mode)
    except SyntaxError as exc:
        raise ExpressionError(f"Invalid syntax in {source!r}: {exc.msg}") from exc


def evaluate_expression(expression: str, scope: Mapping[str, Any]) -> Any:
    """Evaluate a single expression with ``context`` bound to ``scope``."""

    tree = _parse(expression, "eval")
    return _Evaluator({"context": dict(scope)}).eval(tree)


def run_script(script: str, scope: Mapping[str, Any]) -> Any:
    """Run a restricted statement block and return the value it returns.

    A block without ``return`` yields ``None``. Trailing semicolons are
    tolerated so one-line ``return ...;`` scripts keep working.
    """

    lines = [line.rstrip().rstrip(";") for line in script.strip().splitlines()]
    tree = _parse("\n".join(lines), "exec")
    evaluator = _Evaluator({"context": dict(scope)})
    try:
        evaluator.run_block(tree.body)  # type: ignore[attr-defined]
    except _Return as result:
        return result.value
    return None


def evaluate_condition(kind: str, source: str | None, scope: Mapping[str, Any]) -> bool:
    """Evaluate a workflow condition, treating evaluation errors as false."""

    if kind == "always":
        return True
    if not source:
        return False
    try:
        if kind == "expression":
            return bool(evaluate_expression(source, scope))
        if kind == "script":
            return bool(run_script(source, scope))
    except Exception as exc:
        logger.error(f"Error evaluating {kind} condition {source!r}: {exc}")
        return False
    return False
