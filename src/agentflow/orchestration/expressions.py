"""Restricted expression evaluation for conditions and scripts.

Step guards (``condition``), ``condition`` steps, ``loop`` item expressions
and ``script`` steps all evaluate small Python-syntax expressions against
the execution context. Nothing here calls ``eval``: the source is parsed
with :mod:`ast` and only a fixed set of node types is interpreted.

Supported::

    literals            1, 2.5, "text", True, None, [1, 2], {"k": v}
    context names       region, fetch            (missing → ExpressionError)
    mapping access      fetch.result, fetch["result"], items[0], items[1:3]
    arithmetic          + - * / // % **
    comparison          == != < <= > >= in not in is is not
    boolean             and or not, x if cond else y
    functions           len min max sum abs round str int float bool
                        sorted any all defined

``defined(name)`` is the only way to recorder for a missing key without an
error. The JSON spellings ``true`` / ``false`` / ``null`` are accepted when
the context does not define them.

Example::

    >>> evaluate("len(items) > 2 and region == 'us'", {"items": [1, 2, 3], "region": "us"})
    True
    >>> result = run_script("total = a + b\\ntotal * 2", {"a": 1, "b": 2})
    >>> result.assignments, result.value
    ({'total': 3}, 6)
"""

from __future__ import annotations

import ast
import operator
import re
import textwrap
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from agentflow.orchestration.exceptions import ExpressionError

_MAX_EXPRESSION_LENGTH = 10_000
_MAX_POWER_EXPONENT = 1_000
_MAX_REPEAT_LENGTH = 100_000

_JSON_CONSTANTS = {"true": True, "false": False, "null": None}

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_COMPARE_OPS = {
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

_UNARY_OPS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_FUNCTIONS = {
    "len": len,
    "min": min,
    "max": max,
    "sum": sum,
    "abs": abs,
    "round": round,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "sorted": sorted,
    "any": any,
    "all": all,
}

_PLACEHOLDER = re.compile(r"\$\{\s*([^}]+?)\s*\}")


def _repeat_length(left: Any, right: Any) -> int:
    """Length of ``left * right`` when it repeats a sequence, else 0."""
    for seq, count in ((left, right), (right, left)):
        if isinstance(seq, (str, bytes, list, tuple)) and isinstance(count, int):
            return len(seq) * max(count, 0)
    return 0


class _Undefined(Exception):
    """A name or key could not be resolved; ``defined()`` turns this into False."""


class _Evaluator:
    """Walks a parsed expression against a variable scope."""

    def __init__(self, scope: Mapping[str, Any], source: str):
        self._scope = scope
        self._source = source

    def eval(self, node: ast.AST) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            raise ExpressionError(f"Unsupported syntax: {type(node).__name__}", self._source)
        return handler(node)

    # ── Atoms ────────────────────────────────────────────────────

    def _eval_Expression(self, node: ast.Expression) -> Any:
        return self.eval(node.body)

    def _eval_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name) -> Any:
        if node.id in self._scope:
            return self._scope[node.id]
        if node.id in _JSON_CONSTANTS:
            return _JSON_CONSTANTS[node.id]
        raise _Undefined(node.id)

    def _eval_List(self, node: ast.List) -> list:
        return [self.eval(e) for e in node.elts]

    def _eval_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(self.eval(e) for e in node.elts)

    def _eval_Set(self, node: ast.Set) -> set:
        return {self.eval(e) for e in node.elts}

    def _eval_Dict(self, node: ast.Dict) -> dict:
        result = {}
        for key, value in zip(node.keys, node.values):
            if key is None:
                raise ExpressionError("Dict unpacking is not supported", self._source)
            result[self.eval(key)] = self.eval(value)
        return result

    # ── Access ───────────────────────────────────────────────────

    def _eval_Attribute(self, node: ast.Attribute) -> Any:
        target = self.eval(node.value)
        if isinstance(target, Mapping):
            if node.attr in target:
                return target[node.attr]
            raise _Undefined(node.attr)
        raise ExpressionError(
            f"Attribute access is only allowed on mappings (got {type(target).__name__})",
            self._source,
        )

    def _eval_Subscript(self, node: ast.Subscript) -> Any:
        target = self.eval(node.value)
        if isinstance(node.slice, ast.Slice):
            if not isinstance(target, Sequence):
                raise ExpressionError("Slicing requires a sequence", self._source)
            bounds = [
                self.eval(part) if part is not None else None
                for part in (node.slice.lower, node.slice.upper, node.slice.step)
            ]
            return target[slice(*bounds)]
        key = self.eval(node.slice)
        if isinstance(target, Mapping):
            try:
                if key in target:
                    return target[key]
            except TypeError as e:
                raise ExpressionError(f"Invalid key {key!r}", self._source) from e
            raise _Undefined(str(key))
        if isinstance(target, Sequence):
            try:
                return target[key]
            except IndexError as e:
                raise _Undefined(str(key)) from e
            except TypeError as e:
                raise ExpressionError(f"Invalid index {key!r}", self._source) from e
        raise ExpressionError(f"Cannot subscript {type(target).__name__}", self._source)

    # ── Operators ────────────────────────────────────────────────

    def _eval_BinOp(self, node: ast.BinOp) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}", self._source)
        left = self.eval(node.left)
        right = self.eval(node.right)
        if isinstance(node.op, ast.Pow) and isinstance(right, (int, float)) and abs(right) > _MAX_POWER_EXPONENT:
            raise ExpressionError("Exponent too large", self._source)
        if isinstance(node.op, ast.Mult) and _repeat_length(left, right) > _MAX_REPEAT_LENGTH:
            raise ExpressionError("Repeated sequence too long", self._source)
        try:
            return op(left, right)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ExpressionError(f"{type(e).__name__}: {e}", self._source) from e

    def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}", self._source)
        try:
            return op(self.eval(node.operand))
        except TypeError as e:
            raise ExpressionError(f"TypeError: {e}", self._source) from e

    def _eval_BoolOp(self, node: ast.BoolOp) -> Any:
        value: Any = None
        if isinstance(node.op, ast.And):
            for operand in node.values:
                value = self.eval(operand)
                if not value:
                    return value
            return value
        for operand in node.values:
            value = self.eval(operand)
            if value:
                return value
        return value

    def _eval_Compare(self, node: ast.Compare) -> bool:
        left = self.eval(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            op = _COMPARE_OPS.get(type(op_node))
            if op is None:
                raise ExpressionError(f"Unsupported comparison: {type(op_node).__name__}", self._source)
            right = self.eval(comparator)
            try:
                if not op(left, right):
                    return False
            except TypeError as e:
                raise ExpressionError(f"TypeError: {e}", self._source) from e
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp) -> Any:
        return self.eval(node.body) if self.eval(node.test) else self.eval(node.orelse)

    # ── Calls ────────────────────────────────────────────────────

    def _eval_Call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name):
            raise ExpressionError("Only plain function calls are allowed", self._source)
        name = node.func.id

        if name == "defined":
            if len(node.args) != 1 or node.keywords:
                raise ExpressionError("defined() takes exactly one argument", self._source)
            try:
                self.eval(node.args[0])
            except _Undefined:
                return False
            return True

        func = _FUNCTIONS.get(name)
        if func is None:
            raise ExpressionError(f"Function not allowed: {name}", self._source)
        if any(isinstance(a, ast.Starred) for a in node.args):
            raise ExpressionError("Argument unpacking is not supported", self._source)
        args = [self.eval(a) for a in node.args]
        kwargs = {}
        for kw in node.keywords:
            if kw.arg is None:
                raise ExpressionError("Keyword unpacking is not supported", self._source)
            kwargs[kw.arg] = self.eval(kw.value)
        try:
            return func(*args, **kwargs)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ExpressionError(f"{name}() failed: {e}", self._source) from e


def _parse(source: str, mode: str) -> ast.AST:
    if not isinstance(source, str):
        raise ExpressionError(f"Expression must be a string, got {type(source).__name__}")
    if len(source) > _MAX_EXPRESSION_LENGTH:
        raise ExpressionError("Expression too long")
    try:
        return ast.parse(textwrap.dedent(source).strip(), mode=mode)
    except SyntaxError as e:
        raise ExpressionError(f"Syntax error: {e.msg}", source) from e


def evaluate(expression: str, context: Mapping[str, Any]) -> Any:
    """Evaluate ``expression`` against ``context`` and return its value.

    Raises:
        ExpressionError: On syntax outside the supported subset, a missing
            name or key, or a runtime type error.
    """
    tree = _parse(expression, "eval")
    try:
        return _Evaluator(context, expression).eval(tree)
    except _Undefined as e:
        raise ExpressionError(f"Undefined name or key: {e}", expression) from e


def evaluate_condition(expression: str, context: Mapping[str, Any]) -> bool:
    """Evaluate ``expression`` and coerce the result to ``bool``."""
    return bool(evaluate(expression, context))


@dataclass
class ScriptResult:
    """Outcome of :func:`run_script`."""

    assignments: dict[str, Any] = field(default_factory=dict)
    value: Any = None
    has_value: bool = False  # script ended with a bare expression


def run_script(script: str, context: Mapping[str, Any]) -> ScriptResult:
    """Run a script of ``name = expr`` lines and an optional final expression.

    Each line sees the context plus the names assigned above it.
    """
    tree = _parse(script, "exec")
    if not isinstance(tree, ast.Module):
        raise ExpressionError("Script must be a module", script)
    result = ScriptResult()
    scope = _ChainScope(result.assignments, context)
    evaluator = _Evaluator(scope, script)

    try:
        for index, statement in enumerate(tree.body):
            is_last = index == len(tree.body) - 1
            if isinstance(statement, ast.Assign):
                if len(statement.targets) != 1 or not isinstance(statement.targets[0], ast.Name):
                    raise ExpressionError("Only simple 'name = expression' assignments are allowed", script)
                result.assignments[statement.targets[0].id] = evaluator.eval(statement.value)
            elif isinstance(statement, ast.Expr) and is_last:
                result.value = evaluator.eval(statement.value)
                result.has_value = True
            else:
                raise ExpressionError(
                    f"Unsupported statement: {type(statement).__name__}", script
                )
    except _Undefined as e:
        raise ExpressionError(f"Undefined name or key: {e}", script) from e

    return result


class _ChainScope(Mapping):
    """Read-only view of script assignments layered over the context."""

    def __init__(self, *layers: Mapping[str, Any]):
        self._layers = layers

    def __getitem__(self, key: str) -> Any:
        for layer in self._layers:
            if key in layer:
                return layer[key]
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return any(key in layer for layer in self._layers)

    def __iter__(self):
        seen: set[str] = set()
        for layer in self._layers:
            for key in layer:
                if key not in seen:
                    seen.add(key)
                    yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path such as ``fetch.result.0`` against ``context``.

    Raises:
        KeyError: If any segment is missing.
    """
    current: Any = context
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, Sequence) and not isinstance(current, str) and part.lstrip("-").isdigit():
            try:
                current = current[int(part)]
            except IndexError as e:
                raise KeyError(path) from e
        else:
            raise KeyError(path)
    return current


def resolve_placeholders(template: str, context: Mapping[str, Any]) -> str:
    """Replace ``${key}`` / ``${a.b}`` with context values.

    Unresolvable placeholders are left in place.
    """

    def _replace(match: re.Match) -> str:
        try:
            value = lookup_path(context, match.group(1))
        except KeyError:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER.sub(_replace, template)


__all__ = [
    "evaluate",
    "evaluate_condition",
    "ScriptResult",
    "run_script",
    "lookup_path",
    "resolve_placeholders",
]
