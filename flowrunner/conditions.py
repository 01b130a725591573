"""Constrained condition language used by conditional steps.

Conditions are parsed into a small AST and evaluated directly, so no
workflow-supplied text is ever executed as code. Supported forms::

    trigger.data.amount > 100
    steps.check.data.status === "active" && trigger.data.premium == true
    !(user.email == "ops@example.com") or workflow.name != 'nightly'

Paths must start with one of ``user``, ``workflow``, ``trigger`` or
``steps``. Step results are read through ``steps.<id>.data`` and
``steps.<id>.status``. A path that does not exist evaluates to ``null``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from .context import MISSING, get_path
from .errors import EvaluationError

ALLOWED_ROOTS = frozenset({"user", "workflow", "trigger", "steps"})
STEP_FIELDS = frozenset({"data", "status"})

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<op>===|!==|==|!=|<=|>=|<|>|&&|\|\||!)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<name>[A-Za-z_][\w-]*(?:\.[\w-]+)*)
    """,
    re.VERBOSE,
)

_KEYWORDS = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
    "undefined": None,
}
_WORD_OPS = {"and": "&&", "or": "||", "not": "!"}
_COMPARISONS = ("===", "!==", "==", "!=", "<=", ">=", "<", ">")

Token = Tuple[str, str]


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Path:
    parts: Tuple[str, ...]


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class BoolOp:
    op: str
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Literal, Path, Not, BoolOp, Compare]


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise EvaluationError(
                f"Unexpected character {text[pos]!r} at offset {pos} in condition: {text}"
            )
        kind = match.lastgroup
        value = match.group()
        pos = match.end()
        if kind == "ws":
            continue
        if kind == "name" and value in _WORD_OPS:
            kind, value = "op", _WORD_OPS[value]
        tokens.append((kind, value))
    return tokens


def _unquote(raw: str) -> str:
    return re.sub(r"\\(.)", r"\1", raw[1:-1])


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, tokens: List[Token], source: str) -> None:
        self._tokens = tokens
        self._pos = 0
        self._source = source

    def _peek(self) -> Optional[Token]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise EvaluationError(f"Unexpected end of condition: {self._source}")
        self._pos += 1
        return token

    def _accept_op(self, *ops: str) -> Optional[str]:
        token = self._peek()
        if token and token[0] == "op" and token[1] in ops:
            self._pos += 1
            return token[1]
        return None

    def parse(self) -> Node:
        node = self._or()
        if self._peek() is not None:
            raise EvaluationError(
                f"Unexpected token {self._peek()[1]!r} in condition: {self._source}"
            )
        return node

    def _or(self) -> Node:
        operands = [self._and()]
        while self._accept_op("||"):
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else BoolOp("||", tuple(operands))

    def _and(self) -> Node:
        operands = [self._not()]
        while self._accept_op("&&"):
            operands.append(self._not())
        return operands[0] if len(operands) == 1 else BoolOp("&&", tuple(operands))

    def _not(self) -> Node:
        if self._accept_op("!"):
            return Not(self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._operand()
        op = self._accept_op(*_COMPARISONS)
        if op is None:
            return left
        return Compare(op, left, self._operand())

    def _operand(self) -> Node:
        kind, value = self._advance()
        if kind == "number":
            return Literal(float(value) if "." in value else int(value))
        if kind == "string":
            return Literal(_unquote(value))
        if kind == "lparen":
            node = self._or()
            closing = self._advance()
            if closing[0] != "rparen":
                raise EvaluationError(f"Expected ')' in condition: {self._source}")
            return node
        if kind == "name":
            if value in _KEYWORDS:
                return Literal(_KEYWORDS[value])
            parts = tuple(value.split("."))
            if parts[0] not in ALLOWED_ROOTS:
                raise EvaluationError(
                    f"Unknown variable '{parts[0]}' in condition: {self._source}"
                )
            if parts[0] == "steps" and len(parts) > 2 and parts[2] not in STEP_FIELDS:
                raise EvaluationError(
                    f"Unknown step field '{parts[2]}' in '{value}'; use steps.<id>.data or steps.<id>.status"
                )
            return Path(parts)
        raise EvaluationError(f"Unexpected token {value!r} in condition: {self._source}")


def parse_condition(text: str) -> Node:
    """Parse ``text`` into an AST, raising :class:`EvaluationError` if invalid."""
    if not isinstance(text, str) or not text.strip():
        raise EvaluationError("Condition must be a non-empty string")
    return _Parser(tokenize(text), text).parse()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _order(op: str, left: Any, right: Any) -> bool:
    comparable = (_is_number(left) and _is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        raise EvaluationError(
            f"Cannot compare {left!r} {op} {right!r}: operands must both be numbers or strings"
        )
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _evaluate(node: Node, namespace: Mapping[str, Any]) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Path):
        value = get_path(namespace, list(node.parts))
        return None if value is MISSING else value
    if isinstance(node, Not):
        return not _evaluate(node.operand, namespace)
    if isinstance(node, BoolOp):
        if node.op == "&&":
            return all(_evaluate(operand, namespace) for operand in node.operands)
        return any(_evaluate(operand, namespace) for operand in node.operands)
    left = _evaluate(node.left, namespace)
    right = _evaluate(node.right, namespace)
    if node.op in ("==", "==="):
        return _equals(left, right)
    if node.op in ("!=", "!=="):
        return not _equals(left, right)
    return _order(node.op, left, right)


def evaluate_condition(expression: Union[str, Node], namespace: Mapping[str, Any]) -> bool:
    """Evaluate ``expression`` against ``namespace`` and coerce to ``bool``."""
    node = parse_condition(expression) if isinstance(expression, str) else expression
    return bool(_evaluate(node, namespace))
