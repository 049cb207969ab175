"""
Safe evaluator for transition / auto-rule condition strings.

Conditions look like ``pd_score < 0.05 && requested_amount < 100000``. They are
parsed by a small recursive-descent parser, never ``eval``'d. Supported:
number / string / ``true`` ``false`` ``null`` literals, dotted identifiers
resolved against the case ``data`` map, ``== != < <= > >=``, ``&& || !``
(also ``and or not``) and parentheses.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Callable, Mapping

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>-?(?:\d+(?:\.\d*)?|\.\d+))
      | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
      | (?P<op>&&|\|\||==|!=|<=|>=|<|>|!|\(|\))
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    )""",
    re.VERBOSE,
)

_KEYWORD_OPS = {"and": "&&", "or": "||", "not": "!"}
_LITERALS = {"true": True, "false": False, "null": None, "none": None}

Evaluator = Callable[[Mapping[str, Any]], Any]


class ConditionError(ValueError):
    """Condition string cannot be parsed."""


def _tokenize(expression: str) -> list[tuple[str, Any]]:
    tokens: list[tuple[str, Any]] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise ConditionError(f"unexpected character at position {pos} in '{expression}'")
        pos = match.end()
        if match.group("number") is not None:
            raw = match.group("number")
            tokens.append(("lit", float(raw) if "." in raw else int(raw)))
        elif match.group("string") is not None:
            raw = match.group("string")[1:-1]
            tokens.append(("lit", re.sub(r"\\(.)", r"\1", raw)))
        elif match.group("op") is not None:
            tokens.append(("op", match.group("op")))
        else:
            name = match.group("name")
            lowered = name.lower()
            if lowered in _KEYWORD_OPS:
                tokens.append(("op", _KEYWORD_OPS[lowered]))
            elif lowered in _LITERALS:
                tokens.append(("lit", _LITERALS[lowered]))
            else:
                tokens.append(("name", name))
    return tokens


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _ordered(op: str, left: Any, right: Any) -> bool:
    comparable = (_is_number(left) and _is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        return False
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _lookup(path: str, context: Mapping[str, Any]) -> Any:
    value: Any = context
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0

    def _peek(self) -> tuple[str, Any] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take_op(self, *ops: str) -> str | None:
        token = self._peek()
        if token is not None and token[0] == "op" and token[1] in ops:
            self.pos += 1
            return token[1]
        return None

    def parse(self) -> Evaluator:
        if not self.tokens:
            raise ConditionError("empty condition")
        node = self._or()
        if self._peek() is not None:
            raise ConditionError(f"unexpected token {self._peek()[1]!r} in '{self.expression}'")
        return node

    def _or(self) -> Evaluator:
        left = self._and()
        while self._take_op("||"):
            right = self._and()
            left = (lambda a, b: lambda ctx: bool(a(ctx)) or bool(b(ctx)))(left, right)
        return left

    def _and(self) -> Evaluator:
        left = self._not()
        while self._take_op("&&"):
            right = self._not()
            left = (lambda a, b: lambda ctx: bool(a(ctx)) and bool(b(ctx)))(left, right)
        return left

    def _not(self) -> Evaluator:
        if self._take_op("!"):
            operand = self._not()
            return lambda ctx: not operand(ctx)
        return self._comparison()

    def _comparison(self) -> Evaluator:
        left = self._primary()
        op = self._take_op("==", "!=", "<", "<=", ">", ">=")
        if op is None:
            return left
        right = self._primary()
        if op == "==":
            return lambda ctx: left(ctx) == right(ctx)
        if op == "!=":
            return lambda ctx: left(ctx) != right(ctx)
        return lambda ctx: _ordered(op, left(ctx), right(ctx))

    def _primary(self) -> Evaluator:
        token = self._peek()
        if token is None:
            raise ConditionError(f"unexpected end of condition '{self.expression}'")
        self.pos += 1
        kind, value = token
        if kind == "lit":
            return lambda ctx: value
        if kind == "name":
            return lambda ctx: _lookup(value, ctx)
        if value == "(":
            inner = self._or()
            if not self._take_op(")"):
                raise ConditionError(f"missing ')' in '{self.expression}'")
            return inner
        raise ConditionError(f"unexpected token {value!r} in '{self.expression}'")


@lru_cache(maxsize=512)
def compile_condition(expression: str) -> Evaluator:
    return _Parser(expression).parse()


def evaluate_condition(expression: str | None, context: Mapping[str, Any] | None) -> bool:
    """Absent conditions hold; unknown identifiers resolve to ``None``."""
    if expression is None:
        return True
    return bool(compile_condition(expression)(context or {}))
