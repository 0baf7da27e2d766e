# count_hub/services/calculator.py
"""
Bounded arithmetic for quantity corrections ("12*4+3", "(10-2)/4").

Grammar:
    expr   := term (('+' | '-') term)*
    term   := factor (('*' | 'x' | '/') factor)*
    factor := ('+' | '-') factor | NUMBER | '(' expr ')'

Only numbers, the four operators and parentheses are accepted.
"""
from __future__ import annotations
import math
import re
from typing import List, Tuple

from count_hub.errors import ExpressionError

MAX_LENGTH = 200
MAX_DEPTH = 32

_TOKEN = re.compile(r"\s*(?:(\d+(?:[.,]\d*)?|[.,]\d+)|(.))")
_OPERATORS = {
    "+": "+", "-": "-", "−": "-",
    "*": "*", "x": "*", "X": "*", "×": "*",
    "/": "/", "÷": "/",
    "(": "(", ")": ")",
}


def _tokenize(expression: str) -> List[Tuple[str, object]]:
    tokens: List[Tuple[str, object]] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None:  # pragma: no cover - the pattern always matches a char
            raise ExpressionError(f"unexpected input at position {pos}")
        number, other = m.group(1), m.group(2)
        if number is not None:
            tokens.append(("num", float(number.replace(",", "."))))
        elif other in _OPERATORS:
            tokens.append(("op", _OPERATORS[other]))
        else:
            raise ExpressionError(f"unexpected character {other!r}")
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[Tuple[str, object]]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else (None, None)

    def take(self):
        tok = self.peek()
        self.pos += 1
        return tok

    def expr(self) -> float:
        value = self.term()
        while self.peek() in (("op", "+"), ("op", "-")):
            _, op = self.take()
            rhs = self.term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def term(self) -> float:
        value = self.factor()
        while self.peek() in (("op", "*"), ("op", "/")):
            _, op = self.take()
            rhs = self.factor()
            if op == "*":
                value = value * rhs
            else:
                if rhs == 0:
                    raise ExpressionError("division by zero")
                value = value / rhs
        return value

    def factor(self) -> float:
        kind, val = self.take()
        if kind == "num":
            return val
        if (kind, val) in (("op", "+"), ("op", "-")):
            self._enter()
            inner = self.factor()
            self.depth -= 1
            return inner if val == "+" else -inner
        if (kind, val) == ("op", "("):
            self._enter()
            inner = self.expr()
            if self.take() != ("op", ")"):
                raise ExpressionError("missing closing parenthesis")
            self.depth -= 1
            return inner
        if kind is None:
            raise ExpressionError("unexpected end of expression")
        raise ExpressionError(f"unexpected {val!r}")

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise ExpressionError("expression nested too deeply")


def evaluate(expression: str) -> float:
    """Evaluate ``expression``; raises ExpressionError on anything else."""
    if expression is None or not str(expression).strip():
        raise ExpressionError("empty expression")
    expression = str(expression)
    if len(expression) > MAX_LENGTH:
        raise ExpressionError(f"expression longer than {MAX_LENGTH} characters")

    parser = _Parser(_tokenize(expression))
    value = parser.expr()
    if parser.pos != len(parser.tokens):
        raise ExpressionError(f"unexpected {parser.peek()[1]!r}")
    if not math.isfinite(value):
        raise ExpressionError("result is not a finite number")
    return value
