"""Tests for the bounded quantity expression evaluator."""

import pytest

from count_hub.errors import ExpressionError
from count_hub.services.calculator import MAX_LENGTH, evaluate


@pytest.mark.parametrize("expression, expected", [
    ("12", 12),
    ("12*4+3", 51),
    ("2+3*4", 14),
    ("(2+3)*4", 20),
    ("10-2-3", 5),
    ("20/4/5", 1),
    ("-3+5", 2),
    ("2*-3", -6),
    ("1,5*2", 3),
    ("0.25 * 8", 2),
    ("3x4", 12),
    ("6 × 2 ÷ 3", 4),
    ("((1))", 1),
    ("  7  ", 7),
])
def test_evaluates(expression, expected):
    assert evaluate(expression) == pytest.approx(expected)


@pytest.mark.parametrize("expression", [
    "",
    "   ",
    "2+",
    "(2+3",
    "2+3)",
    "2 3",
    "abs(2)",
    "__import__('os')",
    "2**3",
    "1/0",
    "1e5",
    ".",
])
def test_rejects(expression):
    with pytest.raises(ExpressionError):
        evaluate(expression)


def test_rejects_overlong_input():
    with pytest.raises(ExpressionError):
        evaluate("1+" * MAX_LENGTH + "1")


def test_rejects_deep_nesting():
    with pytest.raises(ExpressionError):
        evaluate("(" * 60 + "1" + ")" * 60)


def test_error_is_a_value_error_with_reason():
    with pytest.raises(ValueError) as exc:
        evaluate("1/0")
    assert exc.value.reason == "division by zero"
