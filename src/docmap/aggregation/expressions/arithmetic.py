"""
Arithmetic expressions.
"""

from typing import Any

from docmap.aggregation.expressions.base import Expression


def _pair(operation: str, first: Any, second: Any) -> Expression:
    return Expression(operation, [first, second])


def abs_(value: Any) -> Expression:
    """Absolute value of a number."""
    return Expression("$abs", value)


def add(*values: Any) -> Expression:
    """Adds numbers together, or adds numbers and a date (milliseconds)."""
    return Expression("$add", list(values))


def ceil(value: Any) -> Expression:
    return Expression("$ceil", value)


def divide(numerator: Any, divisor: Any) -> Expression:
    return _pair("$divide", numerator, divisor)


def exp(value: Any) -> Expression:
    """Raises e to the given exponent."""
    return Expression("$exp", value)


def floor(value: Any) -> Expression:
    return Expression("$floor", value)


def ln(value: Any) -> Expression:
    """Natural logarithm."""
    return Expression("$ln", value)


def log(number: Any, base: Any) -> Expression:
    return _pair("$log", number, base)


def log10(value: Any) -> Expression:
    return Expression("$log10", value)


def mod(dividend: Any, divisor: Any) -> Expression:
    return _pair("$mod", dividend, divisor)


def multiply(*values: Any) -> Expression:
    return Expression("$multiply", list(values))


def pow_(number: Any, exponent: Any) -> Expression:
    return _pair("$pow", number, exponent)


def round_(number: Any, place: Any = 0) -> Expression:
    """Rounds to a whole integer or to a given decimal place."""
    return _pair("$round", number, place)


def sqrt(value: Any) -> Expression:
    return Expression("$sqrt", value)


def subtract(minuend: Any, subtrahend: Any) -> Expression:
    """Difference of two numbers or dates, or a date minus milliseconds."""
    return _pair("$subtract", minuend, subtrahend)


def trunc(number: Any, place: Any = 0) -> Expression:
    return _pair("$trunc", number, place)
