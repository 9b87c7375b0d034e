"""
Trigonometry expressions. Angles are in radians.
"""

from typing import Any

from docmap.aggregation.expressions.base import Expression


def atan2(y: Any, x: Any) -> Expression:
    return Expression("$atan2", [y, x])


def degrees_to_radians(value: Any) -> Expression:
    return Expression("$degreesToRadians", value)


def radians_to_degrees(value: Any) -> Expression:
    return Expression("$radiansToDegrees", value)


def acos(value: Any) -> Expression:
    return Expression("$acos", value)


def acosh(value: Any) -> Expression:
    return Expression("$acosh", value)


def asin(value: Any) -> Expression:
    return Expression("$asin", value)


def asinh(value: Any) -> Expression:
    return Expression("$asinh", value)


def atan(value: Any) -> Expression:
    return Expression("$atan", value)


def atanh(value: Any) -> Expression:
    return Expression("$atanh", value)


def cos(value: Any) -> Expression:
    return Expression("$cos", value)


def cosh(value: Any) -> Expression:
    return Expression("$cosh", value)


def sin(value: Any) -> Expression:
    return Expression("$sin", value)


def sinh(value: Any) -> Expression:
    return Expression("$sinh", value)


def tan(value: Any) -> Expression:
    return Expression("$tan", value)


def tanh(value: Any) -> Expression:
    return Expression("$tanh", value)
