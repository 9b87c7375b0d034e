"""
Comparison expressions. Each takes two operands and encodes them as an array:

    gt("$qty", 250)  ->  {"$gt": ["$qty", 250]}
"""

from typing import Any

from docmap.aggregation.expressions.base import Expression


def cmp(first: Any, second: Any) -> Expression:
    return Expression("$cmp", [first, second])


def eq(first: Any, second: Any) -> Expression:
    return Expression("$eq", [first, second])


def gt(first: Any, second: Any) -> Expression:
    return Expression("$gt", [first, second])


def gte(first: Any, second: Any) -> Expression:
    return Expression("$gte", [first, second])


def lt(first: Any, second: Any) -> Expression:
    return Expression("$lt", [first, second])


def lte(first: Any, second: Any) -> Expression:
    return Expression("$lte", [first, second])


def ne(first: Any, second: Any) -> Expression:
    return Expression("$ne", [first, second])
