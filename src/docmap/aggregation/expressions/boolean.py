"""
Boolean expressions.
"""

from typing import Any

from docmap.aggregation.expressions.base import Expression


def and_(*values: Any) -> Expression:
    return Expression("$and", list(values))


def not_(value: Any) -> Expression:
    return Expression("$not", [value])


def or_(*values: Any) -> Expression:
    return Expression("$or", list(values))
