"""
Set expressions. Arrays are treated as sets; duplicates and order are ignored.
"""

from typing import Any

from docmap.aggregation.expressions.base import Expression


def all_elements_true(value: Any) -> Expression:
    return Expression("$allElementsTrue", [value])


def any_element_true(value: Any) -> Expression:
    return Expression("$anyElementTrue", [value])


def set_difference(first: Any, second: Any) -> Expression:
    """Elements of ``first`` not in ``second``."""
    return Expression("$setDifference", [first, second])


def set_equals(first: Any, *others: Any) -> Expression:
    return Expression("$setEquals", [first, *others])


def set_intersection(first: Any, *others: Any) -> Expression:
    return Expression("$setIntersection", [first, *others])


def set_is_subset(first: Any, second: Any) -> Expression:
    return Expression("$setIsSubset", [first, second])


def set_union(first: Any, *others: Any) -> Expression:
    return Expression("$setUnion", [first, *others])
