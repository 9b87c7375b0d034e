"""
Object expressions.
"""

from typing import Any

from docmap.aggregation.expressions.base import Accumulator, Expression, named_args
from docmap.aggregation.expressions.variables import REMOVE


def get_field(field_: Any, input_: Any = None) -> Expression:
    """
    Value of a field, including names containing ``.`` or starting with
    ``$``. Without ``input_`` the current document is read.
    """
    return Expression("$getField", named_args(field=field_, input=input_))


def merge_objects(*documents: Any) -> Expression:
    """Combines documents; later documents win on conflicting fields."""
    return Accumulator("$mergeObjects", documents)


def set_field(field_: Any, input_: Any, value: Any) -> Expression:
    return Expression("$setField", {"field": field_, "input": input_, "value": value})


def unset_field(field_: Any, input_: Any) -> Expression:
    """``$unsetField``, shorthand for ``$setField`` with ``$$REMOVE``."""
    return Expression("$unsetField", {"field": field_, "input": input_})


def remove_field(field_: Any, input_: Any) -> Expression:
    return set_field(field_, input_, REMOVE)
