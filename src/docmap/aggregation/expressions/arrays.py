"""
Array expressions.
"""

from typing import Any, Optional

from docmap.aggregation.expressions.base import Expression, named_args


def array_elem_at(array: Any, index: Any) -> Expression:
    return Expression("$arrayElemAt", [array, index])


def array_to_object(array: Any) -> Expression:
    """Converts an array of k/v pairs into a document."""
    return Expression("$arrayToObject", array)


def concat_arrays(array: Any, *additional: Any) -> Expression:
    return Expression("$concatArrays", [array, *additional])


def elem_at(array: Any, index: Any) -> Expression:
    return array_elem_at(array, index)


def filter_(input_: Any, cond: Any, as_: Optional[str] = None, limit: Any = None) -> Expression:
    """
    Subset of an array matching ``cond``. Each element is bound to ``$$as_``
    (``$$this`` when unset).
    """
    return Expression("$filter", named_args(input=input_, cond=cond, **{"as": as_}, limit=limit))


def in_(search: Any, array: Any) -> Expression:
    """Whether a value is present in an array."""
    return Expression("$in", [search, array])


def index_of_array(array: Any, search: Any, start: Any = None, end: Any = None) -> Expression:
    args = [array, search]
    if start is not None:
        args.append(start)
        if end is not None:
            args.append(end)
    return Expression("$indexOfArray", args)


def is_array(value: Any) -> Expression:
    return Expression("$isArray", [value])


def map_(input_: Any, in_expression: Any, as_: Optional[str] = None) -> Expression:
    """Applies ``in_expression`` to each element of ``input_``."""
    return Expression("$map", named_args(input=input_, **{"as": as_}, **{"in": in_expression}))


def object_to_array(value: Any) -> Expression:
    return Expression("$objectToArray", value)


def range_(start: Any, end: Any, step: Any = None) -> Expression:
    args = [start, end]
    if step is not None:
        args.append(step)
    return Expression("$range", args)


def reduce(input_: Any, initial_value: Any, in_expression: Any) -> Expression:
    """Folds an array: ``$$value`` holds the accumulated value, ``$$this`` the element."""
    return Expression(
        "$reduce", {"input": input_, "initialValue": initial_value, "in": in_expression}
    )


def reverse_array(array: Any) -> Expression:
    return Expression("$reverseArray", array)


def size(array: Any) -> Expression:
    return Expression("$size", array)


def slice_(array: Any, n: Any, position: Any = None) -> Expression:
    if position is None:
        return Expression("$slice", [array, n])
    return Expression("$slice", [array, position, n])


def sort_array(input_: Any, sort_by: Any) -> Expression:
    """Sorts an array; ``sort_by`` is 1/-1 for scalars or a sort document."""
    return Expression("$sortArray", {"input": input_, "sortBy": sort_by})


def zip_(*inputs: Any, use_longest_length: bool = False, defaults: Any = None) -> Expression:
    body = {"inputs": list(inputs)}
    if use_longest_length:
        body["useLongestLength"] = True
    if defaults is not None:
        body["defaults"] = defaults
    return Expression("$zip", body)
