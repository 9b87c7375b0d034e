"""
Type expressions.
"""

from typing import Any

from docmap.aggregation.expressions.base import Expression, named_args


def convert(input_: Any, to: Any, on_error: Any = None, on_null: Any = None) -> Expression:
    """
    Converts a value to a BSON type, given by name (``"int"``) or number.

    Conversion errors fail the aggregation unless ``on_error`` is set.
    """
    return Expression("$convert", named_args(input=input_, to=to, onError=on_error, onNull=on_null))


def is_number(value: Any) -> Expression:
    return Expression("$isNumber", value)


def to_bool(value: Any) -> Expression:
    return Expression("$toBool", value)


def to_date(value: Any) -> Expression:
    return Expression("$toDate", value)


def to_decimal(value: Any) -> Expression:
    return Expression("$toDecimal", value)


def to_double(value: Any) -> Expression:
    return Expression("$toDouble", value)


def to_int(value: Any) -> Expression:
    return Expression("$toInt", value)


def to_long(value: Any) -> Expression:
    return Expression("$toLong", value)


def to_object_id(value: Any) -> Expression:
    return Expression("$toObjectId", value)


def to_string(value: Any) -> Expression:
    return Expression("$toString", value)


def type_(value: Any) -> Expression:
    """BSON type name of the argument."""
    return Expression("$type", value)
