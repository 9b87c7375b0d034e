"""
Core expression types.

An expression is a node of an aggregation expression tree. Encoding walks the
tree and emits the plain document the driver sends to the server:

    sum_(field("score"), 10)           ->  {"$sum": ["$score", 10]}
    first_n(3, array("$a", "$b"))      ->  {"$firstN": {"input": ["$a", "$b"], "n": 3}}
    condition(eq("$x", 1), "a", "b")   ->  {"$cond": {"if": {"$eq": ["$x", 1]},
                                                     "then": "a", "else": "b"}}

Operands may be expressions, plain values, lists, dicts or mapped objects;
plain values go through the mapper's codecs so that Enums, dates or
dataclasses are stored the same way everywhere.
"""

from typing import Any, Dict, Optional


def encode_expression_value(mapper, value: Any) -> Any:
    """Encode an operand: expressions, containers, then codec-handled values."""
    if isinstance(value, Expression):
        return value.encode(mapper)
    if isinstance(value, dict):
        return {k: encode_expression_value(mapper, v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_expression_value(mapper, v) for v in value]
    if mapper is not None:
        return mapper.encode_value(value)
    return value


def named_args(**kwargs) -> Dict[str, Any]:
    """Operator arguments with unset (None) entries removed."""
    return {k: v for k, v in kwargs.items() if v is not None}


class Expression:
    """
    ``{operation: value}``.

    Args:
        operation: operator name, e.g. ``"$abs"``
        value: operand(s); a list for multi-argument operators, a dict for
            operators taking named arguments
    """

    def __init__(self, operation: str, value: Any = None):
        self.operation = operation
        self.value = value

    def encode(self, mapper=None) -> Any:
        return {self.operation: encode_expression_value(mapper, self.value)}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.operation}, {self.value!r})"


class ValueExpression(Expression):
    """A bare value written as-is (field paths, variables, constants)."""

    def __init__(self, value: Any):
        super().__init__("", value)

    def encode(self, mapper=None) -> Any:
        return encode_expression_value(mapper, self.value)

    def __repr__(self) -> str:
        return f"ValueExpression({self.value!r})"


class FieldExpression(ValueExpression):
    """
    A field path: ``field("score")`` encodes as ``"$score"``. The path is
    written as given, so it names the stored key rather than the attribute.
    """

    def __init__(self, name: str):
        super().__init__(name if name.startswith("$") else f"${name}")

    @property
    def name(self) -> str:
        return self.value.lstrip("$")


class Accumulator(Expression):
    """An operator over one or more operands; a single operand is not wrapped in an array."""

    def __init__(self, operation: str, values):
        values = list(values)
        if not values:
            raise ValueError(f"{operation} needs at least one operand")
        super().__init__(operation, values)

    def encode(self, mapper=None) -> Any:
        if len(self.value) == 1:
            return {self.operation: encode_expression_value(mapper, self.value[0])}
        return {self.operation: encode_expression_value(mapper, self.value)}


class DocumentExpression(Expression):
    """
    A document built field by field.

    Example:
        >>> document().field("total", sum_("$a", "$b")).field("flag", True)
    """

    def __init__(self, fields: Optional[Dict[str, Any]] = None):
        super().__init__("", dict(fields or {}))

    def field(self, name: str, value: Any) -> "DocumentExpression":
        self.value[name] = value
        return self

    def encode(self, mapper=None) -> Any:
        return encode_expression_value(mapper, self.value)


class ArrayExpression(ValueExpression):
    """An array literal whose elements may be expressions."""

    def __init__(self, values):
        super().__init__(list(values))


def field(name: str) -> FieldExpression:
    return FieldExpression(name)


def value(v: Any) -> Expression:
    """
    A constant. Strings that look like field paths are wrapped in
    ``$literal`` so they are not resolved by the server.
    """
    if isinstance(v, str) and v.startswith("$"):
        return Expression("$literal", v)
    return ValueExpression(v)


def literal(v: Any) -> Expression:
    return Expression("$literal", v)


def document(fields: Optional[Dict[str, Any]] = None) -> DocumentExpression:
    return DocumentExpression(fields)


def array(*values: Any) -> ArrayExpression:
    return ArrayExpression(values)
