"""
Conditional expressions.
"""

from typing import Any, Dict, List

from docmap.aggregation.expressions.base import Expression, encode_expression_value


class SwitchExpression(Expression):
    """
    ``$switch`` built one branch at a time.

    Example:
        >>> switch().branch(gte("$score", 90), "A").branch(gte("$score", 80), "B").default("C")
    """

    _NO_DEFAULT = object()

    def __init__(self):
        super().__init__("$switch")
        self.branches: List[Dict[str, Any]] = []
        self._default = self._NO_DEFAULT

    def branch(self, case: Any, then: Any) -> "SwitchExpression":
        self.branches.append({"case": case, "then": then})
        return self

    def default(self, value: Any) -> "SwitchExpression":
        self._default = value
        return self

    def encode(self, mapper=None) -> Any:
        body: Dict[str, Any] = {"branches": encode_expression_value(mapper, self.branches)}
        if self._default is not self._NO_DEFAULT:
            body["default"] = encode_expression_value(mapper, self._default)
        return {self.operation: body}


def condition(condition_: Any, then: Any, otherwise: Any) -> Expression:
    """``$cond``: ``then`` when ``condition_`` is true, else ``otherwise``."""
    return Expression("$cond", {"if": condition_, "then": then, "else": otherwise})


def if_null(input_: Any, replacement: Any, *more_inputs: Any) -> Expression:
    """
    First non-null input, or ``replacement`` when all inputs are null or
    missing. Extra inputs are checked in order before the replacement.
    """
    return Expression("$ifNull", [input_, *more_inputs, replacement])


def switch() -> SwitchExpression:
    return SwitchExpression()
