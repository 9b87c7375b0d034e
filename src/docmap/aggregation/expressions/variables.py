"""
System variables and ``$let``.
"""

from typing import Any, Dict

from docmap.aggregation.expressions.base import Expression, ValueExpression, encode_expression_value

CLUSTER_TIME = ValueExpression("$$CLUSTER_TIME")
CURRENT = ValueExpression("$$CURRENT")
DESCEND = ValueExpression("$$DESCEND")
KEEP = ValueExpression("$$KEEP")
NOW = ValueExpression("$$NOW")
PRUNE = ValueExpression("$$PRUNE")
REMOVE = ValueExpression("$$REMOVE")
ROOT = ValueExpression("$$ROOT")


class LetExpression(Expression):
    """
    ``$let``: binds variables usable as ``$$name`` inside ``in_expression``.

    Example:
        >>> let(multiply("$$total", 0.9)).variable("total", add("$price", "$tax"))
    """

    def __init__(self, in_expression: Any):
        super().__init__("$let", in_expression)
        self.variables: Dict[str, Any] = {}

    def variable(self, name: str, value: Any) -> "LetExpression":
        self.variables[name] = value
        return self

    def encode(self, mapper=None) -> Any:
        return {
            self.operation: {
                "vars": encode_expression_value(mapper, self.variables),
                "in": encode_expression_value(mapper, self.value),
            }
        }


def let(in_expression: Any) -> LetExpression:
    return LetExpression(in_expression)
