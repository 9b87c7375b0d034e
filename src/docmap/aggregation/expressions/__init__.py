"""
Aggregation expression builders, one module per operator family:

    from docmap.aggregation.expressions import accumulators, comparison

    accumulators.sum_("$qty")
    comparison.gt("$qty", 250)
"""

from docmap.aggregation.expressions import (
    accumulators,
    arithmetic,
    arrays,
    boolean,
    comparison,
    conditional,
    dates,
    misc,
    objects,
    sets,
    strings,
    trigonometry,
    types,
    variables,
)
from docmap.aggregation.expressions.base import (
    Expression,
    array,
    document,
    encode_expression_value,
    field,
    literal,
    value,
)

__all__ = [
    "Expression",
    "array",
    "document",
    "encode_expression_value",
    "field",
    "literal",
    "value",
    "accumulators",
    "arithmetic",
    "arrays",
    "boolean",
    "comparison",
    "conditional",
    "dates",
    "misc",
    "objects",
    "sets",
    "strings",
    "trigonometry",
    "types",
    "variables",
]
