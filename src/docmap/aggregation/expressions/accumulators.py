"""
Accumulator expressions, used in $group, $bucket, $bucketAuto and
$setWindowFields.
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from docmap.aggregation.expressions.base import (
    Accumulator,
    DocumentExpression,
    Expression,
    encode_expression_value,
    named_args,
)
from docmap.query.options import Sort

SortSpec = Union[Sort, Dict[str, Any]]


def sort_document(sort_by: Sequence[SortSpec]) -> Dict[str, Any]:
    """Merge ``Sort`` criteria (or plain dicts) into one ``sortBy`` document."""
    if not sort_by:
        raise ValueError("at least one sort criterion is required")
    merged: Dict[str, Any] = {}
    for s in sort_by:
        if isinstance(s, Sort):
            merged[s.field] = s.order
        else:
            merged.update(s)
    return merged


class SortedAccumulator(Expression):
    """``$top`` / ``$bottom`` family: output, sortBy and optional n."""

    def __init__(self, operation: str, output: Any, sort_by: Sequence[SortSpec], n: Any = None):
        super().__init__(operation, output)
        self.sort_by = sort_document(sort_by)
        self.n = n

    def encode(self, mapper=None) -> Any:
        body: Dict[str, Any] = {
            "output": encode_expression_value(mapper, self.value),
            "sortBy": dict(self.sort_by),
        }
        if self.n is not None:
            body["n"] = encode_expression_value(mapper, self.n)
        return {self.operation: body}


class AccumulatorFunction(Expression):
    """Custom ``$accumulator`` written in JavaScript."""

    def __init__(
        self,
        init: str,
        accumulate: str,
        accumulate_args: List[Any],
        merge: str,
        init_args: Optional[List[Any]] = None,
        finalize: Optional[str] = None,
        lang: str = "js",
    ):
        super().__init__(
            "$accumulator",
            named_args(
                init=init,
                initArgs=init_args,
                accumulate=accumulate,
                accumulateArgs=list(accumulate_args),
                merge=merge,
                finalize=finalize,
                lang=lang,
            ),
        )


class PushDocument(DocumentExpression):
    """``$push`` of a document built field by field."""

    def encode(self, mapper=None) -> Any:
        return {"$push": super().encode(mapper)}


def accumulator(
    init: str,
    accumulate: str,
    accumulate_args: List[Any],
    merge: str,
    init_args: Optional[List[Any]] = None,
    finalize: Optional[str] = None,
    lang: str = "js",
) -> Expression:
    """Defines a custom accumulator operator."""
    return AccumulatorFunction(init, accumulate, accumulate_args, merge, init_args, finalize, lang)


def add_to_set(value: Any) -> Expression:
    """Array of unique expression values for each group. Order is undefined."""
    return Expression("$addToSet", value)


def avg(value: Any, *additional: Any) -> Expression:
    """Average of numerical values, ignoring non-numeric values."""
    return Accumulator("$avg", (value,) + additional)


def bottom(output: Any, *sort_by: SortSpec) -> Expression:
    """Bottom element within a group according to ``sort_by``."""
    return SortedAccumulator("$bottom", output, sort_by)


def bottom_n(n: Any, output: Any, *sort_by: SortSpec) -> Expression:
    """Bottom ``n`` elements within a group according to ``sort_by``."""
    return SortedAccumulator("$bottomN", output, sort_by, n)


def count() -> Expression:
    """Number of documents in the group."""
    return Expression("$count", {})


def first(value: Any) -> Expression:
    """Value from the first document of each group."""
    return Expression("$first", value)


def first_n(n: Any, input_: Any) -> Expression:
    """
    First ``n`` elements of a group (or of an array).

    ``n`` may itself be an expression depending on the group ``_id``.
    """
    return Expression("$firstN", {"input": input_, "n": n})


def function(body: str, *args: Any, lang: str = "js") -> Expression:
    """Custom function written in JavaScript."""
    return Expression("$function", {"body": body, "args": list(args), "lang": lang})


def last(value: Any) -> Expression:
    return Expression("$last", value)


def last_n(n: Any, input_: Any) -> Expression:
    return Expression("$lastN", {"input": input_, "n": n})


def max_(value: Any, *additional: Any) -> Expression:
    return Accumulator("$max", (value,) + additional)


def max_n(n: Any, input_: Any) -> Expression:
    return Expression("$maxN", {"input": input_, "n": n})


def min_(value: Any, *additional: Any) -> Expression:
    return Accumulator("$min", (value,) + additional)


def min_n(n: Any, input_: Any) -> Expression:
    return Expression("$minN", {"input": input_, "n": n})


def push(value: Any = None) -> Expression:
    """
    Array of values for each group.

    Without a value, returns a builder for pushing documents:
    ``push().field("item", "$item").field("qty", "$quantity")``.
    """
    if value is None:
        return PushDocument()
    return Expression("$push", value)


def std_dev_pop(value: Any, *additional: Any) -> Expression:
    return Accumulator("$stdDevPop", (value,) + additional)


def std_dev_samp(value: Any, *additional: Any) -> Expression:
    return Accumulator("$stdDevSamp", (value,) + additional)


def sum_(value: Any, *additional: Any) -> Expression:
    """Sum of numeric values, ignoring non-numeric values."""
    return Accumulator("$sum", (value,) + additional)


def top(output: Any, *sort_by: SortSpec) -> Expression:
    """Top element within a group according to ``sort_by``."""
    return SortedAccumulator("$top", output, sort_by)


def top_n(n: Any, output: Any, *sort_by: SortSpec) -> Expression:
    """Top ``n`` elements within a group according to ``sort_by``."""
    return SortedAccumulator("$topN", output, sort_by, n)
