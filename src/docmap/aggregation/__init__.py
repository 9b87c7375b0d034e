"""
Aggregation pipelines: stage builders, expression builders and execution.

    from docmap.aggregation import stages
    from docmap.aggregation.expressions import accumulators
"""

from docmap.aggregation import expressions, stages
from docmap.aggregation.pipeline import Aggregation, AggregationOptions
from docmap.aggregation.stages import Stage

__all__ = ["Aggregation", "AggregationOptions", "Stage", "expressions", "stages"]
