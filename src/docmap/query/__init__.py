"""
Queries, filters, update operators and options.

Filters and update operators are used through their modules, since several
names (``eq``, ``set_``, ``max_``...) exist in both:

    from docmap.query import filters, updates
    datastore.find(Employee).filter(filters.gte("wage", 10)).update(updates.inc("wage"))
"""

from docmap.query import filters, updates
from docmap.query.filters import Filter
from docmap.query.options import (
    CountOptions,
    DeleteOptions,
    FindOptions,
    ModifyOptions,
    Sort,
    UpdateOptions,
)
from docmap.query.query import MappedCursor, Modify, Query, Update
from docmap.query.updates import UpdateOperator

__all__ = [
    "filters",
    "updates",
    "Filter",
    "UpdateOperator",
    "Sort",
    "FindOptions",
    "CountOptions",
    "DeleteOptions",
    "UpdateOptions",
    "ModifyOptions",
    "Query",
    "Update",
    "Modify",
    "MappedCursor",
]
