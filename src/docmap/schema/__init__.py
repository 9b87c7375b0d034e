"""
Column types for docmap.

Describes how mapped properties are laid out when results are exported to
Arrow, pandas or polars.
"""

from .types import (
    BaseType,
    String,
    Int,
    Float,
    Bool,
    Timestamp,
    ObjectId,
    Decimal,
    Binary,
    Any,
    Struct,
    List,
)

# Import types module for Types.X syntax
from . import types as Types

__all__ = [
    # Types module for Types.X syntax
    "Types",
    # Individual type classes
    "BaseType",
    "String",
    "Int",
    "Float",
    "Bool",
    "Timestamp",
    "ObjectId",
    "Decimal",
    "Binary",
    "Any",
    "Struct",
    "List",
]
