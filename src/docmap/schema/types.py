"""
Column types for mapped properties.

Every mapped property has a column type derived from its type hint. The types
describe how a stored BSON value is laid out when query or aggregation results
are exported to Arrow, pandas or polars:

- Primitives: String, Int, Float, Bool, Timestamp, ObjectId, Decimal, Binary
- Complex: Struct (embedded documents), List (arrays)
- Any: escape hatch for untyped values, exported as canonical Extended JSON

ObjectIds and Decimal128 values have no Arrow counterpart and are exported as
strings. Binary values are exported as Arrow binary (bytes).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

import pyarrow as pa
from bson import Binary as BsonBinary
from bson import Decimal128, json_util
from bson import ObjectId as BsonObjectId


class BaseType(ABC):
    """Base class for all column types."""

    @abstractmethod
    def to_arrow(self) -> pa.DataType:
        """Convert to PyArrow data type."""
        pass

    def to_column(self, value):
        """Convert a stored value to something Arrow accepts for this type."""
        return value

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def __eq__(self, other) -> bool:
        return isinstance(other, self.__class__)

    def __hash__(self) -> int:
        return hash(self.__class__.__name__)


class String(BaseType):
    """String type."""

    def to_arrow(self) -> pa.DataType:
        return pa.string()

    def to_column(self, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


@dataclass(frozen=True)
class Int(BaseType):
    """Integer type."""
    bits: int = 64

    def to_arrow(self) -> pa.DataType:
        return pa.int64() if self.bits == 64 else pa.int32()

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError("Int bits must be either 32 or 64")


@dataclass(frozen=True)
class Float(BaseType):
    """Floating-point type."""
    bits: int = 64

    def to_arrow(self) -> pa.DataType:
        return pa.float64() if self.bits == 64 else pa.float32()

    def to_column(self, value):
        return None if value is None else float(value)

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError("Float bits must be either 32 or 64")


class Bool(BaseType):
    """Boolean type."""

    def to_arrow(self) -> pa.DataType:
        return pa.bool_()


@dataclass(frozen=True)
class Timestamp(BaseType):
    """Timestamp type. BSON dates have millisecond precision."""
    unit: str = "ms"
    tz: Optional[str] = "UTC"

    def to_arrow(self) -> pa.DataType:
        return pa.timestamp(self.unit, tz=self.tz)

    def to_column(self, value):
        # the driver hands back naive UTC datetimes unless tz_aware is set
        if isinstance(value, datetime) and value.tzinfo is None and self.tz:
            return value.replace(tzinfo=timezone.utc)
        return value

    def __post_init__(self):
        if self.unit not in ("s", "ms", "us", "ns"):
            raise ValueError("Timestamp unit must be one of 's', 'ms', 'us', 'ns'")


class ObjectId(BaseType):
    """ObjectId type (exported as its hex string)."""

    def to_arrow(self) -> pa.DataType:
        return pa.string()

    def to_column(self, value):
        if isinstance(value, BsonObjectId):
            return str(value)
        return value


class Decimal(BaseType):
    """Decimal128 type (exported as its string form to keep precision)."""

    def to_arrow(self) -> pa.DataType:
        return pa.string()

    def to_column(self, value):
        if value is None:
            return None
        if isinstance(value, Decimal128):
            return str(value.to_decimal())
        return str(value)


class Binary(BaseType):
    """Binary type."""

    def to_arrow(self) -> pa.DataType:
        return pa.binary()

    def to_column(self, value):
        if isinstance(value, BsonBinary):
            return bytes(value)
        return value


class Any(BaseType):
    """
    Polymorphic type - can hold any stored value.

    Exported as canonical Extended JSON so that no type information is lost:
    ``{"$numberInt": "1"}``, ``{"$oid": "..."}`` and so on.
    """

    def to_arrow(self) -> pa.DataType:
        return pa.string()

    def to_column(self, value):
        if value is None:
            return None
        return json_util.dumps(value, json_options=json_util.CANONICAL_JSON_OPTIONS)


class Struct(BaseType):
    """Nested document type."""

    def __init__(self, fields: Dict[str, BaseType]):
        """
        Args:
            fields: Dict mapping stored field name to type
        """
        self.fields = fields

    def to_arrow(self) -> pa.DataType:
        return pa.struct([
            (name, field_type.to_arrow())
            for name, field_type in self.fields.items()
        ])

    def to_column(self, value):
        if not isinstance(value, dict):
            return None
        return {
            name: field_type.to_column(value.get(name))
            for name, field_type in self.fields.items()
        }

    def __repr__(self) -> str:
        field_str = ", ".join(f"{k}: {v}" for k, v in self.fields.items())
        return f"Struct({{{field_str}}})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Struct):
            return False
        if set(self.fields.keys()) != set(other.fields.keys()):
            return False
        return all(self.fields[k] == other.fields[k] for k in self.fields)

    def __hash__(self) -> int:
        return hash(("Struct", tuple(sorted(self.fields))))


class List(BaseType):
    """List type."""

    def __init__(self, element_type: BaseType):
        """
        Args:
            element_type: Type of list elements
        """
        self.element_type = element_type

    def to_arrow(self) -> pa.DataType:
        return pa.list_(self.element_type.to_arrow())

    def to_column(self, value):
        if value is None:
            return None
        return [self.element_type.to_column(v) for v in value]

    def __repr__(self) -> str:
        return f"List({self.element_type})"

    def __eq__(self, other) -> bool:
        return isinstance(other, List) and self.element_type == other.element_type

    def __hash__(self) -> int:
        return hash(("List", self.element_type))
