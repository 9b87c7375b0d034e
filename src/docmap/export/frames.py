"""
Tabular export of query and aggregation results.

Results are turned into a ``pyarrow.Table`` first; pandas and polars frames
are produced from that table.

DATA FLOW
=========

STEP 1: DERIVE COLUMN TYPES
---------------------------
When the results belong to a mapped class, every property's type hint is
turned into a column type (docmap.schema.types):

    @entity                                 Struct({
    class Employee:                             _id: ObjectId(),
        id: ObjectId = id_field()               name: String(),
        name: str                               address: Struct({city: String()}),
        address: Address                        tags: List(String()),
        tags: List[str]                     })

Raw documents (no mapped class) get types inferred by Arrow.


STEP 2: FLATTEN NESTED DOCUMENTS
--------------------------------
Embedded documents become dotted columns:

    Before: {"address": {"city": "Paris", "zip": "75001"}}
    After:  {"address.city": "Paris", "address.zip": "75001"}

Arrays are kept as list columns.


STEP 3: CONVERT BSON VALUES
---------------------------
ObjectIds and Decimal128 become strings, Binary becomes bytes, naive
datetimes are marked UTC. Values with no fixed type are exported as
canonical Extended JSON strings.


OUTPUT: pyarrow.Table, pandas.DataFrame or polars.DataFrame
-----------------
    _id                        name     address.city   tags
 0  64a1b2c3d4e5f6a7b8c9d0e1   Elmer    Paris          [a, b]
"""

import datetime as dt
import decimal
import enum
import logging
import uuid
from pathlib import PurePath
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd
import polars as pl
import pyarrow as pa
from bson import Binary, DBRef, Decimal128, ObjectId, json_util

from docmap.mapping.mapper import Mapper
from docmap.mapping.model import collection_origin, is_mappable, unwrap_optional
from docmap.schema import types as Types

logger = logging.getLogger(__name__)

_SCALARS: List[Tuple[type, Types.BaseType]] = [
    # bool before int: bool is an int subclass
    (bool, Types.Bool()),
    (int, Types.Int()),
    (float, Types.Float()),
    (str, Types.String()),
    (dt.datetime, Types.Timestamp()),
    (dt.date, Types.Timestamp()),
    (dt.time, Types.Int()),
    (ObjectId, Types.ObjectId()),
    (decimal.Decimal, Types.Decimal()),
    (Decimal128, Types.Decimal()),
    (bytes, Types.Binary()),
    (Binary, Types.Binary()),
    (uuid.UUID, Types.Binary()),
    (enum.Enum, Types.String()),
    (PurePath, Types.String()),
    (type, Types.String()),
]


def schema_type_for(hint: Any, mapper: Optional[Mapper] = None, _seen: Tuple[type, ...] = ()) -> Types.BaseType:
    """
    Column type for a property type hint.

    Containers become List, mapped classes become Struct. Dicts, unions and
    self-referencing classes fall back to Any.
    """
    hint, _ = unwrap_optional(hint)
    origin = collection_origin(hint)
    if origin is dict:
        return Types.Any()
    if origin is not None:
        args = [a for a in getattr(hint, "__args__", ()) if a is not Ellipsis]
        if origin is tuple and len(set(args)) > 1:
            return Types.List(Types.Any())
        element = args[0] if args else Any
        return Types.List(schema_type_for(element, mapper, _seen))

    if is_mappable(hint):
        if hint in _seen:
            return Types.Any()
        return schema_for(mapper or Mapper(), hint, _seen + (hint,))

    if isinstance(hint, type):
        for python_type, column_type in _SCALARS:
            if issubclass(hint, python_type):
                return column_type
    return Types.Any()


def schema_for(mapper: Mapper, cls: type, _seen: Tuple[type, ...] = ()) -> Types.Struct:
    """Struct of stored field names to column types for a mapped class."""
    model = mapper.get_entity_model(cls)
    fields: Dict[str, Types.BaseType] = {}
    for prop in model.properties:
        if prop.is_reference:
            fields[prop.mapped_name] = _reference_type(prop)
        else:
            fields[prop.mapped_name] = schema_type_for(prop.type_hint, mapper, _seen or (cls,))
    return Types.Struct(fields)


def _reference_type(prop) -> Types.BaseType:
    # DBRefs and bare ids of any type
    if collection_origin(prop.type_hint) is not None:
        return Types.List(Types.Any())
    return Types.Any()


def flatten_schema(struct: Types.Struct, prefix: str = "") -> Dict[str, Types.BaseType]:
    """Nested Struct fields as dotted column names."""
    columns: Dict[str, Types.BaseType] = {}
    for name, field_type in struct.fields.items():
        dotted = f"{prefix}{name}"
        if isinstance(field_type, Types.Struct) and field_type.fields:
            columns.update(flatten_schema(field_type, dotted + "."))
        else:
            columns[dotted] = field_type
    return columns


def flatten_document(document: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Flatten nested dicts into dotted keys.

    Example:
        {'metadata': {'sensor_id': '...', 'device_id': '...'}}
        -> {'metadata.sensor_id': '...', 'metadata.device_id': '...'}
    """
    row: Dict[str, Any] = {}
    for key, value in document.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            row.update(flatten_document(value, dotted + "."))
        else:
            row[dotted] = value
    return row


def _get_path(document: Any, dotted: str) -> Any:
    for segment in dotted.split("."):
        if not isinstance(document, dict):
            return None
        document = document.get(segment)
    return document


def to_plain(value: Any) -> Any:
    """Convert BSON-only values to types Arrow understands."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Decimal128):
        return str(value.to_decimal())
    if isinstance(value, Binary):
        return bytes(value)
    if isinstance(value, DBRef):
        return json_util.dumps(value, json_options=json_util.CANONICAL_JSON_OPTIONS)
    if isinstance(value, dt.datetime) and value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    return value


class ResultFrames:
    """
    Builds Arrow tables and DataFrames from result documents.

    Args:
        documents: raw result documents (dicts as returned by the driver)
        mapper: mapper used to derive the column types of ``result_type``
        result_type: mapped class the documents belong to; None exports the
            documents with inferred types

    Example:
        >>> frames = ResultFrames(collection.find(), mapper, Employee)
        >>> df = frames.to_pandas()
    """

    def __init__(
        self,
        documents: Iterable[Dict[str, Any]],
        mapper: Optional[Mapper] = None,
        result_type: Optional[type] = None,
    ):
        self.documents = list(documents)
        self.mapper = mapper or Mapper()
        self.result_type = result_type if is_mappable(result_type) else None

    def schema(self) -> Optional[Types.Struct]:
        if self.result_type is None:
            return None
        return schema_for(self.mapper, self.result_type)

    def to_arrow(self) -> pa.Table:
        schema = self.schema()
        if schema is None:
            return self._infer_table()

        columns = flatten_schema(schema)
        arrays = {}
        for name, column_type in columns.items():
            values = [column_type.to_column(_get_path(doc, name)) for doc in self.documents]
            arrays[name] = pa.array(values, type=column_type.to_arrow())
        logger.debug(
            "Exported %d %s documents to %d columns",
            len(self.documents),
            self.result_type.__name__,
            len(columns),
        )
        return pa.table(arrays)

    def _infer_table(self) -> pa.Table:
        rows = [flatten_document(to_plain(doc)) for doc in self.documents]
        names: List[str] = []
        for row in rows:
            names.extend(k for k in row if k not in names)

        arrays = {}
        for name in names:
            values = [row.get(name) for row in rows]
            try:
                arrays[name] = pa.array(values)
            except (pa.ArrowInvalid, pa.ArrowTypeError) as e:
                # mixed types in one column: keep every value as Extended JSON
                logger.warning("Column '%s' has mixed types, exporting as JSON: %s", name, e)
                arrays[name] = pa.array([Types.Any().to_column(v) for v in values], type=pa.string())
        return pa.table(arrays)

    def to_pandas(self) -> pd.DataFrame:
        return self.to_arrow().to_pandas()

    def to_polars(self) -> pl.DataFrame:
        return pl.from_arrow(self.to_arrow())

