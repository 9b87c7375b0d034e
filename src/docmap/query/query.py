"""
Typed queries over a mapped collection.

A Query collects filters for one mapped class and runs them through the
driver collection of that class:

    query = datastore.find(Employee).filter(gte("wage", 10), eq("active", True))

    query.first()                                 -> Employee | None
    query.count()                                 -> int
    query.update(inc("wage", 2)).execute()        -> UpdateResult
    query.modify(set_("active", False)).execute() -> Employee | None
    query.to_dataframe()                          -> pandas.DataFrame

Results are decoded lazily, one document at a time, as the driver cursor is
consumed (MappedCursor).
"""

import dataclasses
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import pandas as pd
import polars as pl
import pyarrow as pa
from pymongo.results import DeleteResult, UpdateResult

from docmap.constants import DEFAULT_BATCH_SIZE
from docmap.export.frames import ResultFrames
from docmap.mapping.mapper import Mapper
from docmap.query.filters import Filter, merge_filters
from docmap.query.options import (
    CountOptions,
    DeleteOptions,
    FindOptions,
    ModifyOptions,
    UpdateOptions,
)
from docmap.query.updates import UpdateOperator, to_update_document

logger = logging.getLogger(__name__)


class MappedCursor:
    """
    Wraps a driver cursor and decodes each document on iteration.

    Args:
        cursor: pymongo cursor (or any iterable of documents)
        mapper: mapper used for decoding
        result_type: mapped class to decode into; None yields raw documents
    """

    def __init__(self, cursor: Any, mapper: Mapper, result_type: Optional[type] = None):
        self.cursor = cursor
        self.mapper = mapper
        self.result_type = result_type
        self._iterator = iter(cursor)

    def __iter__(self) -> "MappedCursor":
        return self

    def __next__(self) -> Any:
        document = next(self._iterator)
        if self.result_type is None:
            return document
        return self.mapper.from_document(self.result_type, document)

    def to_list(self) -> List[Any]:
        try:
            return list(self)
        finally:
            self.close()

    def close(self) -> None:
        close = getattr(self.cursor, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "MappedCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Query:
    """
    Filters and operations for one mapped class.

    Filters are validated against the class model unless
    ``disable_validation()`` is called; unknown attribute paths then pass
    through untranslated.
    """

    def __init__(self, datastore, entity_type: type):
        self.datastore = datastore
        self.mapper: Mapper = datastore.get_mapper()
        self.entity_type = entity_type
        self.filters: List[Filter] = []
        self.validate = True

    def filter(self, *filters: Filter) -> "Query":
        self.filters.extend(filters)
        return self

    def disable_validation(self) -> "Query":
        self.validate = False
        return self

    def enable_validation(self) -> "Query":
        self.validate = True
        return self

    def to_filter(self) -> Dict[str, Any]:
        """The filter document sent to the driver."""
        document = merge_filters(self.filters, self.mapper, self.entity_type, self.validate)
        discriminator = self.mapper.discriminator_filter(self.entity_type)
        if discriminator:
            for key, value in discriminator.items():
                document.setdefault(key, value)
        return document

    def _collection(self):
        return self.datastore.get_collection(self.entity_type)

    def _session(self) -> Dict[str, Any]:
        session = getattr(self.datastore, "session", None)
        return {"session": session} if session is not None else {}

    def _find(self, options: Optional[FindOptions]):
        options = options or FindOptions()
        kwargs = options.to_kwargs(self.mapper, self.entity_type, self.validate)
        query = self.to_filter()
        logger.debug("find %s %s %s", self.entity_type.__name__, query, kwargs)
        return self._collection().find(query, **kwargs, **self._session())

    # =========================================================================
    # READS
    # =========================================================================

    def iterator(self, options: Optional[FindOptions] = None) -> MappedCursor:
        return MappedCursor(self._find(options), self.mapper, self.entity_type)

    def __iter__(self) -> Iterator[Any]:
        return self.iterator()

    def first(self, options: Optional[FindOptions] = None) -> Optional[Any]:
        options = dataclasses.replace(options or FindOptions(), limit=1)
        with self.iterator(options) as cursor:
            return next(cursor, None)

    def to_list(self, options: Optional[FindOptions] = None) -> List[Any]:
        return self.iterator(options).to_list()

    def count(self, options: Optional[CountOptions] = None) -> int:
        options = options or CountOptions()
        return self._collection().count_documents(
            self.to_filter(), **options.to_kwargs(), **self._session()
        )

    def explain(self, options: Optional[FindOptions] = None) -> Dict[str, Any]:
        return self._find(options).explain()

    # =========================================================================
    # WRITES
    # =========================================================================

    def delete(self, options: Optional[DeleteOptions] = None) -> DeleteResult:
        options = options or DeleteOptions()
        collection = self._collection()
        delete = collection.delete_many if options.multi else collection.delete_one
        return delete(self.to_filter(), **options.to_kwargs(), **self._session())

    def find_and_delete(self, options: Optional[ModifyOptions] = None) -> Optional[Any]:
        """Deletes the first match and returns it."""
        options = options or ModifyOptions()
        kwargs = options.to_kwargs(self.mapper, self.entity_type, self.validate)
        for key in ("upsert", "return_document", "array_filters"):
            kwargs.pop(key, None)
        document = self._collection().find_one_and_delete(
            self.to_filter(), **kwargs, **self._session()
        )
        return self.mapper.from_document(self.entity_type, document)

    def update(self, *operators: UpdateOperator) -> "Update":
        return Update(self, operators)

    def modify(self, *operators: UpdateOperator) -> "Modify":
        return Modify(self, operators)

    # =========================================================================
    # EXPORT
    # =========================================================================

    def to_arrow(self, options: Optional[FindOptions] = None) -> pa.Table:
        options = options or FindOptions()
        if options.batch_size is None:
            options = dataclasses.replace(options, batch_size=DEFAULT_BATCH_SIZE)
        return ResultFrames(self._find(options), self.mapper, self.entity_type).to_arrow()

    def to_dataframe(self, options: Optional[FindOptions] = None) -> pd.DataFrame:
        return self.to_arrow(options).to_pandas()

    def to_polars(self, options: Optional[FindOptions] = None) -> pl.DataFrame:
        return pl.from_arrow(self.to_arrow(options))

    def __repr__(self) -> str:
        return f"Query({self.entity_type.__name__}, {self.filters!r})"


class Update:
    """Update operators bound to a query, run with ``execute()``."""

    def __init__(self, query: Query, operators: Sequence[UpdateOperator]):
        self.query = query
        self.operators = list(operators)

    def to_document(self) -> Dict[str, Any]:
        return to_update_document(
            self.operators, self.query.mapper, self.query.entity_type, self.query.validate
        )

    def execute(self, options: Optional[UpdateOptions] = None) -> UpdateResult:
        options = options or UpdateOptions()
        update = self.to_document()
        collection = self.query._collection()
        run = collection.update_many if options.multi else collection.update_one
        result = run(self.query.to_filter(), update, **options.to_kwargs(), **self.query._session())
        logger.debug(
            "Updated %s: matched=%s modified=%s",
            self.query.entity_type.__name__,
            result.matched_count,
            result.modified_count,
        )
        return result


class Modify(Update):
    """Find-and-modify: updates the first match and returns it."""

    def execute(self, options: Optional[ModifyOptions] = None) -> Optional[Any]:
        options = options or ModifyOptions()
        query = self.query
        document = query._collection().find_one_and_update(
            query.to_filter(),
            self.to_document(),
            **options.to_kwargs(query.mapper, query.entity_type, query.validate),
            **query._session(),
        )
        return query.mapper.from_document(query.entity_type, document)
