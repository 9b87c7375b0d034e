"""
Sort orders and per-operation options.

Options are small dataclasses translated into keyword arguments for the
matching pymongo collection method. Attribute paths (projection, sort) are
translated to stored paths by the mapper when the options are applied.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pymongo import ReturnDocument

from docmap.mapping.mapper import Mapper


@dataclass(frozen=True)
class Sort:
    """
    A single sort criterion.

    Example:
        >>> Sort.descending("salary")
        Sort(field='salary', order=-1)
        >>> Sort.meta("score")  # sort by text score
        Sort(field='score', order={'$meta': 'textScore'})
    """

    field: str
    order: Any = 1

    @classmethod
    def ascending(cls, field: str) -> "Sort":
        return cls(field, 1)

    @classmethod
    def descending(cls, field: str) -> "Sort":
        return cls(field, -1)

    @classmethod
    def natural_ascending(cls) -> "Sort":
        return cls("$natural", 1)

    @classmethod
    def natural_descending(cls) -> "Sort":
        return cls("$natural", -1)

    @classmethod
    def meta(cls, field: str, meta: str = "textScore") -> "Sort":
        return cls(field, {"$meta": meta})


def encode_sorts(
    sorts: Sequence[Sort],
    mapper: Optional[Mapper] = None,
    entity_type: Optional[type] = None,
    validate: bool = True,
) -> Dict[str, Any]:
    """Merge sort criteria into a single ``{path: order}`` document."""
    document: Dict[str, Any] = {}
    for sort in sorts:
        if mapper is not None and not sort.field.startswith("$"):
            path = mapper.path(entity_type, sort.field, validate)
        else:
            path = sort.field
        document[path] = sort.order
    return document


@dataclass
class FindOptions:
    """Options for Query.iterator() / first()."""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    sort: List[Sort] = field(default_factory=list)
    skip: int = 0
    limit: int = 0
    batch_size: Optional[int] = None
    hint: Any = None
    collation: Optional[Dict[str, Any]] = None
    max_time_ms: Optional[int] = None
    comment: Optional[str] = None
    allow_disk_use: Optional[bool] = None
    no_cursor_timeout: bool = False

    def __post_init__(self):
        if self.skip < 0:
            raise ValueError("skip must be >= 0")
        if self.limit < 0:
            raise ValueError("limit must be >= 0")
        if self.include and self.exclude and set(self.exclude) - {"id", "_id"}:
            raise ValueError("projection cannot mix inclusion and exclusion")

    def projection(self, mapper: Mapper, entity_type: type, validate: bool = True):
        if not self.include and not self.exclude:
            return None
        projection: Dict[str, Any] = {}
        for name in self.include:
            projection[mapper.path(entity_type, name, validate)] = 1
        for name in self.exclude:
            projection[mapper.path(entity_type, name, validate)] = 0
        if self.include and mapper.is_mappable(entity_type):
            # keep the discriminator so polymorphic results still decode
            model = mapper.get_entity_model(entity_type)
            if model.use_discriminator:
                projection.setdefault(model.discriminator_key, 1)
        return projection

    def to_kwargs(self, mapper: Mapper, entity_type: type, validate: bool = True) -> dict:
        kwargs: Dict[str, Any] = {}
        projection = self.projection(mapper, entity_type, validate)
        if projection is not None:
            kwargs["projection"] = projection
        if self.sort:
            kwargs["sort"] = list(encode_sorts(self.sort, mapper, entity_type, validate).items())
        if self.skip:
            kwargs["skip"] = self.skip
        if self.limit:
            kwargs["limit"] = self.limit
        if self.batch_size is not None:
            kwargs["batch_size"] = self.batch_size
        if self.hint is not None:
            kwargs["hint"] = self.hint
        if self.collation is not None:
            kwargs["collation"] = self.collation
        if self.max_time_ms is not None:
            kwargs["max_time_ms"] = self.max_time_ms
        if self.comment is not None:
            kwargs["comment"] = self.comment
        if self.allow_disk_use is not None:
            kwargs["allow_disk_use"] = self.allow_disk_use
        if self.no_cursor_timeout:
            kwargs["no_cursor_timeout"] = True
        return kwargs


@dataclass
class CountOptions:
    skip: int = 0
    limit: int = 0
    hint: Any = None
    collation: Optional[Dict[str, Any]] = None
    max_time_ms: Optional[int] = None

    def to_kwargs(self) -> dict:
        kwargs: Dict[str, Any] = {}
        if self.skip:
            kwargs["skip"] = self.skip
        if self.limit:
            kwargs["limit"] = self.limit
        if self.hint is not None:
            kwargs["hint"] = self.hint
        if self.collation is not None:
            kwargs["collation"] = self.collation
        if self.max_time_ms is not None:
            kwargs["maxTimeMS"] = self.max_time_ms
        return kwargs


@dataclass
class DeleteOptions:
    multi: bool = False
    collation: Optional[Dict[str, Any]] = None
    hint: Any = None

    def to_kwargs(self) -> dict:
        kwargs: Dict[str, Any] = {}
        if self.collation is not None:
            kwargs["collation"] = self.collation
        if self.hint is not None:
            kwargs["hint"] = self.hint
        return kwargs


@dataclass
class UpdateOptions:
    multi: bool = False
    upsert: bool = False
    array_filters: Optional[List[Dict[str, Any]]] = None
    collation: Optional[Dict[str, Any]] = None
    hint: Any = None

    def to_kwargs(self) -> dict:
        kwargs: Dict[str, Any] = {"upsert": self.upsert}
        if self.array_filters is not None:
            kwargs["array_filters"] = self.array_filters
        if self.collation is not None:
            kwargs["collation"] = self.collation
        if self.hint is not None:
            kwargs["hint"] = self.hint
        return kwargs


@dataclass
class ModifyOptions:
    """Options for find-and-modify style operations."""

    return_new: bool = True
    upsert: bool = False
    sort: List[Sort] = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    array_filters: Optional[List[Dict[str, Any]]] = None
    collation: Optional[Dict[str, Any]] = None
    hint: Any = None

    def to_kwargs(self, mapper: Mapper, entity_type: type, validate: bool = True) -> dict:
        kwargs: Dict[str, Any] = {
            "upsert": self.upsert,
            "return_document": ReturnDocument.AFTER if self.return_new else ReturnDocument.BEFORE,
        }
        projection = FindOptions(include=self.include, exclude=self.exclude).projection(
            mapper, entity_type, validate
        )
        if projection is not None:
            kwargs["projection"] = projection
        if self.sort:
            kwargs["sort"] = list(encode_sorts(self.sort, mapper, entity_type, validate).items())
        if self.array_filters is not None:
            kwargs["array_filters"] = self.array_filters
        if self.collation is not None:
            kwargs["collation"] = self.collation
        if self.hint is not None:
            kwargs["hint"] = self.hint
        return kwargs
