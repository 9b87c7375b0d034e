"""
Aggregation pipeline stages.

Every stage encodes into a single-key document. Field names given as
attribute paths are translated to stored paths against the aggregation's
source type; collection targets may be given as mapped classes:

    Stages                                          Stage document
    ---------------------------------------------   ------------------------------------
    match(eq("status", "A"))                        {"$match": {"status": "A"}}
    group(id_("$cust_id")).field("total",           {"$group": {"_id": "$cust_id",
                               sum_("$amount"))                  "total": {"$sum": "$amount"}}}
    sort(Sort.descending("total"))                  {"$sort": {"total": -1}}
    lookup(Inventory, "item", "sku", "stock")       {"$lookup": {"from": "inventory", ...}}
    unwind("sizes")                                 {"$unwind": "$sizes"}
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from docmap.aggregation.expressions.base import (
    DocumentExpression,
    Expression,
    encode_expression_value,
)
from docmap.query.filters import Filter, merge_filters
from docmap.query.options import Sort, encode_sorts

logger = logging.getLogger(__name__)

Target = Union[str, type]


def _collection(mapper, target: Target) -> str:
    if isinstance(target, str):
        return target
    if mapper is None:
        raise ValueError(f"a mapper is needed to resolve the collection of {target!r}")
    return mapper.get_collection_name(target)


def _path(mapper, source_type: Optional[type], name: str) -> str:
    if mapper is None:
        return name
    return mapper.path(source_type, name, validate=False)


def _field_ref(mapper, source_type: Optional[type], name: str) -> str:
    """``"$stored.path"`` for an attribute path."""
    return "$" + _path(mapper, source_type, name.lstrip("$"))


def _encode_stages(stages: Sequence["Stage"], mapper, source_type) -> List[Dict[str, Any]]:
    return [s.encode(mapper, source_type) for s in stages]


class Stage:
    """A pipeline stage: ``{name: body}``."""

    def __init__(self, name: str, value: Any = None):
        self.name = name
        self.value = value

    def body(self, mapper, source_type) -> Any:
        return encode_expression_value(mapper, self.value)

    def encode(self, mapper=None, source_type: Optional[type] = None) -> Dict[str, Any]:
        return {self.name: self.body(mapper, source_type)}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


class FieldsStage(Stage):
    """Stage whose body is a document built with ``.field(name, value)``."""

    def __init__(self, name: str):
        super().__init__(name, {})

    def field(self, name: str, value: Any) -> "FieldsStage":
        self.value[name] = value
        return self

    def body(self, mapper, source_type) -> Any:
        return {
            _path(mapper, source_type, name): encode_expression_value(mapper, v)
            for name, v in self.value.items()
        }


# =============================================================================
# GROUPING
# =============================================================================


class GroupId(DocumentExpression):
    """
    ``_id`` of a ``$group``: a single expression, or a document of fields.

    Examples:
        >>> id_("$item")
        >>> id_().field("month", month("$date")).field("year", year("$date"))
    """

    def __init__(self, value: Any = None):
        super().__init__()
        self.single = value

    def encode(self, mapper=None) -> Any:
        if self.value:
            return super().encode(mapper)
        return encode_expression_value(mapper, self.single)


class Group(FieldsStage):
    def __init__(self, id_value: Any = None):
        super().__init__("$group")
        self.id_value = id_value if isinstance(id_value, GroupId) else GroupId(id_value)

    def body(self, mapper, source_type) -> Any:
        document = {"_id": self.id_value.encode(mapper)}
        for name, v in self.value.items():
            document[name] = encode_expression_value(mapper, v)
        return document


class Bucket(Stage):
    def __init__(self, group_by: Any, boundaries: Sequence[Any], default: Any = None):
        super().__init__("$bucket")
        if len(boundaries) < 2:
            raise ValueError("$bucket needs at least two boundaries")
        self.group_by = group_by
        self.boundaries = list(boundaries)
        self.default = default
        self.outputs: Dict[str, Any] = {}

    def output_field(self, name: str, accumulator: Expression) -> "Bucket":
        self.outputs[name] = accumulator
        return self

    def body(self, mapper, source_type) -> Any:
        document: Dict[str, Any] = {
            "groupBy": encode_expression_value(mapper, self.group_by),
            "boundaries": encode_expression_value(mapper, self.boundaries),
        }
        if self.default is not None:
            document["default"] = encode_expression_value(mapper, self.default)
        if self.outputs:
            document["output"] = encode_expression_value(mapper, self.outputs)
        return document


class BucketAuto(Stage):
    def __init__(self, group_by: Any, buckets: int, granularity: Optional[str] = None):
        super().__init__("$bucketAuto")
        if buckets < 1:
            raise ValueError("$bucketAuto needs at least one bucket")
        self.group_by = group_by
        self.buckets = buckets
        self.granularity = granularity
        self.outputs: Dict[str, Any] = {}

    def output_field(self, name: str, accumulator: Expression) -> "BucketAuto":
        self.outputs[name] = accumulator
        return self

    def body(self, mapper, source_type) -> Any:
        document: Dict[str, Any] = {
            "groupBy": encode_expression_value(mapper, self.group_by),
            "buckets": self.buckets,
        }
        if self.outputs:
            document["output"] = encode_expression_value(mapper, self.outputs)
        if self.granularity is not None:
            document["granularity"] = self.granularity
        return document


class Facet(Stage):
    def __init__(self):
        super().__init__("$facet", {})

    def field(self, name: str, *stages: Stage) -> "Facet":
        if not stages:
            raise ValueError(f"facet '{name}' needs at least one stage")
        self.value[name] = list(stages)
        return self

    def body(self, mapper, source_type) -> Any:
        return {
            name: _encode_stages(stages, mapper, source_type) for name, stages in self.value.items()
        }


# =============================================================================
# PROJECTION
# =============================================================================


class Projection(Stage):
    """
    ``$project`` built from includes, computed fields and excludes.

    Inclusions and exclusions cannot be mixed, except for suppressing ``_id``.
    """

    def __init__(self):
        super().__init__("$project")
        self.includes: Dict[str, Any] = {}
        self.excludes: List[str] = []
        self._suppress_id = False

    def include(self, name: str, value: Any = None) -> "Projection":
        self.includes[name] = True if value is None else value
        return self

    def exclude(self, name: str) -> "Projection":
        self.excludes.append(name)
        return self

    def suppress_id(self) -> "Projection":
        self._suppress_id = True
        return self

    def body(self, mapper, source_type) -> Any:
        if self.includes and self.excludes:
            raise ValueError("$project cannot mix inclusions and exclusions")
        document: Dict[str, Any] = {}
        if self._suppress_id:
            document["_id"] = False
        for name, v in self.includes.items():
            document[_path(mapper, source_type, name)] = encode_expression_value(mapper, v)
        for name in self.excludes:
            document[_path(mapper, source_type, name)] = False
        if not document:
            raise ValueError("$project needs at least one field")
        return document


class Unwind(Stage):
    def __init__(
        self,
        path: str,
        include_array_index: Optional[str] = None,
        preserve_null_and_empty_arrays: Optional[bool] = None,
    ):
        super().__init__("$unwind")
        self.path = path
        self.include_array_index = include_array_index
        self.preserve_null_and_empty_arrays = preserve_null_and_empty_arrays

    def body(self, mapper, source_type) -> Any:
        path = _field_ref(mapper, source_type, self.path)
        if self.include_array_index is None and self.preserve_null_and_empty_arrays is None:
            return path
        document: Dict[str, Any] = {"path": path}
        if self.include_array_index is not None:
            document["includeArrayIndex"] = self.include_array_index
        if self.preserve_null_and_empty_arrays is not None:
            document["preserveNullAndEmptyArrays"] = self.preserve_null_and_empty_arrays
        return document


class Unset(Stage):
    def __init__(self, fields: Sequence[str]):
        if not fields:
            raise ValueError("$unset needs at least one field")
        super().__init__("$unset", list(fields))

    def body(self, mapper, source_type) -> Any:
        paths = [_path(mapper, source_type, name) for name in self.value]
        return paths[0] if len(paths) == 1 else paths


# =============================================================================
# FILTERING AND ORDERING
# =============================================================================


class Match(Stage):
    def __init__(self, filters: Sequence[Filter]):
        super().__init__("$match", list(filters))

    def body(self, mapper, source_type) -> Any:
        return merge_filters(self.value, mapper, source_type, validate=False)


class SortStage(Stage):
    def __init__(self, sorts: Sequence[Sort]):
        if not sorts:
            raise ValueError("$sort needs at least one criterion")
        super().__init__("$sort", list(sorts))

    def body(self, mapper, source_type) -> Any:
        return encode_sorts(self.value, mapper, source_type, validate=False)


class GeoNear(Stage):
    def __init__(
        self,
        near: Any,
        distance_field: str,
        spherical: Optional[bool] = None,
        max_distance: Optional[float] = None,
        min_distance: Optional[float] = None,
        query: Sequence[Filter] = (),
        include_locs: Optional[str] = None,
        key: Optional[str] = None,
        distance_multiplier: Optional[float] = None,
    ):
        super().__init__("$geoNear")
        self.near = near
        self.distance_field = distance_field
        self.spherical = spherical
        self.max_distance = max_distance
        self.min_distance = min_distance
        self.query = list(query)
        self.include_locs = include_locs
        self.key = key
        self.distance_multiplier = distance_multiplier

    def body(self, mapper, source_type) -> Any:
        near = self.near
        if isinstance(near, (list, tuple)):
            near = {"type": "Point", "coordinates": list(near)}
        document: Dict[str, Any] = {
            "near": encode_expression_value(mapper, near),
            "distanceField": self.distance_field,
        }
        if self.spherical is not None:
            document["spherical"] = self.spherical
        if self.max_distance is not None:
            document["maxDistance"] = self.max_distance
        if self.min_distance is not None:
            document["minDistance"] = self.min_distance
        if self.query:
            document["query"] = merge_filters(self.query, mapper, source_type, validate=False)
        if self.include_locs is not None:
            document["includeLocs"] = self.include_locs
        if self.key is not None:
            document["key"] = _path(mapper, source_type, self.key)
        if self.distance_multiplier is not None:
            document["distanceMultiplier"] = self.distance_multiplier
        return document


# =============================================================================
# CROSS-COLLECTION
# =============================================================================


class Lookup(Stage):
    """
    ``$lookup``: equality match on ``local_field``/``foreign_field`` and/or a
    correlated ``pipeline`` using ``let`` variables.
    """

    def __init__(
        self,
        from_: Optional[Target],
        local_field: Optional[str],
        foreign_field: Optional[str],
        as_: str,
        let: Optional[Dict[str, Any]] = None,
        pipeline: Sequence[Stage] = (),
    ):
        super().__init__("$lookup")
        if (local_field is None) != (foreign_field is None):
            raise ValueError("local_field and foreign_field must be given together")
        if local_field is None and not pipeline:
            raise ValueError("$lookup needs local/foreign fields or a pipeline")
        self.from_ = from_
        self.local_field = local_field
        self.foreign_field = foreign_field
        self.as_ = as_
        self.let = let
        self.pipeline = list(pipeline)

    def body(self, mapper, source_type) -> Any:
        document: Dict[str, Any] = {}
        foreign_type = self.from_ if isinstance(self.from_, type) else None
        if self.from_ is not None:
            document["from"] = _collection(mapper, self.from_)
        if self.local_field is not None:
            document["localField"] = _path(mapper, source_type, self.local_field)
            document["foreignField"] = _path(mapper, foreign_type, self.foreign_field)
        if self.let:
            document["let"] = encode_expression_value(mapper, self.let)
        if self.pipeline:
            document["pipeline"] = _encode_stages(self.pipeline, mapper, foreign_type)
        document["as"] = self.as_
        return document


class GraphLookup(Stage):
    def __init__(
        self,
        from_: Target,
        start_with: Any,
        connect_from_field: str,
        connect_to_field: str,
        as_: str,
        max_depth: Optional[int] = None,
        depth_field: Optional[str] = None,
        restrict_search_with_match: Sequence[Filter] = (),
    ):
        super().__init__("$graphLookup")
        if max_depth is not None and max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.from_ = from_
        self.start_with = start_with
        self.connect_from_field = connect_from_field
        self.connect_to_field = connect_to_field
        self.as_ = as_
        self.max_depth = max_depth
        self.depth_field = depth_field
        self.restrict_search_with_match = list(restrict_search_with_match)

    def body(self, mapper, source_type) -> Any:
        foreign_type = self.from_ if isinstance(self.from_, type) else None
        document: Dict[str, Any] = {
            "from": _collection(mapper, self.from_),
            "startWith": encode_expression_value(mapper, self.start_with),
            "connectFromField": _path(mapper, foreign_type, self.connect_from_field),
            "connectToField": _path(mapper, foreign_type, self.connect_to_field),
            "as": self.as_,
        }
        if self.max_depth is not None:
            document["maxDepth"] = self.max_depth
        if self.depth_field is not None:
            document["depthField"] = self.depth_field
        if self.restrict_search_with_match:
            document["restrictSearchWithMatch"] = merge_filters(
                self.restrict_search_with_match, mapper, foreign_type, validate=False
            )
        return document


class UnionWith(Stage):
    def __init__(self, collection: Target, stages: Sequence[Stage] = ()):
        super().__init__("$unionWith")
        self.collection = collection
        self.stages = list(stages)

    def body(self, mapper, source_type) -> Any:
        name = _collection(mapper, self.collection)
        if not self.stages:
            return name
        foreign_type = self.collection if isinstance(self.collection, type) else None
        return {"coll": name, "pipeline": _encode_stages(self.stages, mapper, foreign_type)}


class Merge(Stage):
    def __init__(
        self,
        into: Target,
        database: Optional[str] = None,
        on: Union[str, Sequence[str], None] = None,
        let: Optional[Dict[str, Any]] = None,
        when_matched: Any = None,
        when_not_matched: Optional[str] = None,
    ):
        super().__init__("$merge")
        self.into = into
        self.database = database
        self.on = on
        self.let = let
        self.when_matched = when_matched
        self.when_not_matched = when_not_matched

    def body(self, mapper, source_type) -> Any:
        into: Any = _collection(mapper, self.into)
        if self.database is not None:
            into = {"db": self.database, "coll": into}
        document: Dict[str, Any] = {"into": into}
        if self.on is not None:
            document["on"] = self.on if isinstance(self.on, str) else list(self.on)
        if self.let is not None:
            document["let"] = encode_expression_value(mapper, self.let)
        if self.when_matched is not None:
            matched = self.when_matched
            if isinstance(matched, (list, tuple)):
                matched = _encode_stages(matched, mapper, source_type)
            document["whenMatched"] = matched
        if self.when_not_matched is not None:
            document["whenNotMatched"] = self.when_not_matched
        return document


class Out(Stage):
    def __init__(self, collection: Target, database: Optional[str] = None):
        super().__init__("$out")
        self.collection = collection
        self.database = database

    def body(self, mapper, source_type) -> Any:
        name = _collection(mapper, self.collection)
        if self.database is None:
            return name
        return {"db": self.database, "coll": name}


class CollectionStats(Stage):
    def __init__(
        self,
        histogram: bool = False,
        scale: Optional[int] = None,
        count: bool = False,
        query_exec_stats: bool = False,
    ):
        super().__init__("$collStats")
        self.histogram = histogram
        self.scale = scale
        self.count = count
        self.query_exec_stats = query_exec_stats

    def body(self, mapper, source_type) -> Any:
        document: Dict[str, Any] = {}
        if self.histogram:
            document["latencyStats"] = {"histograms": True}
        if self.scale is not None:
            document["storageStats"] = {"scale": self.scale}
        if self.count:
            document["count"] = {}
        if self.query_exec_stats:
            document["queryExecStats"] = {}
        return document


# =============================================================================
# BUILDERS
# =============================================================================


def add_fields() -> FieldsStage:
    """``$addFields``; chain ``.field(name, expression)``."""
    return FieldsStage("$addFields")


def set_() -> FieldsStage:
    """``$set``, an alias of ``$addFields``."""
    return FieldsStage("$set")


def bucket(group_by: Any, boundaries: Sequence[Any], default: Any = None) -> Bucket:
    return Bucket(group_by, boundaries, default)


def bucket_auto(group_by: Any, buckets: int, granularity: Optional[str] = None) -> BucketAuto:
    return BucketAuto(group_by, buckets, granularity)


def coll_stats(
    histogram: bool = False,
    scale: Optional[int] = None,
    count: bool = False,
    query_exec_stats: bool = False,
) -> CollectionStats:
    return CollectionStats(histogram, scale, count, query_exec_stats)


def count(name: str) -> Stage:
    """``{"$count": name}``: number of documents reaching this stage."""
    if not name or name.startswith("$") or "." in name:
        raise ValueError(f"invalid $count output field: {name!r}")
    return Stage("$count", name)


def documents(*docs: Any) -> Stage:
    """Literal input documents; must be the first stage of a database-level pipeline."""
    return Stage("$documents", list(docs))


def facet() -> Facet:
    return Facet()


def geo_near(near: Any, distance_field: str, **kwargs) -> GeoNear:
    return GeoNear(near, distance_field, **kwargs)


def graph_lookup(
    from_: Target,
    start_with: Any,
    connect_from_field: str,
    connect_to_field: str,
    as_: str,
    **kwargs,
) -> GraphLookup:
    return GraphLookup(from_, start_with, connect_from_field, connect_to_field, as_, **kwargs)


def group(id_value: Any = None) -> Group:
    """``$group`` by ``id_value``; chain ``.field(name, accumulator)``."""
    return Group(id_value)


def id_(value: Any = None) -> GroupId:
    return GroupId(value)


def index_stats() -> Stage:
    return Stage("$indexStats", {})


def limit(n: int) -> Stage:
    if n < 1:
        raise ValueError("limit must be positive")
    return Stage("$limit", n)


def lookup(
    from_: Optional[Target],
    local_field: Optional[str] = None,
    foreign_field: Optional[str] = None,
    as_: str = "",
    let: Optional[Dict[str, Any]] = None,
    pipeline: Sequence[Stage] = (),
) -> Lookup:
    if not as_:
        raise ValueError("$lookup needs an output field (as_)")
    return Lookup(from_, local_field, foreign_field, as_, let, pipeline)


def match(*filters: Filter) -> Match:
    return Match(filters)


def merge(into: Target, **kwargs) -> Merge:
    return Merge(into, **kwargs)


def out(collection: Target, database: Optional[str] = None) -> Out:
    return Out(collection, database)


def project() -> Projection:
    return Projection()


def redact(expression: Any) -> Stage:
    """Prunes content with ``$$DESCEND``, ``$$PRUNE`` and ``$$KEEP`` decisions."""
    return Stage("$redact", expression)


def replace_root(new_root: Any) -> Stage:
    return Stage("$replaceRoot", {"newRoot": new_root})


def replace_with(replacement: Any) -> Stage:
    return Stage("$replaceWith", replacement)


def sample(size: int) -> Stage:
    if size < 1:
        raise ValueError("sample size must be positive")
    return Stage("$sample", {"size": size})


def skip(n: int) -> Stage:
    if n < 0:
        raise ValueError("skip must be >= 0")
    return Stage("$skip", n)


def sort(*sorts: Sort) -> SortStage:
    return SortStage(sorts)


def sort_by_count(expression: Any) -> Stage:
    return Stage("$sortByCount", expression)


def union_with(collection: Target, *stages: Stage) -> UnionWith:
    return UnionWith(collection, stages)


def unset(*fields: str) -> Unset:
    return Unset(fields)


def unwind(
    path: str,
    include_array_index: Optional[str] = None,
    preserve_null_and_empty_arrays: Optional[bool] = None,
) -> Unwind:
    return Unwind(path, include_array_index, preserve_null_and_empty_arrays)
