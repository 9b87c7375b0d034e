"""
Query filter builders.

Each builder returns a Filter that knows how to encode itself into the
driver's filter document. Field names are attribute paths of the queried
class; they are translated to stored paths and values are encoded with the
property's codecs when the filter is encoded:

    Filters                                  Filter document
    -------------------------------------    ---------------------------------
    eq("name", "Elmer")                      {"name": "Elmer"}
    gte("wage", 10), lt("wage", 20)          {"salary": {"$gte": 10, "$lt": 20}}
    in_("status", [Status.ACTIVE])           {"status": {"$in": ["ACTIVE"]}}
    gt("wage", 5).not_()                     {"salary": {"$not": {"$gt": 5}}}
    or_(eq("a", 1), eq("b", 2))              {"$or": [{"a": 1}, {"b": 2}]}
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from docmap.errors import ValidationError
from docmap.mapping.mapper import Mapper

logger = logging.getLogger(__name__)


def encode_with(mapper: Optional[Mapper], value: Any, hint: Any = Any) -> Any:
    """Encode a filter or update value with the mapper, when there is one."""
    from docmap.aggregation.expressions.base import Expression, encode_expression_value

    if isinstance(value, Expression) or mapper is None:
        return encode_expression_value(mapper, value)
    return mapper.encode_value(value, hint)


def encode_for_property(mapper: Optional[Mapper], value: Any, prop=None, element: bool = False) -> Any:
    """
    Encode a value aimed at ``prop`` (or at one of its elements).

    Values aimed at a reference property are stored the way the reference
    is: a ``DBRef``, or the bare id for ``id_only`` references.
    """
    if mapper is not None and prop is not None and prop.is_reference:
        from docmap.aggregation.expressions.base import Expression

        if not isinstance(value, Expression):
            return mapper.encode_reference(prop, value)
    if prop is None:
        return encode_with(mapper, value)
    return encode_with(mapper, value, prop.element_type if element else prop.type_hint)


class Filter:
    """
    A single ``{field: {operator: value}}`` condition.

    Args:
        name: the operator, e.g. ``"$gt"``
        field: attribute path the operator applies to (None for top-level
            operators such as ``$text`` or ``$expr``)
        value: operand
    """

    def __init__(self, name: str, field: Optional[str] = None, value: Any = None):
        self.name = name
        self.field = field
        self.value = value
        self._not = False
        self.validate = True

    def not_(self) -> "Filter":
        """Negate this filter with ``$not``."""
        if self.field is None:
            raise ValidationError(f"{self.name} cannot be negated with $not")
        self._not = True
        return self

    @property
    def is_negated(self) -> bool:
        return self._not

    def path(self, mapper: Optional[Mapper], entity_type: Optional[type], validate: bool):
        if mapper is None or self.field is None:
            return self.field, None
        return mapper.resolve_path(entity_type, self.field, validate and self.validate)

    def encode_value(self, mapper: Optional[Mapper], prop) -> Any:
        return encode_for_property(mapper, self.value, prop)

    def operand(self, mapper, entity_type, validate, prop) -> Any:
        """The encoded ``{operator: value}`` part."""
        return {self.name: self.encode_value(mapper, prop)}

    def encode(
        self,
        mapper: Optional[Mapper] = None,
        entity_type: Optional[type] = None,
        validate: bool = True,
    ) -> Dict[str, Any]:
        path, prop = self.path(mapper, entity_type, validate)
        operand = self.operand(mapper, entity_type, validate, prop)
        if self._not:
            operand = {"$not": operand}
        return {path: operand}

    def __repr__(self) -> str:
        negated = "not " if self._not else ""
        return f"Filter({negated}{self.field} {self.name} {self.value!r})"


class EqualityFilter(Filter):
    """``{field: value}``; written as ``$eq`` when negated."""

    def __init__(self, field: str, value: Any):
        super().__init__("$eq", field, value)

    def operand(self, mapper, entity_type, validate, prop) -> Any:
        encoded = self.encode_value(mapper, prop)
        if self._not:
            return {"$eq": encoded}
        return encoded


class ListFilter(Filter):
    """Operators whose operand is an array of values (``$in``, ``$nin``, ``$all``)."""

    def encode_value(self, mapper, prop) -> Any:
        return [encode_for_property(mapper, v, prop, element=True) for v in self.value]


class ElemMatchFilter(Filter):
    """``$elemMatch`` with nested filters applied to the array elements."""

    def __init__(self, field: str, filters: Sequence[Filter]):
        super().__init__("$elemMatch", field, list(filters))

    def operand(self, mapper, entity_type, validate, prop) -> Any:
        element = prop.element_type if prop is not None else None
        if element is not None and (mapper is None or not mapper.is_mappable(element)):
            element = None
        return {"$elemMatch": merge_filters(self.value, mapper, element, validate)}


class RegexFilter(Filter):
    def __init__(self, field: str, pattern: Any, options: Optional[str] = None):
        if isinstance(pattern, re.Pattern):
            flags = ""
            if pattern.flags & re.IGNORECASE:
                flags += "i"
            if pattern.flags & re.MULTILINE:
                flags += "m"
            if pattern.flags & re.DOTALL:
                flags += "s"
            if pattern.flags & re.VERBOSE:
                flags += "x"
            pattern, options = pattern.pattern, options or flags or None
        super().__init__("$regex", field, pattern)
        self.options = options

    def operand(self, mapper, entity_type, validate, prop) -> Any:
        operand: Dict[str, Any] = {"$regex": self.value}
        if self.options:
            operand["$options"] = self.options
        return operand


class TextSearchFilter(Filter):
    """``$text`` search. Applies to the collection's text index, not a field."""

    def __init__(
        self,
        search: str,
        language: Optional[str] = None,
        case_sensitive: Optional[bool] = None,
        diacritic_sensitive: Optional[bool] = None,
    ):
        super().__init__("$text", None, search)
        self.language = language
        self.case_sensitive = case_sensitive
        self.diacritic_sensitive = diacritic_sensitive

    def encode(self, mapper=None, entity_type=None, validate=True) -> Dict[str, Any]:
        text: Dict[str, Any] = {"$search": self.value}
        if self.language is not None:
            text["$language"] = self.language
        if self.case_sensitive is not None:
            text["$caseSensitive"] = self.case_sensitive
        if self.diacritic_sensitive is not None:
            text["$diacriticSensitive"] = self.diacritic_sensitive
        return {"$text": text}


class TopLevelFilter(Filter):
    """Operators written at the top level of the filter (``$expr``, ``$where`` ...)."""

    def __init__(self, name: str, value: Any):
        super().__init__(name, None, value)

    def encode(self, mapper=None, entity_type=None, validate=True) -> Dict[str, Any]:
        return {self.name: encode_with(mapper, self.value)}


class LogicalFilter(Filter):
    """``$and``, ``$or`` and ``$nor`` over nested filters."""

    def __init__(self, name: str, filters: Sequence[Filter]):
        if not filters:
            raise ValidationError(f"{name} needs at least one filter")
        super().__init__(name, None, list(filters))

    def add(self, *filters: Filter) -> "LogicalFilter":
        self.value.extend(filters)
        return self

    def encode(self, mapper=None, entity_type=None, validate=True) -> Dict[str, Any]:
        return {self.name: [f.encode(mapper, entity_type, validate) for f in self.value]}


class GeoFilter(Filter):
    """Geospatial operators taking a ``$geometry`` (GeoJSON) operand."""

    def __init__(
        self,
        name: str,
        field: str,
        geometry: Dict[str, Any],
        max_distance: Optional[float] = None,
        min_distance: Optional[float] = None,
        crs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(name, field, geometry)
        self.max_distance = max_distance
        self.min_distance = min_distance
        self.crs = crs

    def operand(self, mapper, entity_type, validate, prop) -> Any:
        geometry = dict(self.value)
        if self.crs is not None:
            geometry["crs"] = self.crs
        inner: Dict[str, Any] = {"$geometry": geometry}
        if self.max_distance is not None:
            inner["$maxDistance"] = self.max_distance
        if self.min_distance is not None:
            inner["$minDistance"] = self.min_distance
        return {self.name: inner}


class ShapeFilter(Filter):
    """``$geoWithin`` with a legacy shape (``$box``, ``$center`` ...)."""

    def __init__(self, field: str, shape: str, coordinates: Any):
        super().__init__("$geoWithin", field, coordinates)
        self.shape = shape

    def operand(self, mapper, entity_type, validate, prop) -> Any:
        return {"$geoWithin": {self.shape: self.value}}


# =============================================================================
# FILTER DOCUMENT ASSEMBLY
# =============================================================================


def _is_operator_doc(value: Any) -> bool:
    return isinstance(value, dict) and bool(value) and all(k.startswith("$") for k in value)


def merge_filters(
    filters: Sequence[Filter],
    mapper: Optional[Mapper] = None,
    entity_type: Optional[type] = None,
    validate: bool = True,
) -> Dict[str, Any]:
    """
    Combine filters into one filter document.

    Conditions on the same path merge into one operator document. Conflicts
    (two equalities, or the same operator twice) are moved into ``$and``.
    """
    document: Dict[str, Any] = {}
    conflicts: List[Dict[str, Any]] = []

    for f in filters:
        for path, operand in f.encode(mapper, entity_type, validate).items():
            if path not in document:
                document[path] = operand
                continue
            existing = document[path]
            if (
                path not in ("$and", "$or", "$nor")
                and _is_operator_doc(existing)
                and _is_operator_doc(operand)
                and not set(existing) & set(operand)
            ):
                document[path] = {**existing, **operand}
            elif path == "$and" and isinstance(existing, list):
                existing.extend(operand)
            else:
                conflicts.append({path: operand})

    if conflicts:
        document.setdefault("$and", [])
        document["$and"].extend(conflicts)
    return document


# =============================================================================
# BUILDERS
# =============================================================================


def eq(field: str, value: Any) -> Filter:
    return EqualityFilter(field, value)


def ne(field: str, value: Any) -> Filter:
    return Filter("$ne", field, value)


def gt(field: str, value: Any) -> Filter:
    return Filter("$gt", field, value)


def gte(field: str, value: Any) -> Filter:
    return Filter("$gte", field, value)


def lt(field: str, value: Any) -> Filter:
    return Filter("$lt", field, value)


def lte(field: str, value: Any) -> Filter:
    return Filter("$lte", field, value)


def in_(field: str, values: Sequence[Any]) -> Filter:
    return ListFilter("$in", field, list(values))


def nin(field: str, values: Sequence[Any]) -> Filter:
    return ListFilter("$nin", field, list(values))


def all_(field: str, values: Sequence[Any]) -> Filter:
    return ListFilter("$all", field, list(values))


def exists(field: str, present: bool = True) -> Filter:
    return Filter("$exists", field, present)


def type_(field: str, *types: Any) -> Filter:
    """Match a BSON type alias (``"string"``) or number; several types as an array."""
    if not types:
        raise ValueError("type_ needs at least one type")
    return Filter("$type", field, types[0] if len(types) == 1 else list(types))


def size(field: str, length: int) -> Filter:
    return Filter("$size", field, length)


def elem_match(field: str, *filters: Filter) -> Filter:
    if not filters:
        raise ValidationError("$elemMatch needs at least one filter")
    return ElemMatchFilter(field, filters)


def regex(field: str, pattern: Any, options: Optional[str] = None) -> Filter:
    return RegexFilter(field, pattern, options)


def mod(field: str, divisor: int, remainder: int) -> Filter:
    return Filter("$mod", field, [divisor, remainder])


def bits_all_clear(field: str, mask: Any) -> Filter:
    return Filter("$bitsAllClear", field, mask)


def bits_all_set(field: str, mask: Any) -> Filter:
    return Filter("$bitsAllSet", field, mask)


def bits_any_clear(field: str, mask: Any) -> Filter:
    return Filter("$bitsAnyClear", field, mask)


def bits_any_set(field: str, mask: Any) -> Filter:
    return Filter("$bitsAnySet", field, mask)


def text(
    search: str,
    language: Optional[str] = None,
    case_sensitive: Optional[bool] = None,
    diacritic_sensitive: Optional[bool] = None,
) -> Filter:
    return TextSearchFilter(search, language, case_sensitive, diacritic_sensitive)


def where(javascript: str) -> Filter:
    return TopLevelFilter("$where", javascript)


def expr(expression: Any) -> Filter:
    """Use an aggregation expression inside a query."""
    return TopLevelFilter("$expr", expression)


def json_schema(schema: Dict[str, Any]) -> Filter:
    return TopLevelFilter("$jsonSchema", schema)


def comment(text_: str) -> Filter:
    return TopLevelFilter("$comment", text_)


def sample_rate(rate: float) -> Filter:
    if not 0 <= rate <= 1:
        raise ValueError("sample rate must be between 0 and 1")
    return TopLevelFilter("$sampleRate", rate)


def near(
    field: str,
    point: Dict[str, Any],
    max_distance: Optional[float] = None,
    min_distance: Optional[float] = None,
) -> Filter:
    """Documents ordered by distance from a GeoJSON ``point``."""
    return GeoFilter("$near", field, point, max_distance, min_distance)


def near_sphere(
    field: str,
    point: Dict[str, Any],
    max_distance: Optional[float] = None,
    min_distance: Optional[float] = None,
) -> Filter:
    return GeoFilter("$nearSphere", field, point, max_distance, min_distance)


def geo_within(field: str, geometry: Dict[str, Any], crs: Optional[Dict[str, Any]] = None) -> Filter:
    return GeoFilter("$geoWithin", field, geometry, crs=crs)


def geo_intersects(field: str, geometry: Dict[str, Any]) -> Filter:
    return GeoFilter("$geoIntersects", field, geometry)


def box(field: str, bottom_left: Tuple[float, float], upper_right: Tuple[float, float]) -> Filter:
    return ShapeFilter(field, "$box", [list(bottom_left), list(upper_right)])


def center(field: str, point: Tuple[float, float], radius: float) -> Filter:
    return ShapeFilter(field, "$center", [list(point), radius])


def center_sphere(field: str, point: Tuple[float, float], radius: float) -> Filter:
    return ShapeFilter(field, "$centerSphere", [list(point), radius])


def polygon(field: str, *points: Tuple[float, float]) -> Filter:
    if len(points) < 3:
        raise ValueError("a polygon needs at least three points")
    return ShapeFilter(field, "$polygon", [list(p) for p in points])


def and_(*filters: Filter) -> LogicalFilter:
    return LogicalFilter("$and", filters)


def or_(*filters: Filter) -> LogicalFilter:
    return LogicalFilter("$or", filters)


def nor(*filters: Filter) -> LogicalFilter:
    return LogicalFilter("$nor", filters)
