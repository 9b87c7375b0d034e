"""
Update operator builders.

Operators are collected by an update and merged per operator name into the
update document sent to the driver:

    Operators                                  Update document
    ---------------------------------------    ---------------------------------------
    set_("name", "Elmer"), set_("wage", 5)     {"$set": {"name": "Elmer", "salary": 5}}
    inc("count"), unset("nickname")            {"$inc": {"count": 1}, "$unset": {"nickname": ""}}
    push("tags", ["a", "b"], position=0)       {"$push": {"tags": {"$each": ["a", "b"],
                                                                   "$position": 0}}}

Updates on versioned entities also increment the version field, so that
concurrent saves of a stale copy are detected.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from docmap.errors import UpdateError
from docmap.mapping.mapper import Mapper
from docmap.query.filters import Filter, encode_for_property, merge_filters
from docmap.query.options import Sort, encode_sorts

logger = logging.getLogger(__name__)


class UpdateOperator:
    """
    One ``{operator: {field: value}}`` entry.

    Args:
        operator: the update operator, e.g. ``"$set"``
        field: attribute path to update
        value: new value, encoded with the property's codecs
    """

    def __init__(self, operator: str, field: str, value: Any):
        self.operator = operator
        self.field = field
        self.value = value

    def path(self, mapper: Optional[Mapper], entity_type: Optional[type], validate: bool):
        if mapper is None:
            return self.field, None
        return mapper.resolve_path(entity_type, self.field, validate)

    def encode_value(self, mapper: Optional[Mapper], entity_type, validate, prop) -> Any:
        return encode_for_property(mapper, self.value, prop)

    def encode(
        self,
        mapper: Optional[Mapper] = None,
        entity_type: Optional[type] = None,
        validate: bool = True,
    ) -> Dict[str, Any]:
        """``{path: encoded_value}`` for this operator."""
        path, prop = self.path(mapper, entity_type, validate)
        return {path: self.encode_value(mapper, entity_type, validate, prop)}

    def __repr__(self) -> str:
        return f"UpdateOperator({self.operator} {self.field} {self.value!r})"


class ElementOperator(UpdateOperator):
    """Operators whose values are array elements (``$pullAll``)."""

    def encode_value(self, mapper, entity_type, validate, prop) -> Any:
        return [encode_for_property(mapper, v, prop, element=True) for v in self.value]


class ConstantOperator(UpdateOperator):
    """Operators whose value is written as given (``$unset``, ``$pop``, ``$bit``)."""

    def encode_value(self, mapper, entity_type, validate, prop) -> Any:
        return self.value


class RenameOperator(UpdateOperator):
    def encode_value(self, mapper, entity_type, validate, prop) -> Any:
        if mapper is None:
            return self.value
        return mapper.path(entity_type, self.value, validate=False)


class EachOperator(UpdateOperator):
    """
    ``$push`` and ``$addToSet``: a single element, or several with ``$each``
    and the ``$push`` modifiers.
    """

    def __init__(
        self,
        operator: str,
        field: str,
        value: Any,
        each: bool = False,
        position: Optional[int] = None,
        slice_: Optional[int] = None,
        sort: Any = None,
    ):
        super().__init__(operator, field, value)
        self.each = each or position is not None or slice_ is not None or sort is not None
        self.position = position
        self.slice = slice_
        self.sort = sort

    def encode_value(self, mapper, entity_type, validate, prop) -> Any:
        hint = prop.element_type if prop is not None else Any
        if not self.each:
            return encode_for_property(mapper, self.value, prop, element=True)
        values = self.value if isinstance(self.value, (list, tuple)) else [self.value]
        document: Dict[str, Any] = {
            "$each": [encode_for_property(mapper, v, prop, element=True) for v in values]
        }
        if self.position is not None:
            document["$position"] = self.position
        if self.slice is not None:
            document["$slice"] = self.slice
        if self.sort is not None:
            document["$sort"] = self._encode_sort(mapper, hint)
        return document

    def _encode_sort(self, mapper, element: Any) -> Any:
        if isinstance(self.sort, int):
            return self.sort
        sorts = [self.sort] if isinstance(self.sort, Sort) else list(self.sort)
        if mapper is not None and not mapper.is_mappable(element):
            element = None
        return encode_sorts(sorts, mapper, element, validate=False)


class PullOperator(UpdateOperator):
    """``$pull`` of a value, or of every element matching filters."""

    def encode_value(self, mapper, entity_type, validate, prop) -> Any:
        element = prop.element_type if prop is not None else Any
        filters = self.value if isinstance(self.value, (list, tuple)) else [self.value]
        if filters and all(isinstance(f, Filter) for f in filters):
            if mapper is not None and not mapper.is_mappable(element):
                element = None
            return merge_filters(filters, mapper, element, validate)
        return encode_for_property(mapper, self.value, prop, element=True)


def to_update_document(
    operators: Sequence[UpdateOperator],
    mapper: Optional[Mapper] = None,
    entity_type: Optional[type] = None,
    validate: bool = True,
) -> Dict[str, Dict[str, Any]]:
    """
    Merge operators into one update document.

    Raises:
        UpdateError: no operators were given
    """
    if not operators:
        raise UpdateError("an update needs at least one operator")

    document: Dict[str, Dict[str, Any]] = {}
    for op in operators:
        target = document.setdefault(op.operator, {})
        for path, value in op.encode(mapper, entity_type, validate).items():
            if path in target:
                logger.debug("%s on '%s' given twice, keeping the last value", op.operator, path)
            target[path] = value

    if mapper is not None and entity_type is not None and mapper.is_entity(entity_type):
        version = mapper.get_entity_model(entity_type).version_property
        if version is not None and not _touches(document, version.mapped_name):
            document.setdefault("$inc", {})[version.mapped_name] = 1
    return document


def _touches(document: Dict[str, Dict[str, Any]], path: str) -> bool:
    return any(path in fields for fields in document.values())


# =============================================================================
# BUILDERS
# =============================================================================


def set_(field: str, value: Any) -> UpdateOperator:
    return UpdateOperator("$set", field, value)


def unset(field: str) -> UpdateOperator:
    return ConstantOperator("$unset", field, "")


def inc(field: str, value: Any = 1) -> UpdateOperator:
    return UpdateOperator("$inc", field, value)


def dec(field: str, value: Any = 1) -> UpdateOperator:
    """``$inc`` by ``-value``."""
    return UpdateOperator("$inc", field, -value)


def mul(field: str, value: Any) -> UpdateOperator:
    return UpdateOperator("$mul", field, value)


def min_(field: str, value: Any) -> UpdateOperator:
    """Sets the field only when ``value`` is lower than the stored one."""
    return UpdateOperator("$min", field, value)


def max_(field: str, value: Any) -> UpdateOperator:
    return UpdateOperator("$max", field, value)


def rename(field: str, new_name: str) -> UpdateOperator:
    return RenameOperator("$rename", field, new_name)


def current_date(field: str, timestamp: bool = False) -> UpdateOperator:
    """Sets the field to the server's current date (or BSON timestamp)."""
    value = {"$type": "timestamp"} if timestamp else True
    return ConstantOperator("$currentDate", field, value)


def set_on_insert(field: str, value: Any) -> UpdateOperator:
    """``$set`` applied only when an upsert inserts a new document."""
    return UpdateOperator("$setOnInsert", field, value)


def push(
    field: str,
    value: Any,
    position: Optional[int] = None,
    slice_: Optional[int] = None,
    sort: Any = None,
) -> UpdateOperator:
    """
    Appends to an array. A list value is pushed element-wise with ``$each``.

    Args:
        position: insert at this index instead of appending
        slice_: keep only this many elements after pushing
        sort: 1/-1 for scalar elements, or Sort criteria on element fields
    """
    return EachOperator(
        "$push",
        field,
        value,
        each=isinstance(value, (list, tuple)),
        position=position,
        slice_=slice_,
        sort=sort,
    )


def add_to_set(field: str, value: Any) -> UpdateOperator:
    """Adds elements not already present. A list value is added with ``$each``."""
    return EachOperator("$addToSet", field, value, each=isinstance(value, (list, tuple)))


def pop(field: str, first: bool = False) -> UpdateOperator:
    """Removes the last element, or the first one when ``first`` is set."""
    return ConstantOperator("$pop", field, -1 if first else 1)


def pull(field: str, value: Any) -> UpdateOperator:
    """Removes every element equal to ``value`` or matching the given filter(s)."""
    return PullOperator("$pull", field, value)


def pull_all(field: str, values: Sequence[Any]) -> UpdateOperator:
    return ElementOperator("$pullAll", field, list(values))


def bit(field: str, and_: Optional[int] = None, or_: Optional[int] = None, xor: Optional[int] = None) -> UpdateOperator:
    """Bitwise update; at least one of ``and_``, ``or_``, ``xor``."""
    operations: Dict[str, int] = {}
    if and_ is not None:
        operations["and"] = and_
    if or_ is not None:
        operations["or"] = or_
    if xor is not None:
        operations["xor"] = xor
    if not operations:
        raise ValueError("bit() needs and_, or_ or xor")
    return ConstantOperator("$bit", field, operations)
