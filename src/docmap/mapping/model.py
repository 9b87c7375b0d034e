"""
Reflection-based models of mapped classes.

A model is built once per class from its dataclass fields, resolved type
hints and the metadata attached by the declarations in
``docmap.mapping.annotations``:

    @entity("employees")                 EntityModel(
    class Employee:                          type=Employee,
        id: ObjectId = id_field()            collection_name="employees",
        name: str = indexed()                discriminator="Employee",
        wage: float = prop("salary")         properties=[
                                                 id    -> "_id",
                                                 name  -> "name",   (indexed)
                                                 wage  -> "salary",
                                             ])
"""

import collections.abc as cabc
import dataclasses
import logging
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from docmap.config import MapperOptions
from docmap.constants import ID_KEY
from docmap.errors import MappingError
from docmap.mapping.annotations import (
    ENTITY_ATTR,
    HOOK_ATTR,
    PROPERTY_META,
    EntityOptions,
    Index,
    PropertyOptions,
    embedded_options,
    entity_options,
)

logger = logging.getLogger(__name__)

NoneType = type(None)


# =============================================================================
# TYPE HINT HELPERS
# =============================================================================


def unwrap_optional(hint: Any) -> Tuple[Any, bool]:
    """
    Strip ``Optional[...]`` from a hint.

    Examples:
        >>> unwrap_optional(Optional[int])
        (<class 'int'>, True)
        >>> unwrap_optional(Union[int, str])
        (typing.Union[int, str], False)
    """
    if typing.get_origin(hint) is typing.Union:
        args = [a for a in typing.get_args(hint) if a is not NoneType]
        if len(args) == 1:
            return args[0], True
    return hint, False


def collection_origin(hint: Any) -> Optional[type]:
    """The concrete container (list, set, frozenset, tuple, dict) of a hint."""
    hint, _ = unwrap_optional(hint)
    origin = typing.get_origin(hint) or hint
    if not isinstance(origin, type):
        return None
    if issubclass(origin, (str, bytes, bytearray)):
        return None
    for concrete in (dict, list, set, frozenset, tuple):
        if origin is concrete:
            return concrete
    # abstract collection hints fall back to builtins
    if issubclass(origin, cabc.Mapping):
        return dict
    if issubclass(origin, cabc.Set):
        return set
    if issubclass(origin, cabc.Sequence):
        return list
    return None


def element_type(hint: Any) -> Any:
    """
    Innermost value type of a hint.

    Examples:
        >>> element_type(List[Employee])
        <class 'Employee'>
        >>> element_type(Dict[str, Optional[Address]])
        <class 'Address'>
    """
    hint, _ = unwrap_optional(hint)
    origin = collection_origin(hint)
    if origin is None:
        return hint
    args = typing.get_args(hint)
    if not args:
        return typing.Any
    if origin is dict:
        return element_type(args[1]) if len(args) == 2 else typing.Any
    if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
        return element_type(args[0])
    return element_type(args[0])


def is_mappable(cls: Any) -> bool:
    """Dataclasses (entities and embedded types) are mappable."""
    return isinstance(cls, type) and dataclasses.is_dataclass(cls)


# =============================================================================
# MODELS
# =============================================================================


@dataclass
class PropertyModel:
    """A single mapped attribute."""

    name: str
    mapped_name: str
    type_hint: Any
    options: PropertyOptions
    init: bool = True

    @property
    def is_id(self) -> bool:
        return self.options.is_id

    @property
    def is_reference(self) -> bool:
        return self.options.is_reference

    @property
    def is_version(self) -> bool:
        return self.options.is_version

    @property
    def element_type(self) -> Any:
        return element_type(self.type_hint)

    def get_value(self, instance: Any) -> Any:
        return getattr(instance, self.name, None)

    def set_value(self, instance: Any, value: Any) -> None:
        object.__setattr__(instance, self.name, value)

    def schema_type(self, mapper=None):
        """Column type used when exporting this property."""
        from docmap.export.frames import schema_type_for

        return schema_type_for(self.type_hint, mapper)

    def __repr__(self) -> str:
        return f"PropertyModel({self.name} -> {self.mapped_name})"


@dataclass
class EntityModel:
    """Everything docmap knows about one mapped class."""

    type: type
    is_entity: bool
    collection_name: Optional[str]
    discriminator: str
    discriminator_key: str
    use_discriminator: bool
    properties: List[PropertyModel]
    indexes: List[Index] = field(default_factory=list)
    hooks: Dict[str, List[Callable]] = field(default_factory=dict)

    def __post_init__(self):
        self._by_name = {p.name: p for p in self.properties}
        self._by_mapped = {p.mapped_name: p for p in self.properties}

    @property
    def id_property(self) -> Optional[PropertyModel]:
        return next((p for p in self.properties if p.is_id), None)

    @property
    def version_property(self) -> Optional[PropertyModel]:
        return next((p for p in self.properties if p.is_version), None)

    def property(self, name: str) -> Optional[PropertyModel]:
        """Look up a property by attribute name, falling back to stored name."""
        return self._by_name.get(name) or self._by_mapped.get(name)

    def property_by_mapped_name(self, mapped_name: str) -> Optional[PropertyModel]:
        return self._by_mapped.get(mapped_name)

    def instantiate(self, values: Dict[str, Any]) -> Any:
        """
        Create an instance from decoded attribute values.

        Missing attributes keep their dataclass defaults.

        Raises:
            MappingError: when a required attribute is absent
        """
        init_kwargs = {}
        late = {}
        for prop in self.properties:
            if prop.name not in values:
                continue
            if prop.init:
                init_kwargs[prop.name] = values[prop.name]
            else:
                late[prop.name] = values[prop.name]

        try:
            instance = self.type(**init_kwargs)
        except TypeError as e:
            raise MappingError(f"Cannot create {self.type.__qualname__}: {e}") from e

        for name, value in late.items():
            object.__setattr__(instance, name, value)
        return instance

    def call_hooks(self, kind: str, instance: Any, document: Optional[dict]) -> None:
        for hook in self.hooks.get(kind, ()):
            hook(instance, document)

    def __repr__(self) -> str:
        return (
            f"EntityModel({self.type.__qualname__}, collection={self.collection_name!r}, "
            f"properties={[p.name for p in self.properties]})"
        )


# =============================================================================
# MODEL BUILDING
# =============================================================================


def _collect_hooks(cls: type) -> Dict[str, List[Callable]]:
    by_name: Dict[str, Callable] = {}
    for klass in reversed(cls.__mro__):
        for attr, value in klass.__dict__.items():
            fn = getattr(value, "__func__", value)
            if callable(fn) and hasattr(fn, HOOK_ATTR):
                by_name[attr] = fn
            elif attr in by_name:
                # overridden by a plain method in a subclass
                del by_name[attr]

    hooks: Dict[str, List[Callable]] = {}
    for fn in by_name.values():
        hooks.setdefault(getattr(fn, HOOK_ATTR), []).append(fn)
    return hooks


def _collection_name(cls: type, options: MapperOptions) -> Optional[str]:
    for klass in cls.__mro__:
        own: Optional[EntityOptions] = klass.__dict__.get(ENTITY_ATTR)
        if own is not None:
            return own.collection or options.collection_naming.apply(klass.__name__)
    return None


def build_model(cls: type, options: MapperOptions) -> EntityModel:
    """
    Build the model of a dataclass.

    Raises:
        MappingError: duplicate stored names, several ids, or an entity
            without an id
    """
    if not is_mappable(cls):
        raise MappingError(f"{cls!r} is not a dataclass")

    ent = entity_options(cls)
    own_options = cls.__dict__.get(ENTITY_ATTR) or embedded_options(cls)

    try:
        hints = typing.get_type_hints(cls)
    except NameError as e:
        raise MappingError(f"Cannot resolve type hints of {cls.__qualname__}: {e}") from e

    properties: List[PropertyModel] = []
    indexes: List[Index] = list(ent.indexes) if ent else []
    for f in dataclasses.fields(cls):
        meta: PropertyOptions = f.metadata.get(PROPERTY_META, PropertyOptions())
        if meta.is_transient:
            continue
        if meta.is_id:
            mapped = ID_KEY
        else:
            mapped = meta.name or options.property_naming.apply(f.name)
        properties.append(
            PropertyModel(
                name=f.name,
                mapped_name=mapped,
                type_hint=hints.get(f.name, typing.Any),
                options=meta,
                init=f.init,
            )
        )
        if meta.index is not None:
            index = meta.index
            indexes.append(
                Index(
                    (mapped, index.fields[0][1]),
                    unique=index.unique,
                    sparse=index.sparse,
                    name=index.name,
                )
            )

    seen: Dict[str, str] = {}
    for p in properties:
        if p.mapped_name in seen:
            raise MappingError(
                f"{cls.__qualname__}: '{p.name}' and '{seen[p.mapped_name]}' "
                f"are both stored as '{p.mapped_name}'"
            )
        seen[p.mapped_name] = p.name

    id_count = sum(1 for p in properties if p.is_id)
    if id_count > 1:
        raise MappingError(f"{cls.__qualname__} declares {id_count} id properties")
    if ent is not None and id_count == 0:
        raise MappingError(f"Entity {cls.__qualname__} has no id_field()")
    if sum(1 for p in properties if p.is_version) > 1:
        raise MappingError(f"{cls.__qualname__} declares more than one version()")

    discriminator = (own_options.discriminator if own_options else None) or (
        options.discriminator.apply(cls)
    )
    key_source = own_options or ent
    discriminator_key = (
        key_source.discriminator_key if key_source and key_source.discriminator_key else None
    ) or options.discriminator_key

    model = EntityModel(
        type=cls,
        is_entity=ent is not None,
        collection_name=_collection_name(cls, options),
        discriminator=discriminator,
        discriminator_key=discriminator_key,
        use_discriminator=ent.use_discriminator if ent else True,
        properties=properties,
        indexes=indexes,
        hooks=_collect_hooks(cls),
    )
    logger.debug("Mapped %s", model)
    return model
