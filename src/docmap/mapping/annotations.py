"""
Declarations that turn dataclasses into mapped entities.

Entities are plain dataclasses. Class decorators mark the top-level types
that own a collection; field helpers attach mapping metadata to individual
attributes through ``dataclasses.field(metadata=...)``:

    @entity("employees", indexes=[Index("name", unique=True)])
    class Employee:
        id: Optional[ObjectId] = id_field()
        name: str = ""
        salary: float = prop("wage", default=0.0)
        manager: Optional["Employee"] = reference(default=None)
        direct_reports: List["Employee"] = reference(default_factory=list)
        cache: dict = transient(default_factory=dict)
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple, Union

ENTITY_ATTR = "__docmap_entity__"
EMBEDDED_ATTR = "__docmap_embedded__"
PROPERTY_META = "docmap"
HOOK_ATTR = "__docmap_hook__"

PRE_PERSIST = "pre_persist"
POST_PERSIST = "post_persist"
POST_LOAD = "post_load"


@dataclass(frozen=True)
class Index:
    """
    A compound or single-field index declared on an entity.

    Example:
        Index("name", ("salary", -1), unique=True)
    """

    fields: Tuple[Tuple[str, Any], ...]
    unique: bool = False
    sparse: bool = False
    name: Optional[str] = None
    expire_after_seconds: Optional[int] = None

    def __init__(
        self,
        *fields: Union[str, Tuple[str, Any]],
        unique: bool = False,
        sparse: bool = False,
        name: Optional[str] = None,
        expire_after_seconds: Optional[int] = None,
    ):
        if not fields:
            raise ValueError("Index needs at least one field")
        normalized = tuple(
            (f, 1) if isinstance(f, str) else (f[0], f[1]) for f in fields
        )
        object.__setattr__(self, "fields", normalized)
        object.__setattr__(self, "unique", unique)
        object.__setattr__(self, "sparse", sparse)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "expire_after_seconds", expire_after_seconds)


@dataclass(frozen=True)
class EntityOptions:
    """Options given to @entity / @embedded."""

    collection: Optional[str] = None
    discriminator: Optional[str] = None
    discriminator_key: Optional[str] = None
    use_discriminator: bool = True
    indexes: Tuple[Index, ...] = ()


@dataclass(frozen=True)
class PropertyOptions:
    """Mapping metadata for a single attribute."""

    name: Optional[str] = None
    is_id: bool = False
    is_reference: bool = False
    id_only: bool = False
    ignore_missing: bool = False
    is_transient: bool = False
    is_version: bool = False
    index: Optional[Index] = None


def _as_dataclass(cls: type) -> type:
    if "__dataclass_fields__" in cls.__dict__:
        return cls
    return dataclasses.dataclass(cls)


def entity(
    collection: Union[str, type, None] = None,
    *,
    discriminator: Optional[str] = None,
    discriminator_key: Optional[str] = None,
    use_discriminator: bool = True,
    indexes: Sequence[Index] = (),
):
    """
    Mark a class as a top-level entity stored in its own collection.

    Can be used bare (``@entity``) or with arguments
    (``@entity("people", discriminator="person")``).
    """

    def wrap(cls: type) -> type:
        cls = _as_dataclass(cls)
        setattr(
            cls,
            ENTITY_ATTR,
            EntityOptions(
                collection=collection if isinstance(collection, str) else None,
                discriminator=discriminator,
                discriminator_key=discriminator_key,
                use_discriminator=use_discriminator,
                indexes=tuple(indexes),
            ),
        )
        return cls

    if isinstance(collection, type):
        return wrap(collection)
    return wrap


def embedded(
    cls: Optional[type] = None,
    *,
    discriminator: Optional[str] = None,
    discriminator_key: Optional[str] = None,
):
    """Mark a dataclass as embeddable, optionally naming its discriminator."""

    def wrap(target: type) -> type:
        target = _as_dataclass(target)
        setattr(
            target,
            EMBEDDED_ATTR,
            EntityOptions(discriminator=discriminator, discriminator_key=discriminator_key),
        )
        return target

    if cls is not None:
        return wrap(cls)
    return wrap


def entity_options(cls: type) -> Optional[EntityOptions]:
    """Options of the nearest @entity in the class hierarchy."""
    for klass in cls.__mro__:
        options = klass.__dict__.get(ENTITY_ATTR)
        if options is not None:
            return options
    return None


def embedded_options(cls: type) -> Optional[EntityOptions]:
    return cls.__dict__.get(EMBEDDED_ATTR)


def _field(options: PropertyOptions, default, default_factory, **kwargs):
    if default is not dataclasses.MISSING and default_factory is not dataclasses.MISSING:
        raise ValueError("cannot specify both default and default_factory")
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={PROPERTY_META: options},
        **kwargs,
    )


def id_field(default=None, *, default_factory=dataclasses.MISSING):
    """The entity identifier, stored as ``_id``."""
    if default_factory is not dataclasses.MISSING:
        default = dataclasses.MISSING
    return _field(PropertyOptions(is_id=True), default, default_factory)


def prop(
    name: Optional[str] = None,
    *,
    default=dataclasses.MISSING,
    default_factory=dataclasses.MISSING,
):
    """A regular property, optionally stored under a different key."""
    return _field(PropertyOptions(name=name), default, default_factory)


def reference(
    name: Optional[str] = None,
    *,
    id_only: bool = False,
    ignore_missing: bool = False,
    default=dataclasses.MISSING,
    default_factory=dataclasses.MISSING,
):
    """
    A property holding other entities by reference.

    References are stored as ``DBRef`` values, or as the bare id with
    ``id_only=True``.
    """
    return _field(
        PropertyOptions(
            name=name, is_reference=True, id_only=id_only, ignore_missing=ignore_missing
        ),
        default,
        default_factory,
    )


def transient(*, default=dataclasses.MISSING, default_factory=dataclasses.MISSING):
    """A property that is never stored."""
    return _field(PropertyOptions(is_transient=True), default, default_factory)


def indexed(
    direction: Any = 1,
    unique: bool = False,
    sparse: bool = False,
    name: Optional[str] = None,
    *,
    stored_name: Optional[str] = None,
    default=dataclasses.MISSING,
    default_factory=dataclasses.MISSING,
):
    """
    A property with a single-field index.

    ``name`` names the index; ``stored_name`` stores the property under a
    different key, as ``prop(name)`` does.
    """
    # field name is filled in once the property's stored name is known
    index = Index(("", direction), unique=unique, sparse=sparse, name=name)
    return _field(PropertyOptions(name=stored_name, index=index), default, default_factory)


def version(default=None):
    """Optimistic-locking counter, incremented on every save."""
    return _field(PropertyOptions(is_version=True), default, dataclasses.MISSING)


def _hook(kind: str) -> Callable:
    def decorate(fn: Callable) -> Callable:
        setattr(fn, HOOK_ATTR, kind)
        return fn

    return decorate


pre_persist = _hook(PRE_PERSIST)
pre_persist.__doc__ = "Run ``method(self, document)`` before the entity is written."

post_persist = _hook(POST_PERSIST)
post_persist.__doc__ = "Run ``method(self, document)`` after the entity is written."

post_load = _hook(POST_LOAD)
post_load.__doc__ = "Run ``method(self, document)`` after the entity is decoded."
