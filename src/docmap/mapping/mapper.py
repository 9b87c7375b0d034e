"""
The mapper: translation between mapped objects and documents.

================================================================================
DATA FLOW
================================================================================

ENCODING (to_document):

    Employee(id=ObjectId("64a..."), name="Elmer", wage=50000.0,
             address=Address(city="Burbank"), manager=<Employee 64b...>)

        1. id first, stored as "_id"
        2. discriminator ("_t") when the entity uses one
        3. properties in declaration order, under their stored names
           - embedded dataclasses become nested documents
           - references become DBRef("employees", <id>) or the bare id
           - codec-handled values (date, Enum, Decimal...) are converted
           - None / empty values are skipped unless configured otherwise

    {"_id": ObjectId("64a..."), "_t": "Employee", "name": "Elmer",
     "salary": 50000.0, "address": {"city": "Burbank"},
     "manager": DBRef("employees", ObjectId("64b..."))}

DECODING (from_document) runs the same steps backwards, guided by the type
hints of each property. The discriminator picks the concrete subclass.

PATHS (path): attribute paths used in filters, sorts and updates are
translated to stored paths: "wage" -> "salary", "address.city" ->
"address.city", "id" -> "_id". Array indexes and positional operators pass
through unchanged.

================================================================================
"""

import importlib
import logging
import pkgutil
import typing
from typing import Any, Callable, Dict, List, Optional, Tuple

from bson import DBRef

from docmap.config import DEFAULT_OPTIONS, MapperOptions
from docmap.constants import POSITIONAL_SEGMENTS
from docmap.errors import (
    MappingError,
    MissingReferenceError,
    NotMappedError,
    ValidationError,
)
from docmap.mapping.annotations import (
    POST_LOAD,
    embedded_options,
    entity_options,
)
from docmap.mapping.codecs import TypesCodecRegistry, load_class
from docmap.mapping.model import (
    EntityModel,
    PropertyModel,
    build_model,
    collection_origin,
    is_mappable,
    unwrap_optional,
)

logger = logging.getLogger(__name__)

# resolver(target_class, reference_id, collection_name) -> entity or None
ReferenceResolver = Callable[[type, Any, Optional[str]], Any]


def _args(hint: Any) -> Tuple[Any, ...]:
    hint, _ = unwrap_optional(hint)
    return typing.get_args(hint)


def _item_hint(hint: Any) -> Any:
    args = _args(hint)
    return args[0] if args else Any


def _is_untyped(hint: Any) -> bool:
    return hint is Any or hint is object or isinstance(hint, typing.TypeVar)


class Mapper:
    """
    Maps dataclasses to documents and back.

    Example:
        >>> mapper = Mapper()
        >>> mapper.map(Employee)
        >>> doc = mapper.to_document(Employee(name="Elmer"))
        >>> mapper.from_document(Employee, doc)
        Employee(id=None, name='Elmer', ...)
    """

    def __init__(
        self,
        options: Optional[MapperOptions] = None,
        codecs: Optional[TypesCodecRegistry] = None,
    ):
        self.options = options or DEFAULT_OPTIONS
        self.codecs = codecs or TypesCodecRegistry()
        self.reference_resolver: Optional[ReferenceResolver] = None
        self._models: Dict[type, EntityModel] = {}
        self._discriminators: Dict[str, List[type]] = {}

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def map(self, *classes: type) -> List[EntityModel]:
        """Map the given classes, returning their models."""
        return [self.get_entity_model(cls) for cls in classes]

    def map_package(self, package: str) -> List[EntityModel]:
        """
        Import ``package`` and map every entity and @embedded class it defines.

        Sub-modules are walked when ``map_sub_packages`` is enabled.
        """
        module = importlib.import_module(package)
        modules = [module]
        if self.options.map_sub_packages and hasattr(module, "__path__"):
            for info in pkgutil.walk_packages(module.__path__, prefix=f"{package}."):
                modules.append(importlib.import_module(info.name))

        models = []
        for mod in modules:
            for obj in list(vars(mod).values()):
                if not isinstance(obj, type) or obj.__module__ != mod.__name__:
                    continue
                if entity_options(obj) is not None or embedded_options(obj) is not None:
                    models.append(self.get_entity_model(obj))

        logger.info("Mapped %d classes from %s", len(models), package)
        return models

    def is_mappable(self, cls: Any) -> bool:
        return is_mappable(cls)

    def is_entity(self, cls: Any) -> bool:
        return is_mappable(cls) and entity_options(cls) is not None

    def get_entity_model(self, cls: type) -> EntityModel:
        """
        Return the model of ``cls``, mapping it on first use.

        Raises:
            NotMappedError: when ``cls`` is not a dataclass
        """
        model = self._models.get(cls)
        if model is not None:
            return model
        if not is_mappable(cls):
            raise NotMappedError(cls)

        model = build_model(cls, self.options)
        self._models[cls] = model
        known = self._discriminators.setdefault(model.discriminator, [])
        if cls not in known:
            known.append(cls)
        return model

    def mapped_classes(self) -> List[type]:
        return list(self._models)

    def get_collection_name(self, cls: type) -> str:
        model = self.get_entity_model(cls)
        if not model.is_entity:
            raise MappingError(f"{cls.__qualname__} is embedded and has no collection")
        return model.collection_name

    def get_id(self, entity: Any) -> Any:
        model = self.get_entity_model(type(entity))
        if model.id_property is None:
            return None
        return model.id_property.get_value(entity)

    def set_id(self, entity: Any, value: Any) -> None:
        model = self.get_entity_model(type(entity))
        if model.id_property is None:
            raise MappingError(f"{type(entity).__qualname__} has no id property")
        model.id_property.set_value(entity, value)

    # =========================================================================
    # ENCODING
    # =========================================================================

    def to_document(self, entity: Any, declared: Optional[type] = None) -> dict:
        """
        Encode a mapped object.

        Args:
            entity: instance of a mapped class
            declared: the type the value was declared as, when embedded
        """
        model = self.get_entity_model(type(entity))
        document: Dict[str, Any] = {}

        id_prop = model.id_property
        if id_prop is not None:
            entity_id = id_prop.get_value(entity)
            if entity_id is not None:
                document[id_prop.mapped_name] = self.encode_value(entity_id, id_prop.type_hint)

        if self._writes_discriminator(model, declared):
            document[model.discriminator_key] = model.discriminator

        for prop in model.properties:
            if prop.is_id:
                continue
            value = prop.get_value(entity)
            if prop.is_reference:
                encoded = self.encode_reference(prop, value)
            else:
                encoded = self.encode_value(value, prop.type_hint)
            if encoded is None and not self.options.store_nulls:
                continue
            if isinstance(encoded, (list, dict)) and not encoded and not self.options.store_empties:
                continue
            document[prop.mapped_name] = encoded
        return document

    def _writes_discriminator(self, model: EntityModel, declared: Optional[type]) -> bool:
        if declared is None:
            return model.is_entity and model.use_discriminator
        # embedded values only carry it when the declared type is not enough
        return model.use_discriminator and (
            _is_untyped(declared) or declared is not model.type
        )

    def encode_value(self, value: Any, hint: Any = Any) -> Any:
        """Encode any value, using ``hint`` to decide on embedded discriminators."""
        if value is None:
            return None
        if is_mappable(type(value)):
            declared, _ = unwrap_optional(hint)
            return self.to_document(value, declared=declared)
        if isinstance(value, dict):
            args = _args(hint)
            value_hint = args[1] if len(args) == 2 else Any
            return {
                self._encode_key(k): self.encode_value(v, value_hint)
                for k, v in value.items()
            }
        if isinstance(value, list):
            item = _item_hint(hint)
            return [self.encode_value(v, item) for v in value]
        if isinstance(value, (set, frozenset, tuple)):
            item = _item_hint(hint)
            return self.codecs.encode(value, element=lambda v: self.encode_value(v, item))
        return self.codecs.encode(value)

    def _encode_key(self, key: Any) -> str:
        if isinstance(key, str):
            return key
        encoded = self.codecs.encode(key)
        return encoded if isinstance(encoded, str) else str(key)

    def encode_reference(self, prop: PropertyModel, value: Any) -> Any:
        """Encode the referenced entities held by ``prop``."""
        if value is None:
            return None
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.encode_reference(prop, v) for v in value]
        if isinstance(value, dict):
            return {self._encode_key(k): self.encode_reference(prop, v) for k, v in value.items()}
        if not is_mappable(type(value)):
            return value

        model = self.get_entity_model(type(value))
        if not model.is_entity:
            raise MappingError(
                f"{prop.name}: only entities can be referenced, "
                f"{type(value).__qualname__} is embedded"
            )
        ref_id = model.id_property.get_value(value)
        if ref_id is None:
            raise MappingError(
                f"{prop.name}: referenced {type(value).__qualname__} has no id; save it first"
            )
        encoded_id = self.encode_value(ref_id, model.id_property.type_hint)
        if prop.options.id_only:
            return encoded_id
        return DBRef(model.collection_name, encoded_id)

    # =========================================================================
    # DECODING
    # =========================================================================

    def from_document(self, cls: type, document: Optional[dict]) -> Any:
        """
        Decode a document into an instance of ``cls`` (or of the subclass
        named by its discriminator).
        """
        if document is None:
            return None
        target = self.resolve_type(cls, document)
        model = self.get_entity_model(target)

        values: Dict[str, Any] = {}
        for prop in model.properties:
            if prop.mapped_name not in document:
                continue
            raw = document[prop.mapped_name]
            if prop.is_reference:
                values[prop.name] = self._decode_reference(prop, raw)
            else:
                values[prop.name] = self.decode_value(raw, prop.type_hint)

        instance = model.instantiate(values)
        model.call_hooks(POST_LOAD, instance, document)
        return instance

    def resolve_type(self, cls: type, document: dict) -> type:
        """
        Pick the class a document decodes to.

        Raises:
            MappingError: when the discriminator names a class that is not
                ``cls`` or one of its subclasses
        """
        model = self.get_entity_model(cls)
        discriminator = document.get(model.discriminator_key)
        if discriminator is None or discriminator == model.discriminator:
            return cls

        target = self._lookup_discriminator(cls, discriminator)
        if target is None:
            raise MappingError(
                f"Unknown discriminator {discriminator!r} for {cls.__qualname__}"
            )
        if not issubclass(target, cls):
            raise MappingError(
                f"Discriminator {discriminator!r} names {target.__qualname__}, "
                f"which is not a {cls.__qualname__}"
            )
        return target

    def _lookup_discriminator(self, cls: type, discriminator: str) -> Optional[type]:
        candidates = self._discriminators.get(discriminator, [])
        for candidate in candidates:
            if issubclass(candidate, cls):
                return candidate

        # subclasses that have not been mapped yet
        pending = list(cls.__subclasses__())
        while pending:
            sub = pending.pop()
            pending.extend(sub.__subclasses__())
            if is_mappable(sub) and self.get_entity_model(sub).discriminator == discriminator:
                return sub

        if candidates:
            return candidates[0]
        if "." in discriminator:
            return load_class(discriminator)
        return None

    def decode_value(self, value: Any, hint: Any = Any) -> Any:
        """Decode a stored value into the type described by ``hint``."""
        if value is None:
            return None
        hint, _ = unwrap_optional(hint)
        if _is_untyped(hint):
            return self._decode_untyped(value)

        origin = collection_origin(hint)
        if origin is dict:
            if not isinstance(value, dict):
                raise MappingError(f"Expected a document for {hint}, got {type(value).__name__}")
            args = typing.get_args(hint)
            key_hint, value_hint = args if len(args) == 2 else (str, Any)
            return {
                self._decode_key(k, key_hint): self.decode_value(v, value_hint)
                for k, v in value.items()
            }
        if origin is not None:
            items = value if isinstance(value, list) else [value]
            args = typing.get_args(hint)
            if origin is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
                return tuple(self.decode_value(v, h) for v, h in zip(items, args))
            item = args[0] if args else Any
            return origin(self.decode_value(v, item) for v in items)

        type_origin = typing.get_origin(hint)
        if type_origin is type:
            return self.codecs.decode(value, type)
        if type_origin is not None:
            # Union, Literal, Annotated ...
            return self._decode_untyped(value)

        if is_mappable(hint):
            if not isinstance(value, dict):
                raise MappingError(
                    f"Expected a document for {hint.__qualname__}, got {type(value).__name__}"
                )
            return self.from_document(hint, value)

        if isinstance(hint, type):
            codec = self.codecs.get(hint)
            if codec is not None:
                return codec.decode(value, hint)
            if hint is float and isinstance(value, int) and not isinstance(value, bool):
                return float(value)
        return value

    def _decode_key(self, key: str, hint: Any) -> Any:
        if not isinstance(hint, type) or hint is str:
            return key
        if self.codecs.get(hint) is not None:
            return self.codecs.decode(key, hint)
        if hint in (int, float):
            return hint(key)
        return key

    def _decode_untyped(self, value: Any) -> Any:
        if isinstance(value, dict):
            discriminator = value.get(self.options.discriminator_key)
            candidates = self._discriminators.get(discriminator, []) if isinstance(discriminator, str) else []
            if candidates:
                return self.from_document(candidates[0], value)
            return {k: self._decode_untyped(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._decode_untyped(v) for v in value]
        return value

    def _decode_reference(self, prop: PropertyModel, raw: Any) -> Any:
        origin = collection_origin(prop.type_hint)
        if origin is dict and isinstance(raw, dict) and not isinstance(raw, DBRef):
            return {k: self._resolve(prop, v) for k, v in raw.items()}
        if origin is not None and isinstance(raw, list):
            resolved = [self._resolve(prop, v) for v in raw]
            return origin(r for r in resolved if r is not None)
        return self._resolve(prop, raw)

    def _resolve(self, prop: PropertyModel, raw: Any) -> Any:
        if raw is None:
            return None
        target = prop.element_type
        if self.reference_resolver is None or not is_mappable(target):
            logger.debug("No resolver for %s, keeping raw reference %r", prop.name, raw)
            return raw

        if isinstance(raw, DBRef):
            ref_id, collection = raw.id, raw.collection
        else:
            ref_id, collection = raw, None
        entity = self.reference_resolver(target, ref_id, collection)
        if entity is None:
            if prop.options.ignore_missing or self.options.ignore_missing_references:
                logger.debug("Ignoring missing %s reference %r", target.__qualname__, ref_id)
                return None
            raise MissingReferenceError(target, ref_id)
        return entity

    # =========================================================================
    # PATHS
    # =========================================================================

    def resolve_path(
        self, cls: Optional[type], dotted: str, validate: bool = True
    ) -> Tuple[str, Optional[PropertyModel]]:
        """
        Translate an attribute path into its stored form.

        Returns:
            Tuple of (stored_path, property) where property is the last
            mapped property on the path, or None when the path left the
            mapped types

        Raises:
            ValidationError: unknown property while ``validate`` is set

        Examples:
            >>> mapper.resolve_path(Employee, "wage")
            ('salary', PropertyModel(wage -> salary))
            >>> mapper.resolve_path(Employee, "address.city")
            ('address.city', PropertyModel(city -> city))
        """
        model = self.get_entity_model(cls) if cls is not None and is_mappable(cls) else None
        segments = dotted.split(".")
        stored = []
        last: Optional[PropertyModel] = None

        for segment in segments:
            if (
                model is None
                or segment.isdigit()
                or segment in POSITIONAL_SEGMENTS
                or segment.startswith("$")
            ):
                stored.append(segment)
                if model is None:
                    last = None
                continue

            prop = model.property(segment)
            if prop is None:
                if validate:
                    raise ValidationError(
                        f"Could not resolve path '{dotted}': {model.type.__qualname__} "
                        f"has no property '{segment}'"
                    )
                stored.append(segment)
                model, last = None, None
                continue

            stored.append(prop.mapped_name)
            last = prop
            nested = prop.element_type
            model = (
                self.get_entity_model(nested)
                if is_mappable(nested) and not prop.is_reference
                else None
            )

        return ".".join(stored), last

    def path(self, cls: Optional[type], dotted: str, validate: bool = True) -> str:
        return self.resolve_path(cls, dotted, validate)[0]

    def discriminator_filter(self, cls: type) -> Optional[dict]:
        """
        Filter restricting a shared collection to ``cls`` and its subclasses.

        Only needed when ``cls`` inherits its collection from a mapped parent.
        """
        model = self.get_entity_model(cls)
        if not model.is_entity or not model.use_discriminator:
            return None
        parents = [
            base
            for base in cls.__mro__[1:]
            if is_mappable(base)
            and entity_options(base) is not None
            and self.get_entity_model(base).collection_name == model.collection_name
        ]
        if not parents:
            return None

        names = [model.discriminator]
        pending = list(cls.__subclasses__())
        while pending:
            sub = pending.pop(0)
            pending.extend(sub.__subclasses__())
            if is_mappable(sub):
                names.append(self.get_entity_model(sub).discriminator)
        if len(names) == 1:
            return {model.discriminator_key: names[0]}
        return {model.discriminator_key: {"$in": names}}
