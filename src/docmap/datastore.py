"""
Datastore: the entry point tying a mapper to a pymongo database.

PERSISTENCE FLOW
================

STEP 1: ENCODE
--------------
The entity is encoded by the mapper; ``pre_persist`` hooks receive the
instance and the encoded document and may still change the document.

STEP 2: WRITE
-------------
    save(entity)
        id is None                 -> insert_one / insert_many
        versioned                  -> replace_one({_id, version: N}, doc with version N+1)
                                      no match -> VersionMismatchError
        otherwise                  -> replace_one({_id}, doc, upsert=True)

    merge(entity)                  -> update_one({_id}, {"$set": non-null properties})

Generated ids (and new versions) are written back into the instance.

STEP 3: AFTER WRITE
-------------------
``post_persist`` hooks run with the instance and the written document.


REFERENCES
==========
The datastore installs itself as the mapper's reference resolver: stored
DBRefs or bare ids are loaded from the target collection when a referencing
entity is decoded. Inside ``with_transaction`` the loads go through the
transaction's session.
"""

import logging
from contextvars import ContextVar
from typing import Any, Callable, Dict, List, Optional, Union

from pymongo import IndexModel, MongoClient
from pymongo.results import DeleteResult, UpdateResult

from docmap.aggregation.pipeline import Aggregation
from docmap.config import MapperOptions
from docmap.constants import ID_KEY
from docmap.errors import MappingError, VersionMismatchError
from docmap.mapping.annotations import POST_PERSIST, PRE_PERSIST
from docmap.mapping.codecs import TypesCodecRegistry
from docmap.mapping.mapper import Mapper
from docmap.query.query import Query

logger = logging.getLogger(__name__)

# session of the transaction running in the current context
_transaction_session: ContextVar = ContextVar("docmap_transaction_session", default=None)


def create_datastore(
    client: MongoClient,
    database: str,
    options: Optional[MapperOptions] = None,
    codecs: Optional[TypesCodecRegistry] = None,
) -> "Datastore":
    """
    Create a datastore for ``database`` on an existing client.

    Example:
        >>> client = MongoClient("mongodb://localhost:27017")
        >>> datastore = create_datastore(client, "hr")
        >>> datastore.get_mapper().map(Employee)
    """
    return Datastore(client, database, Mapper(options, codecs))


class Datastore:
    """
    Persistence operations for mapped entities.

    Args:
        client: pymongo client
        database: database name
        mapper: mapper shared by every operation of this datastore
        session: client session; set on the datastore handed to
            ``with_transaction`` bodies
    """

    def __init__(self, client: MongoClient, database: str, mapper: Mapper, session=None):
        self.client = client
        self.database = database
        self.mapper = mapper
        self.session = session
        if session is None:
            mapper.reference_resolver = self._resolve_reference

    def get_database(self):
        return self.client[self.database]

    def get_mapper(self) -> Mapper:
        return self.mapper

    def get_collection(self, cls: type):
        return self.get_database()[self.mapper.get_collection_name(cls)]

    def _session(self) -> Dict[str, Any]:
        return {"session": self.session} if self.session is not None else {}

    # =========================================================================
    # QUERIES
    # =========================================================================

    def find(self, cls: type) -> Query:
        return Query(self, cls)

    def aggregate(self, source: Union[type, str]) -> Aggregation:
        return Aggregation(self, source)

    # =========================================================================
    # WRITES
    # =========================================================================

    def _encode(self, entity: Any) -> Dict[str, Any]:
        model = self.mapper.get_entity_model(type(entity))
        if not model.is_entity:
            raise MappingError(f"{type(entity).__qualname__} is not an @entity and cannot be stored")
        document = self.mapper.to_document(entity)
        model.call_hooks(PRE_PERSIST, entity, document)
        return document

    def _after_write(self, entity: Any, document: Dict[str, Any]) -> None:
        self.mapper.get_entity_model(type(entity)).call_hooks(POST_PERSIST, entity, document)

    def _assign_id(self, entity: Any, raw_id: Any) -> None:
        id_prop = self.mapper.get_entity_model(type(entity)).id_property
        id_prop.set_value(entity, self.mapper.decode_value(raw_id, id_prop.type_hint))

    def _start_version(self, entity: Any) -> None:
        version = self.mapper.get_entity_model(type(entity)).version_property
        if version is not None and version.get_value(entity) is None:
            version.set_value(entity, 1)

    def insert(self, entities: Union[Any, List[Any]]) -> Union[Any, List[Any]]:
        """Insert one entity or a list of entities; ids are assigned in place."""
        if isinstance(entities, list):
            if not entities:
                return entities
            for entity in entities:
                self._start_version(entity)
            documents = [self._encode(e) for e in entities]
            by_collection: Dict[str, List[int]] = {}
            for i, entity in enumerate(entities):
                name = self.mapper.get_collection_name(type(entity))
                by_collection.setdefault(name, []).append(i)
            for name, indexes in by_collection.items():
                result = self.get_database()[name].insert_many(
                    [documents[i] for i in indexes], **self._session()
                )
                for i, raw_id in zip(indexes, result.inserted_ids):
                    self._assign_id(entities[i], raw_id)
            for entity, document in zip(entities, documents):
                self._after_write(entity, document)
            logger.debug("Inserted %d entities", len(entities))
            return entities

        entity = entities
        self._start_version(entity)
        document = self._encode(entity)
        result = self.get_collection(type(entity)).insert_one(document, **self._session())
        self._assign_id(entity, result.inserted_id)
        self._after_write(entity, document)
        return entity

    def save(self, entities: Union[Any, List[Any]]) -> Union[Any, List[Any]]:
        """
        Insert entities without an id, replace (upserting) the others.

        Raises:
            VersionMismatchError: a versioned entity was changed in the database
                since it was loaded
        """
        if isinstance(entities, list):
            return [self.save(e) for e in entities]

        entity = entities
        model = self.mapper.get_entity_model(type(entity))
        entity_id = self.mapper.get_id(entity)
        version = model.version_property
        if entity_id is None or (version is not None and version.get_value(entity) is None):
            return self.insert(entity)

        collection = self.get_collection(type(entity))
        query = {ID_KEY: self.mapper.encode_value(entity_id, model.id_property.type_hint)}
        if version is None:
            document = self._encode(entity)
            collection.replace_one(query, document, upsert=True, **self._session())
            self._after_write(entity, document)
            return entity

        current = version.get_value(entity)
        version.set_value(entity, current + 1)
        try:
            document = self._encode(entity)
            query[version.mapped_name] = current
            result = collection.replace_one(query, document, **self._session())
        except Exception:
            version.set_value(entity, current)
            raise
        if result.matched_count == 0:
            version.set_value(entity, current)
            raise VersionMismatchError(type(entity), entity_id, current)
        self._after_write(entity, document)
        return entity

    def replace(self, entity: Any) -> UpdateResult:
        """Replace the stored document of an existing entity (no upsert)."""
        entity_id = self._require_id(entity)
        document = self._encode(entity)
        result = self.get_collection(type(entity)).replace_one(
            {ID_KEY: entity_id}, document, **self._session()
        )
        self._after_write(entity, document)
        return result

    def merge(self, entity: Any) -> UpdateResult:
        """
        ``$set`` the non-null properties of ``entity`` onto its stored document.

        Raises:
            VersionMismatchError: the stored version differs from the entity's
        """
        entity_id = self._require_id(entity)
        model = self.mapper.get_entity_model(type(entity))
        document = self._encode(entity)
        values = {
            k: v for k, v in document.items() if k != ID_KEY and v is not None
        }
        query: Dict[str, Any] = {ID_KEY: entity_id}
        update: Dict[str, Any] = {"$set": values}

        version = model.version_property
        current = version.get_value(entity) if version is not None else None
        if current is not None:
            values.pop(version.mapped_name, None)
            query[version.mapped_name] = current
            update["$inc"] = {version.mapped_name: 1}

        result = self.get_collection(type(entity)).update_one(query, update, **self._session())
        if current is not None:
            if result.matched_count == 0:
                raise VersionMismatchError(type(entity), entity_id, current)
            version.set_value(entity, current + 1)
        self._after_write(entity, document)
        return result

    def delete(self, entity: Any) -> DeleteResult:
        entity_id = self._require_id(entity)
        return self.get_collection(type(entity)).delete_one({ID_KEY: entity_id}, **self._session())

    def refresh(self, entity: Any) -> Any:
        """
        Reload ``entity`` from the database, in place.

        Raises:
            MappingError: the entity no longer exists
        """
        entity_id = self._require_id(entity)
        document = self.get_collection(type(entity)).find_one(
            {ID_KEY: entity_id}, **self._session()
        )
        if document is None:
            raise MappingError(f"{type(entity).__qualname__} {entity_id!r} no longer exists")
        loaded = self.mapper.from_document(type(entity), document)
        for prop in self.mapper.get_entity_model(type(loaded)).properties:
            prop.set_value(entity, prop.get_value(loaded))
        return entity

    def _require_id(self, entity: Any) -> Any:
        model = self.mapper.get_entity_model(type(entity))
        entity_id = self.mapper.get_id(entity)
        if entity_id is None:
            raise MappingError(f"{type(entity).__qualname__} has no id; save it first")
        return self.mapper.encode_value(entity_id, model.id_property.type_hint)

    # =========================================================================
    # INDEXES
    # =========================================================================

    def ensure_indexes(self, *classes: type) -> Dict[str, List[str]]:
        """
        Create the indexes declared on ``classes`` (all mapped entities when
        none are given). Returns the created index names per collection.
        """
        targets = classes or tuple(c for c in self.mapper.mapped_classes() if self.mapper.is_entity(c))
        created: Dict[str, List[str]] = {}
        for cls in targets:
            model = self.mapper.get_entity_model(cls)
            if not model.indexes:
                continue
            models = [self._index_model(cls, index) for index in model.indexes]
            names = self.get_collection(cls).create_indexes(models, **self._session())
            created.setdefault(model.collection_name, []).extend(names)
            logger.info("Ensured %d indexes on %s", len(names), model.collection_name)
        return created

    def _index_model(self, cls: type, index) -> IndexModel:
        keys = [(self.mapper.path(cls, name, validate=False), direction) for name, direction in index.fields]
        kwargs: Dict[str, Any] = {}
        if index.unique:
            kwargs["unique"] = True
        if index.sparse:
            kwargs["sparse"] = True
        if index.name:
            kwargs["name"] = index.name
        if index.expire_after_seconds is not None:
            kwargs["expireAfterSeconds"] = index.expire_after_seconds
        return IndexModel(keys, **kwargs)

    # =========================================================================
    # TRANSACTIONS AND REFERENCES
    # =========================================================================

    def with_transaction(self, body: Callable[["Datastore"], Any]) -> Any:
        """
        Run ``body(session_datastore)`` inside a transaction. Every operation
        made through ``session_datastore`` uses the transaction's session, and
        so do the reference loads of entities decoded in the body.
        """
        with self.client.start_session() as session:
            return session.with_transaction(self._transaction_body(body))

    def _transaction_body(self, body: Callable[["Datastore"], Any]) -> Callable[[Any], Any]:
        def run(session):
            token = _transaction_session.set(session)
            try:
                return body(Datastore(self.client, self.database, self.mapper, session=session))
            finally:
                _transaction_session.reset(token)

        return run

    def _resolve_reference(self, target: type, reference_id: Any, collection: Optional[str]) -> Any:
        name = collection or self.mapper.get_collection_name(target)
        session = self.session if self.session is not None else _transaction_session.get()
        kwargs = {"session": session} if session is not None else {}
        document = self.get_database()[name].find_one({ID_KEY: reference_id}, **kwargs)
        return self.mapper.from_document(target, document)

    def __repr__(self) -> str:
        return f"Datastore({self.database!r})"
