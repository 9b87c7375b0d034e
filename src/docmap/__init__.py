"""
docmap: maps Python dataclasses to documents stored through pymongo.

    from pymongo import MongoClient
    from docmap import create_datastore, entity, id_field
    from docmap.query import filters

    @entity("employees")
    class Employee:
        id: Optional[ObjectId] = id_field()
        name: str = ""

    datastore = create_datastore(MongoClient(), "hr")
    datastore.save(Employee(name="Elmer"))
    datastore.find(Employee).filter(filters.eq("name", "Elmer")).first()
"""

from docmap.config import DiscriminatorStyle, MapperOptions, NamingStrategy
from docmap.datastore import Datastore, create_datastore
from docmap.errors import (
    AuditError,
    ConfigurationError,
    DocmapError,
    MappingError,
    MissingReferenceError,
    NotMappedError,
    UpdateError,
    ValidationError,
    VersionMismatchError,
)
from docmap.mapping import (
    Index,
    Mapper,
    embedded,
    entity,
    id_field,
    indexed,
    post_load,
    post_persist,
    pre_persist,
    prop,
    reference,
    transient,
    version,
)

__all__ = [
    "create_datastore",
    "Datastore",
    "Mapper",
    "MapperOptions",
    "NamingStrategy",
    "DiscriminatorStyle",
    # declarations
    "entity",
    "embedded",
    "id_field",
    "prop",
    "reference",
    "transient",
    "indexed",
    "version",
    "Index",
    "pre_persist",
    "post_persist",
    "post_load",
    # errors
    "DocmapError",
    "ConfigurationError",
    "MappingError",
    "NotMappedError",
    "MissingReferenceError",
    "ValidationError",
    "VersionMismatchError",
    "UpdateError",
    "AuditError",
]
