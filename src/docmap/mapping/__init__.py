"""
Class-to-document mapping for docmap.
"""

from docmap.mapping.annotations import (
    Index,
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
from docmap.mapping.codecs import Codec, TypesCodecRegistry
from docmap.mapping.mapper import Mapper
from docmap.mapping.model import EntityModel, PropertyModel

__all__ = [
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
    # models
    "EntityModel",
    "PropertyModel",
    # translation
    "Mapper",
    "Codec",
    "TypesCodecRegistry",
]
