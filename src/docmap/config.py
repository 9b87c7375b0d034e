"""
Mapper configuration for docmap.

================================================================================
OPTIONS MODEL
================================================================================

Every datastore owns one immutable MapperOptions value. It decides how class
and attribute names become collection and key names, how polymorphic types
are marked, and which empty values are written:

1. NAMING
   collection_naming applies to entity class names when @entity does not
   give an explicit collection. property_naming applies to attribute names
   when prop(name=...) is not given.

       class  SensorReading  --SNAKE_CASE-->  "sensor_reading"
       attr   recorded_at    --CAMEL_CASE-->  "recordedAt"

2. DISCRIMINATORS
   Stored under discriminator_key ("_t"), either the bare class name
   (SIMPLE) or "module.QualName" (QUALIFIED).

3. EMPTY VALUES
   None values are skipped unless store_nulls, empty lists and dicts are
   skipped unless store_empties.

Options can be built in code or read from DOCMAP_* environment variables:

    DOCMAP_COLLECTION_NAMING=snake_case
    DOCMAP_STORE_NULLS=true

================================================================================
"""

import logging
import os
import re
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Mapping, Optional

from docmap.constants import DEFAULT_DISCRIMINATOR_KEY, ENV_PREFIX
from docmap.errors import ConfigurationError

logger = logging.getLogger(__name__)

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[_\-\s]+")


def _words(name: str) -> list:
    parts = []
    for chunk in _SEPARATORS.split(name):
        if chunk:
            parts.extend(_WORD_BOUNDARY.split(chunk))
    return [p for p in parts if p]


class NamingStrategy(Enum):
    """How class and attribute names are turned into stored names."""

    IDENTITY = "identity"
    LOWER_CASE = "lower_case"
    SNAKE_CASE = "snake_case"
    CAMEL_CASE = "camel_case"
    KEBAB_CASE = "kebab_case"

    def apply(self, name: str) -> str:
        if self is NamingStrategy.IDENTITY:
            return name
        if self is NamingStrategy.LOWER_CASE:
            return name.lower()
        words = [w.lower() for w in _words(name)]
        if not words:
            return name
        if self is NamingStrategy.SNAKE_CASE:
            return "_".join(words)
        if self is NamingStrategy.KEBAB_CASE:
            return "-".join(words)
        return words[0] + "".join(w.capitalize() for w in words[1:])


class DiscriminatorStyle(Enum):
    """What gets stored as the class discriminator."""

    SIMPLE = "simple"  # SensorReading
    QUALIFIED = "qualified"  # app.models.SensorReading

    def apply(self, cls: type) -> str:
        if self is DiscriminatorStyle.QUALIFIED:
            return f"{cls.__module__}.{cls.__qualname__}"
        return cls.__name__


@dataclass(frozen=True)
class MapperOptions:
    """
    Immutable mapper configuration.

    Example:
        >>> options = MapperOptions(collection_naming=NamingStrategy.SNAKE_CASE)
        >>> options.collection_naming.apply("SensorReading")
        'sensor_reading'
    """

    discriminator_key: str = DEFAULT_DISCRIMINATOR_KEY
    discriminator: DiscriminatorStyle = DiscriminatorStyle.SIMPLE
    collection_naming: NamingStrategy = NamingStrategy.IDENTITY
    property_naming: NamingStrategy = NamingStrategy.IDENTITY
    store_nulls: bool = False
    store_empties: bool = False
    map_sub_packages: bool = False
    ignore_missing_references: bool = False

    def __post_init__(self):
        if not self.discriminator_key:
            raise ConfigurationError("discriminator_key must not be empty")
        if self.discriminator_key.startswith("$") or "." in self.discriminator_key:
            raise ConfigurationError(
                f"discriminator_key {self.discriminator_key!r} is not a valid field name"
            )

    def replace(self, **changes) -> "MapperOptions":
        """Return a copy with the given options changed."""
        return replace(self, **changes)

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "MapperOptions":
        """
        Build options from environment variables.

        Each field maps to ``<prefix><FIELD_NAME>``; unset variables keep
        the default.

        Raises:
            ConfigurationError: when a value cannot be parsed
        """
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _parse(f.name, raw, cls.__dataclass_fields__[f.name].default)

        if values:
            logger.debug("Mapper options from environment: %s", values)
        return cls(**values)


def _parse(name: str, raw: str, default):
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigurationError(f"{name}: expected a boolean, got {raw!r}")
    if isinstance(default, Enum):
        enum_type = type(default)
        try:
            return enum_type(raw.strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in enum_type)
            raise ConfigurationError(
                f"{name}: {raw!r} is not one of {choices}"
            ) from None
    return raw


DEFAULT_OPTIONS = MapperOptions()
