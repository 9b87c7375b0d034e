"""
Codecs for Python types the driver cannot store natively.

pymongo's ``bson`` encoder already handles str, int, float, bool, None,
datetime, ObjectId, DBRef, Decimal128, Binary, regex and plain lists/dicts.
The codecs below cover the remaining types a mapped class commonly declares:

    date        -> datetime at midnight
    time        -> int (milliseconds of the day)
    Decimal     -> Decimal128
    Enum        -> member name
    type        -> "module.QualName"
    UUID        -> Binary subtype 4
    Path        -> str
    bytes       -> Binary
    set/tuple   -> list (array codec)

Lookup order: user codecs, exact type, MRO walk. The array codec is chosen for
any set, frozenset or tuple whose elements then go through the same lookup.
"""

import importlib
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path, PurePath
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from bson import Binary, Decimal128
from bson.binary import UuidRepresentation

from docmap.errors import MappingError

logger = logging.getLogger(__name__)


class Codec(ABC):
    """Converts one Python type to and from its stored representation."""

    #: Python type handled by this codec
    encoder_class: type = object

    @abstractmethod
    def encode(self, value: Any) -> Any:
        pass

    @abstractmethod
    def decode(self, value: Any, target: type) -> Any:
        pass


class DateCodec(Codec):
    encoder_class = date

    def encode(self, value: date) -> datetime:
        return datetime(value.year, value.month, value.day)

    def decode(self, value: Any, target: type) -> date:
        if isinstance(value, datetime):
            return value.date()
        return value


class TimeCodec(Codec):
    encoder_class = time

    def encode(self, value: time) -> int:
        return (
            (value.hour * 3600 + value.minute * 60 + value.second) * 1000
            + value.microsecond // 1000
        )

    def decode(self, value: Any, target: type) -> time:
        if not isinstance(value, int):
            return value
        seconds, millis = divmod(value, 1000)
        minutes, second = divmod(seconds, 60)
        hour, minute = divmod(minutes, 60)
        return time(hour, minute, second, millis * 1000)


class DecimalCodec(Codec):
    encoder_class = Decimal

    def encode(self, value: Decimal) -> Decimal128:
        return Decimal128(value)

    def decode(self, value: Any, target: type) -> Decimal:
        if isinstance(value, Decimal128):
            return value.to_decimal()
        return Decimal(str(value))


class EnumCodec(Codec):
    encoder_class = Enum

    def encode(self, value: Enum) -> str:
        return value.name

    def decode(self, value: Any, target: type) -> Enum:
        try:
            return target[value]
        except KeyError:
            # tolerate documents written with member values
            return target(value)


class ClassCodec(Codec):
    encoder_class = type

    def encode(self, value: type) -> str:
        return f"{value.__module__}.{value.__qualname__}"

    def decode(self, value: Any, target: type) -> type:
        return load_class(value)


class UUIDCodec(Codec):
    encoder_class = UUID

    def encode(self, value: UUID) -> Binary:
        return Binary.from_uuid(value, UuidRepresentation.STANDARD)

    def decode(self, value: Any, target: type) -> UUID:
        if isinstance(value, Binary):
            return value.as_uuid(UuidRepresentation.STANDARD)
        if isinstance(value, UUID):
            return value
        return UUID(str(value))


class PathCodec(Codec):
    encoder_class = PurePath

    def encode(self, value: PurePath) -> str:
        return str(value)

    def decode(self, value: Any, target: type) -> PurePath:
        return (target if target is not PurePath else Path)(value)


class BytesCodec(Codec):
    encoder_class = bytes

    def encode(self, value: bytes) -> Binary:
        return Binary(bytes(value))

    def decode(self, value: Any, target: type) -> bytes:
        return target(value)


def load_class(qualified: str) -> type:
    """Import ``module.QualName`` and return the class."""
    module_name, _, qualname = qualified.rpartition(".")
    while module_name:
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            module_name, _, head = module_name.rpartition(".")
            qualname = f"{head}.{qualname}"
            continue
        obj: Any = module
        for part in qualname.split("."):
            obj = getattr(obj, part)
        return obj
    raise MappingError(f"Cannot load class {qualified!r}")


class TypesCodecRegistry:
    """
    Registry of codecs for library-handled types.

    Example:
        >>> registry = TypesCodecRegistry()
        >>> registry.encode(date(2024, 1, 15))
        datetime.datetime(2024, 1, 15, 0, 0)
    """

    def __init__(self):
        self._codecs: Dict[type, Codec] = {}
        self._user: Dict[type, Codec] = {}
        for codec in (
            DateCodec(),
            TimeCodec(),
            DecimalCodec(),
            EnumCodec(),
            ClassCodec(),
            UUIDCodec(),
            PathCodec(),
            BytesCodec(),
        ):
            self._codecs[codec.encoder_class] = codec
        self._codecs[bytearray] = self._codecs[bytes]

    def register(self, codec: Codec) -> None:
        """Register a codec. User codecs win over the built-in ones."""
        logger.debug("Registering codec %s for %s", type(codec).__name__, codec.encoder_class)
        self._user[codec.encoder_class] = codec

    def get(self, cls: type) -> Optional[Codec]:
        """Find the codec for ``cls`` or None when the driver handles it."""
        if not isinstance(cls, type):
            return None
        for table in (self._user, self._codecs):
            codec = table.get(cls)
            if codec is not None:
                return codec
        # datetime is a date subclass but is stored natively
        if issubclass(cls, datetime):
            return None
        for klass in cls.__mro__[1:]:
            for table in (self._user, self._codecs):
                codec = table.get(klass)
                if codec is not None:
                    return codec
        return None

    def encode(self, value: Any, element: Optional[Callable[[Any], Any]] = None) -> Any:
        """
        Encode ``value`` if a codec handles its type.

        Sets, frozensets and tuples become lists; ``element`` encodes their
        items (defaults to this registry's ``encode``).
        """
        if isinstance(value, (set, frozenset, tuple)):
            encode_item = element or self.encode
            return [encode_item(v) for v in value]
        if isinstance(value, type):
            return self._codecs[type].encode(value)
        codec = self.get(type(value))
        if codec is None:
            return value
        return codec.encode(value)

    def decode(self, value: Any, target: type) -> Any:
        codec = self.get(target)
        if codec is None or value is None:
            return value
        return codec.decode(value, target)
