"""
Exception hierarchy for docmap.

Only mapping and builder problems are raised from here. Errors reported by the
driver (``pymongo.errors``) propagate untouched.
"""


class DocmapError(Exception):
    """Base class for all docmap errors."""


class ConfigurationError(DocmapError):
    """Invalid mapper or datastore configuration."""


class MappingError(DocmapError):
    """A class or value cannot be translated to or from a document."""


class NotMappedError(MappingError):
    """The class is neither an entity nor an embeddable dataclass."""

    def __init__(self, cls):
        self.cls = cls
        name = getattr(cls, "__qualname__", repr(cls))
        super().__init__(f"{name} is not a mappable type (expected a dataclass or @entity)")


class MissingReferenceError(MappingError):
    """A stored reference points at a document that no longer exists."""

    def __init__(self, target, reference_id):
        self.target = target
        self.reference_id = reference_id
        super().__init__(
            f"Referenced {target.__qualname__} with id {reference_id!r} could not be found"
        )


class ValidationError(DocmapError):
    """A query path or filter does not fit the mapped type."""


class VersionMismatchError(DocmapError):
    """Optimistic locking failed: the stored version moved on."""

    def __init__(self, cls, entity_id, version):
        self.cls = cls
        self.entity_id = entity_id
        self.version = version
        super().__init__(
            f"{cls.__qualname__} {entity_id!r} was modified concurrently "
            f"(expected version {version})"
        )


class UpdateError(DocmapError):
    """An update was requested without any operators."""


class AuditError(DocmapError):
    """Documentation sources cannot be audited."""
