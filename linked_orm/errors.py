"""
Exceptions raised by linked_orm.

- ConfigurationError: a relation or entity is declared incompletely.
- TypeMismatch: an entity of the wrong class was handed to a relation set.
- UnresolvedReference: a raw id does not match any stored row.
- UnknownType: a row names a class that is not registered.
- StorageFailure: the database rejected a read or a write.
"""


class OrmError(Exception):
    """Base class for every linked_orm error."""


class ConfigurationError(OrmError, ValueError):
    """Raised when required relation or entity metadata is missing."""


class TypeMismatch(OrmError, TypeError):
    """Raised when an entity does not match the child class of a relation."""


class UnresolvedReference(OrmError, LookupError):
    """
    Raised internally when a raw id passed to a relation set has no row.

    Relation sets treat this as a no-op, so callers never see it from add().
    """


class UnknownType(OrmError, LookupError):
    """Raised when a row's class discriminator is not in the registry."""


class StorageFailure(OrmError):
    """Raised when aiosqlite reports an error for a query or a write."""

    def __init__(self, message, sql=None):
        super().__init__(message)
        self.sql = sql
