# linked_orm/__init__.py

from .entity import Entity
from .entity_meta import EntityMeta
from .errors import (
    ConfigurationError,
    OrmError,
    StorageFailure,
    TypeMismatch,
    UnknownType,
    UnresolvedReference,
)
from .field import Field
from .foreign_key import ForeignKey
from .db_context import db_context, WriteResult
from .query import Query, Column, Condition
from .table import table
from .key_words import escape_for_storage, get_column_name, quote_identifier
from .relation_descriptor import RelationAction, RelationChange, RelationDescriptor, RelationKind
from .relation_set import RelationSet
from .relation_iterator import NOT_FOUND, RelationIterator
from .lazy_relation_set import LazyRelationSet
from .relationship import HasMany, ManyMany, Relationship

__all__ = [
    'Entity',
    'EntityMeta',
    'Field',
    'ForeignKey',
    'db_context',
    'WriteResult',
    'Query',
    'Column',
    'Condition',
    'table',
    'escape_for_storage',
    'get_column_name',
    'quote_identifier',
    'RelationAction',
    'RelationChange',
    'RelationDescriptor',
    'RelationKind',
    'RelationSet',
    'RelationIterator',
    'NOT_FOUND',
    'LazyRelationSet',
    'HasMany',
    'ManyMany',
    'Relationship',
    'OrmError',
    'ConfigurationError',
    'TypeMismatch',
    'UnresolvedReference',
    'UnknownType',
    'StorageFailure',
]
