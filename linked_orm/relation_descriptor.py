"""
Metadata for one relationship of one owning entity.

A RelationDescriptor says how the members of a relation set are stored:

- CHILD_FOREIGN_KEY: each child row carries ``join_field`` pointing at the owner.
- JOIN_TABLE: a ``link_table`` holds one row per (owner, child) pair, plus any
  extra columns.

It also carries the observers that hear about every persisted change.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import inflection

from .errors import ConfigurationError


class RelationKind(str, Enum):
    CHILD_FOREIGN_KEY = "has_many"
    JOIN_TABLE = "many_many"


class RelationAction(str, Enum):
    ADDED = "added"
    DELETED = "deleted"


@dataclass(frozen=True)
class RelationChange:
    """One persisted mutation of a relation, as handed to observers."""
    owner: Any
    relation_name: str
    action: RelationAction
    kind: RelationKind
    entity: Any
    table_name: Optional[str] = None


@dataclass(frozen=True, eq=False)
class RelationDescriptor:
    kind: RelationKind
    owner: Any
    owner_type: str
    child_type: Optional[str]
    link_table: str = ""
    join_field: str = ""
    relation_name: Optional[str] = None
    extra_fields: dict = field(default_factory=dict)
    observers: tuple[Callable[[RelationChange], Any], ...] = ()

    def __post_init__(self):
        if self.kind == RelationKind.JOIN_TABLE and not self.link_table:
            raise ConfigurationError(
                f"Join-table relation on {self.owner_type} needs a link table name"
            )
        if self.kind == RelationKind.CHILD_FOREIGN_KEY and not self.join_field:
            raise ConfigurationError(
                f"Foreign-key relation on {self.owner_type} needs a join field"
            )

    @property
    def name(self) -> str:
        return self.relation_name or self.link_table or self.join_field

    @property
    def parent_key(self) -> str:
        return inflection.underscore(self.owner_type) + "_id"

    @property
    def child_key(self) -> str:
        if self.child_type == self.owner_type:
            return "child_id"
        return inflection.underscore(self.child_type) + "_id"

    @property
    def child_class(self):
        from .entity_meta import EntityMeta

        if not self.child_type:
            raise ConfigurationError(f"Relation '{self.name}' has no child type set")
        return EntityMeta.resolve(self.child_type)

    @property
    def owner_id(self):
        return getattr(self.owner, "id", None)

    def owner_is_persisted(self) -> bool:
        owner_id = self.owner_id
        return isinstance(owner_id, int) and not isinstance(owner_id, bool) and owner_id > 0

    def notify(self, action: RelationAction, entity) -> None:
        """Tell every observer that ``entity`` was added to or removed from storage."""
        change = RelationChange(
            owner=self.owner,
            relation_name=self.name,
            action=action,
            kind=self.kind,
            entity=entity,
            table_name=self.link_table or None,
        )
        for observer in self.observers:
            observer(change)
        context = getattr(self.owner, "_context", None)
        if context is not None:
            context.notify_relation_change(change)
