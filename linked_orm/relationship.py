from .entity_meta import EntityMeta
from .errors import ConfigurationError
from .key_words import quote_identifier
from .lazy_relation_set import LazyRelationSet
from .query import Column
from .relation_descriptor import RelationDescriptor, RelationKind
from .relation_set import RelationSet


class Relationship:
    """Class-level declaration of a to-many relationship.

    Reading the attribute on an instance returns that instance's
    LazyRelationSet; the same set is returned on every access.
    """
    kind = None

    def __init__(self, child, name=None, observers=()):
        self._child = child
        self.relation_name = name
        self.observers = tuple(observers)
        self.name = None
        self.owner_class = None
        self._validated = False

    def __set_name__(self, owner, name):
        self.name = name
        self.owner_class = owner
        owner._relations[name] = self

    def __get__(self, obj, owner):
        if obj is None:
            return self
        return obj.relation(self.name)

    @property
    def child_type(self):
        if isinstance(self._child, str):
            return self._child
        return EntityMeta.resolve(self._child).__name__

    def _validate(self):
        """Check the declaration against the registry, on first use."""
        if not self._validated:
            EntityMeta.resolve(self.child_type)
            self._validated = True

    def _descriptor_fields(self):
        raise NotImplementedError

    def template(self):
        """Descriptor without an owner instance, for schema work."""
        return self.descriptor(None)

    def descriptor(self, obj):
        return RelationDescriptor(
            kind=self.kind,
            owner=obj,
            owner_type=self.owner_class.__name__,
            child_type=self.child_type,
            relation_name=self.relation_name,
            observers=self.observers,
            **self._descriptor_fields(),
        )

    def build_query(self, descriptor):
        raise NotImplementedError

    def build(self, obj):
        """Create the lazy set for ``obj``. Unsaved owners get no query."""
        self._validate()
        descriptor = self.descriptor(obj)
        query = self.build_query(descriptor) if descriptor.owner_is_persisted() else None
        return LazyRelationSet(RelationSet(descriptor), query)


class HasMany(Relationship):
    """One-to-many: each child row stores the owner's id in ``join_field``."""
    kind = RelationKind.CHILD_FOREIGN_KEY

    def __init__(self, child, join_field, name=None, observers=()):
        super().__init__(child, name=name, observers=observers)
        self.join_field = join_field

    def _validate(self):
        if not self._validated:
            target = EntityMeta.resolve(self.child_type)
            if self.join_field not in target._fields:
                available = ", ".join(target._fields.keys())
                raise ConfigurationError(
                    f"Unknown field '{self.join_field}' on {target.__name__}. "
                    f"Available: {available}"
                )
            self._validated = True

    def _descriptor_fields(self):
        return {"join_field": self.join_field}

    def build_query(self, descriptor):
        child_cls = descriptor.child_class
        return (
            child_cls.query()
            .filter(Column(self.join_field, child_cls._table_name) == descriptor.owner_id)
            .order_by(Column("id", child_cls._table_name))
        )


class ManyMany(Relationship):
    """Many-to-many through ``link_table``.

    ``extra_fields`` maps extra link-table column names to Python types
    (a list of names means text columns). Their values are readable on loaded
    members with ``entity.extra(name)``.
    """
    kind = RelationKind.JOIN_TABLE

    def __init__(self, child, link_table, extra_fields=None, name=None, observers=()):
        super().__init__(child, name=name, observers=observers)
        self.link_table = link_table
        if isinstance(extra_fields, (list, tuple)):
            extra_fields = {field: str for field in extra_fields}
        self.extra_fields = dict(extra_fields or {})

    def _descriptor_fields(self):
        return {"link_table": self.link_table, "extra_fields": self.extra_fields}

    def build_query(self, descriptor):
        child_cls = descriptor.child_class
        child_table = child_cls.class_ancestry()[-1]._table_name
        on = (
            f"{quote_identifier(self.link_table)}.{quote_identifier(descriptor.child_key)} "
            f"= {quote_identifier(child_table)}.{quote_identifier('id')}"
        )
        return (
            child_cls.query()
            .join(self.link_table, on, columns=self.extra_fields.keys())
            .filter(Column(descriptor.parent_key, self.link_table) == descriptor.owner_id)
            .order_by(Column("id", child_table))
        )
