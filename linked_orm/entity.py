import logging

from .entity_meta import EntityMeta
from .errors import ConfigurationError
from .field import Field
from .key_words import quote_identifier
from .query import Column, Query

logger = logging.getLogger(__name__)


class Entity(metaclass=EntityMeta):
    id = Field(int, primary_key=True, nullable=False)
    class_name = Field(str)
    _context = None
    _table_name = None

    def __init__(self, **kwargs):
        for f in self._fields.values():
            setattr(self, f.name, kwargs.get(f.name, f.initial_value()))
        self.class_name = type(self).__name__
        self._extra = {}
        self._iterator_pos = None
        self._iterator_total = None

    @classmethod
    def query(cls):
        """Create a new query for this entity.

        Subclasses that share their parent's table only see their own rows.

        Example:
            books = await Book.query().filter(Book.author_id == 3).all()
        """
        query = Query(cls)
        if not cls.has_own_table():
            names = [name for name, klass in EntityMeta.registry.items() if issubclass(klass, cls)]
            query.filter(Column("class_name", cls._table_name).in_(names))
        return query

    @classmethod
    async def get_by_id(cls, id):
        return await cls.query().filter_by(id=id).first()

    @classmethod
    async def get_all(cls):
        return await cls.query().all()

    @classmethod
    def has_own_table(cls):
        return cls._own_table

    @classmethod
    def class_ancestry(cls):
        """Entity classes in this class's lineage that declare a table, root first."""
        ancestry = [
            klass for klass in reversed(cls.__mro__)
            if isinstance(klass, EntityMeta) and klass is not Entity and klass._own_table
        ]
        return ancestry or [cls]

    @classmethod
    def from_row(cls, row):
        """Build an entity from a row mapping; unknown columns become extras."""
        obj = cls()
        for col_name, value in row.items():
            if col_name in cls._fields:
                setattr(obj, col_name, cls._fields[col_name].sql_to_python(value))
            else:
                obj._extra[col_name] = value
        return obj

    def extra(self, name, default=None):
        """Value of a non-field column read with this entity, e.g. a link-table column."""
        return self._extra.get(name, default)

    # Relations

    @classmethod
    def _find_relation(cls, name):
        for klass in cls.__mro__:
            relation = getattr(klass, "_relations", {}).get(name)
            if relation is not None:
                return relation
        raise ConfigurationError(f"{cls.__name__} has no relation named '{name}'")

    def relation(self, name, flush_cache=False):
        """The LazyRelationSet for ``name``; one per entity for its lifetime.

        ``flush_cache=True`` discards the held set (and anything added to it
        but not yet written) and starts a fresh one.
        """
        sets = self.__dict__.setdefault("_relation_sets", {})
        if flush_cache or name not in sets:
            sets[name] = type(self)._find_relation(name).build(self)
        return sets[name]

    # Iteration state, set by relation iterators

    def iterator_properties(self, pos, total):
        self._iterator_pos = pos
        self._iterator_total = total

    def pos(self, start=1):
        return (self._iterator_pos or 0) + start

    def is_first(self):
        return self._iterator_pos == 0

    def is_last(self):
        return self._iterator_total is not None and self._iterator_pos == self._iterator_total - 1

    def even_odd(self):
        return "odd" if (self._iterator_pos or 0) % 2 == 0 else "even"

    # Persistence

    async def insert(self):
        """Insert this entity into the database."""
        fields = []
        values = []
        for f in self._fields.values():
            if f.primary_key:
                continue
            fields.append(f.column_name)
            values.append(f.python_to_sql(getattr(self, f.name)))

        placeholders = ", ".join("?" for _ in values)
        sql = f"INSERT INTO {quote_identifier(self._table_name)} ({', '.join(fields)}) VALUES ({placeholders})"
        result = await self._context.execute_write(sql, values)
        self.id = result.lastrowid

    async def update(self):
        """Update this entity in the database."""
        if not self.id:
            raise ValueError("Cannot update entity without an id. Use insert() for new entities.")

        fields = []
        values = []
        for f in self._fields.values():
            if f.primary_key:
                continue
            fields.append(f"{f.column_name} = ?")
            values.append(f.python_to_sql(getattr(self, f.name)))

        values.append(self.id)
        sql = f"UPDATE {quote_identifier(self._table_name)} SET {', '.join(fields)} WHERE id = ?"
        await self._context.execute_write(sql, values)

    async def save(self):
        """Insert or update based on whether entity has an id.

        The first insert also writes every relation set that was filled
        while the entity was unsaved.
        """
        if self.id:
            await self.update()
            return

        await self.insert()
        pending = self.__dict__.get("_relation_sets", {})
        for name, relation_set in list(pending.items()):
            logger.debug("first write of relation '%s' on %s %s", name, type(self).__name__, self.id)
            await relation_set.write(first_write=True)
            # Built without a query while unsaved; held items are stored now.
            relation = type(self)._find_relation(name)
            relation_set.rebind(relation.build_query(relation_set.descriptor))

    async def delete(self):
        """Delete this entity from the database."""
        if not self.id:
            raise ValueError("Cannot delete entity without an id.")

        sql = f"DELETE FROM {quote_identifier(self._table_name)} WHERE id = ?"
        await self._context.execute_write(sql, (self.id,))
        self.id = None

    def __repr__(self):
        return f"<{type(self).__name__} id={self.id}>"
