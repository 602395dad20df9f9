from .key_words import escape_list, quote_identifier


class Condition:
    """Represents a SQL condition with parameters."""
    def __init__(self, sql, params):
        self.sql = sql
        self.params = params

    def __and__(self, other):
        return Condition(f"({self.sql}) AND ({other.sql})", self.params + other.params)

    def __or__(self, other):
        return Condition(f"({self.sql}) OR ({other.sql})", self.params + other.params)


class Column:
    """Represents a database column for query building."""
    def __init__(self, name, table=None):
        self.name = name
        self.table = table

    @property
    def qualified(self):
        if self.table:
            return f"{quote_identifier(self.table)}.{quote_identifier(self.name)}"
        return self.name

    def __eq__(self, other):
        if other is None:
            return self.is_null()
        return Condition(f"{self.qualified} = ?", [other])

    def __ne__(self, other):
        if other is None:
            return self.is_not_null()
        return Condition(f"{self.qualified} != ?", [other])

    def __lt__(self, other):
        return Condition(f"{self.qualified} < ?", [other])

    def __le__(self, other):
        return Condition(f"{self.qualified} <= ?", [other])

    def __gt__(self, other):
        return Condition(f"{self.qualified} > ?", [other])

    def __ge__(self, other):
        return Condition(f"{self.qualified} >= ?", [other])

    __hash__ = object.__hash__

    def like(self, pattern):
        return Condition(f"{self.qualified} LIKE ?", [pattern])

    def in_(self, values):
        if not values:
            return Condition("1 = 0", [])
        placeholders = ", ".join("?" * len(values))
        return Condition(f"{self.qualified} IN ({placeholders})", list(values))

    def in_literal(self, values):
        """IN clause with the values inlined through escape_for_storage."""
        if not values:
            return Condition("1 = 0", [])
        return Condition(f"{self.qualified} IN ({escape_list(values)})", [])

    def is_null(self):
        return Condition(f"{self.qualified} IS NULL", [])

    def is_not_null(self):
        return Condition(f"{self.qualified} IS NOT NULL", [])

    def desc(self):
        return f"{self.qualified} DESC"

    def asc(self):
        return f"{self.qualified} ASC"

    def __str__(self):
        return self.qualified


class Query:
    """Async query builder. Nothing runs until ``all()``/``first()``/``count()``
    is awaited or the query is handed to ``db_context.execute``.
    """
    def __init__(self, entity_cls, table_name=None):
        self.entity_cls = entity_cls
        self.table_name = table_name or entity_cls._table_name
        self.fallback_class = entity_cls
        self._columns = [f"{quote_identifier(self.table_name)}.*"]
        self._joins = []
        self._filters = []
        self._params = []
        self._order_by = None
        self._limit_val = None
        self._offset_val = 0

    def filter(self, *conditions):
        """Add filter conditions using comparison operators.

        Example:
            await Book.query().filter(Book.author_id == 3).all()
        """
        for condition in conditions:
            if isinstance(condition, Condition):
                self._filters.append(condition.sql)
                self._params.extend(condition.params)
            else:
                raise TypeError(f"Expected Condition, got {type(condition)}")
        return self

    def filter_by(self, **kwargs):
        """Simple equality filters using keyword arguments."""
        for k, v in kwargs.items():
            self.filter(Column(k, self.table_name) == v)
        return self

    def join(self, table_name, on, left=False, columns=()):
        """Join another table. ``columns`` are extra columns selected from it."""
        kind = "LEFT JOIN" if left else "INNER JOIN"
        self._joins.append(f"{kind} {quote_identifier(table_name)} ON {on}")
        for col in columns:
            self._columns.append(f"{quote_identifier(table_name)}.{quote_identifier(col)}")
        return self

    def order_by(self, *fields):
        self._order_by = ", ".join(str(f) for f in fields)
        return self

    def limit(self, n, offset=0):
        self._limit_val = n
        self._offset_val = offset
        return self

    def strict_types(self):
        """Fail with UnknownType instead of falling back to the queried class."""
        self.fallback_class = None
        return self

    @property
    def is_limited(self):
        return self._limit_val is not None

    @property
    def limit_value(self):
        return self._limit_val

    @property
    def offset_value(self):
        return self._offset_val

    @property
    def params(self):
        return list(self._params)

    def _from_clause(self):
        sql = f" FROM {quote_identifier(self.table_name)}"
        if self._joins:
            sql += " " + " ".join(self._joins)
        if self._filters:
            sql += f" WHERE {' AND '.join(self._filters)}"
        return sql

    def to_sql(self):
        sql = f"SELECT {', '.join(self._columns)}" + self._from_clause()
        if self._order_by:
            sql += f" ORDER BY {self._order_by}"
        if self._limit_val is not None:
            sql += f" LIMIT {int(self._limit_val)}"
            if self._offset_val:
                sql += f" OFFSET {int(self._offset_val)}"
        return sql

    def count_sql(self):
        """COUNT(*) over the same filters, ignoring limit and order."""
        return "SELECT COUNT(*)" + self._from_clause()

    async def rows(self):
        return await self.entity_cls._context.execute(self)

    async def all(self):
        """Execute query and return all results as entities."""
        from .entity_meta import EntityMeta
        return [
            EntityMeta.project(row, self.fallback_class)
            for row in await self.rows()
        ]

    async def first(self):
        results = await self.limit(1).all()
        return results[0] if results else None

    async def count(self):
        return await self.entity_cls._context.count(self)

    def __repr__(self):
        return f"<Query {self.to_sql()!r} {self._params!r}>"
