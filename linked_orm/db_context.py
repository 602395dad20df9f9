import logging
import os
from collections import namedtuple
from contextlib import asynccontextmanager

import aiosqlite

from .entity_meta import EntityMeta
from .errors import StorageFailure
from .field import SQL_TYPES
from .foreign_key import ForeignKey
from .key_words import quote_identifier
from .relation_descriptor import RelationKind

logger = logging.getLogger(__name__)

WriteResult = namedtuple("WriteResult", ["rowcount", "lastrowid"])


class db_context:
    """Owns the SQLite file and executes every read and write for the entities.

    Relation sets talk to storage only through ``execute``, ``count`` and
    ``execute_write``.
    """

    def __init__(self, db_path, sync_schema=False):
        self._db_path = db_path
        self._sync_schema = sync_schema
        self._relation_listeners = []

        for cls in EntityMeta.registry.values():
            cls._context = self

        for cls in EntityMeta.registry.values():
            for f in cls._fields.values():
                if isinstance(f, ForeignKey):
                    f.resolve(EntityMeta.registry)

        dir = os.path.dirname(self._db_path)
        if dir and not os.path.exists(dir):
            os.makedirs(dir)

    async def initialize(self):
        if self._sync_schema:
            await self.sync_schema()

    @asynccontextmanager
    async def get_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        conn.row_factory = aiosqlite.Row
        try:
            yield conn
        except aiosqlite.Error:
            await conn.rollback()
            raise
        finally:
            await conn.close()

    async def execute(self, query):
        """Run a read query and return its rows as plain dicts."""
        sql = query.to_sql()
        logger.debug("execute: %s %r", sql, query.params)
        try:
            async with self.get_connection() as conn:
                cursor = await conn.execute(sql, query.params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Query failed: {e}", sql) from e
        return [dict(row) for row in rows]

    async def count(self, query):
        """Count the rows a query would return without its limit."""
        sql = query.count_sql()
        try:
            async with self.get_connection() as conn:
                cursor = await conn.execute(sql, query.params)
                result = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Count failed: {e}", sql) from e
        return result[0]

    async def execute_write(self, sql, params=()):
        """Run one INSERT/UPDATE/DELETE statement and commit it."""
        logger.debug("write: %s %r", sql, params)
        try:
            async with self.get_connection() as conn:
                cursor = await conn.execute(sql, params)
                await conn.commit()
                return WriteResult(cursor.rowcount, cursor.lastrowid)
        except aiosqlite.Error as e:
            raise StorageFailure(f"Write failed: {e}", sql) from e

    def add_relation_listener(self, callback):
        """Register ``callback(change)`` for every persisted relation change."""
        self._relation_listeners.append(callback)

    def remove_relation_listener(self, callback):
        self._relation_listeners.remove(callback)

    def notify_relation_change(self, change):
        for callback in list(self._relation_listeners):
            callback(change)

    async def sync_schema(self):
        tables = {}
        for cls in EntityMeta.registry.values():
            if not cls._table_name:
                continue
            # Subclasses without their own table add their columns to the parent's.
            tables.setdefault(cls._table_name, {}).update(cls._fields)

        for table_name, fields in tables.items():
            logger.info("syncing table %s", table_name)
            await self._create_table(table_name, fields)

        for descriptor in self._link_tables():
            logger.info("syncing link table %s", descriptor.link_table)
            await self._create_link_table(descriptor)

        await self.seed_data()

    def _link_tables(self):
        seen = {}
        for cls in EntityMeta.registry.values():
            for relation in cls._relations.values():
                if relation.kind != RelationKind.JOIN_TABLE or relation.link_table in seen:
                    continue
                seen[relation.link_table] = relation.template()
        return seen.values()

    async def _create_table(self, table_name, fields):
        fields_sql = []
        fks_sql = []
        for f in fields.values():
            fields_sql.append(f.column_definition())
            if isinstance(f, ForeignKey) and f.foreign_key:
                target_table, target_col = f.foreign_key
                fks_sql.append(f"FOREIGN KEY ({f.column_name}) REFERENCES {target_table}({target_col})")

        sql = f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} ({', '.join(fields_sql + fks_sql)})"
        await self.execute_write(sql)

    async def _create_link_table(self, descriptor):
        parent_key = quote_identifier(descriptor.parent_key)
        child_key = quote_identifier(descriptor.child_key)
        cols = [f"{parent_key} INTEGER NOT NULL", f"{child_key} INTEGER NOT NULL"]
        for name, py_type in descriptor.extra_fields.items():
            cols.append(f"{quote_identifier(name)} {SQL_TYPES.get(py_type, 'TEXT')}")
        cols.append(f"UNIQUE ({parent_key}, {child_key})")
        sql = f"CREATE TABLE IF NOT EXISTS {quote_identifier(descriptor.link_table)} ({', '.join(cols)})"
        await self.execute_write(sql)

    async def seed_data(self):
        """Override to insert rows after the schema is created."""
