import pytest
import pytest_asyncio

from linked_orm import db_context

from tests import models  # noqa: F401  registers the entities before the context is built


class StorageRecorder:
    """Counts reads and writes that go through a db_context."""

    def __init__(self, context):
        self.reads = []
        self.writes = []
        self._execute = context.execute
        self._execute_write = context.execute_write
        context.execute = self.execute
        context.execute_write = self.execute_write

    async def execute(self, query):
        self.reads.append(query)
        return await self._execute(query)

    async def execute_write(self, sql, params=()):
        self.writes.append(sql)
        return await self._execute_write(sql, params)

    def reset(self):
        self.reads.clear()
        self.writes.clear()


@pytest_asyncio.fixture
async def db(tmp_path):
    context = db_context(str(tmp_path / "data" / "test.db"), sync_schema=True)
    await context.initialize()
    return context


@pytest.fixture
def changes(db):
    recorded = []
    db.add_relation_listener(recorded.append)
    return recorded


@pytest.fixture
def recorder(db):
    return StorageRecorder(db)


async def insert_row(db, table_name, **values):
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    await db.execute_write(
        f"INSERT INTO {table_name} ({columns}) VALUES ({placeholders})", list(values.values())
    )


async def fetch_rows(db, sql, params=()):
    async with db.get_connection() as conn:
        cursor = await conn.execute(sql, params)
        return [dict(row) for row in await cursor.fetchall()]
