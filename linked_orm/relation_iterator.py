import asyncio
import logging

from .entity_meta import EntityMeta

logger = logging.getLogger(__name__)


class _NotFound:
    """Returned by cursor lookups that fall outside the set."""

    def __bool__(self):
        return False

    def __repr__(self):
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


class RelationIterator:
    """Runs a relation's deferred query once and walks over the result.

    The loaded entities are stored on the relation set itself, so the cursor
    and the set always see the same list.
    """

    def __init__(self, relation_set, query):
        self.relation_set = relation_set
        self.query = query
        self._executed = False
        self._lock = asyncio.Lock()
        self._position = 0

    @property
    def executed(self):
        return self._executed

    @property
    def items(self):
        return self.relation_set.items

    async def execute_query(self):
        """Run the query unless it already ran. Safe to await from any entry point."""
        if self._executed:
            return
        async with self._lock:
            if self._executed:
                return
            loaded = await self._load()
            self._executed = True

        # Items added before the first read stay in the set, after the stored ones.
        loaded_ids = {item.id for item in loaded if item.id is not None}
        pending = [
            item for item in self.relation_set.items
            if item.id is None or item.id not in loaded_ids
        ]
        self.relation_set.items = loaded + pending
        self._position = 0

    async def _load(self):
        if self.query is None:
            logger.debug("no query for %r, starting empty", self.relation_set)
            return []

        context = self.query.entity_cls._context
        rows = await context.execute(self.query)
        if rows and self.query.is_limited:
            self.relation_set.parse_query_limit(self.query, await context.count(self.query))

        items = [EntityMeta.project(row, self.query.fallback_class) for row in rows]
        logger.debug("loaded %d rows for %r", len(items), self.relation_set)
        return items

    def _prepare(self, index):
        item = self.items[index]
        item.iterator_properties(index, len(self.items))
        return item

    def _in_range(self, index):
        return 0 <= index < len(self.items)

    async def current(self):
        await self.execute_query()
        if not self._in_range(self._position):
            return NOT_FOUND
        return self._prepare(self._position)

    async def key(self):
        await self.execute_query()
        return self._position if self._in_range(self._position) else None

    async def next(self):
        await self.execute_query()
        self._position += 1
        return await self.current()

    async def rewind(self):
        await self.execute_query()
        self._position = 0
        return await self.current()

    async def valid(self):
        await self.execute_query()
        return self._in_range(self._position)

    async def peek_next(self):
        return await self.get_offset(1)

    async def peek_prev(self):
        return await self.get_offset(-1)

    async def get_offset(self, offset):
        """Item ``offset`` places away from the cursor, without moving it."""
        await self.execute_query()
        index = self._position + offset
        if not self._in_range(index):
            return NOT_FOUND
        return self._prepare(index)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        await self.rewind()
        while await self.valid():
            yield await self.current()
            await self.next()
