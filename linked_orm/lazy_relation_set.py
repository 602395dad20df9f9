"""
LazyRelationSet: a RelationSet whose members are read on first use.

The wrapper holds the relation's query without running it. Reading methods
await ``ensure_executed()`` first and then hand over to the wrapped
RelationSet; the query runs at most once per wrapper.

add/remove style mutations do not load the set. The ones that need to know
the current members (set_by_id_list, write, remove_all without a link table)
load it first.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .query import Query
from .relation_iterator import RelationIterator
from .relation_set import RelationSet

logger = logging.getLogger(__name__)


@dataclass
class _Deferred:
    handle: Optional[Query]
    iterator: Optional[RelationIterator] = None

    @property
    def executed(self) -> bool:
        return self.iterator is not None and self.iterator.executed


class LazyRelationSet:
    def __init__(self, relation_set: RelationSet, query: Optional[Query] = None):
        self._set = relation_set
        self._deferred = _Deferred(query)

    @property
    def descriptor(self):
        return self._set.descriptor

    @property
    def executed(self) -> bool:
        return self._deferred.executed

    @property
    def query(self) -> Optional[Query]:
        return self._deferred.handle

    @property
    def items(self):
        """The in-memory list as it is now, without loading anything."""
        return self._set.items

    def iterator(self) -> RelationIterator:
        if self._deferred.iterator is None:
            self._deferred.iterator = RelationIterator(self._set, self._deferred.handle)
        return self._deferred.iterator

    async def ensure_executed(self) -> RelationIterator:
        iterator = self.iterator()
        if not iterator.executed:
            logger.debug("executing deferred query for %r", self)
            await iterator.execute_query()
        return iterator

    def rebind(self, query: Optional[Query]):
        """Start over from ``query``; the next read loads the members from storage."""
        self._set.items = []
        self._deferred = _Deferred(query)

    def __aiter__(self):
        return self.iterator().__aiter__()

    # Reading

    async def all(self) -> list:
        await self.ensure_executed()
        return list(self._set.items)

    async def count(self) -> int:
        await self.ensure_executed()
        return self._set.count()

    async def exists(self) -> bool:
        return bool(await self.count())

    async def first(self):
        await self.ensure_executed()
        return self._set.first()

    async def last(self):
        await self.ensure_executed()
        return self._set.last()

    async def total_items(self) -> int:
        await self.ensure_executed()
        return self._set.total_items()

    async def get_id_list(self) -> dict:
        await self.ensure_executed()
        return self._set.get_id_list()

    async def contains_ids(self, id_list) -> bool:
        await self.ensure_executed()
        return self._set.contains_ids(id_list)

    async def only_contains_ids(self, id_list) -> bool:
        await self.ensure_executed()
        return self._set.only_contains_ids(id_list)

    async def column(self, field="id") -> list:
        await self.ensure_executed()
        return self._set.column(field)

    async def map(self, index="id", title_field="title", empty_string=None, sort=False) -> dict:
        await self.ensure_executed()
        return self._set.map(index, title_field, empty_string, sort)

    async def find(self, key, value):
        await self.ensure_executed()
        return self._set.find(key, value)

    async def group_by(self, field) -> dict:
        await self.ensure_executed()
        return self._set.group_by(field)

    async def grouped_by(self, field, child_control="children") -> list:
        await self.ensure_executed()
        return self._set.grouped_by(field, child_control)

    async def sort(self, field, direction="ASC"):
        await self.ensure_executed()
        self._set.sort(field, direction)

    async def remove_duplicates(self, field="id"):
        await self.ensure_executed()
        self._set.remove_duplicates(field)

    async def build_nested_ul(self, nesting_levels, ul_extra_attributes="") -> str:
        await self.ensure_executed()
        return await self._set.build_nested_ul(nesting_levels, ul_extra_attributes)

    async def get_children_as_ul(self, nesting_levels, level=0, template=None, ul_extra_attributes=None) -> str:
        await self.ensure_executed()
        if template is None:
            return await self._set.get_children_as_ul(nesting_levels, level, ul_extra_attributes=ul_extra_attributes)
        return await self._set.get_children_as_ul(nesting_levels, level, template, ul_extra_attributes)

    async def ul(self, template="<li>{title}</li>") -> str:
        await self.ensure_executed()
        return self._set.ul(template)

    async def for_template(self) -> str:
        await self.ensure_executed()
        return self._set.for_template()

    async def debug(self) -> str:
        await self.ensure_executed()
        return self._set.debug()

    # Writing

    async def add(self, item, extra_fields=None):
        await self._set.add(item, extra_fields)

    async def add_many(self, items):
        await self._set.add_many(items)

    async def add_without_write(self, item):
        await self.ensure_executed()
        self._set.add_without_write(item)

    async def remove(self, item):
        await self._set.remove(item)

    async def remove_many(self, items):
        if isinstance(items, LazyRelationSet):
            items = await items.column("id")
        return await self._set.remove_many(items)

    async def set_by_id_list(self, id_list):
        await self.ensure_executed()
        await self._set.set_by_id_list(id_list)

    async def remove_all(self):
        if not self.descriptor.link_table:
            # Removal goes item by item, so the items must be loaded.
            await self.ensure_executed()
        await self._set.remove_all()

    async def write(self, first_write=False):
        await self.ensure_executed()
        await self._set.write(first_write)

    def __repr__(self):
        state = "loaded" if self.executed else "deferred"
        return f"<LazyRelationSet {self.descriptor.name} {state}>"
