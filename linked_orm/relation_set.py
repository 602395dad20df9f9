"""
RelationSet: the entities on the far side of one relationship of one owner.

Every mutation is written through to storage as soon as the owner has been
saved. Before that, mutations only touch the in-memory list and are flushed by
``write(first_write=True)`` when the owner is inserted.

Observers (relation listeners on the descriptor or the db_context) are told
about each row that was actually added or removed, never about no-ops.
"""

import logging

from .entity_meta import EntityMeta
from .errors import ConfigurationError, TypeMismatch, UnresolvedReference
from .key_words import escape_list, quote_identifier
from .query import Column
from .relation_descriptor import RelationAction, RelationKind

logger = logging.getLogger(__name__)


def _is_entity(item):
    return isinstance(type(item), EntityMeta)


def _normalize_id(value):
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


class _TemplateView:
    """Mapping over an entity's attributes for str.format_map templates."""

    def __init__(self, item):
        self.item = item

    def __getitem__(self, key):
        value = getattr(self.item, key)
        return value() if callable(value) else value


class RelationSet:
    """Ordered, write-through collection of the members of one relation."""

    def __init__(self, descriptor, items=None):
        self.descriptor = descriptor
        self.items = list(items or [])
        self.page_start = None
        self.page_length = None
        self.total_size = None

    @property
    def _context(self):
        return self.descriptor.owner._context

    def _matches(self, candidate, item):
        if item.id is None:
            return candidate is item
        return candidate.id == item.id

    # ------------------------------------------------------------------
    # Item resolution
    # ------------------------------------------------------------------

    async def _resolve(self, item, operation):
        """Turn an entity or a raw id into a child entity of the right class."""
        if item is None:
            raise ConfigurationError(f"RelationSet.{operation}() not passed an object or id")

        d = self.descriptor
        if not d.child_type:
            raise ConfigurationError(f"RelationSet.{operation}() child type of '{d.name}' not set")
        child_cls = d.child_class

        if _is_entity(item):
            return self._check_type(item, child_cls, operation)

        item_id = _normalize_id(item)
        found = await child_cls.get_by_id(item_id)
        if found is None:
            raise UnresolvedReference(f"No {child_cls.__name__} with id {item_id!r}")
        return found

    def _check_type(self, item, child_cls, operation):
        if not isinstance(item, child_cls):
            raise TypeMismatch(
                f"RelationSet.{operation}() tried to use a '{type(item).__name__}' object, "
                f"but a '{child_cls.__name__}' object expected"
            )
        return item

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add(self, item, extra_fields=None):
        """Add an entity, or the entity with the given id, to this set.

        An id that matches no row is ignored.
        """
        try:
            item = await self._resolve(item, "add")
            if self.descriptor.owner_is_persisted():
                await self._load_child_into_database(item, extra_fields)
        except UnresolvedReference as e:
            logger.debug("add() on '%s' ignored: %s", self.descriptor.name, e)
            return

        if not any(self._matches(candidate, item) for candidate in self.items):
            self.items.append(item)

    async def add_many(self, items):
        for item in items:
            await self.add(item)

    def add_without_write(self, item):
        """Append to the in-memory list only."""
        self.items.append(item)

    async def _load_child_into_database(self, item, extra_fields=None):
        d = self.descriptor
        if d.kind == RelationKind.CHILD_FOREIGN_KEY:
            await self._link_child_row(item)
        else:
            await self._insert_link_row(item, extra_fields)

    async def _link_child_row(self, item):
        d = self.descriptor
        if item.id:
            # Stored row decides whether the foreign key already points here.
            child = await type(item).get_by_id(item.id)
            if child is None:
                raise UnresolvedReference(f"No {type(item).__name__} with id {item.id!r}")
        else:
            child = item

        if getattr(child, d.join_field) != d.owner_id or not child.id:
            setattr(child, d.join_field, d.owner_id)
            await child.save()
            if child is not item:
                setattr(item, d.join_field, d.owner_id)
            logger.debug("linked %s %s to %s %s", type(child).__name__, child.id, d.owner_type, d.owner_id)
            d.notify(RelationAction.ADDED, child)
        elif child is not item:
            setattr(item, d.join_field, d.owner_id)

    async def _insert_link_row(self, item, extra_fields=None):
        d = self.descriptor
        extra_fields = dict(extra_fields or {})
        if d.extra_fields:
            unknown = set(extra_fields) - set(d.extra_fields)
            if unknown:
                raise ConfigurationError(
                    f"Unknown extra fields for '{d.link_table}': {', '.join(sorted(unknown))}"
                )
        if not item.id:
            await item.save()

        table = quote_identifier(d.link_table)
        parent_key = quote_identifier(d.parent_key)
        child_key = quote_identifier(d.child_key)

        result = await self._context.execute_write(
            f"DELETE FROM {table} WHERE {parent_key} = ? AND {child_key} = ?",
            (d.owner_id, item.id),
        )
        is_new = result.rowcount == 0

        columns = [parent_key, child_key] + [quote_identifier(k) for k in extra_fields]
        values = [d.owner_id, item.id] + list(extra_fields.values())
        placeholders = ", ".join("?" for _ in values)
        await self._context.execute_write(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )

        if is_new:
            d.notify(RelationAction.ADDED, item)
        else:
            logger.debug("updated link %s -> %s in %s", d.owner_id, item.id, d.link_table)

    async def remove(self, item):
        """Remove an entity, or the entity with the given id, from this set."""
        d = self.descriptor
        try:
            item = await self._resolve(item, "remove")
        except UnresolvedReference:
            # The child row is gone; a stale link row may still be there.
            missing_id = _normalize_id(item)
            if d.owner_is_persisted() and d.kind == RelationKind.JOIN_TABLE:
                await self._delete_link_row(missing_id, None)
            self.items = [i for i in self.items if i.id != missing_id]
            return

        if d.owner_is_persisted():
            if d.kind == RelationKind.CHILD_FOREIGN_KEY:
                await self._unlink_child_row(item)
            else:
                await self._delete_link_row(item.id, item)

        for i, candidate in enumerate(self.items):
            if self._matches(candidate, item):
                del self.items[i]
                break

    async def _unlink_child_row(self, item):
        d = self.descriptor
        if not item.id:
            return
        child = await type(item).get_by_id(item.id)
        if child is None or getattr(child, d.join_field) != d.owner_id:
            return
        setattr(child, d.join_field, None)
        await child.save()
        if child is not item:
            setattr(item, d.join_field, None)
        d.notify(RelationAction.DELETED, child)

    async def _delete_link_row(self, child_id, item):
        d = self.descriptor
        result = await self._context.execute_write(
            f"DELETE FROM {quote_identifier(d.link_table)} "
            f"WHERE {quote_identifier(d.parent_key)} = ? AND {quote_identifier(d.child_key)} = ?",
            (d.owner_id, child_id),
        )
        if result.rowcount:
            d.notify(RelationAction.DELETED, item)

    async def remove_many(self, items):
        """Remove several entities or ids.

        Join-table relations issue a single DELETE for the whole list.
        Returns False when there was nothing to remove.
        """
        if isinstance(items, RelationSet):
            items = items.column("id")
        items = list(items)
        if not items:
            return False

        d = self.descriptor
        if d.kind == RelationKind.CHILD_FOREIGN_KEY:
            for item in items:
                await self.remove(item)
            return True

        child_cls = d.child_class
        for item in items:
            if _is_entity(item):
                self._check_type(item, child_cls, "remove_many")
        ids = [_normalize_id(i.id if _is_entity(i) else i) for i in items]
        if d.owner_is_persisted():
            linked = await self._linked_members(Column("id", self._child_table()).in_literal(ids))
            for member in linked:
                d.notify(RelationAction.DELETED, member)

            table = quote_identifier(d.link_table)
            await self._context.execute_write(
                f"DELETE FROM {table} WHERE {quote_identifier(d.parent_key)} = ? "
                f"AND {quote_identifier(d.child_key)} IN ({escape_list(ids)})",
                (d.owner_id,),
            )

        removed = set(ids)
        self.items = [i for i in self.items if i.id not in removed]
        return True

    async def set_by_id_list(self, id_list):
        """Make the members of this set exactly the given ids.

        Ids not yet present are added, members missing from the list are
        removed with one remove_many() call.
        """
        has = {item.id for item in self.items if item.id}
        wanted = set()
        added = set()

        for item_id in id_list or []:
            item_id = _normalize_id(item_id)
            if not item_id:
                continue
            wanted.add(item_id)
            if item_id not in has and item_id not in added:
                await self.add(item_id)
                added.add(item_id)

        await self.remove_many([i for i in has if i not in wanted])

    def _child_table(self):
        return self.descriptor.child_class.class_ancestry()[-1]._table_name

    async def _linked_members(self, *conditions):
        """Read the children currently linked to the owner through the link table."""
        d = self.descriptor
        child_table = self._child_table()
        on = (
            f"{quote_identifier(d.link_table)}.{quote_identifier(d.child_key)} "
            f"= {quote_identifier(child_table)}.{quote_identifier('id')}"
        )
        query = (
            d.child_class.query()
            .join(d.link_table, on)
            .filter(Column(d.parent_key, d.link_table) == d.owner_id, *conditions)
        )
        return await query.all()

    async def remove_all(self):
        """Remove every member of this set."""
        d = self.descriptor
        if d.link_table:
            if d.owner_is_persisted():
                members = await self._linked_members()
                for member in members:
                    d.notify(RelationAction.DELETED, member)
                if members:
                    logger.info("all '%s' records deleted for %s %s", d.name, d.owner_type, d.owner_id)
                await self._context.execute_write(
                    f"DELETE FROM {quote_identifier(d.link_table)} WHERE {quote_identifier(d.parent_key)} = ?",
                    (d.owner_id,),
                )
            self.items = []
        else:
            for item in list(self.items):
                await self.remove(item)

    async def write(self, first_write=False):
        """Flush held items into storage. Called by Entity.save() after the first insert."""
        if first_write:
            for item in list(self.items):
                try:
                    await self._load_child_into_database(item)
                except UnresolvedReference as e:
                    logger.debug("first write of '%s' skipped an item: %s", self.descriptor.name, e)

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def parse_query_limit(self, query, total_size):
        self.page_start = query.offset_value
        self.page_length = query.limit_value
        self.total_size = total_size

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def __iter__(self):
        return iter(list(self.items))

    def __len__(self):
        return len(self.items)

    def __bool__(self):
        return bool(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def count(self):
        return len(self.items)

    def exists(self):
        return bool(self.items)

    def first(self):
        return self.items[0] if self.items else None

    def last(self):
        return self.items[-1] if self.items else None

    def total_items(self):
        """Size of the whole result when the set holds one page of it."""
        if self.total_size is not None:
            return self.total_size
        return self.count()

    def get_id_list(self):
        """Member ids, keyed by themselves."""
        return {item.id: item.id for item in self.items}

    def contains_ids(self, id_list):
        ids = self.get_id_list()
        return all(_normalize_id(i) in ids for i in id_list)

    def only_contains_ids(self, id_list):
        return set(self.get_id_list()) == {_normalize_id(i) for i in id_list}

    def column(self, field="id"):
        return [getattr(item, field) for item in self.items]

    def map(self, index="id", title_field="title", empty_string=None, sort=False):
        """Dict of ``index`` value to ``title_field`` value (attribute or method)."""
        pairs = []
        for item in self.items:
            title = getattr(item, title_field)
            pairs.append((getattr(item, index), title() if callable(title) else title))
        if sort:
            pairs.sort(key=lambda pair: (pair[1] is None, pair[1]))
        result = {"": empty_string} if empty_string is not None else {}
        result.update(pairs)
        return result

    def find(self, key, value):
        for item in self.items:
            if getattr(item, key) == value:
                return item
        return None

    def group_by(self, field):
        groups = {}
        for item in self.items:
            groups.setdefault(getattr(item, field), []).append(item)
        return groups

    def grouped_by(self, field, child_control="children"):
        """Groups as a list of ``{field: key, child_control: [items]}``, in order of first appearance."""
        return [{field: key, child_control: items} for key, items in self.group_by(field).items()]

    def sort(self, field, direction="ASC"):
        reverse = direction.upper() == "DESC"

        def sort_key(item):
            value = getattr(item, field)
            return (value is None, value)

        self.items.sort(key=sort_key, reverse=reverse)

    def remove_duplicates(self, field="id"):
        seen = set()
        kept = []
        for item in self.items:
            value = getattr(item, field)
            if value in seen:
                continue
            seen.add(value)
            kept.append(item)
        self.items = kept

    async def build_nested_ul(self, nesting_levels, ul_extra_attributes=""):
        """Nested <ul> markup following relation names level by level.

        ``nesting_levels`` is a list of ``{"dataclass": name, "template": fmt}``;
        the first level is this set ("root"), each deeper level names a relation
        on the items of the level above. Templates use ``str.format`` fields
        resolved against each item, e.g. ``'<li class="{even_odd}">{title}'``.
        """
        template = nesting_levels[0]["template"]
        return await self.get_children_as_ul(nesting_levels, 0, template, ul_extra_attributes)

    async def get_children_as_ul(self, nesting_levels, level=0,
                                 template='<li id="record-{id}" class="{even_odd}">{title}',
                                 ul_extra_attributes=None):
        if not self.items:
            return ""
        attrs = f" {ul_extra_attributes}" if ul_extra_attributes else ""
        output = f"<ul{attrs}>\n"
        total = len(self.items)
        for pos, item in enumerate(self.items):
            item.iterator_properties(pos, total)
            output += template.format_map(_TemplateView(item))
            if level + 1 < len(nesting_levels):
                child_level = nesting_levels[level + 1]
                children = item.relation(child_level["dataclass"])
                output += await children.get_children_as_ul(
                    nesting_levels, level + 1, child_level["template"], ul_extra_attributes
                )
            output += "</li>\n"
        return output + "</ul>\n"

    def ul(self, template="<li>{title}</li>"):
        """Flat <ul> of the members, one ``template`` line per item."""
        if not self.items:
            return ""
        total = len(self.items)
        lines = ["<ul>"]
        for pos, item in enumerate(self.items):
            item.iterator_properties(pos, total)
            lines.append(template.format_map(_TemplateView(item)))
        lines.append("</ul>")
        return "\n".join(lines)

    def for_template(self):
        return self.ul()

    def debug(self):
        d = self.descriptor
        lines = [
            f"{type(self).__name__} '{d.name}'",
            f"  Type: {d.kind.value}",
            f"  Owner: {d.owner_type} {d.owner_id}",
            f"  Size: {len(self.items)}",
        ]
        return "\n".join(lines)

    def __repr__(self):
        return f"<{type(self).__name__} {self.descriptor.name} size={len(self.items)}>"
