import datetime
from decimal import Decimal

import pytest

from linked_orm import (
    ConfigurationError,
    EntityMeta,
    Query,
    StorageFailure,
    UnknownType,
    escape_for_storage,
)

from tests.conftest import insert_row
from tests.models import Author, Book, Novel


def test_unregistered_class_name_needs_a_fallback():
    with pytest.raises(UnknownType):
        EntityMeta.instantiate("Nope", {"id": 1})

    book = EntityMeta.instantiate("Nope", {"id": 1, "title": "x"}, fallback=Book)
    assert type(book) is Book
    assert book.title == "x"


def test_record_class_name_wins_over_class_name():
    row = {"id": 2, "title": "Dawn", "class_name": "Book", "record_class_name": "Novel"}
    assert type(EntityMeta.project(row, Book)) is Novel


def test_unknown_entity_name_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        EntityMeta.resolve("Spaceship")


def test_subclasses_share_their_parents_table():
    assert Novel._table_name == "books"
    assert not Novel.has_own_table()
    assert Novel.class_ancestry() == [Book]
    assert {"id", "class_name", "title", "author_id", "genre"} <= set(Novel._fields)


def test_unknown_relation_name():
    with pytest.raises(ConfigurationError):
        Author(name="x").relation("publishers")


def test_escape_for_storage():
    assert escape_for_storage(None) == "NULL"
    assert escape_for_storage(True) == "1"
    assert escape_for_storage(12) == "12"
    assert escape_for_storage(Decimal("1.5")) == "1.5"
    assert escape_for_storage("O'Brien") == "'O''Brien'"
    assert escape_for_storage(datetime.datetime(2020, 1, 2, 3, 4)) == "'2020-01-02T03:04:00'"


@pytest.mark.asyncio
async def test_strict_query_rejects_unregistered_rows(db):
    await insert_row(db, "books", title="Ghost", class_name="Retired")

    with pytest.raises(UnknownType):
        await Book.query().strict_types().all()

    assert [b.title for b in await Book.query().all()] == ["Ghost"]


@pytest.mark.asyncio
async def test_storage_errors_are_wrapped(db):
    with pytest.raises(StorageFailure) as info:
        await db.execute(Query(Book, "no_such_table"))
    assert "no_such_table" in info.value.sql

    with pytest.raises(StorageFailure):
        await db.execute_write("INSERT INTO no_such_table (x) VALUES (?)", (1,))


@pytest.mark.asyncio
async def test_save_inserts_then_updates(db):
    author = Author(name="Le Guin")
    await author.save()
    author.name = "Ursula K. Le Guin"
    await author.save()

    stored = await Author.get_by_id(author.id)
    assert stored.name == "Ursula K. Le Guin"
    assert stored.class_name == "Author"

    await author.delete()
    assert author.id is None
    assert await Author.get_all() == []
