import pytest

from linked_orm import NOT_FOUND

from tests.conftest import insert_row
from tests.models import Author, Book

TITLES = ["Neuromancer", "Count Zero", "Mona Lisa Overdrive", "Idoru"]


async def loaded_author(db):
    await insert_row(db, "authors", id=1, name="Gibson", class_name="Author")
    for title in TITLES:
        await Book(title=title, author_id=1).save()
    return await Author.get_by_id(1)


@pytest.mark.asyncio
async def test_cursor_walks_forward_to_the_offset_item(db):
    author = await loaded_author(db)
    iterator = author.books.iterator()

    first = await iterator.rewind()
    target = await iterator.get_offset(len(TITLES) - 1)
    for _ in range(len(TITLES) - 1):
        current = await iterator.next()

    assert first.title == "Neuromancer"
    assert current is target
    assert await iterator.valid()

    await iterator.next()
    assert not await iterator.valid()
    assert await iterator.current() is NOT_FOUND
    assert await iterator.key() is None


@pytest.mark.asyncio
async def test_any_cursor_call_runs_the_query(db, recorder):
    author = await loaded_author(db)
    books = author.books
    recorder.reset()

    assert await books.iterator().key() == 0
    assert books.executed
    await books.iterator().execute_query()
    await books.count()
    assert len(recorder.reads) == 1


@pytest.mark.asyncio
async def test_peeking_does_not_move_the_cursor(db):
    author = await loaded_author(db)
    iterator = author.books.iterator()
    await iterator.rewind()
    await iterator.next()

    assert (await iterator.peek_next()).title == "Mona Lisa Overdrive"
    assert (await iterator.peek_prev()).title == "Neuromancer"
    assert await iterator.key() == 1
    assert (await iterator.current()).title == "Count Zero"
    assert await iterator.get_offset(-2) is NOT_FOUND
    assert await iterator.get_offset(3) is NOT_FOUND
    assert not NOT_FOUND


@pytest.mark.asyncio
async def test_handed_out_items_know_their_position(db):
    author = await loaded_author(db)

    seen = []
    async for book in author.books:
        seen.append((book.pos(), book.is_first(), book.is_last(), book.even_odd()))

    assert seen == [
        (1, True, False, "odd"),
        (2, False, False, "even"),
        (3, False, False, "odd"),
        (4, False, True, "even"),
    ]


@pytest.mark.asyncio
async def test_iteration_restarts_from_the_top(db):
    author = await loaded_author(db)
    books = author.books

    first_pass = [b.title async for b in books]
    second_pass = [b.title async for b in books]

    assert first_pass == second_pass == TITLES


@pytest.mark.asyncio
async def test_empty_relation_iterates_nothing(db):
    await insert_row(db, "authors", id=2, name="Nobody", class_name="Author")
    author = await Author.get_by_id(2)
    iterator = author.books.iterator()

    assert await iterator.rewind() is NOT_FOUND
    assert not await iterator.valid()
    assert [b async for b in author.books] == []
