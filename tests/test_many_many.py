import pytest

from linked_orm import ConfigurationError, RelationAction, RelationKind, TypeMismatch

from tests.conftest import fetch_rows, insert_row
from tests.models import Author, Group, Member, Person


async def make_group(db, group_id=5):
    await insert_row(db, "groups", id=group_id, title="Editors", class_name="Group")
    return await Group.get_by_id(group_id)


async def make_members(db, *ids):
    for member_id in ids:
        await insert_row(db, "members", id=member_id, name=f"member-{member_id}", age=member_id, class_name="Member")


async def link_rows(db, group_id=5):
    return await fetch_rows(
        db, "SELECT member_id, role FROM group_members WHERE group_id = ? ORDER BY member_id", (group_id,)
    )


def actions(changes, action):
    return [c for c in changes if c.action == action]


@pytest.mark.asyncio
async def test_link_row_is_updated_in_place_and_removed(db, changes):
    group = await make_group(db, 5)
    await make_members(db, 9)

    await group.members.add(9, extra_fields={"role": "Editor"})

    assert await link_rows(db) == [{"member_id": 9, "role": "Editor"}]
    assert len(changes) == 1
    change = changes[0]
    assert change.action == RelationAction.ADDED
    assert change.kind == RelationKind.JOIN_TABLE
    assert change.table_name == "group_members"
    assert change.relation_name == "group_members"
    assert change.entity.id == 9

    await group.members.add(9, extra_fields={"role": "Admin"})

    assert await link_rows(db) == [{"member_id": 9, "role": "Admin"}]
    assert len(changes) == 1

    await group.members.remove(9)

    assert await link_rows(db) == []
    assert [c.action for c in changes] == [RelationAction.ADDED, RelationAction.DELETED]


@pytest.mark.asyncio
async def test_remove_twice_notifies_once(db, changes):
    group = await make_group(db)
    await make_members(db, 1)
    await group.members.add(1)

    await group.members.remove(1)
    await group.members.remove(1)

    assert len(actions(changes, RelationAction.DELETED)) == 1
    assert await group.members.count() == 0


@pytest.mark.asyncio
async def test_extra_fields_are_loaded_with_members(db):
    group = await make_group(db)
    await make_members(db, 1, 2)
    await group.members.add(1, extra_fields={"role": "Owner"})
    await group.members.add(2)

    members = group.relation("members", flush_cache=True)

    assert await members.column("id") == [1, 2]
    first = await members.first()
    assert first.extra("role") == "Owner"
    assert (await members.last()).extra("role") is None


@pytest.mark.asyncio
async def test_unknown_extra_field_is_rejected(db):
    group = await make_group(db)
    await make_members(db, 1)

    with pytest.raises(ConfigurationError):
        await group.members.add(1, extra_fields={"colour": "red"})


@pytest.mark.asyncio
async def test_set_by_id_list_reconciles_and_is_idempotent(db, changes):
    group = await make_group(db)
    await make_members(db, 1, 2, 3, 4, 5)

    await group.members.set_by_id_list([1, 2, 3])
    assert len(actions(changes, RelationAction.ADDED)) == 3
    changes.clear()

    await group.members.set_by_id_list(["2", 3, 4, 5, 5])

    assert sorted(c.entity.id for c in actions(changes, RelationAction.ADDED)) == [4, 5]
    assert [c.entity.id for c in actions(changes, RelationAction.DELETED)] == [1]
    assert sorted(await group.members.column("id")) == [2, 3, 4, 5]
    assert [row["member_id"] for row in await link_rows(db)] == [2, 3, 4, 5]
    changes.clear()

    await group.members.set_by_id_list([5, 4, 3, 2])

    assert changes == []
    assert await group.relation("members", flush_cache=True).only_contains_ids([2, 3, 4, 5])


@pytest.mark.asyncio
async def test_remove_many_issues_one_delete(db, changes, recorder):
    group = await make_group(db)
    await make_members(db, 1, 2, 3, 4)
    for member_id in (1, 2, 3):
        await group.members.add(member_id)
    changes.clear()
    recorder.reset()

    assert await group.members.remove_many([1, 3, 4]) is True

    deletes = [sql for sql in recorder.writes if sql.startswith("DELETE")]
    assert len(deletes) == 1
    assert "IN (1, 3, 4)" in deletes[0]
    assert sorted(c.entity.id for c in changes) == [1, 3]
    assert [row["member_id"] for row in await link_rows(db)] == [2]
    assert [m.id for m in group.members.items] == [2]


@pytest.mark.asyncio
async def test_remove_many_of_nothing_returns_false(db, recorder):
    group = await make_group(db)
    recorder.reset()

    assert await group.members.remove_many([]) is False
    assert recorder.writes == []


@pytest.mark.asyncio
async def test_remove_all_reads_members_then_deletes_in_one_statement(db, changes, recorder):
    group = await make_group(db)
    await make_members(db, 1, 2, 3)
    for member_id in (1, 2, 3):
        await group.members.add(member_id)
    changes.clear()

    members = group.relation("members", flush_cache=True)
    recorder.reset()
    await members.remove_all()

    assert not members.executed
    assert len(recorder.writes) == 1
    assert sorted(c.entity.id for c in changes) == [1, 2, 3]
    assert all(c.action == RelationAction.DELETED for c in changes)
    assert await link_rows(db) == []
    assert await members.count() == 0


@pytest.mark.asyncio
async def test_remove_all_leaves_other_owners_alone(db):
    group = await make_group(db, 5)
    other = await make_group(db, 6)
    await make_members(db, 1)
    await group.members.add(1)
    await other.members.add(1)

    await group.members.remove_all()

    assert await link_rows(db, 5) == []
    assert await link_rows(db, 6) == [{"member_id": 1, "role": None}]


@pytest.mark.asyncio
async def test_unsaved_owner_links_members_on_first_save(db, changes):
    await make_members(db, 1, 2)
    group = Group(title="Drafts")

    await group.members.add_many([1, 2])
    assert changes == []

    await group.save()

    assert [row["member_id"] for row in await link_rows(db, group.id)] == [1, 2]
    assert len(actions(changes, RelationAction.ADDED)) == 2


@pytest.mark.asyncio
async def test_self_referencing_relation_uses_child_id_column(db, changes):
    alice = Person(name="Alice")
    bob = Person(name="Bob")
    await alice.save()
    await bob.save()

    await alice.friends.add(bob)

    rows = await fetch_rows(db, "SELECT person_id, child_id FROM person_friends")
    assert rows == [{"person_id": alice.id, "child_id": bob.id}]
    assert await bob.friends.count() == 0
    assert [p.name for p in await alice.relation("friends", flush_cache=True).all()] == ["Bob"]
    assert len(changes) == 1


@pytest.mark.asyncio
async def test_remove_many_rejects_entities_of_another_class(db, changes):
    group = await make_group(db)
    await make_members(db, 1)
    await group.members.add(1)
    changes.clear()

    with pytest.raises(TypeMismatch):
        await group.members.remove_many([Author(id=1, name="Not a member")])

    assert await link_rows(db) == [{"member_id": 1, "role": None}]
    assert changes == []
