from pytest import fixture, raises

from anylist_client import (
    ReadOnlyError,
    Session,
    ShoppingList,
    State,
    SyncError,
    ValidationError,
)


@fixture
def groceries(loaded_session: Session) -> ShoppingList:
    shopping_list = loaded_session.get_list_by_id("list-1")
    assert shopping_list is not None
    return shopping_list


async def test_add_item(
    loaded_session: Session, groceries: ShoppingList, server, user_id
):
    item = loaded_session.create_item(name="Butter", details="salted")

    added = await groceries.add_item(item)

    assert added is item
    assert item.list_id == "list-1"
    assert item in groceries.items
    assert item.state is State.CLEAN
    assert loaded_session.dirty_count == 0

    path, operations = server.batches[0]
    assert path == "data/shopping-lists/update"
    assert len(operations) == 1

    op = operations[0]
    assert op.metadata.handler_id == "add-shopping-list-item"
    assert op.metadata.user_id == user_id
    assert op.list_id == "list-1"
    assert op.list_item_id == item.identifier

    assert op.list_item is not None
    assert op.list_item.identifier == item.identifier
    assert op.list_item.list_id == "list-1"
    assert op.list_item.name == "Butter"
    assert op.list_item.details == "salted"
    assert op.list_item.category_match_id == "other"

    # list is now locked
    with raises(ReadOnlyError):
        item.list_id = "list-2"

    # subsequent changes are field updates
    item.quantity = 2
    await item.save()
    assert server.handler_ids[-1] == "set-list-item-quantity"


async def test_add_item_rejected(
    loaded_session: Session, groceries: ShoppingList, server
):
    server.reject_operations = True
    item = loaded_session.create_item(name="Butter")

    with raises(SyncError):
        await groceries.add_item(item)

    assert item not in groceries.items
    assert item.list_id is None
    assert item.state is State.CREATE


async def test_add_item_other_list(
    loaded_session: Session, groceries: ShoppingList, server
):
    item = loaded_session.create_item(name="Butter")
    item.list_id = "list-2"

    with raises(ReadOnlyError):
        await groceries.add_item(item)

    assert server.batches == []


async def test_add_existing_item(groceries: ShoppingList, server):
    milk = groceries.get_item_by_name("Milk")
    assert milk is not None

    with raises(ValidationError):
        await groceries.add_item(milk)

    assert server.batches == []


async def test_remove_item(groceries: ShoppingList, server):
    eggs = groceries.get_item_by_name("Eggs")
    assert eggs is not None

    await groceries.remove_item(eggs)

    assert eggs not in groceries.items
    assert [i.name for i in groceries.items] == ["Milk"]

    op = server.operations[0]
    assert op.metadata.handler_id == "remove-shopping-list-item"
    assert op.list_id == "list-1"
    assert op.list_item_id == eggs.identifier


async def test_remove_item_rejected(groceries: ShoppingList, server):
    server.reject_operations = True
    eggs = groceries.get_item_by_name("Eggs")
    assert eggs is not None

    with raises(SyncError):
        await groceries.remove_item(eggs)

    assert eggs in groceries.items


async def test_remove_item_not_in_list(
    loaded_session: Session, groceries: ShoppingList
):
    item = loaded_session.create_item(name="Butter")

    with raises(ValidationError):
        await groceries.remove_item(item)


async def test_uncheck_all(groceries: ShoppingList, server):
    eggs = groceries.get_item_by_name("Eggs")
    assert eggs is not None
    assert eggs.checked is True

    await groceries.uncheck_all()

    assert eggs.checked is False
    assert eggs.state is State.CLEAN

    op = server.operations[0]
    assert op.metadata.handler_id == "uncheck-all"
    assert op.list_id == "list-1"


async def test_uncheck_all_rejected(groceries: ShoppingList, server):
    server.reject_operations = True

    with raises(SyncError):
        await groceries.uncheck_all()

    eggs = groceries.get_item_by_name("Eggs")
    assert eggs is not None
    assert eggs.checked is True


async def test_read_only(groceries: ShoppingList):
    with raises(ReadOnlyError):
        groceries.name = "Hardware"

    with raises(ReadOnlyError):
        groceries.identifier = "list-2"

    assert groceries.name == "Groceries"


async def test_str(groceries: ShoppingList):
    assert str(groceries) == "ShoppingList(name=Groceries, identifier=list-1)"
    assert "CLEAN" in groceries.str_summary
    assert "items=2" in groceries.str_summary
