from __future__ import annotations

from ..entity.entity import BaseEntity
from ..entity.model import ReadOnlyDescriptor
from ..exceptions import ReadOnlyError, _assert_validate
from ..operation import Action, Operation, OperationBatch
from ..wire import ShoppingListModel
from .item import Item

__all__ = [
    "ShoppingList",
]


class ShoppingList(BaseEntity[ShoppingListModel]):
    """
    Shopping list, as loaded from AnyList.

    Items are added and removed through the list; each such change is
    applied locally only once accepted by AnyList.
    """

    _model_cls = ShoppingListModel

    fields = [
        "identifier",
        "name",
    ]

    name: str | None = ReadOnlyDescriptor("name")  # type: ignore
    """
    Name of list.
    """

    items: list[Item]
    """
    Items in this list, in order received from AnyList.
    """

    def _setup(self, model: ShoppingListModel | None):
        self.items = []

        if model is None:
            return

        for item_model in model.items:
            item = Item._from_model(item_model, self._session)

            # items embedded in a list may omit their list id
            if item.list_id is None:
                item.list_id = self.identifier

            self.items.append(item)

    def _encode_extra(self):
        return {"items": [item._encode() for item in self.items]}

    @property
    def _str_short(self) -> str:
        return f"ShoppingList(name={self.name}, identifier={self.identifier})"

    @property
    def _str_summary_extra(self) -> list[str]:
        return [f"items={len(self.items)}"]

    def get_item_by_id(self, identifier: str) -> Item | None:
        """
        Get item of this list by its identifier.
        """
        for item in self.items:
            if item.identifier == identifier:
                return item
        return None

    def get_item_by_name(self, name: str) -> Item | None:
        """
        Get first item of this list with the given name.
        """
        for item in self.items:
            if item.name == name:
                return item
        return None

    async def add_item(self, item: Item) -> Item:
        """
        Add a new item to this list. The item's list is locked once AnyList
        accepts it.

        :raises ReadOnlyError: If item already belongs to a different list
        :raises ValidationError: If item is already known to AnyList
        :raises SyncError: If AnyList rejected the item
        """
        if item.list_id is not None and item.list_id != self.identifier:
            raise ReadOnlyError("list_id", item)

        _assert_validate(
            not item._exists,
            f"{item.str_short} already exists, items can't be moved between lists",
        )

        checkpoint = item._model.checkpoint()
        operation = item._add_operation(self.identifier)

        await self._session.submit(OperationBatch.single(operation))

        if item.list_id is None:
            item.list_id = self.identifier
        item._set_synced(checkpoint)
        self.items.append(item)

        return item

    async def remove_item(self, item: Item):
        """
        Remove item from this list.

        :raises ValidationError: If item is not in this list
        :raises SyncError: If AnyList rejected the removal
        """
        _assert_validate(
            item in self.items,
            f"{item.str_short} is not in {self.str_short}",
        )

        await self._session.submit(OperationBatch.single(item._remove_operation()))

        # may have been removed by a concurrent call
        if item in self.items:
            self.items.remove(item)

    async def uncheck_all(self):
        """
        Uncheck all items of this list.

        :raises SyncError: If AnyList rejected the change
        """
        operation = Operation(
            action=Action.UNCHECK_ALL,
            user_id=self._session.user_id,
            list_id=self.identifier,
        )

        await self._session.submit(OperationBatch.single(operation))

        for item in self.items:
            item._model.load_field("checked", False)
