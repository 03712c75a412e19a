from __future__ import annotations

from typing import Any

from ..entity.entity import BaseEntity
from ..entity.model import (
    FieldDescriptor,
    ReadOnlyDescriptor,
    WriteOnceDescriptor,
    optional,
    require_type,
)
from ..exceptions import _assert_validate
from ..operation import Action, Endpoint, ItemField, Operation, OperationBatch
from ..session import Session
from ..utils import to_wire_value
from ..wire import ListItemModel

__all__ = [
    "Item",
]

DEFAULT_CATEGORY_MATCH_ID = "other"


def normalize_quantity(value: Any) -> str | None:
    """
    Quantities are carried as strings; numbers are converted to their
    decimal string.
    """
    if value is None or isinstance(value, str):
        return value

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_wire_value(value)

    raise TypeError(
        f"quantity must be str or a number, got {type(value).__name__}"
    )


class Item(BaseEntity[ListItemModel]):
    """
    Item of a {obj}`ShoppingList`.

    Changes to fields are tracked and sent upon {obj}`Item.save`, one
    operation per changed field. A new item is added to a list using
    {obj}`ShoppingList.add_item`, after which its list is locked.
    """

    _model_cls = ListItemModel

    fields = [
        "identifier",
        "list_id",
        "name",
        "quantity",
        "details",
        "checked",
        "category",
        "user_id",
        "category_match_id",
        "manual_sort_index",
    ]

    fields_default = {
        "checked": False,
        "category_match_id": DEFAULT_CATEGORY_MATCH_ID,
    }

    list_id: str | None = WriteOnceDescriptor("list_id")  # type: ignore
    """
    Id of list containing this item. Locked once assigned; items can't be
    moved between lists.
    """

    user_id: str | None = ReadOnlyDescriptor("user_id")  # type: ignore
    """
    Id of user who added this item.
    """

    category: str | None = ReadOnlyDescriptor("category")  # type: ignore
    """
    Display category as assigned by AnyList.
    """

    name: str | None = FieldDescriptor("name")  # type: ignore
    quantity: str | None = FieldDescriptor(
        "quantity", normalize_quantity
    )  # type: ignore
    details: str | None = FieldDescriptor("details")  # type: ignore
    checked: bool = FieldDescriptor(
        "checked", require_type("checked", bool)
    )  # type: ignore
    category_match_id: str | None = FieldDescriptor(
        "category_match_id"
    )  # type: ignore
    manual_sort_index: int | None = FieldDescriptor(
        "manual_sort_index", optional(require_type("manual_sort_index", int))
    )  # type: ignore

    def __init__(
        self,
        *,
        session: Session,
        model_backing: ListItemModel | None = None,
        identifier: str | None = None,
        **values: Any,
    ):
        """
        :param session: Session owning this item
        :param model_backing: Model received from AnyList, or `None` to create new item
        :param identifier: Identifier of new item, or `None` to generate one
        :param values: Initial field values of new item, e.g. `name="Milk"`
        """
        for field in ("identifier", "user_id", "category"):
            if field in values:
                raise ValueError(f"Can't set {field} of new item")

        if "quantity" in values:
            values["quantity"] = normalize_quantity(values["quantity"])
        if "checked" in values:
            require_type("checked", bool)(values["checked"])
        if values.get("manual_sort_index") is not None:
            require_type("manual_sort_index", int)(values["manual_sort_index"])

        super().__init__(
            session=session,
            model_backing=model_backing,
            identifier=identifier,
            **values,
        )

    @property
    def _str_short(self) -> str:
        return f"Item(name={self.name}, identifier={self.identifier})"

    async def save(self):
        """
        Send changed fields to AnyList. Each changed field is updated by its
        own operation, all submitted in a single batch.

        Fields changed again while the batch is in flight remain changed.

        :raises ValidationError: If item was not added to a list
        :raises SyncError: If AnyList rejected the changes
        """
        _assert_validate(
            self._exists and self.list_id is not None,
            f"{self.str_short} must be added to a list before it can be saved",
        )

        checkpoint = self._model.checkpoint()
        if not checkpoint:
            self._session._logger.debug(f"No changes to save: {self.str_short}")
            return

        batch = OperationBatch(Endpoint.SHOPPING_LISTS)
        for field in checkpoint:
            batch.add(
                Operation(
                    action=ItemField(field).action,
                    user_id=self._session.user_id,
                    list_id=self.list_id,
                    list_item_id=self.identifier,
                    updated_value=to_wire_value(self._model.get_field(field)),
                )
            )

        await self._session.submit(batch)
        self._set_synced(checkpoint)

    def _add_operation(self, list_id: str) -> Operation:
        """
        Get operation adding this item to the given list.
        """
        encoded = self._encode().model_copy(update={"list_id": list_id})
        return Operation(
            action=Action.ADD_ITEM,
            user_id=self._session.user_id,
            list_id=list_id,
            list_item_id=self.identifier,
            list_item=encoded,
        )

    def _remove_operation(self) -> Operation:
        """
        Get operation removing this item from its list.
        """
        return Operation(
            action=Action.REMOVE_ITEM,
            user_id=self._session.user_id,
            list_id=self.list_id,
            list_item_id=self.identifier,
            list_item=self._encode(),
        )
