"""
Implementation of the mutation protocol: the operations through which
local changes are propagated to AnyList.

Each change is recorded as an {obj}`Operation` tagged with an
{obj}`Action`, and operations are submitted in an ordered
{obj}`OperationBatch` bound to the endpoint which handles them. Encoding
of batches is delegated to the session's codec.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from .utils import new_id
from .wire import (
    CalendarEventModel,
    ListItemModel,
    RecipeCollectionModel,
    RecipeModel,
)

__all__ = [
    "Endpoint",
    "Action",
    "ItemField",
    "Operation",
    "OperationBatch",
]


class Endpoint(Enum):
    """
    Endpoint accepting a batch of operations.
    """

    SHOPPING_LISTS = "data/shopping-lists/update"
    RECIPES = "data/user-recipe-data/update"
    MEAL_PLANNING_CALENDAR = "data/meal-planning-calendar/update"


class Action(Enum):
    """
    Server-side handler of an operation. The value is the handler id sent
    with the operation.
    """

    SET_ITEM_NAME = "set-list-item-name"
    SET_ITEM_QUANTITY = "set-list-item-quantity"
    SET_ITEM_DETAILS = "set-list-item-details"
    SET_ITEM_CHECKED = "set-list-item-checked"
    SET_ITEM_CATEGORY_MATCH_ID = "set-list-item-category-match-id"
    SET_ITEM_SORT_ORDER = "set-list-item-sort-order"
    ADD_ITEM = "add-shopping-list-item"
    REMOVE_ITEM = "remove-shopping-list-item"
    UNCHECK_ALL = "uncheck-all"

    SAVE_RECIPE = "save-recipe"
    REMOVE_RECIPE = "remove-recipe"
    NEW_RECIPE_COLLECTION = "new-recipe-collection"
    REMOVE_RECIPE_COLLECTION = "remove-recipe-collection"
    ADD_RECIPES_TO_COLLECTION = "add-recipes-to-collection"
    REMOVE_RECIPES_FROM_COLLECTION = "remove-recipes-from-collection"

    SAVE_CALENDAR_EVENT = "save-meal-planning-calendar-event"
    REMOVE_CALENDAR_EVENT = "remove-meal-planning-calendar-event"

    @property
    def endpoint(self) -> Endpoint:
        return ACTION_ENDPOINTS[self]


ACTION_ENDPOINTS: dict[Action, Endpoint] = {
    Action.SET_ITEM_NAME: Endpoint.SHOPPING_LISTS,
    Action.SET_ITEM_QUANTITY: Endpoint.SHOPPING_LISTS,
    Action.SET_ITEM_DETAILS: Endpoint.SHOPPING_LISTS,
    Action.SET_ITEM_CHECKED: Endpoint.SHOPPING_LISTS,
    Action.SET_ITEM_CATEGORY_MATCH_ID: Endpoint.SHOPPING_LISTS,
    Action.SET_ITEM_SORT_ORDER: Endpoint.SHOPPING_LISTS,
    Action.ADD_ITEM: Endpoint.SHOPPING_LISTS,
    Action.REMOVE_ITEM: Endpoint.SHOPPING_LISTS,
    Action.UNCHECK_ALL: Endpoint.SHOPPING_LISTS,
    Action.SAVE_RECIPE: Endpoint.RECIPES,
    Action.REMOVE_RECIPE: Endpoint.RECIPES,
    Action.NEW_RECIPE_COLLECTION: Endpoint.RECIPES,
    Action.REMOVE_RECIPE_COLLECTION: Endpoint.RECIPES,
    Action.ADD_RECIPES_TO_COLLECTION: Endpoint.RECIPES,
    Action.REMOVE_RECIPES_FROM_COLLECTION: Endpoint.RECIPES,
    Action.SAVE_CALENDAR_EVENT: Endpoint.MEAL_PLANNING_CALENDAR,
    Action.REMOVE_CALENDAR_EVENT: Endpoint.MEAL_PLANNING_CALENDAR,
}
"""
Mapping of each action to the endpoint handling it.
"""


class ItemField(Enum):
    """
    Fields of an {obj}`Item` which are updated individually. The value is
    the name of the field on the item.
    """

    NAME = "name"
    QUANTITY = "quantity"
    DETAILS = "details"
    CHECKED = "checked"
    CATEGORY_MATCH_ID = "category_match_id"
    MANUAL_SORT_INDEX = "manual_sort_index"

    @property
    def action(self) -> Action:
        return ITEM_FIELD_ACTIONS[self]


ITEM_FIELD_ACTIONS: dict[ItemField, Action] = {
    ItemField.NAME: Action.SET_ITEM_NAME,
    ItemField.QUANTITY: Action.SET_ITEM_QUANTITY,
    ItemField.DETAILS: Action.SET_ITEM_DETAILS,
    ItemField.CHECKED: Action.SET_ITEM_CHECKED,
    ItemField.CATEGORY_MATCH_ID: Action.SET_ITEM_CATEGORY_MATCH_ID,
    ItemField.MANUAL_SORT_INDEX: Action.SET_ITEM_SORT_ORDER,
}
"""
Mapping of item fields to the action which updates them.
"""

# every member must be mapped
if set(ACTION_ENDPOINTS) != set(Action):
    raise RuntimeError("Not all actions are mapped to an endpoint")
if set(ITEM_FIELD_ACTIONS) != set(ItemField):
    raise RuntimeError("Not all item fields are mapped to an action")


@dataclass(frozen=True, kw_only=True)
class Operation:
    """
    A single change to be applied by AnyList.

    Carries either an `updated_value` (field updates) or an updated entity
    (structural changes), along with the ids of its targets.
    """

    action: Action
    user_id: str | None
    operation_id: str = field(default_factory=new_id)

    list_id: str | None = None
    list_item_id: str | None = None
    recipe_data_id: str | None = None
    recipe_ids: list[str] | None = None
    calendar_id: str | None = None

    updated_value: str | None = None
    list_item: ListItemModel | None = None
    recipe: RecipeModel | None = None
    recipe_collection: RecipeCollectionModel | None = None
    calendar_event: CalendarEventModel | None = None

    @property
    def handler_id(self) -> str:
        return self.action.value


class OperationBatch:
    """
    Ordered list of operations submitted together. AnyList applies them in
    sequence.
    """

    endpoint: Endpoint
    operations: list[Operation]

    def __init__(
        self, endpoint: Endpoint, operations: Iterable[Operation] = ()
    ):
        self.endpoint = endpoint
        self.operations = []

        for operation in operations:
            self.add(operation)

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __str__(self) -> str:
        return f"OperationBatch({self.endpoint.value}, {self.handler_ids})"

    @classmethod
    def single(cls, operation: Operation) -> OperationBatch:
        """
        Create a batch consisting of one operation.
        """
        return cls(operation.action.endpoint, [operation])

    @property
    def handler_ids(self) -> list[str]:
        return [op.handler_id for op in self.operations]

    def add(self, operation: Operation):
        """
        Append an operation, which must be handled by this batch's endpoint.
        """
        if operation.action.endpoint is not self.endpoint:
            raise ValueError(
                f"Operation {operation.handler_id} is not handled by {self.endpoint.value}"
            )

        self.operations.append(operation)
