"""
Pydantic models of AnyList wire payloads.

Field names are snake_case in Python and camelCase on the wire; models
accept either when validating.
"""

from __future__ import annotations

import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "WireModel",
    "TokenResponse",
    "ListItemModel",
    "ShoppingListModel",
    "ShoppingListsResponse",
    "StarterListModel",
    "StarterListsResponse",
    "IngredientModel",
    "RecipeModel",
    "RecipeCollectionModel",
    "RecipeDataResponse",
    "CalendarEventModel",
    "CalendarLabelModel",
    "MealPlanningCalendarResponse",
    "UserDataModel",
    "OperationMetadataModel",
    "OperationModel",
    "OperationListModel",
]


class WireModel(BaseModel):
    """
    Base for models exchanged with AnyList.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TokenResponse(BaseModel):
    """
    Response of the token and token refresh endpoints.
    """

    access_token: str
    refresh_token: str
    user_id: str | None = None


class ListItemModel(WireModel):
    identifier: str
    list_id: str | None = None
    name: str | None = None
    quantity: str | None = None
    details: str | None = None
    checked: bool = False
    category: str | None = None
    user_id: str | None = None
    category_match_id: str | None = None
    manual_sort_index: int | None = None


class ShoppingListModel(WireModel):
    identifier: str
    name: str | None = None
    items: list[ListItemModel] = Field(default_factory=list)


class ShoppingListsResponse(WireModel):
    new_lists: list[ShoppingListModel] = Field(default_factory=list)


class StarterListModel(WireModel):
    """
    Recently used or favorite items associated with a shopping list.
    """

    identifier: str | None = None
    list_id: str
    items: list[ListItemModel] = Field(default_factory=list)


class StarterListsResponse(WireModel):
    recent_item_lists: list[StarterListModel] = Field(default_factory=list)
    favorite_item_lists: list[StarterListModel] = Field(default_factory=list)


class IngredientModel(WireModel):
    raw_ingredient: str | None = None
    name: str | None = None
    quantity: str | None = None
    note: str | None = None


class RecipeModel(WireModel):
    identifier: str
    timestamp: float | None = None
    name: str | None = None
    note: str | None = None
    source_name: str | None = None
    source_url: str | None = None
    ingredients: list[IngredientModel] = Field(default_factory=list)
    preparation_steps: list[str] = Field(default_factory=list)
    photo_ids: list[str] = Field(default_factory=list)
    photo_urls: list[str] = Field(default_factory=list)
    ad_campaign_id: str | None = None
    scale_factor: float | None = None
    rating: int | None = None
    creation_timestamp: float | None = None
    nutritional_info: str | None = None
    cook_time: int | None = None
    prep_time: int | None = None
    servings: str | None = None
    paprika_identifier: str | None = None


class RecipeCollectionModel(WireModel):
    identifier: str
    timestamp: float | None = None
    name: str | None = None
    recipe_ids: list[str] = Field(default_factory=list)
    collection_settings: dict[str, Any] = Field(default_factory=dict)


class RecipeDataResponse(WireModel):
    recipe_data_id: str | None = None
    recipes: list[RecipeModel] = Field(default_factory=list)
    recipe_collections: list[RecipeCollectionModel] = Field(
        default_factory=list
    )


class CalendarEventModel(WireModel):
    identifier: str
    calendar_id: str | None = None
    date: datetime.date
    details: str | None = None
    label_id: str | None = None
    logical_timestamp: int | None = None
    order_added_sort_index: int | None = None
    recipe_id: str | None = None
    recipe_scale_factor: float | None = None
    title: str | None = None


class CalendarLabelModel(WireModel):
    identifier: str
    calendar_id: str | None = None
    hex_color: str | None = None
    logical_timestamp: int | None = None
    name: str | None = None
    sort_index: int | None = None


class MealPlanningCalendarResponse(WireModel):
    calendar_id: str | None = None
    events: list[CalendarEventModel] = Field(default_factory=list)
    labels: list[CalendarLabelModel] = Field(default_factory=list)


class UserDataModel(WireModel):
    """
    Bulk "user data" response: a snapshot of all of an account's
    collections.
    """

    user_id: str | None = None
    shopping_lists_response: ShoppingListsResponse = Field(
        default_factory=ShoppingListsResponse
    )
    starter_lists_response: StarterListsResponse = Field(
        default_factory=StarterListsResponse
    )
    recipe_data_response: RecipeDataResponse = Field(
        default_factory=RecipeDataResponse
    )
    meal_planning_calendar_response: MealPlanningCalendarResponse = Field(
        default_factory=MealPlanningCalendarResponse
    )


class OperationMetadataModel(WireModel):
    operation_id: str
    handler_id: str
    user_id: str | None = None


class OperationModel(WireModel):
    metadata: OperationMetadataModel
    list_id: str | None = None
    list_item_id: str | None = None
    updated_value: str | None = None
    list_item: ListItemModel | None = None
    recipe_data_id: str | None = None
    recipe: RecipeModel | None = None
    recipe_collection: RecipeCollectionModel | None = None
    recipe_ids: list[str] | None = None
    calendar_id: str | None = None
    calendar_event: CalendarEventModel | None = None


class OperationListModel(WireModel):
    operations: list[OperationModel] = Field(default_factory=list)
