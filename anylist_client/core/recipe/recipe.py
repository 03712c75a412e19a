from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..entity.entity import BaseEntity
from ..entity.model import FieldDescriptor, optional, require_type
from ..exceptions import _assert_validate
from ..operation import Action, Operation, OperationBatch
from ..session import Session
from ..utils import timestamp_now
from ..wire import RecipeModel
from .ingredient import Ingredient

__all__ = [
    "Recipe",
]


def _list_of_str(field: str):
    def validator(value: Iterable[str]) -> list[str]:
        value = list(value)
        for entry in value:
            require_type(field, str)(entry)
        return value

    return validator


class Recipe(BaseEntity[RecipeModel]):
    """
    Recipe, saved as a whole: {obj}`Recipe.save` sends the complete recipe
    whether it's new or changed.
    """

    _model_cls = RecipeModel

    fields = [
        "identifier",
        "timestamp",
        "name",
        "note",
        "source_name",
        "source_url",
        "preparation_steps",
        "photo_ids",
        "photo_urls",
        "ad_campaign_id",
        "scale_factor",
        "rating",
        "creation_timestamp",
        "nutritional_info",
        "cook_time",
        "prep_time",
        "servings",
        "paprika_identifier",
    ]

    fields_default = {
        "preparation_steps": [],
        "photo_ids": [],
        "photo_urls": [],
    }

    timestamp: float | None = FieldDescriptor("timestamp")  # type: ignore
    """
    Time of last modification, in seconds since the epoch. Updated upon
    each save.
    """

    name: str | None = FieldDescriptor("name")  # type: ignore
    note: str | None = FieldDescriptor("note")  # type: ignore
    source_name: str | None = FieldDescriptor("source_name")  # type: ignore
    source_url: str | None = FieldDescriptor("source_url")  # type: ignore
    preparation_steps: list[str] = FieldDescriptor(
        "preparation_steps", _list_of_str("preparation_steps")
    )  # type: ignore
    photo_ids: list[str] = FieldDescriptor(
        "photo_ids", _list_of_str("photo_ids")
    )  # type: ignore
    photo_urls: list[str] = FieldDescriptor(
        "photo_urls", _list_of_str("photo_urls")
    )  # type: ignore
    ad_campaign_id: str | None = FieldDescriptor("ad_campaign_id")  # type: ignore
    scale_factor: float | None = FieldDescriptor(
        "scale_factor", optional(require_type("scale_factor", int, float))
    )  # type: ignore
    rating: int | None = FieldDescriptor(
        "rating", optional(require_type("rating", int))
    )  # type: ignore
    creation_timestamp: float | None = FieldDescriptor(
        "creation_timestamp"
    )  # type: ignore
    nutritional_info: str | None = FieldDescriptor(
        "nutritional_info"
    )  # type: ignore
    cook_time: int | None = FieldDescriptor(
        "cook_time", optional(require_type("cook_time", int))
    )  # type: ignore
    prep_time: int | None = FieldDescriptor(
        "prep_time", optional(require_type("prep_time", int))
    )  # type: ignore
    servings: str | None = FieldDescriptor("servings")  # type: ignore
    paprika_identifier: str | None = FieldDescriptor(
        "paprika_identifier"
    )  # type: ignore

    _ingredients: list[Ingredient]

    def __init__(
        self,
        *,
        session: Session,
        model_backing: RecipeModel | None = None,
        identifier: str | None = None,
        ingredients: Iterable[Ingredient] | None = None,
        **values: Any,
    ):
        """
        :param session: Session owning this recipe
        :param model_backing: Model received from AnyList, or `None` to create new recipe
        :param identifier: Identifier of new recipe, or `None` to generate one
        :param ingredients: Ingredients of new recipe
        :param values: Initial field values of new recipe, e.g. `name="Pancakes"`
        """
        self._new_ingredients = list(ingredients or [])

        if model_backing is None:
            now = timestamp_now()
            values.setdefault("timestamp", now)
            values.setdefault("creation_timestamp", now)

        super().__init__(
            session=session,
            model_backing=model_backing,
            identifier=identifier,
            **values,
        )

    def _setup(self, model: RecipeModel | None):
        if model is None:
            self._ingredients = self._new_ingredients
        else:
            self._ingredients = [
                Ingredient._from_model(m) for m in model.ingredients
            ]
        del self._new_ingredients

    def _encode_extra(self):
        return {"ingredients": [i._encode() for i in self._ingredients]}

    @property
    def _str_short(self) -> str:
        return f"Recipe(name={self.name}, identifier={self.identifier})"

    @property
    def _str_summary_extra(self) -> list[str]:
        return [f"ingredients={self._ingredients}"]

    @property
    def ingredients(self) -> list[Ingredient]:
        """
        Ingredients of this recipe. Assign a new list to replace them;
        individual ingredients may also be modified in place.
        """
        return self._ingredients

    @ingredients.setter
    def ingredients(self, ingredients: Iterable[Ingredient]):
        self._ingredients = list(ingredients)
        self._model.touch("ingredients")

    @property
    def is_dirty(self) -> bool:
        return super().is_dirty or any(i.is_dirty for i in self._ingredients)

    @property
    def dirty_fields(self) -> list[str]:
        dirty_fields = super().dirty_fields
        if "ingredients" not in dirty_fields and any(
            i.is_dirty for i in self._ingredients
        ):
            dirty_fields.append("ingredients")
        return dirty_fields

    async def save(self):
        """
        Create or update this recipe.

        :raises SyncError: If AnyList rejected the recipe
        """
        if not self.is_dirty:
            self._session._logger.debug(f"No changes to save: {self.str_short}")
            return

        recipe_data_id = await self._session._cache.get_recipe_data_id()

        created = not self._exists
        timestamp = self.timestamp if created else timestamp_now()

        checkpoint = self._model.checkpoint()
        ingredient_checkpoints = [
            (ingredient, ingredient._model.checkpoint())
            for ingredient in self._ingredients
        ]

        operation = Operation(
            action=Action.SAVE_RECIPE,
            user_id=self._session.user_id,
            recipe_data_id=recipe_data_id,
            recipe=self._encode().model_copy(update={"timestamp": timestamp}),
            recipe_ids=[self.identifier],
        )
        await self._session.submit(OperationBatch.single(operation))

        self._model.load_field("timestamp", timestamp)
        self._set_synced(checkpoint)
        for ingredient, ingredient_checkpoint in ingredient_checkpoints:
            ingredient._model.set_clean(ingredient_checkpoint)

        if created:
            self._session._cache.add_recipe(self)

    async def delete(self):
        """
        Delete this recipe.

        :raises ValidationError: If recipe was never saved
        :raises SyncError: If AnyList rejected the deletion
        """
        _assert_validate(
            self._exists, f"{self.str_short} was never saved, can't delete"
        )

        recipe_data_id = await self._session._cache.get_recipe_data_id()

        operation = Operation(
            action=Action.REMOVE_RECIPE,
            user_id=self._session.user_id,
            recipe_data_id=recipe_data_id,
            recipe=self._encode(),
            recipe_ids=[self.identifier],
        )
        await self._session.submit(OperationBatch.single(operation))

        self._session._cache.remove_recipe(self)
