from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..entity.entity import BaseEntity
from ..entity.model import FieldDescriptor
from ..exceptions import _assert_validate
from ..operation import Action, Operation, OperationBatch
from ..session import Session
from ..utils import timestamp_now
from ..wire import RecipeCollectionModel
from .recipe import Recipe

__all__ = [
    "RecipeCollection",
]


class RecipeCollection(BaseEntity[RecipeCollectionModel]):
    """
    Named collection of recipes.

    Membership is changed through {obj}`RecipeCollection.add_recipe` and
    {obj}`RecipeCollection.remove_recipe`, which take effect immediately.
    Other fields are sent upon {obj}`RecipeCollection.save`.
    """

    _model_cls = RecipeCollectionModel

    fields = [
        "identifier",
        "timestamp",
        "name",
        "recipe_ids",
        "collection_settings",
    ]

    fields_default = {
        "recipe_ids": [],
        "collection_settings": {},
    }

    timestamp: float | None = FieldDescriptor("timestamp")  # type: ignore
    name: str | None = FieldDescriptor("name")  # type: ignore

    recipe_ids: list[str] = FieldDescriptor(
        "recipe_ids", lambda ids: list(ids)
    )  # type: ignore
    """
    Ids of recipes in this collection.
    """

    collection_settings: dict[str, Any] = FieldDescriptor(
        "collection_settings", lambda settings: dict(settings)
    )  # type: ignore
    """
    Display settings, e.g. sort order, as stored by AnyList clients.
    """

    def __init__(
        self,
        *,
        session: Session,
        model_backing: RecipeCollectionModel | None = None,
        identifier: str | None = None,
        recipes: Iterable[Recipe | str] | None = None,
        **values: Any,
    ):
        """
        :param session: Session owning this collection
        :param model_backing: Model received from AnyList, or `None` to create new collection
        :param identifier: Identifier of new collection, or `None` to generate one
        :param recipes: Initial recipes or recipe ids of new collection
        :param values: Initial field values of new collection, e.g. `name="Breakfast"`
        """
        if model_backing is None:
            values.setdefault("timestamp", timestamp_now())
            if recipes is not None:
                values["recipe_ids"] = [_recipe_id(r) for r in recipes]

        super().__init__(
            session=session,
            model_backing=model_backing,
            identifier=identifier,
            **values,
        )

    @property
    def _str_short(self) -> str:
        return f"RecipeCollection(name={self.name}, identifier={self.identifier})"

    @property
    def recipes(self) -> list[Recipe]:
        """
        Loaded recipes of this collection. Ids which don't resolve to a
        loaded recipe are skipped.
        """
        recipes = []
        for recipe_id in self.recipe_ids:
            recipe = self._session._cache.get_recipe_by_id(recipe_id)
            if recipe is not None:
                recipes.append(recipe)
        return recipes

    async def save(self):
        """
        Create or update this collection.

        :raises SyncError: If AnyList rejected the collection
        """
        if not self.is_dirty:
            self._session._logger.debug(f"No changes to save: {self.str_short}")
            return

        recipe_data_id = await self._session._cache.get_recipe_data_id()
        created = not self._exists
        checkpoint = self._model.checkpoint()

        operation = Operation(
            action=Action.NEW_RECIPE_COLLECTION,
            user_id=self._session.user_id,
            recipe_data_id=recipe_data_id,
            recipe_collection=self._encode(),
        )
        await self._session.submit(OperationBatch.single(operation))

        self._set_synced(checkpoint)

        if created:
            self._session._cache.add_recipe_collection(self)

    async def delete(self):
        """
        Delete this collection. Its recipes are not deleted.

        :raises ValidationError: If collection was never saved
        :raises SyncError: If AnyList rejected the deletion
        """
        _assert_validate(
            self._exists, f"{self.str_short} was never saved, can't delete"
        )

        recipe_data_id = await self._session._cache.get_recipe_data_id()

        operation = Operation(
            action=Action.REMOVE_RECIPE_COLLECTION,
            user_id=self._session.user_id,
            recipe_data_id=recipe_data_id,
            recipe_collection=self._encode(),
        )
        await self._session.submit(OperationBatch.single(operation))

        self._session._cache.remove_recipe_collection(self)

    async def add_recipe(self, recipe: Recipe | str):
        """
        Add recipe to this collection. No-op if already present.

        :param recipe: Recipe or its identifier
        :raises ValidationError: If collection was never saved
        :raises SyncError: If AnyList rejected the change
        """
        recipe_id = _recipe_id(recipe)
        if recipe_id in self.recipe_ids:
            return

        await self._update_membership(
            Action.ADD_RECIPES_TO_COLLECTION,
            recipe_id,
            self.recipe_ids + [recipe_id],
        )

    async def remove_recipe(self, recipe: Recipe | str):
        """
        Remove recipe from this collection. No-op if not present.

        :param recipe: Recipe or its identifier
        :raises ValidationError: If collection was never saved
        :raises SyncError: If AnyList rejected the change
        """
        recipe_id = _recipe_id(recipe)
        if recipe_id not in self.recipe_ids:
            return

        await self._update_membership(
            Action.REMOVE_RECIPES_FROM_COLLECTION,
            recipe_id,
            [r for r in self.recipe_ids if r != recipe_id],
        )

    async def _update_membership(
        self, action: Action, recipe_id: str, recipe_ids: list[str]
    ):
        _assert_validate(
            self._exists,
            f"{self.str_short} must be saved before changing its recipes",
        )

        recipe_data_id = await self._session._cache.get_recipe_data_id()
        encoded = self._encode().model_copy(update={"recipe_ids": recipe_ids})

        operation = Operation(
            action=action,
            user_id=self._session.user_id,
            recipe_data_id=recipe_data_id,
            recipe_collection=encoded,
            recipe_ids=[recipe_id],
        )
        await self._session.submit(OperationBatch.single(operation))

        self._model.load_field("recipe_ids", recipe_ids)


def _recipe_id(recipe: Recipe | str) -> str:
    return recipe.identifier if isinstance(recipe, Recipe) else recipe
