"""
Implements a cache of AnyList entities, built from the user data snapshot.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Iterator
from typing import TYPE_CHECKING

from .wire import UserDataModel

if TYPE_CHECKING:
    from .calendar import CalendarEvent, CalendarLabel
    from .entity import BaseEntity
    from .recipe import Recipe, RecipeCollection
    from .session import Session
    from .shopping_list import Item, ShoppingList

USER_DATA_PATH = "data/user-data/get"
"""
Endpoint returning the complete user data snapshot.
"""


class Cache:
    """
    Graph of entities decoded from the latest user data snapshot, along
    with lookups by identifier and name. Also tracks entities created
    locally which are not yet known to AnyList.
    """

    snapshot: UserDataModel | None
    """Latest snapshot, or `None` if not loaded"""

    lists: list[ShoppingList]

    recent_items: dict[str, list[Item]]
    """Mapping of list id to recently added items"""

    favorite_items: dict[str, list[Item]]
    """Mapping of list id to favorite items"""

    recipes: list[Recipe]
    recipe_collections: list[RecipeCollection]

    recipe_data_id: str | None
    """Id of the user's recipe data, needed by recipe operations"""

    calendar_id: str | None
    """Id of the user's meal planning calendar"""

    events: list[CalendarEvent]
    labels: list[CalendarLabel]

    _recipe_map: dict[str, Recipe]
    _label_map: dict[str, CalendarLabel]

    # entities created locally, until they're synchronized or discarded
    _created: list[weakref.ref[BaseEntity]]

    _session: Session
    _lock: asyncio.Lock

    def __init__(self, session: Session):
        self._session = session
        self._lock = asyncio.Lock()
        self._created = []
        self._clear()

    def __str__(self):
        return f"Cache: lists={len(self.lists)}, recipes={len(self.recipes)}, events={len(self.events)}"

    async def load(self, refresh: bool = False) -> UserDataModel:
        """
        Get the user data snapshot, fetching it if not yet loaded or if a
        refresh is requested. All entities are rebuilt from a fetched
        snapshot.
        """
        async with self._lock:
            if self.snapshot is not None and not refresh:
                self._session._logger.debug("Using cached user data")
                return self.snapshot

            self._session._logger.debug("Fetching user data")

            response = await self._session.request(USER_DATA_PATH)
            snapshot = self._session.codec.decode_user_data(response.body)

            self._rebuild(snapshot)
            return snapshot

    async def get_recipe_data_id(self) -> str | None:
        if self.recipe_data_id is None:
            await self.load()
        return self.recipe_data_id

    async def get_calendar_id(self) -> str | None:
        if self.calendar_id is None:
            await self.load()
        return self.calendar_id

    def get_list_by_id(self, identifier: str) -> ShoppingList | None:
        return _find(self.lists, identifier=identifier)

    def get_list_by_name(self, name: str) -> ShoppingList | None:
        return _find(self.lists, name=name)

    def get_recipe_by_id(self, identifier: str) -> Recipe | None:
        return self._recipe_map.get(identifier)

    def get_recipe_by_name(self, name: str) -> Recipe | None:
        return _find(self.recipes, name=name)

    def get_recipe_collection_by_id(
        self, identifier: str
    ) -> RecipeCollection | None:
        return _find(self.recipe_collections, identifier=identifier)

    def get_recipe_collection_by_name(
        self, name: str
    ) -> RecipeCollection | None:
        return _find(self.recipe_collections, name=name)

    def get_event_by_id(self, identifier: str) -> CalendarEvent | None:
        return _find(self.events, identifier=identifier)

    def get_label_by_id(self, identifier: str) -> CalendarLabel | None:
        return self._label_map.get(identifier)

    def add_created(self, entity: BaseEntity):
        """
        Track a newly created entity until it's synchronized. Entities which
        are discarded by the user aren't kept alive.
        """
        self._prune_created()
        self._created.append(weakref.ref(entity))

    def add_recipe(self, recipe: Recipe):
        self.recipes.append(recipe)
        self._recipe_map[recipe.identifier] = recipe

    def remove_recipe(self, recipe: Recipe):
        if recipe in self.recipes:
            self.recipes.remove(recipe)
        self._recipe_map.pop(recipe.identifier, None)

    def add_recipe_collection(self, collection: RecipeCollection):
        self.recipe_collections.append(collection)

    def remove_recipe_collection(self, collection: RecipeCollection):
        if collection in self.recipe_collections:
            self.recipe_collections.remove(collection)

    def add_event(self, event: CalendarEvent):
        self.events.append(event)

    def remove_event(self, event: CalendarEvent):
        if event in self.events:
            self.events.remove(event)

    @property
    def entities(self) -> Iterator[BaseEntity]:
        """
        All loaded entities, followed by created entities not yet
        synchronized.
        """
        for shopping_list in self.lists:
            yield shopping_list
            yield from shopping_list.items

        yield from self.recipes
        yield from self.recipe_collections
        yield from self.labels
        yield from self.events

        yield from self._prune_created()

    @property
    def dirty_set(self) -> set[BaseEntity]:
        """
        Entities with changes not yet synchronized.
        """
        return {entity for entity in self.entities if entity.is_dirty}

    def _get_summary(self, dirty_set: set[BaseEntity] | None = None) -> str:
        """
        Return a brief summary of how many entities are in each state.
        """
        from .calendar import CalendarEvent
        from .entity.types import State
        from .recipe import Recipe, RecipeCollection
        from .shopping_list import Item

        entities = dirty_set if dirty_set is not None else self.dirty_set

        classes: list[tuple[type[BaseEntity], str]] = [
            (Item, "items"),
            (Recipe, "recipes"),
            (RecipeCollection, "recipe collections"),
            (CalendarEvent, "calendar events"),
        ]

        index = {
            cls: {State.CREATE: 0, State.UPDATE: 0} for cls, _ in classes
        }

        for entity in entities:
            for cls, _ in classes:
                if isinstance(entity, cls):
                    index[cls][entity.state] += 1

        # return (create/update) counts
        def states(cls: type[BaseEntity]) -> str:
            return f"{index[cls][State.CREATE]}/{index[cls][State.UPDATE]}"

        desc = "(create/update) "
        return desc + ", ".join(f"{states(cls)} {name}" for cls, name in classes)

    def _clear(self):
        self.snapshot = None
        self.lists = []
        self.recent_items = {}
        self.favorite_items = {}
        self.recipes = []
        self.recipe_collections = []
        self.recipe_data_id = None
        self.calendar_id = None
        self.events = []
        self.labels = []
        self._recipe_map = {}
        self._label_map = {}

    def _prune_created(self) -> list[BaseEntity]:
        """
        Drop created entities which were synchronized or discarded, returning
        the remaining ones.
        """
        pending = [e for ref in self._created if (e := ref()) is not None]
        pending = [e for e in pending if not e._exists]
        self._created = [weakref.ref(e) for e in pending]
        return pending

    def _rebuild(self, snapshot: UserDataModel):
        """
        Replace all entities with those decoded from snapshot. References
        between entities are resolved by identifier once all collections
        are decoded.
        """
        from .calendar import CalendarEvent, CalendarLabel
        from .recipe import Recipe, RecipeCollection
        from .shopping_list import Item, ShoppingList

        session = self._session

        if snapshot.user_id is not None:
            session._user_id = snapshot.user_id

        self._clear()

        self.lists = [
            ShoppingList._from_model(m, session)
            for m in snapshot.shopping_lists_response.new_lists
        ]

        starter_lists = snapshot.starter_lists_response
        self.recent_items = {
            s.list_id: [Item._from_model(i, session) for i in s.items]
            for s in starter_lists.recent_item_lists
        }
        self.favorite_items = {
            s.list_id: [Item._from_model(i, session) for i in s.items]
            for s in starter_lists.favorite_item_lists
        }

        recipe_data = snapshot.recipe_data_response
        self.recipe_data_id = recipe_data.recipe_data_id
        self.recipes = [
            Recipe._from_model(m, session) for m in recipe_data.recipes
        ]
        self.recipe_collections = [
            RecipeCollection._from_model(m, session)
            for m in recipe_data.recipe_collections
        ]

        calendar = snapshot.meal_planning_calendar_response
        self.calendar_id = calendar.calendar_id
        self.labels = [
            CalendarLabel._from_model(m, session) for m in calendar.labels
        ]
        self.events = [
            CalendarEvent._from_model(m, session) for m in calendar.events
        ]

        self._recipe_map = {r.identifier: r for r in self.recipes}
        self._label_map = {l.identifier: l for l in self.labels}

        unresolved = [
            e
            for e in self.events
            if (e.recipe_id is not None and e.recipe_id not in self._recipe_map)
            or (e.label_id is not None and e.label_id not in self._label_map)
        ]
        if unresolved:
            session._logger.debug(
                f"Calendar events with unresolved references: {unresolved}"
            )

        self.snapshot = snapshot

        session._logger.debug(f"Rebuilt {self}")


def _find[EntityT](
    entities: list[EntityT], **criteria: str
) -> EntityT | None:
    for entity in entities:
        if all(getattr(entity, k) == v for k, v in criteria.items()):
            return entity
    return None
