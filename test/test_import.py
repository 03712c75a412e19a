from abc import ABCMeta

import anylist_client


def test_import():
    # make sure symbols are accessible by fully qualified path
    assert isinstance(anylist_client.core.Session, type)
    assert isinstance(anylist_client.core.shopping_list.ShoppingList, ABCMeta)
    assert isinstance(anylist_client.core.shopping_list.Item, ABCMeta)
    assert isinstance(anylist_client.core.recipe.Recipe, ABCMeta)
    assert isinstance(anylist_client.core.recipe.RecipeCollection, ABCMeta)
    assert isinstance(anylist_client.core.recipe.Ingredient, type)
    assert isinstance(anylist_client.core.calendar.CalendarEvent, ABCMeta)
    assert isinstance(anylist_client.core.entity.BaseEntity, ABCMeta)
    assert isinstance(anylist_client.config.ClientConfig, type)

    # and from top level
    assert anylist_client.Session is anylist_client.core.Session
    assert anylist_client.ClientConfig is anylist_client.config.ClientConfig

    # ensure no internal symbols accidentally exported
    assert all([not sym.startswith("_") for sym in anylist_client.__all__])
