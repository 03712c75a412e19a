from pyrollup import rollup

from . import collection, ingredient, recipe
from .collection import *  # noqa
from .ingredient import *  # noqa
from .recipe import *  # noqa

__all__ = rollup(recipe, ingredient, collection)
