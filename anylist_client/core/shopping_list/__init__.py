from pyrollup import rollup

from . import item, shopping_list
from .item import *  # noqa
from .shopping_list import *  # noqa

__all__ = rollup(shopping_list, item)
