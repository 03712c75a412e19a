"""
AnyListClient: a stateful asyncio client for AnyList shopping lists,
recipes and meal planning.
"""

from pyrollup import rollup

from . import config, core
from .config import *  # noqa
from .core import *  # noqa

__all__ = rollup(core, config)

__canonical_children__ = [
    "core",
    "config",
]
