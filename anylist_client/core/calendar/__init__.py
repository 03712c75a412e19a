from pyrollup import rollup

from . import event, label
from .event import *  # noqa
from .label import *  # noqa

__all__ = rollup(event, label)
