"""
This module implements stateful access to AnyList: sessions, entities and
their synchronization.
"""

from pyrollup import rollup

from . import (
    calendar,
    channel,
    codec,
    credentials,
    entity,
    events,
    exceptions,
    operation,
    recipe,
    session,
    shopping_list,
    transport,
)
from .calendar import *  # noqa
from .channel import *  # noqa
from .codec import *  # noqa
from .credentials import *  # noqa
from .entity import *  # noqa
from .events import *  # noqa
from .exceptions import *  # noqa
from .operation import *  # noqa
from .recipe import *  # noqa
from .session import *  # noqa
from .shopping_list import *  # noqa
from .transport import *  # noqa

__all__ = rollup(
    session,
    shopping_list,
    recipe,
    calendar,
    entity,
    operation,
    channel,
    events,
    credentials,
    codec,
    transport,
    exceptions,
)

__canonical_children__ = [
    "session",
    "shopping_list",
    "recipe",
    "calendar",
    "entity",
    "operation",
    "channel",
    "events",
    "credentials",
    "codec",
    "transport",
    "exceptions",
]
