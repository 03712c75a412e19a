from enum import Enum, auto

from rich.markup import escape


class State(Enum):
    """
    Entity state. Maintained automatically based on the user's
    updates and whether the entity was synchronized with AnyList.

    For example, state will change from {obj}`State.UPDATE` back
    to {obj}`State.CLEAN` once the changed fields are saved.
    """

    CLEAN = auto()
    """No pending changes"""

    CREATE = auto()
    """Created locally, not yet known to AnyList"""

    UPDATE = auto()
    """Fields changed locally since last synchronized"""

    def __str__(self) -> str:
        color_map = {
            State.CLEAN: "cyan",
            State.CREATE: "bright_green",
            State.UPDATE: "bright_yellow",
        }

        start = escape("[")
        end = escape("]")
        return f"{start}[{color_map[self]}]{self.name}[/{color_map[self]}]{end}"
