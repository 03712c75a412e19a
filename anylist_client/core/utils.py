"""
Common utilities.
"""

import time
import uuid

__all__ = [
    "new_id",
    "timestamp_now",
    "to_wire_value",
]


def new_id() -> str:
    """
    Generate an identifier in the form used by AnyList: a random UUID as 32
    hex characters without dashes.
    """
    return uuid.uuid4().hex


def timestamp_now() -> float:
    """
    Current time as seconds since the epoch, as used for recipe timestamps.
    """
    return time.time()


def to_wire_value(value: str | int | float | bool | None) -> str:
    """
    Normalize a field value to the string form carried by an operation's
    updated value: booleans become `"y"` or `"n"` and numbers become their
    decimal string.
    """
    if isinstance(value, bool):
        return "y" if value else "n"

    if value is None:
        return ""

    if isinstance(value, float) and value.is_integer():
        # match integral numbers as written by other clients, e.g. "2"
        return str(int(value))

    return str(value)
