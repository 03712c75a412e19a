from __future__ import annotations

from ..entity.entity import BaseEntity
from ..entity.model import ReadOnlyDescriptor
from ..wire import CalendarLabelModel

__all__ = [
    "CalendarLabel",
]


class CalendarLabel(BaseEntity[CalendarLabelModel]):
    """
    Label of meal planning calendar events, e.g. "Breakfast". Labels are
    maintained by AnyList and can't be modified.
    """

    _model_cls = CalendarLabelModel

    fields = [
        "identifier",
        "calendar_id",
        "hex_color",
        "logical_timestamp",
        "name",
        "sort_index",
    ]

    calendar_id: str | None = ReadOnlyDescriptor("calendar_id")  # type: ignore
    hex_color: str | None = ReadOnlyDescriptor("hex_color")  # type: ignore
    logical_timestamp: int | None = ReadOnlyDescriptor(
        "logical_timestamp"
    )  # type: ignore
    name: str | None = ReadOnlyDescriptor("name")  # type: ignore
    sort_index: int | None = ReadOnlyDescriptor("sort_index")  # type: ignore

    @property
    def _str_short(self) -> str:
        return f"CalendarLabel(name={self.name}, identifier={self.identifier})"
