from __future__ import annotations

import datetime
from typing import Any

from ..entity.entity import BaseEntity
from ..entity.model import (
    FieldDescriptor,
    WriteOnceDescriptor,
    optional,
    require_type,
)
from ..exceptions import _assert_validate
from ..operation import Action, Operation, OperationBatch
from ..recipe.recipe import Recipe
from ..session import Session
from ..wire import CalendarEventModel
from .label import CalendarLabel

__all__ = [
    "CalendarEvent",
]


def _require_date(value: Any) -> datetime.date:
    # datetime is a subclass of date but carries a time of day
    if isinstance(value, datetime.datetime) or not isinstance(
        value, datetime.date
    ):
        raise TypeError(f"date must be date, got {type(value).__name__}")
    return value


class CalendarEvent(BaseEntity[CalendarEventModel]):
    """
    Event of the meal planning calendar: either a recipe planned for a date,
    or a free-form entry with a title.
    """

    _model_cls = CalendarEventModel

    fields = [
        "identifier",
        "calendar_id",
        "date",
        "details",
        "label_id",
        "logical_timestamp",
        "order_added_sort_index",
        "recipe_id",
        "recipe_scale_factor",
        "title",
    ]

    calendar_id: str | None = WriteOnceDescriptor("calendar_id")  # type: ignore
    """
    Id of calendar containing this event. Locked once assigned.
    """

    date: datetime.date = FieldDescriptor("date", _require_date)  # type: ignore
    details: str | None = FieldDescriptor("details")  # type: ignore
    label_id: str | None = FieldDescriptor("label_id")  # type: ignore
    logical_timestamp: int | None = FieldDescriptor(
        "logical_timestamp"
    )  # type: ignore
    order_added_sort_index: int | None = FieldDescriptor(
        "order_added_sort_index",
        optional(require_type("order_added_sort_index", int)),
    )  # type: ignore
    recipe_id: str | None = FieldDescriptor("recipe_id")  # type: ignore
    recipe_scale_factor: float | None = FieldDescriptor(
        "recipe_scale_factor",
        optional(require_type("recipe_scale_factor", int, float)),
    )  # type: ignore
    title: str | None = FieldDescriptor("title")  # type: ignore

    def __init__(
        self,
        *,
        session: Session,
        model_backing: CalendarEventModel | None = None,
        identifier: str | None = None,
        **values: Any,
    ):
        """
        :param session: Session owning this event
        :param model_backing: Model received from AnyList, or `None` to create new event
        :param identifier: Identifier of new event, or `None` to generate one
        :param values: Initial field values of new event; `date` is required
        """
        if model_backing is None:
            _require_date(values.get("date"))

        super().__init__(
            session=session,
            model_backing=model_backing,
            identifier=identifier,
            **values,
        )

    @property
    def _str_short(self) -> str:
        return f"CalendarEvent(date={self.date}, title={self.title}, identifier={self.identifier})"

    @property
    def recipe(self) -> Recipe | None:
        """
        Recipe planned by this event, if any, resolved from loaded recipes.
        Assign a recipe or `None` to update {obj}`CalendarEvent.recipe_id`.
        """
        if self.recipe_id is None:
            return None
        return self._session._cache.get_recipe_by_id(self.recipe_id)

    @recipe.setter
    def recipe(self, recipe: Recipe | None):
        self.recipe_id = recipe.identifier if recipe is not None else None

    @property
    def label(self) -> CalendarLabel | None:
        """
        Label of this event, if any, resolved from loaded labels. Assign a
        label or `None` to update {obj}`CalendarEvent.label_id`.
        """
        if self.label_id is None:
            return None
        return self._session._cache.get_label_by_id(self.label_id)

    @label.setter
    def label(self, label: CalendarLabel | None):
        self.label_id = label.identifier if label is not None else None

    async def save(self):
        """
        Create or update this event.

        :raises ValidationError: If calendar of event is unknown
        :raises SyncError: If AnyList rejected the event
        """
        if not self.is_dirty:
            self._session._logger.debug(f"No changes to save: {self.str_short}")
            return

        calendar_id = self.calendar_id
        if calendar_id is None:
            calendar_id = await self._session._cache.get_calendar_id()

        _assert_validate(
            calendar_id is not None,
            f"{self.str_short} has no calendar and none was loaded",
        )

        created = not self._exists
        checkpoint = self._model.checkpoint()

        operation = Operation(
            action=Action.SAVE_CALENDAR_EVENT,
            user_id=self._session.user_id,
            calendar_id=calendar_id,
            calendar_event=self._encode().model_copy(
                update={"calendar_id": calendar_id}
            ),
        )
        await self._session.submit(OperationBatch.single(operation))

        # locked only once the event is accepted
        if self.calendar_id is None:
            self.calendar_id = calendar_id
        self._set_synced(checkpoint)

        if created:
            self._session._cache.add_event(self)

    async def delete(self):
        """
        Delete this event.

        :raises ValidationError: If event was never saved
        :raises SyncError: If AnyList rejected the deletion
        """
        _assert_validate(
            self._exists, f"{self.str_short} was never saved, can't delete"
        )

        operation = Operation(
            action=Action.REMOVE_CALENDAR_EVENT,
            user_id=self._session.user_id,
            calendar_id=self.calendar_id,
            calendar_event=self._encode(),
        )
        await self._session.submit(OperationBatch.single(operation))

        self._session._cache.remove_event(self)
