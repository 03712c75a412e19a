from __future__ import annotations

from abc import ABC, abstractmethod
from copy import deepcopy
from typing import Any, Self

from ..session import Session, SessionContainer
from ..utils import new_id
from ..wire import WireModel
from .model import (
    EntityModel,
    FieldDescriptor,
    ModelContainer,
    ReadOnlyDescriptor,
    WriteOnceDescriptor,
)
from .types import State

__all__ = [
    "BaseEntity",
    "State",
    "EntityIdDescriptor",
    "FieldDescriptor",
    "ReadOnlyDescriptor",
    "WriteOnceDescriptor",
]

__rollup__ = [
    "BaseEntity",
    "State",
]


class EntityIdDescriptor(ReadOnlyDescriptor):
    """
    Accessor for entity's identifier, which is immutable.
    """

    def __init__(self):
        super().__init__("identifier")


class BaseEntity[ModelT: WireModel](ABC, SessionContainer, ModelContainer):
    """
    Base class for AnyList entities.

    Should not be instantiated by user, but published for reference.
    """

    identifier: str = EntityIdDescriptor()  # type: ignore
    """
    Unique id of this entity, generated locally when the entity is created.
    """

    # type used to encode entity
    _model_cls: type[ModelT]

    # scalar fields held by _model, in wire model order
    fields: list[str]

    # default values of fields for newly created entities
    fields_default: dict[str, Any] = {}

    # whether entity is known to AnyList
    _exists: bool

    def __init__(
        self,
        *,
        session: Session,
        model_backing: ModelT | None = None,
        identifier: str | None = None,
        **values: Any,
    ):
        """
        :param session: Session owning this entity
        :param model_backing: Model received from AnyList, or `None` to create new entity
        :param identifier: Identifier of new entity, or `None` to generate one
        :param values: Initial field values of new entity
        """
        SessionContainer.__init__(self, session)

        if model_backing is not None:
            assert not values, "Values provided along with model"
            model_values = {
                field: getattr(model_backing, field) for field in self.fields
            }
            self._exists = True
        else:
            model_values = deepcopy(self.fields_default) | values
            model_values["identifier"] = identifier or new_id()
            self._exists = False

        ModelContainer.__init__(self, EntityModel(self.fields, model_values))
        self._setup(model_backing)

    def __str__(self):
        return self.str_short

    def __repr__(self):
        return self.str_short

    @classmethod
    def _from_model(cls, model: ModelT, session: Session) -> Self:
        """
        Instantiate entity from model received from AnyList.
        """
        return cls(session=session, model_backing=model)

    @property
    def state(self) -> State:
        """
        Current state.
        """
        if not self._exists:
            return State.CREATE
        elif self.is_dirty:
            return State.UPDATE
        else:
            return State.CLEAN

    @property
    def is_dirty(self) -> bool:
        """
        Whether entity has changes which were not synchronized.
        """
        return not self._exists or self._model.is_changed

    @property
    def dirty_fields(self) -> list[str]:
        """
        Names of fields changed locally since last synchronized.
        """
        return self._model.dirty_fields

    @property
    def str_short(self) -> str:
        """
        Get a short description of this entity.
        """
        return self._str_short

    @property
    def str_summary(self) -> str:
        """
        Get a summary of this entity, including its current state and model
        values.
        """
        indent = f"\n{' '*4}"
        return indent.join(
            [self.str_short, str(self.state), str(self._model)]
            + self._str_summary_extra
        )

    @property
    def _str_summary_extra(self) -> list[str]:
        return []

    @property
    @abstractmethod
    def _str_short(self) -> str:
        ...

    def _setup(self, model: ModelT | None):
        """
        Set up any child objects, e.g. the items of a list.
        """
        pass

    def _encode_extra(self) -> dict[str, Any]:
        """
        Get encoded values of any child objects.
        """
        return {}

    def _encode(self) -> ModelT:
        """
        Get model representing the current state of this entity, to be sent
        to AnyList.
        """
        return self._model_cls(**self._model.dump(), **self._encode_extra())

    def _set_synced(self, checkpoint: dict[str, int] | None = None):
        """
        Mark entity as known to AnyList, with changes captured by checkpoint
        no longer pending.
        """
        self._exists = True
        self._model.set_clean(checkpoint)
