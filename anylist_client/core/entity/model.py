from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Callable

from ..exceptions import ReadOnlyError

__all__ = [
    "EntityModel",
    "ModelContainer",
    "FieldDescriptor",
    "WriteOnceDescriptor",
    "ReadOnlyDescriptor",
]


class EntityModel:
    """
    Field values of an entity, along with the fields changed locally since
    the entity was last loaded or synchronized with AnyList.

    Each change is stamped with a generation so that changes made while a
    save is in flight are not discarded when the save completes.
    """

    fields: list[str]

    # current field values
    _values: dict[str, Any]

    # mapping of changed field to generation of its latest change,
    # in order of first change
    _dirty: dict[str, int]

    _generation: int = 0

    def __init__(self, fields: Iterable[str], values: dict[str, Any]):
        self.fields = list(fields)
        self._values = {f: values.get(f) for f in self.fields}
        self._dirty = dict()

    def __str__(self):
        def get_field_str(field: str) -> str:
            value = self._values[field]
            value_str = f"'{value}'" if isinstance(value, str) else str(value)
            return f"{field}={value_str}{'*' if field in self._dirty else ''}"

        return f"{{{', '.join(get_field_str(f) for f in self.fields)}}}"

    @property
    def dirty_fields(self) -> list[str]:
        return list(self._dirty)

    @property
    def is_changed(self) -> bool:
        return len(self._dirty) > 0

    def get_field(self, field: str) -> Any:
        assert field in self._values, f"Unknown field {field}"
        return self._values[field]

    def set_field(self, field: str, value: Any):
        """
        Set field and record it as changed.
        """
        assert field in self._values, f"Unknown field {field}"
        self._values[field] = value
        self.touch(field)

    def load_field(self, field: str, value: Any):
        """
        Set field to a value which is already known to AnyList, without
        recording a change.
        """
        assert field in self._values, f"Unknown field {field}"
        self._values[field] = value

    def touch(self, field: str):
        """
        Record field as changed.
        """
        self._generation += 1
        self._dirty[field] = self._generation

    def checkpoint(self) -> dict[str, int]:
        """
        Capture the currently changed fields, to be passed to
        {obj}`set_clean` once they're synchronized.
        """
        return dict(self._dirty)

    def set_clean(self, checkpoint: dict[str, int] | None = None):
        """
        Clear changed fields captured by checkpoint, unless changed again
        since. Clears all fields if no checkpoint is provided.
        """
        if checkpoint is None:
            self._dirty.clear()
            return

        for field, generation in checkpoint.items():
            if self._dirty.get(field) == generation:
                del self._dirty[field]

    def dump(self) -> dict[str, Any]:
        """
        Copy of all field values.
        """
        return dict(self._values)


class ModelContainer:
    """
    Indicates that subclasses contain a model instance.
    """

    # instance of EntityModel
    _model: EntityModel

    def __init__(self, model: EntityModel):
        self._model = model


class FieldDescriptor:
    """
    Accessor for a model field, e.g. an {obj}`Item`'s `name` field.

    When written, updates the value and records the field as changed so it
    will be sent to AnyList upon save.
    """

    _field: str

    # invoked with value being set, returns normalized value
    _validator: Callable[[Any], Any] | None

    def __init__(
        self, field: str, validator: Callable[[Any], Any] | None = None
    ):
        self._field = field
        self._validator = validator

    def __get__(self, ent: ModelContainer | None, objtype=None) -> Any:
        if ent is None:
            return self
        return ent._model.get_field(self._field)

    def __set__(self, ent: ModelContainer, val: Any):
        if self._validator is not None:
            val = self._validator(val)
        ent._model.set_field(self._field, val)


class WriteOnceDescriptor(FieldDescriptor):
    """
    Accessor for field which is locked once assigned, e.g. the list owning
    an {obj}`Item`. The first assignment isn't recorded as a change.

    :raises ReadOnlyError: Upon assignment when a value is already set
    """

    def __set__(self, ent: ModelContainer, val: Any):
        if ent._model.get_field(self._field) is not None:
            raise ReadOnlyError(self._field, ent)

        if self._validator is not None:
            val = self._validator(val)
        ent._model.load_field(self._field, val)


class ReadOnlyDescriptor(FieldDescriptor):
    """
    Accessor for field which is maintained by AnyList.

    :raises ReadOnlyError: Upon write attempt
    """

    def __set__(self, ent: ModelContainer, val: Any):
        raise ReadOnlyError(self._field, ent)


def require_type(field: str, *types: type) -> Callable[[Any], Any]:
    """
    Get a validator which raises `TypeError` if the value isn't an instance
    of one of the given types. Booleans are rejected unless `bool` is given.
    """

    def validator(value: Any) -> Any:
        if (isinstance(value, bool) and bool not in types) or not isinstance(
            value, types
        ):
            names = " or ".join(t.__name__ for t in types)
            raise TypeError(f"{field} must be {names}, got {type(value).__name__}")
        return value

    return validator


def optional(validator: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """
    Wrap validator to also accept `None`.
    """

    def wrapper(value: Any) -> Any:
        return None if value is None else validator(value)

    return wrapper
