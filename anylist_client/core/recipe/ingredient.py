from __future__ import annotations

from typing import Self

from ..entity.model import EntityModel, FieldDescriptor, ModelContainer
from ..wire import IngredientModel

__all__ = [
    "Ingredient",
]


class Ingredient(ModelContainer):
    """
    Ingredient of a {obj}`Recipe`. Sent to AnyList along with its recipe.
    """

    fields = [
        "raw_ingredient",
        "name",
        "quantity",
        "note",
    ]

    raw_ingredient: str | None = FieldDescriptor("raw_ingredient")  # type: ignore
    """
    Ingredient as originally written, e.g. `"2 cups flour"`.
    """

    name: str | None = FieldDescriptor("name")  # type: ignore
    quantity: str | None = FieldDescriptor("quantity")  # type: ignore
    note: str | None = FieldDescriptor("note")  # type: ignore

    def __init__(
        self,
        name: str | None = None,
        quantity: str | None = None,
        note: str | None = None,
        raw_ingredient: str | None = None,
    ):
        super().__init__(
            EntityModel(
                self.fields,
                {
                    "raw_ingredient": raw_ingredient,
                    "name": name,
                    "quantity": quantity,
                    "note": note,
                },
            )
        )

    def __repr__(self):
        return f"Ingredient(name={self.name}, quantity={self.quantity})"

    @classmethod
    def _from_model(cls, model: IngredientModel) -> Self:
        return cls(
            name=model.name,
            quantity=model.quantity,
            note=model.note,
            raw_ingredient=model.raw_ingredient,
        )

    @property
    def is_dirty(self) -> bool:
        return self._model.is_changed

    def _encode(self) -> IngredientModel:
        return IngredientModel(**self._model.dump())
