"""
Interface to the codec which encodes and decodes binary payloads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from .operation import Operation
from .wire import (
    OperationListModel,
    OperationMetadataModel,
    OperationModel,
    UserDataModel,
)

__all__ = [
    "BaseCodec",
    "JsonCodec",
]


class BaseCodec(ABC):
    """
    Encodes operation batches and decodes user data. Implementations map
    between typed records and the payload format spoken by the server.
    """

    @abstractmethod
    def decode_user_data(self, payload: bytes) -> UserDataModel:
        """
        Decode the response of the user data endpoint.
        """
        ...

    @abstractmethod
    def encode_operations(self, operations: Sequence[Operation]) -> bytes:
        """
        Encode a batch of operations to be posted as a single field.
        """
        ...


class JsonCodec(BaseCodec):
    """
    Codec using the JSON form of the wire models.
    """

    def decode_user_data(self, payload: bytes) -> UserDataModel:
        return UserDataModel.model_validate_json(payload)

    def encode_operations(self, operations: Sequence[Operation]) -> bytes:
        model = OperationListModel(
            operations=[_to_model(op) for op in operations]
        )
        return model.model_dump_json(by_alias=True, exclude_none=True).encode()


def _to_model(operation: Operation) -> OperationModel:
    return OperationModel(
        metadata=OperationMetadataModel(
            operation_id=operation.operation_id,
            handler_id=operation.handler_id,
            user_id=operation.user_id,
        ),
        list_id=operation.list_id,
        list_item_id=operation.list_item_id,
        updated_value=operation.updated_value,
        list_item=operation.list_item,
        recipe_data_id=operation.recipe_data_id,
        recipe=operation.recipe,
        recipe_collection=operation.recipe_collection,
        recipe_ids=operation.recipe_ids,
        calendar_id=operation.calendar_id,
        calendar_event=operation.calendar_event,
    )
