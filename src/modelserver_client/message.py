"""The ``{data, type}`` envelope and the mappers that turn it into typed results."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Callable, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from modelserver_client.decoder import (
    AnyObject,
    as_boolean,
    as_object,
    as_object_array,
    as_string,
    as_string_array,
    as_type,
    has_string,
    is_any_object,
)
from modelserver_client.exceptions import DecodeError, ErrorCode, ModelServerError
from modelserver_client.patch import ModelUpdateResult, as_operations, is_patch


class MessageType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    OPEN = "open"
    CLOSE = "close"
    FULL_UPDATE = "fullUpdate"
    INCREMENTAL_UPDATE = "incrementalUpdate"
    DIRTY_STATE = "dirtyState"
    VALIDATION_RESULT = "validationResult"
    KEEP_ALIVE = "keepAlive"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "MessageType":
        """Map a wire tag to a known literal; custom server tags become ``UNKNOWN``."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ModelServerMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    data: Any = None

    @property
    def message_type(self) -> MessageType:
        return MessageType.parse(self.type)

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type}
        if self.data is not None:
            payload["data"] = self.data
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


def is_message(obj: Any) -> bool:
    return is_any_object(obj) and has_string(obj, "type")


def parse_message(raw: str | bytes | AnyObject) -> ModelServerMessage:
    """Decode a raw channel frame or response body into an envelope."""
    payload: Any = raw
    if isinstance(raw, (str, bytes)):
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise DecodeError("ModelServerMessage", raw if isinstance(raw, str) else raw.decode(errors="replace")) from exc
    if not is_message(payload):
        raise DecodeError("ModelServerMessage", payload)
    return ModelServerMessage(type=payload["type"], data=payload.get("data"))


def keep_alive_message() -> ModelServerMessage:
    return ModelServerMessage(type=MessageType.KEEP_ALIVE.value)


class Model(BaseModel):
    """A model as listed by the server: its uri and its (possibly narrowed) content."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, protected_namespaces=())

    model_uri: str = Field(alias="modelUri")
    content: Any = None


MessageDataMapper: TypeAlias = Callable[[ModelServerMessage], Any]


def map_string(message: ModelServerMessage) -> str:
    return as_string(message.data)


def map_string_array(message: ModelServerMessage) -> list[str]:
    return as_string_array(message.data)


def map_boolean(message: ModelServerMessage) -> bool:
    return as_boolean(message.data)


def map_object(message: ModelServerMessage) -> AnyObject:
    return as_object(message.data)


def map_model_array(message: ModelServerMessage) -> list[Model]:
    return [Model.model_validate(record) for record in as_object_array(message.data)]


def map_type(guard: Callable[[Any], bool], expected: str | None = None) -> MessageDataMapper:
    return lambda message: as_type(message.data, guard, expected)


def is_success(message: ModelServerMessage) -> bool:
    return message.type == MessageType.SUCCESS.value


def map_update_result(message: ModelServerMessage) -> ModelUpdateResult:
    """Decode an edit/undo/redo response.

    A successful response carrying ``data.patch`` as a well-formed operation list
    yields a result with a local patch function; any other success yields a bare
    success the caller must follow with a re-fetch.
    """
    if not is_success(message):
        return ModelUpdateResult(success=False)
    patch = message.data.get("patch") if is_any_object(message.data) else None
    if patch and is_patch(patch):
        return ModelUpdateResult(success=True, operations=as_operations(patch))
    return ModelUpdateResult(success=True)


def server_error(message: ModelServerMessage, **details: Any) -> ModelServerError:
    """Build the typed error for an ``error`` envelope, surfacing the server's message."""
    data = message.data
    code = data.get("code") if is_any_object(data) else None
    text = data.get("message") if is_any_object(data) and isinstance(data.get("message"), str) else None
    if text is None:
        text = as_string(data) if data is not None else "model server reported an error"
    if code is not None:
        details["server_code"] = code
    return ModelServerError(ErrorCode.SERVER_ERROR, text, details=details or None)
