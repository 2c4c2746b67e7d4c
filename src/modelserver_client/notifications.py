"""Typed push notifications delivered to subscription listeners."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer

from modelserver_client.exceptions import ModelServerError
from modelserver_client.models.command import CommandExecutionResult
from modelserver_client.models.diagnostic import Diagnostic
from modelserver_client.patch import PatchOperation, apply_patch


class Notification(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_uri: str
    type: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CloseNotification(Notification):
    code: int
    reason: str


class ErrorNotification(Notification):
    error: Any = None

    @field_serializer("error")
    def _serialize_error(self, value: Any) -> Any:
        if isinstance(value, ModelServerError):
            return value.to_error_payload()
        if isinstance(value, BaseException):
            return str(value) or type(value).__name__
        return value


class DirtyStateNotification(Notification):
    is_dirty: bool


class IncrementalUpdateNotification(Notification):
    """v1 incremental update: the command the server executed and what it changed."""

    result: CommandExecutionResult | str


class IncrementalUpdateNotificationV2(Notification):
    """v2 incremental update: the ordered patch the server applied."""

    patch: list[PatchOperation]

    def patch_model(self, old_model: Any) -> Any:
        return apply_patch(old_model, self.patch)


class FullUpdateNotification(Notification):
    model: dict[str, Any] | str


class ValidationNotification(Notification):
    diagnostic: Diagnostic


class UnknownNotification(Notification):
    """Envelope with a type this client does not interpret; passed through untouched."""

    data: Any = None
