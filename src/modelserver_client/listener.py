"""Subscription listeners: raw channel events in, typed notifications out.

A channel reports four raw events (open, close, error, message). The
``NotificationSubscriptionListener`` turns each of them into exactly one call on
a :class:`NotificationListener`. Inbound frames are parsed into an envelope and
classified by their ``type``; frames that cannot be decoded are reported through
``on_error`` and types this client does not know go to ``on_unknown``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from modelserver_client.decoder import as_model, as_type
from modelserver_client.exceptions import DecodeError
from modelserver_client.message import MessageType, ModelServerMessage, map_boolean, map_object, map_string, parse_message
from modelserver_client.models.command import command_execution_result_from_wire
from modelserver_client.models.diagnostic import Diagnostic, is_diagnostic
from modelserver_client.notifications import (
    CloseNotification,
    DirtyStateNotification,
    ErrorNotification,
    FullUpdateNotification,
    IncrementalUpdateNotification,
    IncrementalUpdateNotificationV2,
    Notification,
    UnknownNotification,
    ValidationNotification,
)
from modelserver_client.patch import as_operations, is_patch

logger = logging.getLogger(__name__)

CLOSE_REASONS: dict[int, str] = {
    1005: "Connection closed by peer",
    1006: "Server shutdown",
}


def close_reason(code: int, reason: str) -> str:
    return CLOSE_REASONS.get(code, reason)


class SubscriptionListener(Protocol):
    """Receives the raw lifecycle events of one subscription channel."""

    def on_open(self, modeluri: str) -> None: ...

    def on_close(self, modeluri: str, code: int, reason: str) -> None: ...

    def on_error(self, modeluri: str, error: Any) -> None: ...

    def on_message(self, modeluri: str, data: str | bytes) -> None: ...


class NotificationListener:
    """Typed notification callbacks. Every callback is a no-op until overridden."""

    def on_open(self, notification: Notification) -> None:
        return None

    def on_close(self, notification: CloseNotification) -> None:
        return None

    def on_error(self, notification: ErrorNotification) -> None:
        return None

    def on_success(self, notification: Notification) -> None:
        return None

    def on_dirty_state_changed(self, notification: DirtyStateNotification) -> None:
        return None

    def on_incremental_update(
        self, notification: IncrementalUpdateNotification | IncrementalUpdateNotificationV2
    ) -> None:
        return None

    def on_full_update(self, notification: FullUpdateNotification) -> None:
        return None

    def on_validation(self, notification: ValidationNotification) -> None:
        return None

    def on_unknown(self, notification: UnknownNotification) -> None:
        return None


Route = tuple[Callable[[Any], None], Notification]


class NotificationSubscriptionListener:
    """Decodes v1 notifications (incremental updates carry a command execution result)."""

    def __init__(self, listener: NotificationListener | None = None) -> None:
        self.listener = listener or NotificationListener()

    def on_open(self, modeluri: str) -> None:
        self.listener.on_open(Notification(model_uri=modeluri, type=MessageType.OPEN.value))

    def on_close(self, modeluri: str, code: int, reason: str) -> None:
        self.listener.on_close(
            CloseNotification(
                model_uri=modeluri,
                type=MessageType.CLOSE.value,
                code=code,
                reason=close_reason(code, reason),
            )
        )

    def on_error(self, modeluri: str, error: Any) -> None:
        self.listener.on_error(ErrorNotification(model_uri=modeluri, type=MessageType.ERROR.value, error=error))

    def on_message(self, modeluri: str, data: str | bytes) -> None:
        try:
            message = parse_message(data)
            callback, notification = self.route(modeluri, message)
        except DecodeError as exc:
            logger.warning("undecodable notification for %s: %s", modeluri, exc.message)
            self.on_error(modeluri, exc)
            return
        callback(notification)

    def route(self, modeluri: str, message: ModelServerMessage) -> Route:
        """Pick the callback for ``message`` and build its notification."""
        kind = message.message_type
        listener = self.listener
        if kind is MessageType.DIRTY_STATE:
            return listener.on_dirty_state_changed, DirtyStateNotification(
                model_uri=modeluri, type=message.type, is_dirty=map_boolean(message)
            )
        if kind in (MessageType.SUCCESS, MessageType.KEEP_ALIVE):
            return listener.on_success, Notification(model_uri=modeluri, type=message.type)
        if kind is MessageType.ERROR:
            return listener.on_error, ErrorNotification(model_uri=modeluri, type=message.type, error=map_string(message))
        if kind is MessageType.INCREMENTAL_UPDATE:
            return listener.on_incremental_update, self.incremental_update(modeluri, message)
        if kind is MessageType.FULL_UPDATE:
            model = message.data if isinstance(message.data, str) else map_object(message)
            return listener.on_full_update, FullUpdateNotification(model_uri=modeluri, type=message.type, model=model)
        if kind is MessageType.VALIDATION_RESULT:
            diagnostic = as_model(message.data, Diagnostic, is_diagnostic)
            return listener.on_validation, ValidationNotification(
                model_uri=modeluri, type=message.type, diagnostic=diagnostic
            )
        return listener.on_unknown, UnknownNotification(model_uri=modeluri, type=message.type, data=message.data)

    def incremental_update(
        self, modeluri: str, message: ModelServerMessage
    ) -> IncrementalUpdateNotification | IncrementalUpdateNotificationV2:
        result = message.data if isinstance(message.data, str) else command_execution_result_from_wire(message.data)
        return IncrementalUpdateNotification(model_uri=modeluri, type=message.type, result=result)


class NotificationSubscriptionListenerV2(NotificationSubscriptionListener):
    """Decodes v2 notifications (incremental updates carry a patch)."""

    def incremental_update(
        self, modeluri: str, message: ModelServerMessage
    ) -> IncrementalUpdateNotification | IncrementalUpdateNotificationV2:
        patch = as_type(message.data, is_patch, "Operation[]")
        return IncrementalUpdateNotificationV2(model_uri=modeluri, type=message.type, patch=as_operations(patch))
