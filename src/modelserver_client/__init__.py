"""Async Python client for the EMF Cloud model server."""

from modelserver_client.client import (
    AsFormat,
    AsGuard,
    ModelServerClient,
    ModelServerClientV1,
    ServerConfiguration,
    create_client,
)
from modelserver_client.config import AppConfig, load_config
from modelserver_client.encoding import FORMAT_JSON_V1, FORMAT_JSON_V2, FORMAT_XMI, FORMAT_XML, encode
from modelserver_client.exceptions import DecodeError, ErrorCode, ModelServerError, PatchError
from modelserver_client.listener import (
    NotificationListener,
    NotificationSubscriptionListener,
    NotificationSubscriptionListenerV2,
    SubscriptionListener,
)
from modelserver_client.message import MessageType, Model, ModelServerMessage, keep_alive_message
from modelserver_client.models import diagnostic
from modelserver_client.models.command import AddCommand, CompoundCommand, ModelServerCommand, RemoveCommand, SetCommand
from modelserver_client.models.diagnostic import Diagnostic
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
from modelserver_client.patch import ModelUpdateResult, PatchOperation, apply_patch
from modelserver_client.paths import ModelServerPaths
from modelserver_client.subscriptions import ChannelState, SubscriptionManager, SubscriptionOptions

__all__ = [
    "AddCommand",
    "AppConfig",
    "AsFormat",
    "AsGuard",
    "ChannelState",
    "CloseNotification",
    "CompoundCommand",
    "DecodeError",
    "Diagnostic",
    "DirtyStateNotification",
    "ErrorCode",
    "ErrorNotification",
    "FORMAT_JSON_V1",
    "FORMAT_JSON_V2",
    "FORMAT_XMI",
    "FORMAT_XML",
    "FullUpdateNotification",
    "IncrementalUpdateNotification",
    "IncrementalUpdateNotificationV2",
    "MessageType",
    "Model",
    "ModelServerClient",
    "ModelServerClientV1",
    "ModelServerCommand",
    "ModelServerError",
    "ModelServerMessage",
    "ModelServerPaths",
    "ModelUpdateResult",
    "Notification",
    "NotificationListener",
    "NotificationSubscriptionListener",
    "NotificationSubscriptionListenerV2",
    "PatchError",
    "PatchOperation",
    "RemoveCommand",
    "ServerConfiguration",
    "SetCommand",
    "SubscriptionListener",
    "SubscriptionManager",
    "SubscriptionOptions",
    "UnknownNotification",
    "ValidationNotification",
    "apply_patch",
    "create_client",
    "diagnostic",
    "encode",
    "keep_alive_message",
    "load_config",
]
