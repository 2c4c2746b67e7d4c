"""Async client for the model server REST API and its subscription channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from modelserver_client.config import AppConfig, load_config
from modelserver_client.decoder import AnyObject, as_model, as_object, as_string, as_type
from modelserver_client.encoding import FORMAT_JSON_V1, FORMAT_JSON_V2, encode_request_body
from modelserver_client.exceptions import ErrorCode, ModelServerError
from modelserver_client.listener import (
    NotificationListener,
    NotificationSubscriptionListener,
    NotificationSubscriptionListenerV2,
    SubscriptionListener,
)
from modelserver_client.message import (
    MessageDataMapper,
    MessageType,
    Model,
    ModelServerMessage,
    is_success,
    map_model_array,
    map_object,
    map_string,
    map_string_array,
    map_type,
    map_update_result,
    parse_message,
    server_error,
)
from modelserver_client.models.command import ModelServerCommand
from modelserver_client.models.diagnostic import Diagnostic, is_diagnostic
from modelserver_client.patch import ModelUpdateResult, PatchOperation, as_operations
from modelserver_client.paths import ModelServerPaths
from modelserver_client.subscriptions import ChannelState, SubscriptionManager, SubscriptionOptions
from modelserver_client.transport import ChannelFactory, HttpxRequestExecutor, RequestExecutor

logger = logging.getLogger(__name__)

EMF_COMMAND_MESSAGE = "modelserver.emfcommand"
PATCH_MESSAGE = "modelserver.patch"


@dataclass(frozen=True)
class AsFormat:
    """Request the payload in ``value`` format and return it as a string."""

    value: str


@dataclass(frozen=True)
class AsGuard:
    """Narrow the payload with ``guard`` instead of returning a plain object."""

    guard: Callable[[Any], bool]
    expected: str | None = None


Selector = AsFormat | AsGuard | None
PatchOrCommand = ModelServerCommand | PatchOperation | AnyObject | list[PatchOperation] | list[AnyObject]


class ServerConfiguration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_root: str = Field(alias="workspaceRoot")
    ui_schema_folder: str | None = Field(default=None, alias="uiSchemaFolder")


class ModelServerClient:
    """Async model server client speaking the v2 (patch based) protocol.

    ``base_url`` is the API root, e.g. ``http://localhost:8081/api/v2/``. When it
    is omitted the client reads it from the config file (``server.base_url`` and
    ``server.api_version``).
    """

    api_version = "v2"
    fallback_format = FORMAT_JSON_V2

    def __init__(
        self,
        base_url: str | None = None,
        *,
        default_format: str | None = None,
        timeout_seconds: float | None = None,
        executor: RequestExecutor | None = None,
        channel_factory: ChannelFactory | None = None,
        config: AppConfig | None = None,
    ) -> None:
        if config is None and base_url is None:
            config = load_config()
        server = config.server if config is not None else None
        self.base_url = base_url or (server.api_url if server else "")
        self.default_format = default_format or (server.default_format if server else None) or self.fallback_format
        timeout = timeout_seconds or (server.request_timeout_seconds if server else 15.0)
        self._executor = executor or HttpxRequestExecutor(self.base_url, timeout_seconds=timeout)
        self.subscriptions = SubscriptionManager(
            self.base_url,
            channel_factory=channel_factory,
            default_format=self.default_format,
        )

    async def __aenter__(self) -> "ModelServerClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.subscriptions.close_all()
        await self._executor.aclose()

    async def _process(
        self,
        method: str,
        path: str,
        mapper: MessageDataMapper,
        *,
        params: dict[str, Any] | None = None,
        body: Any | None = None,
    ) -> Any:
        envelope = await self._executor.request(method, path, params=params, body=body)
        message = parse_message(envelope)
        if message.message_type is MessageType.ERROR:
            raise server_error(message, path=path)
        return mapper(message)

    def _select(self, selector: Selector) -> tuple[str, MessageDataMapper]:
        if isinstance(selector, AsGuard):
            return self.default_format, map_type(selector.guard, selector.expected)
        if isinstance(selector, AsFormat):
            return selector.value, map_string
        return self.default_format, map_object

    async def get(self, modeluri: str, selector: Selector = None) -> Any:
        fmt, mapper = self._select(selector)
        return await self._process(
            "GET", ModelServerPaths.MODEL_CRUD, mapper, params={"modeluri": modeluri, "format": fmt}
        )

    async def get_all(self, selector: Selector = None) -> list[Model]:
        """List every model of the workspace, narrowing each content like :meth:`get`."""
        fmt, _ = self._select(selector)
        models = await self._process("GET", ModelServerPaths.MODEL_CRUD, map_model_array, params={"format": fmt})
        return [Model(model_uri=model.model_uri, content=_narrow_content(model.content, selector)) for model in models]

    async def get_model_uris(self) -> list[str]:
        return await self._process("GET", ModelServerPaths.MODEL_URIS, map_string_array)

    async def get_element_by_id(self, modeluri: str, element_id: str, selector: Selector = None) -> Any:
        fmt, mapper = self._select(selector)
        params = {"modeluri": modeluri, "elementid": element_id, "format": fmt}
        return await self._process("GET", ModelServerPaths.MODEL_ELEMENT, mapper, params=params)

    async def get_element_by_name(self, modeluri: str, element_name: str, selector: Selector = None) -> Any:
        fmt, mapper = self._select(selector)
        params = {"modeluri": modeluri, "elementname": element_name, "format": fmt}
        return await self._process("GET", ModelServerPaths.MODEL_ELEMENT, mapper, params=params)

    async def create(self, modeluri: str, model: AnyObject | str, selector: Selector = None) -> Any:
        fmt, mapper = self._select(selector)
        return await self._process(
            "POST",
            ModelServerPaths.MODEL_CRUD,
            mapper,
            params={"modeluri": modeluri, "format": fmt},
            body=encode_request_body(fmt)(model),
        )

    async def update(self, modeluri: str, model: AnyObject | str, selector: Selector = None) -> Any:
        fmt, mapper = self._select(selector)
        return await self._process(
            "PUT",
            ModelServerPaths.MODEL_CRUD,
            mapper,
            params={"modeluri": modeluri, "format": fmt},
            body=encode_request_body(fmt)(model),
        )

    async def delete(self, modeluri: str) -> bool:
        return await self._process("DELETE", ModelServerPaths.MODEL_CRUD, is_success, params={"modeluri": modeluri})

    async def close(self, modeluri: str) -> bool:
        return await self._process("POST", ModelServerPaths.CLOSE, is_success, params={"modeluri": modeluri})

    async def save(self, modeluri: str) -> bool:
        return await self._process("GET", ModelServerPaths.SAVE, is_success, params={"modeluri": modeluri})

    async def save_all(self) -> bool:
        return await self._process("GET", ModelServerPaths.SAVE_ALL, is_success)

    async def validate(self, modeluri: str) -> Diagnostic:
        return await self._process(
            "GET",
            ModelServerPaths.VALIDATION,
            lambda message: as_model(message.data, Diagnostic, is_diagnostic),
            params={"modeluri": modeluri},
        )

    async def get_validation_constraints(self, modeluri: str) -> str:
        return await self._process(
            "GET", ModelServerPaths.VALIDATION_CONSTRAINTS, map_string, params={"modeluri": modeluri}
        )

    async def get_type_schema(self, modeluri: str) -> str:
        return await self._process("GET", ModelServerPaths.TYPE_SCHEMA, map_string, params={"modeluri": modeluri})

    async def get_ui_schema(self, schema_name: str) -> str:
        return await self._process("GET", ModelServerPaths.UI_SCHEMA, map_string, params={"schemaname": schema_name})

    async def configure_server(self, configuration: ServerConfiguration) -> bool:
        return await self._process(
            "PUT",
            ModelServerPaths.SERVER_CONFIGURE,
            is_success,
            body=configuration.model_dump(by_alias=True),
        )

    async def ping(self) -> bool:
        return await self._process("GET", ModelServerPaths.SERVER_PING, is_success)

    async def edit(self, modeluri: str, patch_or_command: PatchOrCommand, fmt: str | None = None) -> ModelUpdateResult:
        """Apply a command or a patch and report how to replay it on a cached model."""
        fmt = fmt or self.default_format
        if isinstance(patch_or_command, ModelServerCommand):
            message: dict[str, Any] = {"type": EMF_COMMAND_MESSAGE, "data": patch_or_command.to_wire()}
        else:
            operations = as_operations(patch_or_command)
            if not operations:
                logger.debug("%s: empty patch, nothing to send", modeluri)
                return ModelUpdateResult(success=True, operations=[])
            message = {"type": PATCH_MESSAGE, "data": [operation.to_wire() for operation in operations]}
        return await self._process(
            "PATCH",
            ModelServerPaths.MODEL_CRUD,
            map_update_result,
            params={"modeluri": modeluri, "format": fmt},
            body=encode_request_body(fmt)(message),
        )

    async def undo(self, modeluri: str) -> ModelUpdateResult:
        return await self._process("GET", ModelServerPaths.UNDO, map_update_result, params={"modeluri": modeluri})

    async def redo(self, modeluri: str) -> ModelUpdateResult:
        return await self._process("GET", ModelServerPaths.REDO, map_update_result, params={"modeluri": modeluri})

    def _wrap_listener(self, listener: NotificationListener | SubscriptionListener) -> SubscriptionListener:
        if isinstance(listener, NotificationListener):
            return NotificationSubscriptionListenerV2(listener)
        return listener

    async def subscribe(
        self,
        modeluri: str,
        listener: NotificationListener | SubscriptionListener,
        options: SubscriptionOptions | None = None,
    ) -> SubscriptionListener:
        return await self.subscriptions.subscribe(modeluri, self._wrap_listener(listener), options)

    async def unsubscribe(self, modeluri: str) -> bool:
        return await self.subscriptions.unsubscribe(modeluri)

    async def send(self, modeluri: str, message: ModelServerMessage | AnyObject) -> bool:
        if not await self.subscriptions.send(modeluri, message):
            raise ModelServerError(
                ErrorCode.NOT_SUBSCRIBED,
                f"{modeluri}: no open subscription channel",
                details={"modeluri": modeluri},
                suggestion="Subscribe to the model before sending messages.",
            )
        return True

    def is_subscribed(self, modeluri: str) -> bool:
        return self.subscriptions.is_subscribed(modeluri)

    def subscription_state(self, modeluri: str) -> ChannelState:
        return self.subscriptions.state(modeluri)


class ModelServerClientV1(ModelServerClient):
    """Compatibility client for the v1 protocol.

    Edits are commands only and their results report success without a patch;
    incremental updates carry command execution results; ``send`` returns
    ``False`` when no channel is open.
    """

    api_version = "v1"
    fallback_format = FORMAT_JSON_V1

    async def edit(self, modeluri: str, patch_or_command: PatchOrCommand, fmt: str | None = None) -> ModelUpdateResult:
        if not isinstance(patch_or_command, ModelServerCommand):
            raise ModelServerError(
                ErrorCode.INVALID_ARGS,
                "the v1 protocol only accepts commands for edit",
                suggestion="Use ModelServerClient for patch based edits.",
            )
        success = await self._process(
            "PATCH",
            ModelServerPaths.EDIT,
            is_success,
            params={"modeluri": modeluri, "format": fmt or self.default_format},
            body={"data": patch_or_command.to_wire()},
        )
        return ModelUpdateResult(success=success)

    async def undo(self, modeluri: str) -> ModelUpdateResult:
        success = await self._process("GET", ModelServerPaths.UNDO, is_success, params={"modeluri": modeluri})
        return ModelUpdateResult(success=success)

    async def redo(self, modeluri: str) -> ModelUpdateResult:
        success = await self._process("GET", ModelServerPaths.REDO, is_success, params={"modeluri": modeluri})
        return ModelUpdateResult(success=success)

    def _wrap_listener(self, listener: NotificationListener | SubscriptionListener) -> SubscriptionListener:
        if isinstance(listener, NotificationListener):
            return NotificationSubscriptionListener(listener)
        return listener

    async def send(self, modeluri: str, message: ModelServerMessage | AnyObject) -> bool:
        return await self.subscriptions.send(modeluri, message)


def _narrow_content(content: Any, selector: Selector) -> Any:
    if isinstance(selector, AsGuard):
        return as_type(content, selector.guard, selector.expected)
    if isinstance(selector, AsFormat):
        return as_string(content)
    return as_object(content)


def create_client(config: AppConfig | None = None, **kwargs: Any) -> ModelServerClient:
    """Build the client matching ``server.api_version`` of ``config``."""
    cfg = config or load_config()
    client_cls = ModelServerClientV1 if cfg.server.api_version == "v1" else ModelServerClient
    return client_cls(config=cfg, **kwargs)
