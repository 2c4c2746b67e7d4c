"""Per-model subscription channels.

The manager owns at most one registered channel per model uri. An entry is
created by :meth:`SubscriptionManager.subscribe`, changes state only on the
channel's lifecycle events and disappears on :meth:`SubscriptionManager.unsubscribe`
or when its channel reports a close.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from modelserver_client.encoding import FORMAT_JSON_V2
from modelserver_client.exceptions import ErrorCode, ModelServerError
from modelserver_client.listener import SubscriptionListener
from modelserver_client.message import ModelServerMessage
from modelserver_client.paths import ModelServerPaths
from modelserver_client.transport import Channel, ChannelFactory, ChannelHandlers, websocket_channel_factory

logger = logging.getLogger(__name__)


class ChannelState(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    ERROR = "error"


class SubscriptionOptions(BaseModel):
    """Query options of a subscription. Unknown extra options are forwarded as query parameters."""

    model_config = ConfigDict(extra="allow")

    format: str | None = None
    timeout: int | None = None
    livevalidation: bool | None = None
    error_when_unsuccessful: bool = False

    def query_params(self, default_format: str) -> dict[str, str]:
        params = {"format": self.format or default_format}
        if self.timeout is not None:
            params["timeout"] = str(self.timeout)
        if self.livevalidation is not None:
            params["livevalidation"] = _query_value(self.livevalidation)
        for key, value in (self.model_extra or {}).items():
            if value is not None and key not in {"errorWhenUnsuccessful", "listener"}:
                params[key] = _query_value(value)
        return params


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(eq=False)
class _Entry:
    state: ChannelState = ChannelState.OPENING
    channel: Channel | None = field(default=None, repr=False)


class SubscriptionManager:
    """Owns the subscription channels of one client."""

    def __init__(
        self,
        base_url: str,
        *,
        channel_factory: ChannelFactory | None = None,
        default_format: str = FORMAT_JSON_V2,
    ) -> None:
        self.base_url = base_url
        self.default_format = default_format
        self._channel_factory = channel_factory or websocket_channel_factory
        self._entries: dict[str, _Entry] = {}

    def subscription_address(self, modeluri: str, options: SubscriptionOptions | None = None) -> str:
        options = options or SubscriptionOptions()
        url = httpx.URL(self.base_url)
        scheme = "wss" if url.scheme in {"https", "wss"} else "ws"
        path = url.path if url.path.endswith("/") else url.path + "/"
        params = {"modeluri": modeluri}
        params.update(options.query_params(self.default_format))
        return str(url.copy_with(scheme=scheme, path=path + ModelServerPaths.SUBSCRIPTION, params=params))

    async def subscribe(
        self,
        modeluri: str,
        listener: SubscriptionListener,
        options: SubscriptionOptions | None = None,
    ) -> SubscriptionListener:
        options = options or SubscriptionOptions()
        if self.is_subscribed(modeluri):
            message = f"{modeluri}: cannot open new channel, already subscribed"
            logger.warning(message)
            if options.error_when_unsuccessful:
                raise ModelServerError(
                    ErrorCode.ALREADY_SUBSCRIBED,
                    message,
                    details={"modeluri": modeluri, "state": self.state(modeluri).value},
                    suggestion="Unsubscribe first or keep using the open subscription.",
                )
            return listener

        entry = _Entry()
        handlers = ChannelHandlers(
            on_open=lambda: self._on_open(modeluri, entry, listener),
            on_close=lambda code, reason: self._on_close(modeluri, entry, listener, code, reason),
            on_error=lambda error: self._on_error(modeluri, entry, listener, error),
            on_message=lambda data: listener.on_message(modeluri, data),
        )
        address = self.subscription_address(modeluri, options)
        entry.channel = self._channel_factory(address, handlers)
        self._entries[modeluri] = entry
        logger.debug("subscribing to %s via %s", modeluri, address)
        try:
            await entry.channel.open()
        except BaseException:
            logger.info("%s: subscribe aborted before the channel opened", modeluri)
            entry.state = ChannelState.CLOSED
            if self._entries.get(modeluri) is entry:
                del self._entries[modeluri]
            await entry.channel.close()
            raise
        return listener

    async def unsubscribe(self, modeluri: str) -> bool:
        entry = self._entries.pop(modeluri, None)
        if entry is None or entry.channel is None:
            logger.warning("%s: nothing to unsubscribe, no open channel", modeluri)
            return False
        await entry.channel.close()
        return True

    async def send(self, modeluri: str, message: ModelServerMessage | dict[str, Any]) -> bool:
        """Write ``message`` to the channel of ``modeluri``; ``False`` if there is none."""
        entry = self._entries.get(modeluri)
        if entry is None or entry.channel is None or entry.state is ChannelState.CLOSED:
            return False
        wire = message if isinstance(message, ModelServerMessage) else ModelServerMessage.model_validate(message)
        await entry.channel.send(wire.to_json())
        return True

    async def close_all(self) -> None:
        for modeluri in list(self._entries):
            await self.unsubscribe(modeluri)

    def is_subscribed(self, modeluri: str) -> bool:
        return self.state(modeluri) is not ChannelState.CLOSED

    def state(self, modeluri: str) -> ChannelState:
        entry = self._entries.get(modeluri)
        return entry.state if entry is not None else ChannelState.CLOSED

    def subscribed_uris(self) -> list[str]:
        return [uri for uri, entry in self._entries.items() if entry.state is not ChannelState.CLOSED]

    def _on_open(self, modeluri: str, entry: _Entry, listener: SubscriptionListener) -> None:
        entry.state = ChannelState.OPEN
        listener.on_open(modeluri)

    def _on_error(self, modeluri: str, entry: _Entry, listener: SubscriptionListener, error: Any) -> None:
        logger.info("%s: channel error: %s", modeluri, error)
        if entry.state is not ChannelState.CLOSED:
            entry.state = ChannelState.ERROR
        listener.on_error(modeluri, error)

    def _on_close(self, modeluri: str, entry: _Entry, listener: SubscriptionListener, code: int, reason: str) -> None:
        entry.state = ChannelState.CLOSED
        listener.on_close(modeluri, code, reason)
        # a newer subscription for the same uri may already be registered
        if self._entries.get(modeluri) is entry:
            del self._entries[modeluri]
