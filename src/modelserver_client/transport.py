"""Transport primitives: a request executor over httpx and a message channel over websockets.

Both are replaceable. The client only needs something that satisfies
:class:`RequestExecutor`, and the subscription manager only needs a
:data:`ChannelFactory`; tests plug in ``httpx.MockTransport`` and in-memory
channels respectively.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import httpx
import websockets
from websockets.exceptions import ConnectionClosedError, WebSocketException

from modelserver_client.exceptions import DecodeError, ErrorCode, ModelServerError
from modelserver_client.message import is_message, parse_message, server_error

logger = logging.getLogger(__name__)

ABNORMAL_CLOSURE = 1006


class RequestExecutor(Protocol):
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any | None = None,
    ) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...


class HttpxRequestExecutor:
    """Executes requests relative to the API root and returns the decoded envelope."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds, transport=transport)

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any | None = None,
    ) -> dict[str, Any]:
        query = {key: value for key, value in (params or {}).items() if value is not None}
        logger.debug("%s %s params=%s", method, path, query)
        try:
            response = await self._client.request(method, path, params=query, json=body)
        except httpx.TimeoutException as exc:
            raise ModelServerError(
                ErrorCode.TIMEOUT,
                "request timed out waiting for model server response",
                details={"path": path, "timeout_seconds": self._timeout},
                suggestion="Retry or increase server.request_timeout_seconds in config.",
            ) from exc
        except httpx.RequestError as exc:
            logger.debug("transport failure on %s %s: %s", method, path, exc)
            raise ModelServerError(
                ErrorCode.TRANSPORT_ERROR,
                str(exc) or f"cannot reach model server at {self.base_url}",
                details={"path": path, "base_url": self.base_url},
                suggestion="Check that the model server is running and server.base_url is correct.",
            ) from exc

        payload = _json_body(response)
        if response.is_success:
            if not is_message(payload):
                raise DecodeError("ModelServerMessage", payload if payload is not None else response.text)
            return payload
        if is_message(payload):
            raise server_error(parse_message(payload), status_code=response.status_code, path=path)
        raise ModelServerError(
            ErrorCode.HTTP_ERROR,
            f"model server returned HTTP {response.status_code}",
            details={"status_code": response.status_code, "path": path, "body": response.text[:500]},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


@dataclass
class ChannelHandlers:
    """Lifecycle hooks a channel invokes, in arrival order."""

    on_open: Callable[[], None]
    on_close: Callable[[int, str], None]
    on_error: Callable[[Any], None]
    on_message: Callable[[str | bytes], None]


class Channel(Protocol):
    async def open(self) -> None: ...

    async def send(self, data: str) -> None: ...

    async def close(self) -> None: ...


ChannelFactory = Callable[[str, ChannelHandlers], Channel]


class WebSocketChannel:
    """A subscription channel on a websocket connection.

    ``open`` never raises: a failed connection is reported through
    ``on_error`` followed by ``on_close``. Inbound frames are delivered by a
    background reader task, one at a time.
    """

    def __init__(self, address: str, handlers: ChannelHandlers, *, open_timeout: float | None = 10.0) -> None:
        self.address = address
        self._handlers = handlers
        self._open_timeout = open_timeout
        self._connection: Any | None = None
        self._reader: asyncio.Task[None] | None = None

    async def open(self) -> None:
        try:
            self._connection = await websockets.connect(self.address, open_timeout=self._open_timeout)
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            logger.info("cannot open channel %s: %s", self.address, exc)
            self._dispatch(self._handlers.on_error, exc)
            self._dispatch(self._handlers.on_close, ABNORMAL_CLOSURE, str(exc))
            return
        logger.info("channel open: %s", self.address)
        self._dispatch(self._handlers.on_open)
        self._reader = asyncio.create_task(self._read(self._connection))

    async def send(self, data: str) -> None:
        if self._connection is None:
            raise ModelServerError(ErrorCode.NOT_SUBSCRIBED, "channel is not open", details={"address": self.address})
        await self._connection.send(data)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
        reader = self._reader
        if reader is not None and reader is not asyncio.current_task():
            await reader

    async def _read(self, connection: Any) -> None:
        try:
            async for frame in connection:
                self._dispatch(self._handlers.on_message, frame)
        except ConnectionClosedError as exc:
            # abnormal closure; surfaced through on_close below
            logger.debug("channel %s closed abnormally: %s", self.address, exc)
        except OSError as exc:
            self._dispatch(self._handlers.on_error, exc)
        finally:
            code = connection.close_code if connection.close_code is not None else ABNORMAL_CLOSURE
            reason = connection.close_reason or ""
            logger.info("channel closed: %s code=%s", self.address, code)
            self._connection = None
            self._dispatch(self._handlers.on_close, code, reason)

    def _dispatch(self, handler: Callable[..., None], *args: Any) -> None:
        try:
            handler(*args)
        except Exception:
            logger.exception("subscription handler failed for %s", self.address)


def websocket_channel_factory(address: str, handlers: ChannelHandlers) -> Channel:
    return WebSocketChannel(address, handlers)
