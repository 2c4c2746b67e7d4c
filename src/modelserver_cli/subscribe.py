"""Notification streaming command."""

from __future__ import annotations

import asyncio
import json

import typer

from modelserver_cli._common import CLIState, get_state, handle_error, open_client
from modelserver_client import ModelServerClient, NotificationListener, SubscriptionOptions, keep_alive_message
from modelserver_client.exceptions import ModelServerError
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


class JsonLinesListener(NotificationListener):
    """Prints every notification as one JSON line; remembers when the channel closed."""

    def __init__(self) -> None:
        self.closed = asyncio.Event()

    def emit(self, notification: Notification) -> None:
        print(json.dumps(notification.to_wire(), default=str, separators=(",", ":")), flush=True)

    def on_open(self, notification: Notification) -> None:
        self.emit(notification)

    def on_close(self, notification: CloseNotification) -> None:
        self.emit(notification)
        self.closed.set()

    def on_error(self, notification: ErrorNotification) -> None:
        self.emit(notification)

    def on_success(self, notification: Notification) -> None:
        self.emit(notification)

    def on_dirty_state_changed(self, notification: DirtyStateNotification) -> None:
        self.emit(notification)

    def on_incremental_update(
        self, notification: IncrementalUpdateNotification | IncrementalUpdateNotificationV2
    ) -> None:
        self.emit(notification)

    def on_full_update(self, notification: FullUpdateNotification) -> None:
        self.emit(notification)

    def on_validation(self, notification: ValidationNotification) -> None:
        self.emit(notification)

    def on_unknown(self, notification: UnknownNotification) -> None:
        self.emit(notification)


async def _keep_alive(client: ModelServerClient, modeluri: str, interval: float, closed: asyncio.Event) -> None:
    while not closed.is_set():
        await asyncio.sleep(interval)
        await client.subscriptions.send(modeluri, keep_alive_message())


def _options(state: CLIState, timeout: int | None, livevalidation: bool) -> SubscriptionOptions:
    defaults = state.config.subscription
    return SubscriptionOptions(
        format=defaults.format,
        timeout=timeout if timeout is not None else defaults.timeout,
        livevalidation=True if livevalidation else defaults.livevalidation,
        error_when_unsuccessful=True,
    )


def subscribe(
    ctx: typer.Context,
    modeluri: str = typer.Argument(..., help="Model uri to observe"),
    timeout: int | None = typer.Option(None, "--timeout", help="Server-side idle timeout in milliseconds"),
    livevalidation: bool = typer.Option(
        False,
        "--livevalidation",
        help="Ask the server to push validation results after every change",
    ),
    keep_alive: float | None = typer.Option(None, "--keep-alive", help="Send a keepAlive message every N seconds"),
) -> None:
    state = get_state(ctx)
    interval = keep_alive if keep_alive is not None else state.config.subscription.keep_alive_seconds
    if interval is not None and interval <= 0:
        raise typer.BadParameter("--keep-alive must be positive")

    async def _run() -> None:
        listener = JsonLinesListener()
        async with open_client(state) as client:
            await client.subscribe(modeluri, listener, _options(state, timeout, livevalidation))
            heartbeat = asyncio.create_task(_keep_alive(client, modeluri, interval, listener.closed)) if interval else None
            try:
                await listener.closed.wait()
            finally:
                if heartbeat is not None:
                    heartbeat.cancel()
                    await asyncio.gather(heartbeat, return_exceptions=True)

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        return
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)
