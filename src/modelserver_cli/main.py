"""Root Typer app and command registration."""

from __future__ import annotations

from pathlib import Path

import typer

from modelserver_cli import models, schema, server, subscribe, validation
from modelserver_cli._common import CLIState, build_typer, configure_logging, load_config, resolve_json_mode

app = build_typer(
    """Model server command-line interface for reading, editing, validating and observing models.

    Examples:

    * `modelserver models uris`
    * `modelserver models get SuperBrewer3000.coffee`
    * `modelserver models edit SuperBrewer3000.coffee patch.json`
    * `modelserver subscribe SuperBrewer3000.coffee --livevalidation`
    """
)

app.add_typer(models.app, name="models")
app.add_typer(server.app, name="server")
app.add_typer(validation.app, name="validation")
app.add_typer(schema.app, name="schema")

app.command("subscribe", help="Stream notifications of one model as JSON lines until interrupted.")(subscribe.subscribe)


@app.callback()
def root(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable JSON only.",
    ),
    config: str | None = typer.Option(
        None,
        "--config",
        help="Path to config.json (default: ~/.config/modelserver/config.json).",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        help="Model server root url, e.g. http://localhost:8081.",
    ),
) -> None:
    config_path = None if config is None else Path(config)
    cfg = load_config(config_path)
    if base_url:
        cfg.server.base_url = base_url
    configure_logging(cfg)
    ctx.obj = CLIState(config=cfg, json_output=resolve_json_mode(json_output, cfg), config_path=config_path)


def run() -> None:
    app()
