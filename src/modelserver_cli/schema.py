"""JSON schema commands."""

from __future__ import annotations

import typer

from modelserver_cli._common import build_typer, client_call, get_state, handle_error, print_output, run_async
from modelserver_client.exceptions import ModelServerError

app = build_typer("Type and UI JSON schemas.")


@app.command("type", help="Show the type schema of a model.")
def type_schema(ctx: typer.Context, modeluri: str = typer.Argument(...)) -> None:
    state = get_state(ctx)
    try:
        data = run_async(client_call(state, lambda client: client.get_type_schema(modeluri)))
        print_output(data, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("ui", help="Show a UI schema by name.")
def ui_schema(ctx: typer.Context, name: str = typer.Argument(..., help="Schema name, e.g. controlunit")) -> None:
    state = get_state(ctx)
    try:
        data = run_async(client_call(state, lambda client: client.get_ui_schema(name)))
        print_output(data, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)
