"""Server liveness and configuration commands."""

from __future__ import annotations

import typer

from modelserver_cli._common import build_typer, client_call, get_state, handle_error, print_output, run_async
from modelserver_client import ServerConfiguration
from modelserver_client.exceptions import ModelServerError

app = build_typer("Model server liveness and workspace configuration.")


@app.command("ping", help="Check that the model server answers.")
def ping(ctx: typer.Context) -> None:
    state = get_state(ctx)
    try:
        alive = run_async(client_call(state, lambda client: client.ping()))
        print_output({"base_url": state.config.server.api_url, "alive": alive}, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("configure", help="Point the server at a workspace root and an optional UI schema folder.")
def configure(
    ctx: typer.Context,
    workspace_root: str = typer.Option(..., "--workspace-root", help="Workspace root uri"),
    ui_schema_folder: str | None = typer.Option(None, "--ui-schema-folder", help="UI schema folder uri"),
) -> None:
    state = get_state(ctx)
    configuration = ServerConfiguration(workspace_root=workspace_root, ui_schema_folder=ui_schema_folder)
    try:
        success = run_async(client_call(state, lambda client: client.configure_server(configuration)))
        print_output({"success": success, **configuration.model_dump()}, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)
