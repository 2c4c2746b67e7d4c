"""Model CRUD, persistence, and edit commands."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import typer

from modelserver_cli._common import build_typer, client_call, get_state, handle_error, print_output, read_payload, run_async
from modelserver_client import AsFormat, ModelUpdateResult
from modelserver_client.exceptions import ModelServerError
from modelserver_client.models.command import command_from_wire, is_command

app = build_typer("Read, write, persist and edit models on the server.")


class WireFormat(str, Enum):
    JSON = "json"
    JSON_V2 = "json-v2"
    XML = "xml"
    XMI = "xmi"


def _selector(fmt: WireFormat | None) -> AsFormat | None:
    return AsFormat(fmt.value) if fmt else None


def _update_payload(result: ModelUpdateResult) -> dict[str, Any]:
    operations = None if result.operations is None else [op.to_wire() for op in result.operations]
    return {"success": result.success, "operations": operations}


@app.command("list", help="List every model of the workspace with its content.")
def list_models(
    ctx: typer.Context,
    fmt: WireFormat | None = typer.Option(None, "--format", case_sensitive=False),
) -> None:
    state = get_state(ctx)
    try:
        models = run_async(client_call(state, lambda client: client.get_all(_selector(fmt))))
        rows = [model.model_dump(mode="json", by_alias=True) for model in models]
        print_output(rows, json_output=state.json_output, title="Models")
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("uris", help="List the uris of all models in the workspace.")
def uris(ctx: typer.Context) -> None:
    state = get_state(ctx)
    try:
        data = run_async(client_call(state, lambda client: client.get_model_uris()))
        print_output(data, json_output=state.json_output, title="Model URIs")
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("get", help="Fetch one model.")
def get(
    ctx: typer.Context,
    modeluri: str = typer.Argument(..., help="Model uri, e.g. SuperBrewer3000.coffee"),
    fmt: WireFormat | None = typer.Option(None, "--format", case_sensitive=False),
) -> None:
    state = get_state(ctx)
    try:
        data = run_async(client_call(state, lambda client: client.get(modeluri, _selector(fmt))))
        print_output(data, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("element", help="Fetch one model element by id or by name.")
def element(
    ctx: typer.Context,
    modeluri: str = typer.Argument(...),
    element_id: str | None = typer.Option(None, "--id", help="Element id"),
    element_name: str | None = typer.Option(None, "--name", help="Element name"),
    fmt: WireFormat | None = typer.Option(None, "--format", case_sensitive=False),
) -> None:
    state = get_state(ctx)
    if (element_id is None) == (element_name is None):
        raise typer.BadParameter("pass exactly one of --id or --name")

    async def _fetch(client: Any) -> Any:
        if element_id is not None:
            return await client.get_element_by_id(modeluri, element_id, _selector(fmt))
        return await client.get_element_by_name(modeluri, element_name, _selector(fmt))

    try:
        print_output(run_async(client_call(state, _fetch)), json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("create", help="Create a model from a JSON (or XML/XMI) file.")
def create(
    ctx: typer.Context,
    modeluri: str = typer.Argument(...),
    file: Path = typer.Argument(..., help="Model content"),
    fmt: WireFormat | None = typer.Option(None, "--format", case_sensitive=False),
) -> None:
    state = get_state(ctx)
    payload = read_payload(file)
    try:
        data = run_async(client_call(state, lambda client: client.create(modeluri, payload, _selector(fmt))))
        print_output(data, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("update", help="Replace the content of a model from a JSON (or XML/XMI) file.")
def update(
    ctx: typer.Context,
    modeluri: str = typer.Argument(...),
    file: Path = typer.Argument(..., help="Model content"),
    fmt: WireFormat | None = typer.Option(None, "--format", case_sensitive=False),
) -> None:
    state = get_state(ctx)
    payload = read_payload(file)
    try:
        data = run_async(client_call(state, lambda client: client.update(modeluri, payload, _selector(fmt))))
        print_output(data, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("delete", help="Delete a model.")
def delete(ctx: typer.Context, modeluri: str = typer.Argument(...)) -> None:
    state = get_state(ctx)
    try:
        success = run_async(client_call(state, lambda client: client.delete(modeluri)))
        print_output({"modeluri": modeluri, "success": success}, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("close", help="Unload a model, discarding unsaved changes.")
def close(ctx: typer.Context, modeluri: str = typer.Argument(...)) -> None:
    state = get_state(ctx)
    try:
        success = run_async(client_call(state, lambda client: client.close(modeluri)))
        print_output({"modeluri": modeluri, "success": success}, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("save", help="Save a model.")
def save(ctx: typer.Context, modeluri: str = typer.Argument(...)) -> None:
    state = get_state(ctx)
    try:
        success = run_async(client_call(state, lambda client: client.save(modeluri)))
        print_output({"modeluri": modeluri, "success": success}, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("save-all", help="Save every loaded model.")
def save_all(ctx: typer.Context) -> None:
    state = get_state(ctx)
    try:
        success = run_async(client_call(state, lambda client: client.save_all()))
        print_output({"success": success}, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("edit", help="Apply a patch (JSON list of operations) or a command (JSON object) to a model.")
def edit(
    ctx: typer.Context,
    modeluri: str = typer.Argument(...),
    patch_file: Path = typer.Argument(..., help="Patch operations or command"),
) -> None:
    state = get_state(ctx)
    payload = read_payload(patch_file)
    if is_command(payload):
        payload = command_from_wire(payload)
    try:
        result = run_async(client_call(state, lambda client: client.edit(modeluri, payload)))
        print_output(_update_payload(result), json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("undo", help="Undo the last edit of a model.")
def undo(ctx: typer.Context, modeluri: str = typer.Argument(...)) -> None:
    state = get_state(ctx)
    try:
        result = run_async(client_call(state, lambda client: client.undo(modeluri)))
        print_output(_update_payload(result), json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)


@app.command("redo", help="Redo the last undone edit of a model.")
def redo(ctx: typer.Context, modeluri: str = typer.Argument(...)) -> None:
    state = get_state(ctx)
    try:
        result = run_async(client_call(state, lambda client: client.redo(modeluri)))
        print_output(_update_payload(result), json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)
