"""Validation commands."""

from __future__ import annotations

import typer

from modelserver_cli._common import build_typer, client_call, get_state, handle_error, print_output, run_async
from modelserver_client.exceptions import ModelServerError
from modelserver_client.models.diagnostic import Diagnostic, collect_leaves, get_severity_label

app = build_typer("Validate models and inspect their constraints.")


def _leaf_rows(diagnostic: Diagnostic) -> list[dict[str, object]]:
    return [
        {
            "severity": get_severity_label(leaf),
            "message": leaf.message,
            "source": leaf.source,
            "code": leaf.code,
            "id": leaf.id,
        }
        for leaf in collect_leaves(diagnostic)
    ]


@app.command("run", help="Validate a model and print its diagnostic tree (or only its problems with --leaves).")
def run(
    ctx: typer.Context,
    modeluri: str = typer.Argument(...),
    leaves: bool = typer.Option(False, "--leaves", help="Print only the problem leaves"),
) -> None:
    state = get_state(ctx)
    try:
        diagnostic = run_async(client_call(state, lambda client: client.validate(modeluri)))
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)
        return
    if leaves:
        print_output(_leaf_rows(diagnostic), json_output=state.json_output, title=f"{modeluri}: {diagnostic.label}")
    else:
        print_output(diagnostic.model_dump(mode="json"), json_output=state.json_output)


@app.command("constraints", help="Show the validation constraints of a model.")
def constraints(ctx: typer.Context, modeluri: str = typer.Argument(...)) -> None:
    state = get_state(ctx)
    try:
        data = run_async(client_call(state, lambda client: client.get_validation_constraints(modeluri)))
        print_output(data, json_output=state.json_output)
    except ModelServerError as exc:
        handle_error(exc, json_output=state.json_output)
