"""Shared CLI context, rendering, and client helpers."""

from __future__ import annotations

import asyncio
from difflib import get_close_matches
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

import click
import typer
from typer.core import TyperGroup
from rich.console import Console
from rich.table import Table

from modelserver_client import ModelServerClient, create_client
from modelserver_client.config import AppConfig, load_config
from modelserver_client.exceptions import ErrorCode, ModelServerError

HELP_CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 110,
}


@dataclass
class CLIState:
    config: AppConfig
    json_output: bool
    config_path: Path | None = None


class SuggestionGroup(TyperGroup):
    """Click command group that appends close-match suggestions for unknown commands."""

    def resolve_command(
        self,
        ctx: click.Context,
        args: list[str],
    ) -> tuple[str | None, click.Command | None, list[str]]:
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as exc:
            if args:
                attempted = args[0]
                matches = get_close_matches(attempted, list(self.list_commands(ctx)), n=3, cutoff=0.45)
                if matches:
                    exc.message = f"{exc.message}\n\nDid you mean: {', '.join(matches)}"
            raise


def build_typer(help_text: str) -> typer.Typer:
    """Create Typer apps with consistent help ergonomics across command groups."""

    return typer.Typer(
        help=help_text,
        cls=SuggestionGroup,
        no_args_is_help=True,
        rich_markup_mode="markdown",
        context_settings=HELP_CONTEXT_SETTINGS,
    )


def resolve_json_mode(json_flag: bool, cfg: AppConfig) -> bool:
    if json_flag:
        return True
    if not sys.stdout.isatty():
        return True
    return cfg.output.default_format.lower() == "json"


def configure_logging(cfg: AppConfig) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if cfg.logging.log_file is not None:
        cfg.logging.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(cfg.logging.log_file))
    logging.basicConfig(
        level=getattr(logging, cfg.logging.level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


def get_state(ctx: typer.Context) -> CLIState:
    value = ctx.obj
    if not isinstance(value, CLIState):
        raise RuntimeError("CLI context not initialized")
    return value


def run_async(awaitable: Any) -> Any:
    return asyncio.run(awaitable)


async def client_call(state: CLIState, operation: Callable[[ModelServerClient], Awaitable[Any]]) -> Any:
    async with open_client(state) as client:
        return await operation(client)


def print_output(data: Any, *, json_output: bool, title: str | None = None) -> None:
    if json_output:
        print(json.dumps(data, default=str, separators=(",", ":")))
        return

    console = Console()

    if isinstance(data, str):
        console.print(data, markup=False, highlight=False)
        return

    if isinstance(data, list):
        if not data:
            console.print("(empty)")
            return
        if all(isinstance(item, dict) for item in data):
            keys: list[str] = []
            seen: set[str] = set()
            for item in data:
                for key in item.keys():
                    if key in seen:
                        continue
                    seen.add(key)
                    keys.append(key)
            table = Table(title=title)
            for key in keys:
                table.add_column(str(key))
            for item in data:
                table.add_row(*[str(item.get(k, "")) for k in keys])
            console.print(table)
            return

    if isinstance(data, dict):
        if all(not isinstance(v, (dict, list)) for v in data.values()):
            table = Table(title=title)
            table.add_column("Key")
            table.add_column("Value")
            for key, value in data.items():
                table.add_row(str(key), str(value))
            console.print(table)
            return

    console.print_json(json.dumps(data, default=str, indent=2))


def read_payload(path: Path) -> Any:
    """Load a JSON document from ``path``, or return the raw text for XML/XMI files."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"cannot read {path}: {exc.strerror}") from exc
    if path.suffix.lower() in {".xml", ".xmi"}:
        return text
    try:
        return json.loads(text)
    except ValueError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def handle_error(exc: ModelServerError, *, json_output: bool) -> None:
    suggestion = exc.suggestion or _default_suggestion(exc.code)
    error_payload = exc.to_error_payload()
    if suggestion and "suggestion" not in error_payload:
        error_payload["suggestion"] = suggestion
    payload = {"ok": False, "error": error_payload}
    if json_output:
        print(json.dumps(payload, default=str, separators=(",", ":")))
    else:
        console = Console()
        console.print(f"[red]{exc.code.value}[/red]: {exc.message}")
        if exc.details:
            console.print_json(json.dumps(exc.details, default=str, indent=2))
        if suggestion:
            console.print(f"Suggestion: {suggestion}")
    raise typer.Exit(code=exc.exit_code)


def _default_suggestion(code: ErrorCode) -> str | None:
    suggestions = {
        ErrorCode.TRANSPORT_ERROR: "Start the model server or point `--base-url` at a running instance.",
        ErrorCode.INVALID_ARGS: "Run `modelserver --help` or `<command> --help` for valid usage.",
        ErrorCode.TIMEOUT: "Retry the command or increase `server.request_timeout_seconds` in config.",
        ErrorCode.DECODE_ERROR: "Check that `server.api_version` matches the model server you are talking to.",
    }
    return suggestions.get(code)


def open_client(state: CLIState) -> ModelServerClient:
    return create_client(state.config)
