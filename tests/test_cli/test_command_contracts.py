from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from typer.testing import CliRunner

from modelserver_cli import _common
from modelserver_cli.main import app
from modelserver_client import ModelServerClient
from modelserver_client.transport import ChannelHandlers, HttpxRequestExecutor

BASE_URL = "http://localhost:8081/api/v2/"
MODEL_URI = "SuperBrewer3000.coffee"


def _use_server(
    monkeypatch: pytest.MonkeyPatch,
    responder: Callable[[httpx.Request], dict[str, Any]],
    channel_factory: Any = None,
) -> list[httpx.Request]:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=responder(request))

    def factory(config: Any) -> ModelServerClient:
        executor = HttpxRequestExecutor(BASE_URL, transport=httpx.MockTransport(handler))
        return ModelServerClient(BASE_URL, executor=executor, channel_factory=channel_factory)

    monkeypatch.setattr(_common, "create_client", factory)
    return requests


def _invoke(*args: str) -> Any:
    return CliRunner().invoke(app, ["--json", *args])


def test_models_uris(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _use_server(monkeypatch, lambda request: {"type": "success", "data": [MODEL_URI, "Coffee.ecore"]})

    result = _invoke("models", "uris")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [MODEL_URI, "Coffee.ecore"]
    assert requests[0].url.path == "/api/v2/modeluris"


def test_models_get_with_format(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _use_server(monkeypatch, lambda request: {"type": "success", "data": "<coffee:Machine/>"})

    result = _invoke("models", "get", MODEL_URI, "--format", "xmi")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == "<coffee:Machine/>"
    assert requests[0].url.params["format"] == "xmi"


def test_models_list_renders_records(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_server(monkeypatch, lambda request: {"type": "success", "data": {MODEL_URI: {"name": "Super Brewer"}}})

    result = _invoke("models", "list")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [{"modelUri": MODEL_URI, "content": {"name": "Super Brewer"}}]


def test_models_element_requires_exactly_one_selector(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_server(monkeypatch, lambda request: {"type": "success", "data": {}})

    result = _invoke("models", "element", MODEL_URI)

    assert result.exit_code == 2


def test_models_edit_sends_patch_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    patch = [{"op": "replace", "path": f"{MODEL_URI}#//@workflows.0/name", "value": "Renamed"}]
    patch_file = tmp_path / "patch.json"
    patch_file.write_text(json.dumps(patch), encoding="utf-8")
    requests = _use_server(
        monkeypatch,
        lambda request: {
            "type": "success",
            "data": {"patch": [{"op": "replace", "path": "/workflows/0/name", "value": "Renamed"}]},
        },
    )

    result = _invoke("models", "edit", MODEL_URI, str(patch_file))

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "success": True,
        "operations": [{"op": "replace", "path": "/workflows/0/name", "value": "Renamed"}],
    }
    body = json.loads(requests[0].content)
    assert body == {"data": {"type": "modelserver.patch", "data": patch}}


def test_server_error_exits_with_error_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_server(monkeypatch, lambda request: {"type": "error", "data": "Could not load model"})

    result = _invoke("models", "get", "Missing.coffee")

    assert result.exit_code == 5
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "SERVER_ERROR"
    assert payload["error"]["message"] == "Could not load model"


def test_validation_leaves(monkeypatch: pytest.MonkeyPatch) -> None:
    diagnostic = {
        "severity": 4,
        "message": "Diagnosis of SuperBrewer3000",
        "source": "org.eclipse.emf.ecore",
        "code": 0,
        "data": [],
        "children": [
            {
                "severity": 4,
                "message": "The feature 'name' has no value",
                "source": "org.eclipse.emf.ecore",
                "code": 1,
                "data": [],
                "children": [],
                "id": "//@children.0",
            }
        ],
        "id": "/",
    }
    _use_server(monkeypatch, lambda request: {"type": "success", "data": diagnostic})

    result = _invoke("validation", "run", MODEL_URI, "--leaves")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [
        {
            "severity": "ERROR",
            "message": "The feature 'name' has no value",
            "source": "org.eclipse.emf.ecore",
            "code": 1,
            "id": "//@children.0",
        }
    ]


def test_server_configure(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _use_server(monkeypatch, lambda request: {"type": "success"})

    result = _invoke("server", "configure", "--workspace-root", "file:///workspace")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["success"] is True
    assert json.loads(requests[0].content) == {"workspaceRoot": "file:///workspace", "uiSchemaFolder": None}


class _ScriptedChannel:
    def __init__(self, address: str, handlers: ChannelHandlers) -> None:
        self.address = address
        self.handlers = handlers

    async def open(self) -> None:
        self.handlers.on_open()
        self.handlers.on_message(json.dumps({"type": "dirtyState", "data": True}))
        self.handlers.on_close(1006, "")

    async def send(self, data: str) -> None:
        return None

    async def close(self) -> None:
        return None


def test_subscribe_streams_json_lines_until_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    channels: list[_ScriptedChannel] = []

    def channel_factory(address: str, handlers: ChannelHandlers) -> _ScriptedChannel:
        channels.append(_ScriptedChannel(address, handlers))
        return channels[-1]

    _use_server(monkeypatch, lambda request: {"type": "success"}, channel_factory)

    result = _invoke("subscribe", MODEL_URI, "--livevalidation")

    assert result.exit_code == 0
    lines = [json.loads(line) for line in result.stdout.splitlines()]
    assert [line["type"] for line in lines] == ["open", "dirtyState", "close"]
    assert lines[1]["is_dirty"] is True
    assert lines[2]["reason"] == "Server shutdown"
    assert "livevalidation=true" in channels[0].address


def test_subscribe_rejects_non_positive_keep_alive(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_server(monkeypatch, lambda request: {"type": "success"})

    result = _invoke("subscribe", MODEL_URI, "--keep-alive", "0")

    assert result.exit_code == 2


class _DroppingChannel(_ScriptedChannel):
    """Opens quietly; the first write fails because the server went away."""

    def __init__(self, address: str, handlers: ChannelHandlers) -> None:
        super().__init__(address, handlers)
        self.sent: list[dict[str, Any]] = []

    async def open(self) -> None:
        self.handlers.on_open()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))
        self.handlers.on_close(1006, "")
        raise ConnectionResetError("connection dropped")


def test_subscribe_keep_alive_failure_ends_stream_cleanly(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    channels: list[_DroppingChannel] = []

    def channel_factory(address: str, handlers: ChannelHandlers) -> _DroppingChannel:
        channels.append(_DroppingChannel(address, handlers))
        return channels[-1]

    _use_server(monkeypatch, lambda request: {"type": "success"}, channel_factory)

    result = _invoke("subscribe", MODEL_URI, "--keep-alive", "0.01")

    assert result.exit_code == 0
    lines = [json.loads(line) for line in result.stdout.splitlines()]
    assert [line["type"] for line in lines] == ["open", "close"]
    assert [message["type"] for message in channels[0].sent] == ["keepAlive"]
    assert "exception was never retrieved" not in caplog.text
