from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from modelserver_client import (
    AsFormat,
    AsGuard,
    ModelServerClient,
    ModelServerClientV1,
    ServerConfiguration,
    create_client,
)
from modelserver_client.config import AppConfig
from modelserver_client.exceptions import DecodeError, ErrorCode, ModelServerError
from modelserver_client.models.command import SetCommand
from modelserver_client.models.diagnostic import WARNING
from modelserver_client.patch import PatchOperation
from modelserver_client.transport import HttpxRequestExecutor

BASE_URL = "http://localhost:8081/api/v2/"
MODEL_URI = "SuperBrewer3000.coffee"


class _Recorder:
    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_body(self) -> Any:
        return json.loads(self.last.content)


def _envelope(data: Any = None, kind: str = "success", status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    payload: dict[str, Any] = {"type": kind}
    if data is not None:
        payload["data"] = data
    return lambda request: httpx.Response(status, json=payload)


def _client(
    responder: Callable[[httpx.Request], httpx.Response],
    client_cls: type[ModelServerClient] = ModelServerClient,
    base_url: str = BASE_URL,
) -> tuple[ModelServerClient, _Recorder]:
    recorder = _Recorder(responder)
    executor = HttpxRequestExecutor(base_url, transport=httpx.MockTransport(recorder))
    return client_cls(base_url, executor=executor), recorder


@pytest.mark.asyncio
async def test_get_requests_model_in_default_format(coffee_model: dict) -> None:
    client, recorder = _client(_envelope(coffee_model))
    async with client:
        model = await client.get(MODEL_URI)

    assert model == coffee_model
    assert recorder.last.method == "GET"
    assert recorder.last.url.path == "/api/v2/models"
    assert recorder.last.url.params["modeluri"] == MODEL_URI
    assert recorder.last.url.params["format"] == "json-v2"


@pytest.mark.asyncio
async def test_get_with_format_returns_string() -> None:
    client, recorder = _client(_envelope("<coffee:Machine/>"))
    async with client:
        model = await client.get(MODEL_URI, AsFormat("xmi"))

    assert model == "<coffee:Machine/>"
    assert recorder.last.url.params["format"] == "xmi"


@pytest.mark.asyncio
async def test_get_with_guard_rejects_mismatching_payload() -> None:
    client, _ = _client(_envelope({"name": "Super Brewer 3000"}))
    async with client:
        with pytest.raises(DecodeError) as exc_info:
            await client.get(MODEL_URI, AsGuard(lambda value: "$type" in value, "Machine"))
    assert exc_info.value.expected == "Machine"


@pytest.mark.asyncio
async def test_get_all_and_model_uris(coffee_model: dict) -> None:
    client, recorder = _client(_envelope({MODEL_URI: coffee_model, "Coffee.ecore": {"name": "coffee"}}))
    async with client:
        models = await client.get_all()
    assert [model.model_uri for model in models] == [MODEL_URI, "Coffee.ecore"]
    assert "modeluri" not in recorder.last.url.params

    client, recorder = _client(_envelope([MODEL_URI, "Coffee.ecore"]))
    async with client:
        assert await client.get_model_uris() == [MODEL_URI, "Coffee.ecore"]
    assert recorder.last.url.path == "/api/v2/modeluris"


@pytest.mark.asyncio
async def test_element_lookups_use_modelelement_endpoint() -> None:
    client, recorder = _client(_envelope({"$type": "BrewingUnit", "$id": "//@children.0"}))
    async with client:
        await client.get_element_by_id(MODEL_URI, "//@children.0")
        assert recorder.last.url.params["elementid"] == "//@children.0"
        await client.get_element_by_name(MODEL_URI, "Brewer")
        assert recorder.last.url.params["elementname"] == "Brewer"
    assert recorder.last.url.path == "/api/v2/modelelement"


@pytest.mark.asyncio
async def test_create_and_update_encode_body() -> None:
    client, recorder = _client(_envelope({"$type": "Machine"}))
    async with client:
        await client.create(MODEL_URI, {"eClass": "Machine"})
        assert recorder.last.method == "POST"
        assert recorder.last_body() == {"data": {"$type": "Machine"}}

        await client.update(MODEL_URI, "<machine/>", AsFormat("xml"))
        assert recorder.last.method == "PUT"
        assert recorder.last_body() == {"data": "<machine/>"}
        assert recorder.last.url.params["format"] == "xml"


@pytest.mark.asyncio
async def test_boolean_operations_report_success() -> None:
    client, recorder = _client(_envelope({"message": "ok"}))
    async with client:
        assert await client.delete(MODEL_URI) is True
        assert recorder.last.method == "DELETE"
        assert await client.close(MODEL_URI) is True
        assert recorder.last.url.path == "/api/v2/close"
        assert await client.save(MODEL_URI) is True
        assert recorder.last.url.path == "/api/v2/save"
        assert await client.save_all() is True
        assert recorder.last.url.path == "/api/v2/saveall"
        assert await client.ping() is True
        assert recorder.last.url.path == "/api/v2/server/ping"

    client, _ = _client(_envelope(kind="warning"))
    async with client:
        assert await client.save(MODEL_URI) is False


@pytest.mark.asyncio
async def test_configure_server_sends_aliases() -> None:
    client, recorder = _client(_envelope())
    async with client:
        configuration = ServerConfiguration(workspace_root="file:///workspace", ui_schema_folder="file:///ui")
        assert await client.configure_server(configuration) is True
    assert recorder.last.method == "PUT"
    assert recorder.last_body() == {"workspaceRoot": "file:///workspace", "uiSchemaFolder": "file:///ui"}


@pytest.mark.asyncio
async def test_validation_and_schemas() -> None:
    diagnostic = {
        "severity": WARNING,
        "message": "Diagnosis of SuperBrewer3000",
        "source": "org.eclipse.emf.ecore",
        "code": 0,
        "data": [],
        "children": [],
        "id": "/",
    }
    client, recorder = _client(_envelope(diagnostic))
    async with client:
        result = await client.validate(MODEL_URI)
    assert result.label == "WARNING"
    assert recorder.last.url.path == "/api/v2/validation"

    client, recorder = _client(_envelope({"type": "object"}))
    async with client:
        schema = await client.get_type_schema(MODEL_URI)
        assert json.loads(schema) == {"type": "object"}
        await client.get_ui_schema("controlunit")
        assert recorder.last.url.params["schemaname"] == "controlunit"
        await client.get_validation_constraints(MODEL_URI)
        assert recorder.last.url.path == "/api/v2/validation/constraints"


@pytest.mark.asyncio
async def test_edit_with_patch_returns_replayable_result() -> None:
    server_patch = [{"op": "replace", "path": "/name", "value": "Foo"}]
    client, recorder = _client(_envelope({"message": "Model was successfully updated.", "patch": server_patch}))
    operation = PatchOperation(op="replace", path=f"{MODEL_URI}#/name", value="Foo")
    async with client:
        result = await client.edit(MODEL_URI, operation)

    assert recorder.last.method == "PATCH"
    assert recorder.last.url.path == "/api/v2/models"
    assert recorder.last_body() == {
        "data": {"type": "modelserver.patch", "data": [{"op": "replace", "path": f"{MODEL_URI}#/name", "value": "Foo"}]}
    }
    assert result.success
    assert result.patch({"name": "Bar"}) == {"name": "Foo"}


@pytest.mark.asyncio
async def test_edit_with_command_sends_emf_command() -> None:
    client, recorder = _client(_envelope({"message": "ok"}))
    command = SetCommand.build({"eClass": "Machine", "$ref": f"{MODEL_URI}#/"}, "name", ["Foo"])
    async with client:
        result = await client.edit(MODEL_URI, command)

    body = recorder.last_body()
    assert body["data"]["type"] == "modelserver.emfcommand"
    assert body["data"]["data"]["type"] == "set"
    assert result.success and result.patch is None


@pytest.mark.asyncio
async def test_empty_edit_sends_nothing() -> None:
    client, recorder = _client(_envelope())
    async with client:
        result = await client.edit(MODEL_URI, [])
    assert recorder.requests == []
    assert result.success


@pytest.mark.asyncio
async def test_undo_and_redo_decode_update_result() -> None:
    client, recorder = _client(_envelope({"patch": [{"op": "replace", "path": "/name", "value": "Bar"}]}))
    async with client:
        undone = await client.undo(MODEL_URI)
        assert recorder.last.url.path == "/api/v2/undo"
        await client.redo(MODEL_URI)
        assert recorder.last.url.path == "/api/v2/redo"
    assert undone.patch({"name": "Foo"}) == {"name": "Bar"}


@pytest.mark.asyncio
async def test_error_envelope_raises_server_error() -> None:
    client, _ = _client(_envelope({"message": "Model not found"}, kind="error"))
    async with client:
        with pytest.raises(ModelServerError) as exc_info:
            await client.get("Missing.coffee")
    assert exc_info.value.code is ErrorCode.SERVER_ERROR
    assert exc_info.value.message == "Model not found"
    assert exc_info.value.exit_code == 5


@pytest.mark.asyncio
async def test_http_error_with_envelope_keeps_server_message() -> None:
    client, _ = _client(_envelope("Model not found", kind="error", status=404))
    async with client:
        with pytest.raises(ModelServerError) as exc_info:
            await client.get("Missing.coffee")
    assert exc_info.value.code is ErrorCode.SERVER_ERROR
    assert exc_info.value.details["status_code"] == 404


@pytest.mark.asyncio
async def test_http_error_without_envelope() -> None:
    client, _ = _client(lambda request: httpx.Response(502, text="bad gateway"))
    async with client:
        with pytest.raises(ModelServerError) as exc_info:
            await client.ping()
    assert exc_info.value.code is ErrorCode.HTTP_ERROR
    assert exc_info.value.details["body"] == "bad gateway"


@pytest.mark.asyncio
async def test_non_envelope_success_is_a_decode_error() -> None:
    client, _ = _client(lambda request: httpx.Response(200, json=["not", "an", "envelope"]))
    async with client:
        with pytest.raises(DecodeError):
            await client.get_model_uris()


@pytest.mark.asyncio
async def test_transport_failures_are_typed() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def stall(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client, _ = _client(refuse)
    async with client:
        with pytest.raises(ModelServerError) as exc_info:
            await client.ping()
    assert exc_info.value.code is ErrorCode.TRANSPORT_ERROR
    assert exc_info.value.suggestion

    client, _ = _client(stall)
    async with client:
        with pytest.raises(ModelServerError) as exc_info:
            await client.ping()
    assert exc_info.value.code is ErrorCode.TIMEOUT


@pytest.mark.asyncio
async def test_send_without_subscription() -> None:
    client, _ = _client(_envelope())
    async with client:
        with pytest.raises(ModelServerError) as exc_info:
            await client.send(MODEL_URI, {"type": "keepAlive"})
    assert exc_info.value.code is ErrorCode.NOT_SUBSCRIBED

    v1, _ = _client(_envelope(), ModelServerClientV1, "http://localhost:8081/api/v1/")
    async with v1:
        assert await v1.send(MODEL_URI, {"type": "keepAlive"}) is False


@pytest.mark.asyncio
async def test_v1_edit_sends_command_to_edit_endpoint() -> None:
    client, recorder = _client(
        _envelope({"patch": [{"op": "replace", "path": "/name", "value": "Foo"}]}),
        ModelServerClientV1,
        "http://localhost:8081/api/v1/",
    )
    command = SetCommand.build({"eClass": "Machine", "$ref": f"{MODEL_URI}#/"}, "name", ["Foo"])
    async with client:
        result = await client.edit(MODEL_URI, command)
        assert recorder.last.url.path == "/api/v1/edit"
        assert recorder.last.url.params["format"] == "json"
        assert recorder.last_body()["data"]["type"] == "set"
        assert result.success and result.patch is None

        with pytest.raises(ModelServerError) as exc_info:
            await client.edit(MODEL_URI, PatchOperation(op="remove", path="/name"))
        assert exc_info.value.code is ErrorCode.INVALID_ARGS

        undone = await client.undo(MODEL_URI)
        assert undone.success and undone.patch is None


def test_create_client_follows_configured_api_version() -> None:
    v1 = create_client(AppConfig.model_validate({"server": {"api_version": "v1", "base_url": "http://models:9000"}}))
    assert isinstance(v1, ModelServerClientV1)
    assert v1.base_url == "http://models:9000/api/v1/"
    assert v1.default_format == "json"

    v2 = create_client(AppConfig())
    assert type(v2) is ModelServerClient
    assert v2.default_format == "json-v2"
