"""Patch operations addressed by model-server paths, and their local application.

Model-server paths look like ``<modeluri>#<elementId>/<feature>[/<index>]``. They
only make sense to the server (and to :func:`apply_patch`, which resolves the
element id inside a locally cached copy of the model). Patches the server sends
back use plain JSON pointers and are applied the RFC 6902 way.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modelserver_client.decoder import AnyObject, has_string, is_any_object
from modelserver_client.exceptions import DecodeError, PatchError
from modelserver_client.models.base import is_reference_description_v2

REPLACE = "replace"
ADD = "add"
REMOVE = "remove"

OperationName = Literal["add", "remove", "replace", "move", "copy", "test"]
OPERATIONS = ("add", "remove", "replace", "move", "copy", "test")


class PatchOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    op: OperationName
    path: str
    value: Any = None
    from_: str | None = Field(default=None, alias="from")

    @property
    def has_value(self) -> bool:
        return "value" in self.model_fields_set

    @classmethod
    def coerce(cls, value: "PatchOperation | dict[str, Any]") -> "PatchOperation":
        if isinstance(value, PatchOperation):
            return value
        try:
            return cls.model_validate(value)
        except ValidationError as exc:
            raise DecodeError("Operation", value) from exc

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"op": self.op, "path": self.path}
        if self.has_value:
            payload["value"] = self.value
        if self.from_ is not None:
            payload["from"] = self.from_
        return payload


def replace(modeluri: str, obj: AnyObject, feature: str, value: Any) -> PatchOperation:
    return PatchOperation(op=REPLACE, path=_property_path(modeluri, obj, feature), value=value)


def create(
    modeluri: str,
    parent: AnyObject,
    feature: str,
    type_: str,
    attributes: AnyObject | None = None,
) -> PatchOperation:
    """Add a brand-new object of ``type_`` under ``parent.feature``."""
    value: dict[str, Any] = {"$type": type_}
    value.update(attributes or {})
    return PatchOperation(op=ADD, path=_property_path(modeluri, parent, feature), value=value)


def add(modeluri: str, parent: AnyObject, feature: str, value: AnyObject) -> PatchOperation:
    """Add a reference to an existing element under ``parent.feature``."""
    reference = {"$type": value["$type"], "$id": _object_path(modeluri, value)}
    return PatchOperation(op=ADD, path=_property_path(modeluri, parent, feature), value=reference)


def remove_value_at(modeluri: str, obj: AnyObject, feature: str, index: int) -> PatchOperation:
    return PatchOperation(op=REMOVE, path=_property_path(modeluri, obj, feature, index))


def remove_value(modeluri: str, obj: AnyObject, feature: str, value: Any) -> PatchOperation | None:
    current = obj.get(feature)
    if isinstance(current, list) and value in current:
        return remove_value_at(modeluri, obj, feature, current.index(value))
    return None


def remove_object(modeluri: str, obj: AnyObject) -> PatchOperation:
    return PatchOperation(op=REMOVE, path=_object_path(modeluri, obj))


delete_element = remove_object


def _object_path(modeluri: str, obj: AnyObject) -> str:
    element_id = obj["$ref"] if is_reference_description_v2(obj) else obj["$id"]
    return f"{modeluri.split('#', 1)[0]}#{element_id}"


def _property_path(modeluri: str, obj: AnyObject, feature: str, index: int | None = None) -> str:
    suffix = "" if index is None else f"/{index}"
    return f"{_object_path(modeluri, obj)}/{feature}{suffix}"


def is_operation(obj: Any) -> bool:
    if isinstance(obj, PatchOperation):
        return True
    return is_any_object(obj) and has_string(obj, "op") and obj["op"] in OPERATIONS and has_string(obj, "path")


def is_patch(obj: Any) -> bool:
    return isinstance(obj, list) and all(is_operation(item) for item in obj)


def _matches(op: PatchOperation | AnyObject, name: str, value_type: type | Callable[[Any], bool] | None) -> bool:
    operation = PatchOperation.coerce(op)
    if operation.op != name:
        return False
    if value_type is None:
        return True
    if isinstance(value_type, type):
        return isinstance(operation.value, value_type)
    return bool(value_type(operation.value))


def is_add(op: PatchOperation | AnyObject, value_type: type | Callable[[Any], bool] | None = None) -> bool:
    return _matches(op, ADD, value_type)


def is_replace(op: PatchOperation | AnyObject, value_type: type | Callable[[Any], bool] | None = None) -> bool:
    return _matches(op, REPLACE, value_type)


def is_remove(op: PatchOperation | AnyObject) -> bool:
    return _matches(op, REMOVE, None)


def as_operations(patch: Any) -> list[PatchOperation]:
    if isinstance(patch, (PatchOperation, dict)):
        patch = [patch]
    return [PatchOperation.coerce(item) for item in patch]


def apply_patch(document: Any, operations: list[PatchOperation] | list[AnyObject]) -> Any:
    """Return a patched deep copy of ``document``; the input is left untouched."""
    result = copy.deepcopy(document)
    for raw in operations:
        operation = PatchOperation.coerce(raw)
        result = _apply_operation(result, operation)
    return result


def _apply_operation(document: Any, operation: PatchOperation) -> Any:
    tokens, model_path = _resolve_path(document, operation.path, operation)
    if operation.op == ADD:
        return _add(document, tokens, copy.deepcopy(operation.value), operation, append_to_list=model_path)
    if operation.op == REMOVE:
        return _remove(document, tokens, operation)
    if operation.op == REPLACE:
        return _replace(document, tokens, copy.deepcopy(operation.value), operation)
    if operation.op == "test":
        if _get(document, tokens, operation) != operation.value:
            raise PatchError(f"test failed at {operation.path}", operation=operation.to_wire())
        return document
    if operation.from_ is None:
        raise PatchError(f"'{operation.op}' requires a 'from' location", operation=operation.to_wire())
    from_tokens, _ = _resolve_path(document, operation.from_, operation)
    if operation.op == "move":
        value = _get(document, from_tokens, operation)
        document = _remove(document, from_tokens, operation)
        return _add(document, tokens, value, operation)
    return _add(document, tokens, copy.deepcopy(_get(document, from_tokens, operation)), operation)


def _resolve_path(document: Any, path: str, operation: PatchOperation) -> tuple[list[str], bool]:
    if "#" not in path:
        return _pointer_tokens(path, operation), False

    fragment = path.split("#", 1)[1]
    if fragment.startswith("//"):
        tokens: list[str] = []
        segments = fragment[2:].split("/") if len(fragment) > 2 else []
        while segments and segments[0].startswith("@"):
            feature, _, index = segments.pop(0)[1:].partition(".")
            tokens.append(feature)
            if index:
                tokens.append(index)
        return tokens + segments, True

    element_id, *rest = fragment.split("/")
    if not element_id:
        return rest, True
    located = _locate(document, element_id)
    if located is None:
        raise PatchError(f"no element with id '{element_id}' in model", operation=operation.to_wire())
    return located + rest, True


def _pointer_tokens(path: str, operation: PatchOperation) -> list[str]:
    if path == "":
        return []
    if not path.startswith("/"):
        raise PatchError(f"invalid JSON pointer: {path}", operation=operation.to_wire())
    return [token.replace("~1", "/").replace("~0", "~") for token in path[1:].split("/")]


def _locate(node: Any, element_id: str) -> list[str] | None:
    if isinstance(node, dict):
        if node.get("$id") == element_id:
            return []
        for key, value in node.items():
            found = _locate(value, element_id)
            if found is not None:
                return [key] + found
    elif isinstance(node, list):
        for index, value in enumerate(node):
            found = _locate(value, element_id)
            if found is not None:
                return [str(index)] + found
    return None


def _get(document: Any, tokens: list[str], operation: PatchOperation) -> Any:
    node = document
    for token in tokens:
        if isinstance(node, dict):
            if token not in node:
                raise PatchError(f"path not found: {operation.path}", operation=operation.to_wire())
            node = node[token]
        elif isinstance(node, list):
            node = node[_list_index(node, token, operation)]
        else:
            raise PatchError(f"path not found: {operation.path}", operation=operation.to_wire())
    return node


def _list_index(container: list[Any], token: str, operation: PatchOperation, *, allow_end: bool = False) -> int:
    try:
        index = int(token)
    except ValueError as exc:
        raise PatchError(f"invalid list index '{token}'", operation=operation.to_wire()) from exc
    upper = len(container) if allow_end else len(container) - 1
    if index < 0 or index > upper:
        raise PatchError(f"list index {index} out of range", operation=operation.to_wire())
    return index


def _add(
    document: Any,
    tokens: list[str],
    value: Any,
    operation: PatchOperation,
    *,
    append_to_list: bool = False,
) -> Any:
    if not tokens:
        return value
    parent = _get(document, tokens[:-1], operation)
    key = tokens[-1]
    if isinstance(parent, list):
        if key == "-":
            parent.append(value)
        else:
            parent.insert(_list_index(parent, key, operation, allow_end=True), value)
    elif isinstance(parent, dict):
        # model-server paths name the feature; adding to a many-valued feature appends
        if append_to_list and isinstance(parent.get(key), list):
            parent[key].append(value)
        else:
            parent[key] = value
    else:
        raise PatchError(f"cannot add below a scalar at {operation.path}", operation=operation.to_wire())
    return document


def _remove(document: Any, tokens: list[str], operation: PatchOperation) -> Any:
    if not tokens:
        return None
    parent = _get(document, tokens[:-1], operation)
    key = tokens[-1]
    if isinstance(parent, list):
        del parent[_list_index(parent, key, operation)]
    elif isinstance(parent, dict) and key in parent:
        del parent[key]
    else:
        raise PatchError(f"path not found: {operation.path}", operation=operation.to_wire())
    return document


def _replace(document: Any, tokens: list[str], value: Any, operation: PatchOperation) -> Any:
    if not tokens:
        return value
    parent = _get(document, tokens[:-1], operation)
    key = tokens[-1]
    if isinstance(parent, list):
        parent[_list_index(parent, key, operation)] = value
    elif isinstance(parent, dict):
        parent[key] = value
    else:
        raise PatchError(f"cannot replace below a scalar at {operation.path}", operation=operation.to_wire())
    return document


@dataclass(frozen=True)
class ModelUpdateResult:
    """Outcome of an edit, undo or redo request.

    ``patch`` is only available when the request succeeded and the server
    reported the applied operations; otherwise the caller has to re-fetch the
    model to observe the change.
    """

    success: bool
    operations: list[PatchOperation] | None = None

    @property
    def patch(self) -> Callable[[Any], Any] | None:
        if not self.success or self.operations is None:
            return None
        operations = list(self.operations)
        return lambda old_model: apply_patch(old_model, operations)
