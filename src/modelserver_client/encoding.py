"""Wire formats and request-body encoders."""

from __future__ import annotations

import json
from typing import Any, Callable, TypeAlias

FORMAT_JSON_V1 = "json"
FORMAT_JSON_V2 = "json-v2"
FORMAT_XML = "xml"
FORMAT_XMI = "xmi"

JSON_FORMATS = (FORMAT_JSON_V1, FORMAT_JSON_V2)
XML_FORMATS = (FORMAT_XML, FORMAT_XMI)
FORMATS = JSON_FORMATS + XML_FORMATS

V1_TYPE_KEY = "eClass"
V2_TYPE_KEY = "$type"

Encoder: TypeAlias = Callable[[Any], Any]


def encode(fmt: str) -> Encoder:
    """Return an encoder that renders a model for the given wire format.

    JSON encoders rename the type tag (``eClass`` for ``json``, ``$type`` for
    ``json-v2``) throughout the object graph. String inputs are parsed, converted
    and serialized again so the caller gets back what it passed in.
    """
    if fmt in XML_FORMATS:
        return _as_xml
    if fmt == FORMAT_JSON_V1:
        return _handle_string(lambda obj: _retag(obj, V2_TYPE_KEY, V1_TYPE_KEY))
    if fmt == FORMAT_JSON_V2:
        return _handle_string(lambda obj: _retag(obj, V1_TYPE_KEY, V2_TYPE_KEY))
    raise ValueError(f"Unsupported message format: {fmt}")


def encode_request_body(fmt: str) -> Callable[[Any], dict[str, Any]]:
    encoder = encode(fmt)
    return lambda obj: {"data": encoder(obj)}


def _handle_string(fn: Encoder) -> Encoder:
    def wrapped(target: Any) -> Any:
        if isinstance(target, str):
            return json.dumps(fn(json.loads(target)))
        return fn(target)

    return wrapped


def _as_xml(target: Any) -> str:
    if not isinstance(target, str):
        raise ValueError("Attempt to encode non-string as XML")
    return target


def _retag(obj: Any, source_key: str, target_key: str) -> Any:
    if not _contains_key(obj, source_key) or _contains_key(obj, target_key):
        return obj
    return _copy_retagged(obj, source_key, target_key)


def _contains_key(obj: Any, key: str) -> bool:
    if isinstance(obj, dict):
        return key in obj or any(_contains_key(value, key) for value in obj.values())
    if isinstance(obj, list):
        return any(_contains_key(item, key) for item in obj)
    return False


def _copy_retagged(obj: Any, source_key: str, target_key: str) -> Any:
    if isinstance(obj, dict):
        out: dict[str, Any] = {}
        for key, value in obj.items():
            out[target_key if key == source_key else key] = _copy_retagged(value, source_key, target_key)
        return out
    if isinstance(obj, list):
        return [_copy_retagged(item, source_key, target_key) for item in obj]
    return obj
