"""Runtime narrowing of untyped wire payloads.

Every payload received from the model server is routed through one of the
``as_*`` functions below before it is used. Each function either returns the
payload narrowed to the requested shape or raises :class:`DecodeError` carrying
the JSON rendering of the offending value.
"""

from __future__ import annotations

import json
from typing import Any, Callable, TypeAlias, TypeVar

from pydantic import BaseModel, ValidationError

from modelserver_client.exceptions import DecodeError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

AnyObject: TypeAlias = dict[str, Any]
TypeGuard: TypeAlias = Callable[[Any], bool]


def is_any_object(value: Any) -> bool:
    return isinstance(value, dict)


def has_string(obj: AnyObject, key: str) -> bool:
    return key in obj and isinstance(obj[key], str)


def has_boolean(obj: AnyObject, key: str) -> bool:
    return key in obj and isinstance(obj[key], bool)


def has_number(obj: AnyObject, key: str) -> bool:
    value = obj.get(key)
    return key in obj and isinstance(value, (int, float)) and not isinstance(value, bool)


def has_object(obj: AnyObject, key: str) -> bool:
    return key in obj and is_any_object(obj[key])


def has_array(obj: AnyObject, key: str) -> bool:
    return key in obj and isinstance(obj[key], list)


def as_string(value: Any) -> str:
    """Return strings as-is and render anything else as indented JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def as_string_array(value: Any) -> list[str]:
    if isinstance(value, list):
        return [as_string(item) for item in value]
    raise DecodeError("string[]", value)


def as_boolean(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def as_object(value: Any) -> AnyObject:
    if is_any_object(value):
        return value
    raise DecodeError("object", value)


def as_object_array(value: Any) -> list[dict[str, Any]]:
    """Interpret a ``{modelUri: content}`` dictionary as a list of records."""
    if is_any_object(value):
        return [{"modelUri": key, "content": content} for key, content in value.items()]
    raise DecodeError("Model[]", value)


def as_type(value: Any, guard: Callable[[Any], bool], expected: str | None = None) -> Any:
    if guard(value):
        return value
    raise DecodeError(expected or getattr(guard, "__name__", "guarded type"), value)


def as_model(value: Any, model_cls: type[M], guard: TypeGuard | None = None) -> M:
    """Narrow ``value`` with ``guard`` (if given) and validate it into ``model_cls``."""
    if guard is not None and not guard(value):
        raise DecodeError(model_cls.__name__, value)
    try:
        return model_cls.model_validate(value)
    except ValidationError as exc:
        raise DecodeError(model_cls.__name__, value) from exc
