from __future__ import annotations

import pytest
from pydantic import BaseModel

from modelserver_client.decoder import (
    as_boolean,
    as_model,
    as_object,
    as_object_array,
    as_string,
    as_string_array,
    as_type,
    has_array,
    has_boolean,
    has_number,
    has_object,
    has_string,
)
from modelserver_client.exceptions import DecodeError, ErrorCode


class _Point(BaseModel):
    x: int
    y: int


def test_as_string_passes_strings_and_renders_everything_else() -> None:
    assert as_string("plain") == "plain"
    assert as_string({"a": 1}) == '{\n  "a": 1\n}'
    assert as_string(3) == "3"


def test_as_string_array_renders_items_and_rejects_non_lists() -> None:
    assert as_string_array(["a.coffee", {"b": 2}]) == ["a.coffee", '{\n  "b": 2\n}']
    with pytest.raises(DecodeError):
        as_string_array("a.coffee")


def test_as_boolean_is_false_for_anything_but_a_boolean() -> None:
    assert as_boolean(True) is True
    assert as_boolean(False) is False
    assert as_boolean("true") is False
    assert as_boolean(1) is False
    assert as_boolean(None) is False


def test_as_object_rejects_non_objects_with_rendered_payload() -> None:
    assert as_object({"name": "x"}) == {"name": "x"}
    with pytest.raises(DecodeError) as exc_info:
        as_object([1, 2])
    assert exc_info.value.code is ErrorCode.DECODE_ERROR
    assert exc_info.value.details == {"expected": "object", "payload": "[1, 2]"}


def test_as_object_array_turns_dictionary_into_records() -> None:
    records = as_object_array({"a.coffee": {"name": "A"}, "b.coffee": {"name": "B"}})
    assert records == [
        {"modelUri": "a.coffee", "content": {"name": "A"}},
        {"modelUri": "b.coffee", "content": {"name": "B"}},
    ]
    with pytest.raises(DecodeError):
        as_object_array(["a.coffee"])


def test_as_type_uses_guard_and_names_expected_type() -> None:
    def is_even(value: object) -> bool:
        return isinstance(value, int) and value % 2 == 0

    assert as_type(4, is_even) == 4
    with pytest.raises(DecodeError) as exc_info:
        as_type(3, is_even, "EvenNumber")
    assert exc_info.value.expected == "EvenNumber"
    with pytest.raises(DecodeError) as exc_info:
        as_type(3, is_even)
    assert exc_info.value.expected == "is_even"


def test_as_model_validates_and_wraps_validation_errors() -> None:
    assert as_model({"x": 1, "y": 2}, _Point) == _Point(x=1, y=2)
    with pytest.raises(DecodeError) as exc_info:
        as_model({"x": "left"}, _Point)
    assert exc_info.value.expected == "_Point"
    with pytest.raises(DecodeError):
        as_model({"x": 1, "y": 2}, _Point, guard=lambda value: "z" in value)


def test_has_checks_distinguish_booleans_from_numbers() -> None:
    obj = {"name": "x", "count": 2, "flag": True, "items": []}
    assert has_string(obj, "name")
    assert not has_string(obj, "missing")
    assert has_number(obj, "count")
    assert not has_number(obj, "flag")
    assert has_array(obj, "items")
    assert not has_array(obj, "name")
    assert has_boolean(obj, "flag")
    assert not has_boolean(obj, "count")
    assert has_object({"content": {}}, "content")
    assert not has_object(obj, "items")
