"""Model object and reference shapes for both JSON dialects."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from modelserver_client.decoder import has_string, is_any_object

DataValue = bool | int | float | str


def is_model_server_object(obj: Any) -> bool:
    """True for ``json`` (v1) objects, which carry an ``eClass`` tag."""
    return is_any_object(obj) and has_string(obj, "eClass")


def is_reference_description(obj: Any) -> bool:
    return is_model_server_object(obj) and has_string(obj, "$ref")


def is_object_v2(obj: Any) -> bool:
    """True for ``json-v2`` objects, which carry ``$type`` and a stable ``$id``."""
    return is_any_object(obj) and has_string(obj, "$type") and has_string(obj, "$id")


def is_reference_description_v2(obj: Any) -> bool:
    return is_any_object(obj) and has_string(obj, "$type") and has_string(obj, "$ref")


class ModelServerReference(BaseModel):
    """A v1 reference to an element, resolvable inside its owning model."""

    model_config = ConfigDict(populate_by_name=True)

    e_class: str = Field(alias="eClass")
    ref: str = Field(alias="$ref")

    @classmethod
    def coerce(cls, value: "ModelServerReference | dict[str, Any]") -> "ModelServerReference":
        if isinstance(value, ModelServerReference):
            return value
        return cls.model_validate(value)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def is_number_array(values: list[Any]) -> bool:
    return all(isinstance(v, int) and not isinstance(v, bool) for v in values)


def is_model_server_object_array(values: list[Any]) -> bool:
    return all(isinstance(v, ModelServerReference) or is_model_server_object(v) for v in values)


def is_reference_description_array(values: list[Any]) -> bool:
    return all(isinstance(v, ModelServerReference) or is_reference_description(v) for v in values)
