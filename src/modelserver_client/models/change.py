"""Change descriptions reported by v1 incremental updates."""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from modelserver_client.models.base import ModelServerReference, is_model_server_object

CHANGE_NS_URI = "http://www.eclipse.org/emf/2003/Change"
CHANGE_DESCRIPTION_URI = CHANGE_NS_URI + "#//ChangeDescription"
OBJECT_CHANGES_ENTRY_URI = CHANGE_NS_URI + "#//EObjectToChangesMapEntry"
RESOURCE_CHANGE_URI = CHANGE_NS_URI + "#//ResourceChange"
FEATURE_CHANGE_URI = CHANGE_NS_URI + "#//FeatureChange"


class ChangeKind(IntEnum):
    ADD = 0
    REMOVE = 1
    MOVE = 2


class _ChangeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ListChange(_ChangeModel):
    kind: ChangeKind | str | None = None
    data_values: list[str] | None = Field(default=None, alias="dataValues")
    index: int = -1
    move_to_index: int | None = Field(default=None, alias="moveToIndex")
    values: list[Any] | None = None
    reference_values: list[ModelServerReference] | None = Field(default=None, alias="referenceValues")
    feature: Any | None = None


class FeatureChange(_ChangeModel):
    e_class: str = Field(default=FEATURE_CHANGE_URI, alias="eClass")
    feature_name: str | None = Field(default=None, alias="featureName")
    data_value: str | None = Field(default=None, alias="dataValue")
    set: bool | None = None
    value: Any | None = None
    feature: ModelServerReference | None = None
    reference_value: ModelServerReference | None = Field(default=None, alias="referenceValue")
    list_changes: list[ListChange] | None = Field(default=None, alias="listChanges")


class ObjectChanges(_ChangeModel):
    e_class: str = Field(default=OBJECT_CHANGES_ENTRY_URI, alias="eClass")
    key: ModelServerReference
    value: list[FeatureChange] | None = None


class ResourceChange(_ChangeModel):
    e_class: str = Field(default=RESOURCE_CHANGE_URI, alias="eClass")
    resource_uri: str | None = Field(default=None, alias="resourceURI")
    value: Any | None = None
    list_changes: list[ListChange] | None = Field(default=None, alias="listChanges")


class ChangeDescription(_ChangeModel):
    e_class: str = Field(default=CHANGE_DESCRIPTION_URI, alias="eClass")
    object_changes: list[ObjectChanges] | None = Field(default=None, alias="objectChanges")
    objects_to_detach: list[dict[str, Any]] | None = Field(default=None, alias="objectsToDetach")
    objects_to_attach: list[dict[str, Any]] | None = Field(default=None, alias="objectsToAttach")
    resource_changes: list[ResourceChange] | None = Field(default=None, alias="resourceChanges")


def is_change_description(obj: Any) -> bool:
    return is_model_server_object(obj) and obj["eClass"] == CHANGE_DESCRIPTION_URI
