"""Structural edit commands and their execution results.

Commands travel as explicit tagged variants: the ``type`` field names the
variant and :data:`COMMAND_TYPES` maps it back to a concrete model class when a
command is decoded from the wire.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, ValidationError

from modelserver_client.decoder import has_string, is_any_object
from modelserver_client.exceptions import DecodeError
from modelserver_client.models.base import (
    DataValue,
    ModelServerReference,
    is_model_server_object,
    is_model_server_object_array,
    is_number_array,
    is_reference_description_array,
)
from modelserver_client.models.change import ChangeDescription, is_change_description

COMMAND_NS_URI = "http://www.eclipse.org/emfcloud/modelserver/command"
COMMAND_URI = COMMAND_NS_URI + "#//Command"
COMPOUND_COMMAND_URI = COMMAND_NS_URI + "#//CompoundCommand"
COMMAND_EXECUTION_RESULT_URI = COMMAND_NS_URI + "#//CommandExecutionResult"


class ModelServerCommand(BaseModel):
    """A generic or server-extensible command identified by its ``type`` tag."""

    model_config = ConfigDict(populate_by_name=True)

    TYPE: ClassVar[str | None] = None

    e_class: str = Field(default=COMMAND_URI, alias="eClass")
    kind: str = Field(alias="type")
    owner: ModelServerReference | None = None
    feature: str | None = None
    indices: list[int] | None = None
    data_values: list[DataValue] | None = Field(default=None, alias="dataValues")
    object_values: list[ModelServerReference] | None = Field(default=None, alias="objectValues")
    objects_to_add: list[dict[str, Any]] | None = Field(default=None, alias="objectsToAdd")
    properties: dict[str, str] | None = None

    def set_property(self, key: str, value: str) -> None:
        if self.properties is None:
            self.properties = {}
        self.properties[key] = value

    def get_property(self, key: str) -> str | None:
        if self.properties is None:
            return None
        return self.properties.get(key)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SetCommand(ModelServerCommand):
    TYPE: ClassVar[str] = "set"

    kind: Literal["set"] = Field(default="set", alias="type")

    @classmethod
    def build(
        cls,
        owner: ModelServerReference | dict[str, Any],
        feature: str,
        changed_values: list[Any],
    ) -> "SetCommand":
        if changed_values and is_reference_description_array(changed_values):
            return cls(
                owner=ModelServerReference.coerce(owner),
                feature=feature,
                object_values=[ModelServerReference.coerce(v) for v in changed_values],
            )
        return cls(owner=ModelServerReference.coerce(owner), feature=feature, data_values=list(changed_values))


class AddCommand(ModelServerCommand):
    TYPE: ClassVar[str] = "add"

    kind: Literal["add"] = Field(default="add", alias="type")

    @classmethod
    def build(
        cls,
        owner: ModelServerReference | dict[str, Any],
        feature: str,
        to_add: list[Any],
        index: int | None = None,
    ) -> "AddCommand":
        command = cls(owner=ModelServerReference.coerce(owner), feature=feature)
        if index is not None:
            command.indices = [index]
        if to_add and is_model_server_object_array(to_add):
            objects = [_as_wire_object(o) for o in to_add]
            command.objects_to_add = objects
            command.object_values = [
                ModelServerReference(e_class=o["eClass"], ref=f"//@objectsToAdd.{i}") for i, o in enumerate(objects)
            ]
        else:
            command.data_values = list(to_add)
        return command


class RemoveCommand(ModelServerCommand):
    TYPE: ClassVar[str] = "remove"

    kind: Literal["remove"] = Field(default="remove", alias="type")

    @classmethod
    def build(
        cls,
        owner: ModelServerReference | dict[str, Any],
        feature: str,
        to_delete: list[int] | list[ModelServerReference] | list[dict[str, Any]],
    ) -> "RemoveCommand":
        command = cls(owner=ModelServerReference.coerce(owner), feature=feature)
        if is_number_array(to_delete):
            command.indices = list(to_delete)  # type: ignore[arg-type]
        else:
            command.object_values = [ModelServerReference.coerce(v) for v in to_delete]  # type: ignore[arg-type]
        return command


class CompoundCommand(ModelServerCommand):
    TYPE: ClassVar[str] = "compound"

    e_class: str = Field(default=COMPOUND_COMMAND_URI, alias="eClass")
    kind: Literal["compound"] = Field(default="compound", alias="type")
    commands: list[SerializeAsAny[ModelServerCommand]] = Field(default_factory=list)

    @classmethod
    def build(cls, commands: list[ModelServerCommand] | None = None) -> "CompoundCommand":
        return cls(commands=list(commands or []))

    def append(self, command: ModelServerCommand) -> None:
        self.commands.append(command)


COMMAND_TYPES: dict[str, type[ModelServerCommand]] = {
    SetCommand.TYPE: SetCommand,
    AddCommand.TYPE: AddCommand,
    RemoveCommand.TYPE: RemoveCommand,
    CompoundCommand.TYPE: CompoundCommand,
}


def custom_command(kind: str, properties: dict[str, str] | None = None) -> ModelServerCommand:
    """Build a server-extensible command that only carries a tag and a property bag."""
    return ModelServerCommand(kind=kind, properties=dict(properties) if properties else None)


def is_command(obj: Any) -> bool:
    if isinstance(obj, ModelServerCommand):
        return True
    return (
        is_model_server_object(obj)
        and obj["eClass"] in (COMMAND_URI, COMPOUND_COMMAND_URI)
        and has_string(obj, "type")
    )


def command_from_wire(obj: Any) -> ModelServerCommand:
    """Rebuild a concrete command variant from its wire form."""
    if isinstance(obj, ModelServerCommand):
        return obj
    if not is_command(obj):
        raise DecodeError("Command", obj)
    kind = obj["type"]
    command_cls = COMMAND_TYPES.get(kind, ModelServerCommand)
    payload = dict(obj)
    if command_cls is CompoundCommand:
        payload["commands"] = [command_from_wire(child) for child in obj.get("commands", [])]
    try:
        return command_cls.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError("Command", obj) from exc


class CommandExecutionType:
    EXECUTE = "execute"
    UNDO = "undo"
    REDO = "redo"


class CommandExecutionResult(BaseModel):
    """Describes a command the server executed, undid or redid."""

    model_config = ConfigDict(populate_by_name=True)

    e_class: str = Field(default=COMMAND_EXECUTION_RESULT_URI, alias="eClass")
    kind: str = Field(alias="type")
    source: SerializeAsAny[ModelServerCommand]
    change_description: ChangeDescription = Field(alias="changeDescription")
    affected_objects: list[ModelServerReference] | None = Field(default=None, alias="affectedObjects")
    details: dict[str, str] | None = None


def is_command_execution_result(obj: Any) -> bool:
    return (
        is_model_server_object(obj)
        and obj["eClass"] == COMMAND_EXECUTION_RESULT_URI
        and has_string(obj, "type")
        and "source" in obj
        and "changeDescription" in obj
        and is_change_description(obj["changeDescription"])
    )


def command_execution_result_from_wire(obj: Any) -> CommandExecutionResult:
    if not is_command_execution_result(obj):
        raise DecodeError("CommandExecutionResult", obj)
    payload = dict(obj)
    payload["source"] = command_from_wire(obj["source"])
    try:
        return CommandExecutionResult.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError("CommandExecutionResult", obj) from exc


def _as_wire_object(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if is_any_object(value):
        return dict(value)
    raise DecodeError("model object", value)
