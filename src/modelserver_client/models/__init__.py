"""Typed model-server domain models."""

from modelserver_client.models.base import (
    ModelServerReference,
    is_model_server_object,
    is_object_v2,
    is_reference_description,
    is_reference_description_v2,
)
from modelserver_client.models.change import ChangeDescription, ChangeKind, FeatureChange, ListChange, ResourceChange
from modelserver_client.models.command import (
    COMMAND_TYPES,
    AddCommand,
    CommandExecutionResult,
    CommandExecutionType,
    CompoundCommand,
    ModelServerCommand,
    RemoveCommand,
    SetCommand,
    command_from_wire,
    custom_command,
    is_command,
    is_command_execution_result,
)
from modelserver_client.models.diagnostic import (
    CANCEL,
    ERROR,
    INFO,
    OK,
    WARNING,
    Diagnostic,
    collect_leaves,
    get_severity_label,
    is_diagnostic,
    merge,
    recompute_severity,
    worst_of,
)

__all__ = [
    "AddCommand",
    "CANCEL",
    "COMMAND_TYPES",
    "ChangeDescription",
    "ChangeKind",
    "CommandExecutionResult",
    "CommandExecutionType",
    "CompoundCommand",
    "Diagnostic",
    "ERROR",
    "FeatureChange",
    "INFO",
    "ListChange",
    "ModelServerCommand",
    "ModelServerReference",
    "OK",
    "RemoveCommand",
    "ResourceChange",
    "SetCommand",
    "WARNING",
    "collect_leaves",
    "command_from_wire",
    "custom_command",
    "get_severity_label",
    "is_command",
    "is_command_execution_result",
    "is_diagnostic",
    "is_model_server_object",
    "is_object_v2",
    "is_reference_description",
    "is_reference_description_v2",
    "merge",
    "recompute_severity",
    "worst_of",
]
