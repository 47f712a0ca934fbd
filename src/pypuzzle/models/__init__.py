"""Data models for hub payloads and stored parameters."""

from pypuzzle.models._base import PuzzleBaseModel
from pypuzzle.models.commands import (
    ACTIONS,
    READ_ONLY_ACTIONS,
    ClearData,
    Command,
    GetAll,
    GetExternalCheck,
    GetOutput,
    GetParam,
    GetState,
    InitKeys,
    KeySpec,
    MediaDownload,
    MediaUpload,
    RequestData,
    Restart,
    RestartComplete,
    RestartConfig,
    SendHeartbeat,
    SendOutput,
    SendParam,
    SetExternalCheck,
    SetOutput,
    SetState,
    TriggerExternalCheck,
    parse_command,
)
from pypuzzle.models.lifecycle import ACCEPTED_STATES, PuzzleState, is_accepted_state, resolve_state
from pypuzzle.models.params import ExternalCheck, ParamEntry, ParamType, coerce_value, normalize_type
from pypuzzle.models.payloads import DataPayload, ExternalCheckPayload, HeartbeatPayload

__all__ = [
    "ACCEPTED_STATES",
    "ACTIONS",
    "READ_ONLY_ACTIONS",
    "ClearData",
    "Command",
    "DataPayload",
    "ExternalCheck",
    "ExternalCheckPayload",
    "GetAll",
    "GetExternalCheck",
    "GetOutput",
    "GetParam",
    "GetState",
    "HeartbeatPayload",
    "InitKeys",
    "KeySpec",
    "MediaDownload",
    "MediaUpload",
    "ParamEntry",
    "ParamType",
    "PuzzleBaseModel",
    "PuzzleState",
    "RequestData",
    "Restart",
    "RestartComplete",
    "RestartConfig",
    "SendHeartbeat",
    "SendOutput",
    "SendParam",
    "SetExternalCheck",
    "SetOutput",
    "SetState",
    "TriggerExternalCheck",
    "coerce_value",
    "is_accepted_state",
    "normalize_type",
    "parse_command",
    "resolve_state",
]
