"""Closed set of commands accepted from the hub.

Both channels (HTTP routes and the MQTT command topic) are converted into
one of these models before reaching :class:`pypuzzle.dispatcher.CommandDispatcher`.
The ``action`` field is the variant tag; anything outside the set raises
:class:`~pypuzzle.exceptions.UnknownCommandError`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

from pypuzzle.exceptions import PuzzleValidationError, UnknownCommandError
from pypuzzle.models._base import PuzzleBaseModel
from pypuzzle.models.lifecycle import is_accepted_state


def _key_or_type(values: Any) -> Any:
    """The hub addresses entries by ``key`` and falls back to ``type``."""
    if not isinstance(values, dict):
        return values
    if not values.get("key") and values.get("type"):
        return {**values, "key": values["type"]}
    return values


class _KeyedCommand(PuzzleBaseModel):
    # Hubs sometimes send numeric keys (`{"key": 5}`).
    model_config = ConfigDict(coerce_numbers_to_str=True)

    key: str | None = None
    type: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _resolve_key(cls, values: Any) -> Any:
        return _key_or_type(values)


class KeySpec(_KeyedCommand):
    """One declared key in an ``initKeys`` command."""


class _RequiredKeyCommand(_KeyedCommand):
    data: Any = None

    @model_validator(mode="after")
    def _key_required(self) -> _RequiredKeyCommand:
        if not self.key:
            raise ValueError("key or type required")
        return self


class SetState(PuzzleBaseModel):
    action: Literal["setState"] = "setState"
    state: str

    @field_validator("state", mode="before")
    @classmethod
    def _known_state(cls, value: Any) -> str:
        if not is_accepted_state(value):
            raise ValueError("Invalid state")
        return str(value).strip().lower()


class GetState(PuzzleBaseModel):
    action: Literal["getState"] = "getState"


class SendParam(_RequiredKeyCommand):
    action: Literal["sendParam"] = "sendParam"


class GetParam(_KeyedCommand):
    action: Literal["getParam"] = "getParam"


class SetOutput(_RequiredKeyCommand):
    action: Literal["setOutput"] = "setOutput"


class SendOutput(_RequiredKeyCommand):
    """Like :class:`SetOutput`, but also re-publishes the entry immediately."""

    action: Literal["sendOutput"] = "sendOutput"


class GetOutput(_KeyedCommand):
    action: Literal["getOutput"] = "getOutput"


class RequestData(_KeyedCommand):
    """Re-publish one output, or every output when no key is given."""

    action: Literal["requestData"] = "requestData"


class SetExternalCheck(PuzzleBaseModel):
    action: Literal["setExternalCheck"] = "setExternalCheck"
    value: Any = None
    active: bool | None = None


class GetExternalCheck(PuzzleBaseModel):
    action: Literal["getExternalCheck"] = "getExternalCheck"


class TriggerExternalCheck(PuzzleBaseModel):
    action: Literal["triggerExternalCheck"] = "triggerExternalCheck"
    value: Any = None
    active: bool | None = True


class InitKeys(PuzzleBaseModel):
    action: Literal["initKeys"] = "initKeys"
    inputs: list[KeySpec] | None = None
    outputs: list[KeySpec] | None = None


class ClearData(PuzzleBaseModel):
    action: Literal["clearData"] = "clearData"


class Restart(PuzzleBaseModel):
    action: Literal["restart"] = "restart"


class RestartComplete(PuzzleBaseModel):
    action: Literal["restartComplete"] = "restartComplete"


class RestartConfig(PuzzleBaseModel):
    action: Literal["restartConfig"] = "restartConfig"
    need_restart: bool = False

    @field_validator("need_restart", mode="before")
    @classmethod
    def _none_is_false(cls, value: Any) -> Any:
        return False if value is None else value


class SendHeartbeat(PuzzleBaseModel):
    """Relay an identity/state pair verbatim on the heartbeat topic."""

    action: Literal["sendHeartbeat"] = "sendHeartbeat"
    name: str | None = None
    state: str | None = None


class GetAll(PuzzleBaseModel):
    action: Literal["getAll"] = "getAll"


class MediaUpload(PuzzleBaseModel):
    action: Literal["mediaUpload"] = "mediaUpload"
    local_path: str | None = None
    remote_name: str | None = None


class MediaDownload(PuzzleBaseModel):
    action: Literal["mediaDownload"] = "mediaDownload"
    remote_name: str | None = None
    local_path: str | None = None


Command = Annotated[
    SetState
    | GetState
    | SendParam
    | GetParam
    | SetOutput
    | SendOutput
    | GetOutput
    | RequestData
    | SetExternalCheck
    | GetExternalCheck
    | TriggerExternalCheck
    | InitKeys
    | ClearData
    | Restart
    | RestartComplete
    | RestartConfig
    | SendHeartbeat
    | GetAll
    | MediaUpload
    | MediaDownload,
    Field(discriminator="action"),
]

_COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)

#: Every supported ``action`` tag.
ACTIONS: frozenset[str] = frozenset(
    {
        "setState",
        "getState",
        "sendParam",
        "getParam",
        "setOutput",
        "sendOutput",
        "getOutput",
        "requestData",
        "setExternalCheck",
        "getExternalCheck",
        "triggerExternalCheck",
        "initKeys",
        "clearData",
        "restart",
        "restartComplete",
        "restartConfig",
        "sendHeartbeat",
        "getAll",
        "mediaUpload",
        "mediaDownload",
    }
)

#: Commands that only read state and therefore do not announce status.
READ_ONLY_ACTIONS: frozenset[str] = frozenset(
    {"getState", "getParam", "getOutput", "getExternalCheck", "getAll"}
)


def parse_command(payload: Mapping[str, Any], *, action: str | None = None) -> Command:
    """Validate a raw argument bag into a command.

    Parameters
    ----------
    payload
        Arguments as received (camelCase keys).
    action
        Overrides ``payload["action"]``; used by the HTTP routes where the
        action comes from the path.

    Raises
    ------
    UnknownCommandError
        The action tag is missing or not supported.
    PuzzleValidationError
        The arguments do not validate for the action.
    """
    tag = action if action is not None else payload.get("action")
    if not isinstance(tag, str) or tag not in ACTIONS:
        raise UnknownCommandError(str(tag))
    try:
        return _COMMAND_ADAPTER.validate_python({**payload, "action": tag})
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        loc = ".".join(str(part) for part in first.get("loc", ()) if part != tag)
        message = str(first.get("msg", "invalid arguments")).removeprefix("Value error, ")
        raise PuzzleValidationError(message, field=loc) from exc
