"""pypuzzle - Async agent for escape room puzzle nodes."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pypuzzle")
except PackageNotFoundError:
    __version__ = "0+local"
from pypuzzle.agent import PuzzleAgent
from pypuzzle.config import PuzzleConfig
from pypuzzle.dispatcher import CommandDispatcher
from pypuzzle.exceptions import (
    MalformedInputError,
    MediaError,
    MediaResolutionError,
    MediaTransferError,
    PuzzleConfigError,
    PuzzleError,
    PuzzleTransportError,
    PuzzleValidationError,
    UnknownCommandError,
)
from pypuzzle.lifecycle import LifecycleStateMachine, TransitionResult
from pypuzzle.models import (
    Command,
    ParamEntry,
    ParamType,
    PuzzleState,
    parse_command,
)

__all__ = [
    "Command",
    "CommandDispatcher",
    "LifecycleStateMachine",
    "MalformedInputError",
    "MediaError",
    "MediaResolutionError",
    "MediaTransferError",
    "ParamEntry",
    "ParamType",
    "PuzzleAgent",
    "PuzzleConfig",
    "PuzzleConfigError",
    "PuzzleError",
    "PuzzleState",
    "PuzzleTransportError",
    "PuzzleValidationError",
    "TransitionResult",
    "UnknownCommandError",
    "parse_command",
    "__version__",
]
