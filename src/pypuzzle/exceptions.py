"""Custom exception hierarchy for pypuzzle."""

from __future__ import annotations


class PuzzleError(Exception):
    """Base exception for all pypuzzle errors."""


class PuzzleConfigError(PuzzleError):
    """Invalid or unreadable configuration."""


class PuzzleValidationError(PuzzleError):
    """Malformed or unrecognized command arguments (missing key, unknown state)."""

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class UnknownCommandError(PuzzleValidationError):
    """Command tag outside the supported command set."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Unknown command: {action!r}", field="action")


class MalformedInputError(PuzzleError):
    """Request body could not be parsed.

    The HTTP layer catches this and continues with an empty argument set,
    so the command validation reports the actual problem.
    """


class MediaError(PuzzleError):
    """Media lookup or transfer failure."""

    def __init__(
        self,
        message: str,
        *,
        name: str = "",
        status_code: int | None = None,
    ) -> None:
        self.name = name
        self.status_code = status_code
        super().__init__(message)


class MediaResolutionError(MediaError):
    """The media service could not map a logical reference to a stored file."""


class MediaTransferError(MediaError):
    """Download or upload failed (I/O, non-2xx status, timeout)."""


class PuzzleTransportError(PuzzleError):
    """Outbound publish failed (broker unavailable, client not connected)."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)
