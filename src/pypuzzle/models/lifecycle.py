"""Lifecycle states of a puzzle node."""

from __future__ import annotations

import enum


class PuzzleState(enum.StrEnum):
    """Known lifecycle states.

    ``active`` is accepted from the hub as an alias of ``running`` and is
    never stored.
    """

    LOCKED = "locked"
    STARTING = "starting"
    RUNNING = "running"
    SOLVED = "solved"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"


ACTIVE_ALIAS = "active"

#: Values accepted by the ``setState`` command.
ACCEPTED_STATES: frozenset[str] = frozenset({*(s.value for s in PuzzleState), ACTIVE_ALIAS})


def resolve_state(value: str) -> str:
    """Resolve aliases; unknown values are returned verbatim.

    Returns the :class:`PuzzleState` member for known values so callers can
    compare either way.
    """
    text = str(value).strip().lower()
    if text == ACTIVE_ALIAS:
        return PuzzleState.RUNNING
    try:
        return PuzzleState(text)
    except ValueError:
        return str(value)


def is_accepted_state(value: object) -> bool:
    return isinstance(value, str) and value.strip().lower() in ACCEPTED_STATES
