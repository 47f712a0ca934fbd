"""Outbound pub/sub payloads."""

from __future__ import annotations

from typing import Any

from pypuzzle.models._base import PuzzleBaseModel
from pypuzzle.models.params import ParamType


class HeartbeatPayload(PuzzleBaseModel):
    """Status announcement: ``{name, state, deviceId, ip}``."""

    name: str | None
    state: str | None
    device_id: str
    ip: str | None = None


class DataPayload(PuzzleBaseModel):
    """One published output entry."""

    key: str
    type: ParamType
    data: Any = None
    device_id: str


class ExternalCheckPayload(PuzzleBaseModel):
    """External-check notification; ``variable`` carries the check value."""

    active: bool
    variable: Any = None
    device_id: str
