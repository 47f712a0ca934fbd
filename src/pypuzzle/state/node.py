"""Process-wide node state container.

One :class:`NodeState` is created at startup and handed to every component;
nothing reads or writes node state through module globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pypuzzle.models.lifecycle import PuzzleState
from pypuzzle.state.params import ParamStore


@dataclass(frozen=True)
class DeviceIdentity:
    """Identity established once at startup.

    ``network_address`` is ``None`` when no usable address was detected.
    """

    device_id: str
    display_name: str
    network_address: str | None = None


@dataclass
class RelayedHeartbeat:
    """Last ``sendHeartbeat`` pair, relayed verbatim."""

    name: str | None = None
    state: str | None = None


@dataclass
class NodeState:
    """Mutable node state shared by the lifecycle machine and the dispatcher."""

    identity: DeviceIdentity
    state: str = PuzzleState.LOCKED
    need_restart: bool = False
    params: ParamStore = field(default_factory=ParamStore)
    heartbeat: RelayedHeartbeat = field(default_factory=RelayedHeartbeat)
