"""State layer.

Holds the single source of truth for the node: lifecycle state, input and
output parameters and the external-check flag. Commands from both hub
channels end up mutating these objects through the dispatcher.
"""

from pypuzzle.state.node import DeviceIdentity, NodeState, RelayedHeartbeat
from pypuzzle.state.params import UNSET, ParamStore

__all__ = ["DeviceIdentity", "NodeState", "ParamStore", "RelayedHeartbeat", "UNSET"]
