"""Base model for hub-facing payloads.

Hub payloads use camelCase keys (``deviceId``, ``needRestart``); every
model inherits :class:`PuzzleBaseModel` so fields stay snake_case in
Python and serialize back to the wire names with ``by_alias=True``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PuzzleBaseModel(BaseModel):
    """Base for payloads exchanged with the hub."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with hub (camelCase) key names."""
        return self.model_dump(by_alias=True, mode="json")
