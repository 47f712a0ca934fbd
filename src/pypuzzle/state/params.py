"""In-memory parameter store.

This is the only component allowed to write input/output entries and the
external-check flag. Every write overwrites the entry for its key; nothing
is ever merged.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any, Final

from pypuzzle.models.params import ExternalCheck, ParamEntry, ParamType


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


#: Marker for "argument not supplied" where ``None`` is a legal value.
UNSET: Final[Any] = _Unset()


class ParamStore:
    """Typed key/value storage for inputs, outputs and the external check."""

    def __init__(self) -> None:
        self._inputs: dict[str, ParamEntry] = {}
        self._outputs: dict[str, ParamEntry] = {}
        self._external_check = ExternalCheck()

    # ------------------------------------------------------------------
    # Inputs / outputs
    # ------------------------------------------------------------------

    def set_input(self, key: str | None, type_tag: Any, value: Any) -> ParamEntry | None:
        """Store an input value; no-op for an empty key."""
        if not key:
            return None
        entry = ParamEntry.build(key, type_tag, value)
        self._inputs[key] = entry
        return entry

    def set_output(self, key: str | None, type_tag: Any, value: Any) -> ParamEntry | None:
        """Store an output value; no-op for an empty key."""
        if not key:
            return None
        entry = ParamEntry.build(key, type_tag, value)
        self._outputs[key] = entry
        return entry

    def get_input(self, key: str | None) -> ParamEntry | None:
        if not key:
            return None
        return self._inputs.get(key)

    def get_output(self, key: str | None) -> ParamEntry | None:
        if not key:
            return None
        return self._outputs.get(key)

    def inputs(self) -> dict[str, ParamEntry]:
        return dict(self._inputs)

    def outputs(self) -> dict[str, ParamEntry]:
        return dict(self._outputs)

    def output_keys(self) -> list[str]:
        return list(self._outputs)

    def list_media_inputs(self) -> list[tuple[str, str]]:
        """``(key, reference)`` pairs for media-typed inputs, in insertion order."""
        return [(key, str(entry.data or "")) for key, entry in self._inputs.items() if entry.is_media]

    def list_media_outputs(self) -> list[tuple[str, str]]:
        """``(key, reference)`` pairs for media-typed outputs, in insertion order."""
        return [(key, str(entry.data or "")) for key, entry in self._outputs.items() if entry.is_media]

    def clear_all(self) -> None:
        self._inputs.clear()
        self._outputs.clear()

    def init_keys(
        self,
        inputs: Iterable[tuple[str | None, Any]] | None,
        outputs: Iterable[tuple[str | None, Any]] | None,
    ) -> None:
        """Declare the key set from ``(key, type)`` pairs.

        A declared list replaces its mapping. Inputs start empty-valued;
        outputs keep the data previously stored under the same key.
        """
        previous_outputs = dict(self._outputs)
        if inputs is not None:
            self._inputs = {}
            for key, type_tag in inputs:
                self.set_input(key, type_tag, None)
        if outputs is not None:
            self._outputs = {}
            for key, type_tag in outputs:
                if not key:
                    continue
                prev = previous_outputs.get(key)
                self.set_output(key, type_tag, prev.data if prev is not None else None)

    def apply_defaults(
        self,
        outputs: Mapping[str, Mapping[str, Any]] | None,
        external_check: Mapping[str, Any] | None,
    ) -> None:
        """Re-apply configured default outputs and external check."""
        if outputs:
            self._outputs = {}
            for key, spec in outputs.items():
                if not spec:
                    continue
                self.set_output(key, spec.get("type") or ParamType.STRING, spec.get("data"))
        if external_check:
            self.set_external_check(
                external_check.get("value"),
                active=external_check.get("active") is True,
            )

    # ------------------------------------------------------------------
    # External check
    # ------------------------------------------------------------------

    def set_external_check(self, value: Any, active: Any = UNSET) -> ExternalCheck:
        """Replace the check value; ``active`` changes only when supplied."""
        update: dict[str, Any] = {"value": None if value is UNSET else copy.deepcopy(value)}
        if active is not UNSET and active is not None:
            update["active"] = bool(active)
        self._external_check = self._external_check.model_copy(update=update)
        return self._external_check

    def get_external_check(self) -> ExternalCheck:
        return self._external_check.model_copy(deep=True)

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of both mappings."""
        return {
            "inputs": {key: entry.model_dump(mode="json") for key, entry in self._inputs.items()},
            "outputs": {key: entry.model_dump(mode="json") for key, entry in self._outputs.items()},
        }
