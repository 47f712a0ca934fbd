"""Typed parameter entries and value coercion.

Inputs (hub -> node) and outputs (node -> hub) share one entry shape:
``{"type": <tag>, "data": <value>}``. Coercion is total: values that do
not parse for their tag are kept as given instead of being rejected.
"""

from __future__ import annotations

import enum
import math
from typing import Any

from pydantic import BaseModel, ConfigDict

_TRUE_SPELLINGS = frozenset({"true", "1"})
_FALSE_SPELLINGS = frozenset({"false", "0"})


class ParamType(enum.StrEnum):
    """Supported parameter type tags."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    MEDIA = "media"


def normalize_type(type_tag: Any) -> ParamType:
    """Map a wire type tag onto :class:`ParamType` (unknown tags -> ``string``)."""
    if isinstance(type_tag, ParamType):
        return type_tag
    text = str(type_tag or "").strip().lower()
    try:
        return ParamType(text)
    except ValueError:
        return ParamType.STRING


def _coerce_number(value: Any) -> Any:
    # Non-string values (including NaN/inf floats and bools) pass through.
    if not isinstance(value, str):
        return value
    text = value.strip()
    # int() and float() accept digit-group underscores; hub numbers never do.
    if not text or "_" in text:
        return value
    try:
        return int(text)
    except ValueError:
        pass
    try:
        parsed = float(text)
    except ValueError:
        return value
    return parsed if math.isfinite(parsed) else value


def _coerce_boolean(value: Any) -> Any:
    # Real booleans and non-string values pass through.
    if not isinstance(value, str):
        return value
    if value in _TRUE_SPELLINGS:
        return True
    if value in _FALSE_SPELLINGS:
        return False
    return value


def coerce_value(type_tag: ParamType, key: str, value: Any) -> Any:
    """Coerce *value* for *type_tag*.

    ``media`` entries never carry payload: their value is the entry key.
    """
    if type_tag == ParamType.MEDIA:
        return key
    if type_tag == ParamType.NUMBER:
        return _coerce_number(value)
    if type_tag == ParamType.BOOLEAN:
        return _coerce_boolean(value)
    return value


class ParamEntry(BaseModel):
    """A stored input or output value."""

    model_config = ConfigDict(frozen=True)

    type: ParamType = ParamType.STRING
    data: Any = None

    @classmethod
    def build(cls, key: str, type_tag: Any, value: Any) -> ParamEntry:
        tag = normalize_type(type_tag)
        return cls(type=tag, data=coerce_value(tag, key, value))

    @property
    def is_media(self) -> bool:
        return self.type == ParamType.MEDIA


class ExternalCheck(BaseModel):
    """Auxiliary out-of-band condition polled by (or pushed to) the hub."""

    model_config = ConfigDict(frozen=True)

    value: Any = None
    active: bool = False
