"""Helpers for safe debug logging.

Command payloads and published data can carry large values (media
references, free-form puzzle data) and the configuration may carry broker
credentials. ``summarize_for_log`` produces a bounded copy for DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "mqttpassword",
        "mqtt_password",
        "token",
        "authorization",
        "cookie",
    }
)

_MAX_ITEMS = 50


def summarize_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a truncated, credential-free copy of *value* for debug logs."""
    if _depth > 10:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<{len(value)} chars>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        summarized: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_KEYS:
                summarized[key] = "<redacted>"
            else:
                summarized[key] = summarize_for_log(v, max_string=max_string, _depth=_depth + 1)
        return summarized

    if isinstance(value, Sequence):
        items = [summarize_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value[:_MAX_ITEMS]]
        if len(value) > _MAX_ITEMS:
            items.append(f"<+{len(value) - _MAX_ITEMS} more>")
        return items

    return repr(value)
