"""Local network address detection."""

from __future__ import annotations

import logging
import socket

import psutil

from pypuzzle._constants import PREFERRED_ADDRESS_PREFIXES, SKIPPED_ADDRESS_PREFIXES

_logger = logging.getLogger(__name__)


def _candidate_addresses() -> list[str]:
    candidates: list[str] = []
    for name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            ip = addr.address
            if ip.startswith(SKIPPED_ADDRESS_PREFIXES):
                continue
            _logger.debug("Address candidate %s on %s", ip, name)
            candidates.append(ip)
    return candidates


def detect_local_ip(override: str | None = None) -> str | None:
    """Return the address the hub should reach this node on.

    Private ranges are preferred; ``None`` when nothing usable is found.
    """
    if override:
        return override
    try:
        candidates = _candidate_addresses()
    except OSError:
        _logger.debug("Interface enumeration failed", exc_info=True)
        return None
    for ip in candidates:
        if ip.startswith(PREFERRED_ADDRESS_PREFIXES):
            return ip
    return candidates[0] if candidates else None
