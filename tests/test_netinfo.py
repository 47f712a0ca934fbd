from __future__ import annotations

import socket
from types import SimpleNamespace

import pytest

from pypuzzle import _netinfo


def _addr(family: int, address: str) -> SimpleNamespace:
    return SimpleNamespace(family=family, address=address)


def test_override_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(_netinfo.psutil, "net_if_addrs", lambda: pytest.fail("must not enumerate"))
    assert _netinfo.detect_local_ip("10.9.8.7") == "10.9.8.7"


def test_prefers_private_ranges(monkeypatch: pytest.MonkeyPatch) -> None:
    interfaces = {
        "lo": [_addr(socket.AF_INET, "127.0.0.1")],
        "vbox": [_addr(socket.AF_INET, "192.168.56.1")],
        "wan": [_addr(socket.AF_INET, "203.0.113.4"), _addr(socket.AF_INET6, "fe80::1")],
        "eth0": [_addr(socket.AF_INET, "192.168.1.20")],
    }
    monkeypatch.setattr(_netinfo.psutil, "net_if_addrs", lambda: interfaces)

    assert _netinfo.detect_local_ip() == "192.168.1.20"


def test_falls_back_to_first_public_then_none(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        _netinfo.psutil,
        "net_if_addrs",
        lambda: {"wan": [_addr(socket.AF_INET, "203.0.113.4")], "ll": [_addr(socket.AF_INET, "169.254.3.3")]},
    )
    assert _netinfo.detect_local_ip() == "203.0.113.4"

    monkeypatch.setattr(_netinfo.psutil, "net_if_addrs", lambda: {"lo": [_addr(socket.AF_INET, "127.0.0.1")]})
    assert _netinfo.detect_local_ip() is None
