from __future__ import annotations

from pypuzzle._redact import summarize_for_log


def test_summarize_for_log_redacts_credentials() -> None:
    payload = {
        "action": "sendParam",
        "mqtt_password": "pw",
        "nested": {"Token": "abc", "data": [1, 2]},
    }

    summary = summarize_for_log(payload)

    assert summary["mqtt_password"] == "<redacted>"
    assert summary["nested"]["Token"] == "<redacted>"
    assert summary["nested"]["data"] == [1, 2]
    assert summary["action"] == "sendParam"


def test_summarize_for_log_truncates_long_values() -> None:
    summary = summarize_for_log({"data": "x" * 600, "blob": b"\x00" * 32, "items": list(range(60))}, max_string=10)

    assert summary["data"].startswith("x" * 10)
    assert summary["data"].endswith("<600 chars>")
    assert summary["blob"] == "<bytes:32b>"
    assert len(summary["items"]) == 51
    assert summary["items"][-1] == "<+10 more>"
