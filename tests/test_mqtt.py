from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pypuzzle._mqtt import NullPublisher, PuzzleMqttRuntime, PuzzleTopics, decode_command_payload
from pypuzzle.exceptions import PuzzleTransportError


def test_topics_for_device() -> None:
    topics = PuzzleTopics.for_device("192.168.1.20")

    assert topics.heartbeat == "puzzle/192.168.1.20/heartbeat"
    assert topics.command == "puzzle/192.168.1.20/command"
    assert topics.data == "puzzle/192.168.1.20/data"
    assert topics.external_check == "puzzle/192.168.1.20/external-check"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (b'{"action": "restart"}', {"action": "restart"}),
        (b"[1, 2]", {}),
        (b"not json", {}),
        (b"\xff\xfe", {}),
    ],
)
def test_decode_command_payload(raw: bytes, expected: dict[str, Any]) -> None:
    assert decode_command_payload(raw) == expected


def test_null_publisher_drops_everything() -> None:
    publisher = NullPublisher()
    publisher.start(lambda _payload: None)
    publisher.publish("puzzle/x/heartbeat", {"state": "locked"})
    publisher.stop()
    assert publisher.is_running is False


@pytest.mark.asyncio
async def test_runtime_publish_before_start_raises() -> None:
    runtime = PuzzleMqttRuntime(
        loop=asyncio.get_running_loop(),
        host="localhost",
        port=1883,
        command_topic="puzzle/dev-1/command",
        client_id="puzzle-dev-1",
    )

    assert runtime.is_running is False
    with pytest.raises(PuzzleTransportError, match="not started") as exc_info:
        runtime.publish("puzzle/dev-1/heartbeat", {"state": "locked"})
    assert exc_info.value.topic == "puzzle/dev-1/heartbeat"
    runtime.stop()
