from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import pytest
from conftest import Harness


def test_announce_payload(harness: Harness) -> None:
    payload = harness.heartbeat.announce()

    assert payload.to_wire() == {"name": "Test Puzzle", "state": "locked", "deviceId": "dev-1", "ip": "10.0.0.5"}
    assert harness.publisher.messages == [("puzzle/dev-1/heartbeat", payload.to_wire())]


def test_publish_data_skips_unknown_keys(harness: Harness) -> None:
    assert harness.heartbeat.publish_data("nothing") is None
    assert harness.publisher.messages == []


def test_publish_failure_is_logged(harness: Harness, caplog: pytest.LogCaptureFixture) -> None:
    harness.publisher.fail = True

    with caplog.at_level(logging.WARNING, logger="pypuzzle.heartbeat"):
        harness.heartbeat.announce()

    assert "broker down" in caplog.text


def test_print_data_logs_outputs(make_harness: Callable[..., Harness], caplog: pytest.LogCaptureFixture) -> None:
    harness = make_harness(print_data=True)
    harness.node.params.set_output("Result", "number", "3")

    with caplog.at_level(logging.INFO, logger="pypuzzle.heartbeat"):
        harness.heartbeat.publish_all_outputs()

    assert "[DATA OUT] Result 3" in caplog.text


def test_external_check_payload(harness: Harness) -> None:
    harness.node.params.set_external_check({"code": "1234"}, active=True)

    payload = harness.heartbeat.publish_external_check()

    assert payload.to_wire() == {"active": True, "variable": {"code": "1234"}, "deviceId": "dev-1"}


@pytest.mark.asyncio
async def test_periodic_tick_announces_until_cancelled(harness: Harness) -> None:
    task = asyncio.create_task(harness.heartbeat.run(0.01))
    await asyncio.sleep(0.055)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(harness.heartbeat_states()) >= 3


@pytest.mark.asyncio
async def test_zero_interval_disables_tick(harness: Harness) -> None:
    await asyncio.wait_for(harness.heartbeat.run(0), timeout=1)
    assert harness.publisher.messages == []
