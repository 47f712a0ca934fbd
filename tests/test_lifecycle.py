from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import pytest
from conftest import FakeMediaTransport, Harness

from pypuzzle.models.lifecycle import PuzzleState


@pytest.mark.asyncio
async def test_running_without_media_skips_downloading(harness: Harness) -> None:
    harness.node.params.set_input("Code", "string", "1234")

    result = await harness.lifecycle.transition_to("running")

    assert result.state == PuzzleState.RUNNING
    assert result.errors == ()
    assert harness.heartbeat_states() == ["running"]
    assert harness.transport.calls == []


@pytest.mark.asyncio
async def test_active_alias_goes_to_running(harness: Harness) -> None:
    result = await harness.lifecycle.transition_to("active")
    assert result.state == PuzzleState.RUNNING
    assert harness.node.state == "running"


@pytest.mark.asyncio
async def test_running_downloads_media_inputs(harness: Harness, tmp_path: Path) -> None:
    harness.transport.names["Intro"] = "intro-v2.mp4"
    harness.node.params.set_input("Intro", "media", None)

    result = await harness.lifecycle.transition_to("running")

    assert result.ok
    assert harness.heartbeat_states() == ["downloading", "running"]
    assert (tmp_path / "MediaStorage" / "intro-v2.mp4").read_bytes() == b"intro-v2.mp4"


@pytest.mark.asyncio
async def test_failed_resolution_still_reaches_running(
    make_harness: Callable[..., Harness], caplog: pytest.LogCaptureFixture
) -> None:
    harness = make_harness(transport=FakeMediaTransport(unresolvable={"Intro"}))
    harness.node.params.set_input("Intro", "media", None)

    with caplog.at_level(logging.WARNING, logger="pypuzzle.lifecycle"):
        result = await harness.lifecycle.transition_to("running")

    assert result.state == PuzzleState.RUNNING
    assert len(result.errors) == 1
    assert "Intro" in result.errors[0]
    assert "Media download errors" in caplog.text
    assert harness.heartbeat_states() == ["downloading", "running"]


@pytest.mark.asyncio
async def test_download_errors_accumulate_in_key_order(make_harness: Callable[..., Harness]) -> None:
    harness = make_harness(transport=FakeMediaTransport(unresolvable={"B"}, broken={"C"}))
    for key in ("A", "B", "C"):
        harness.node.params.set_input(key, "media", None)

    result = await harness.lifecycle.transition_to("running")

    assert result.state == PuzzleState.RUNNING
    assert [error.split(":")[0] for error in result.errors] == [
        "Media download failed for B",
        "Media download failed for C",
    ]
    assert harness.transport.max_active == 1


@pytest.mark.asyncio
async def test_solved_uploads_and_publishes_outputs_once(harness: Harness, tmp_path: Path) -> None:
    media_dir = tmp_path / "MediaStorage"
    media_dir.mkdir()
    (media_dir / "Photo.jpg").write_bytes(b"jpeg")
    harness.node.params.set_output("Photo", "media", None)
    harness.node.params.set_output("Result", "string", "done")

    result = await harness.lifecycle.transition_to("solved")

    assert result.ok
    assert harness.heartbeat_states() == ["uploading", "solved"]
    assert ("upload", "Photo.jpg") in harness.transport.calls
    data = harness.publisher.on(harness.topics.data)
    assert [payload["key"] for payload in data] == ["Photo", "Result"]
    assert data[0] == {"key": "Photo", "type": "media", "data": "Photo", "deviceId": "dev-1"}


@pytest.mark.asyncio
async def test_solved_reports_missing_media_file(harness: Harness) -> None:
    harness.node.params.set_output("Photo", "media", None)

    result = await harness.lifecycle.transition_to("solved")

    assert result.state == PuzzleState.SOLVED
    assert result.errors == ("Media file not found: Photo",)


@pytest.mark.asyncio
async def test_solved_without_media_outputs_skips_uploading(harness: Harness) -> None:
    await harness.lifecycle.transition_to("solved")
    assert harness.heartbeat_states() == ["solved"]


@pytest.mark.asyncio
@pytest.mark.parametrize("requested", ["locked", "uploading", "downloading", "starting"])
async def test_direct_states(harness: Harness, requested: str) -> None:
    result = await harness.lifecycle.transition_to(requested)
    assert result.state == requested
    assert harness.heartbeat_states() == [requested]


@pytest.mark.asyncio
async def test_unknown_state_is_stored_verbatim(harness: Harness) -> None:
    result = await harness.lifecycle.transition_to("Maintenance")
    assert result.state == "Maintenance"
    assert harness.heartbeat_states() == ["Maintenance"]


@pytest.mark.asyncio
async def test_restart_without_reconnect_cycle(harness: Harness) -> None:
    result = await harness.lifecycle.handle_restart()

    assert result.state == PuzzleState.RUNNING
    signal = harness.node.params.get_input("SystemCommand")
    assert signal is not None and signal.data == "restart"
    assert harness.heartbeat_states() == ["running"]


@pytest.mark.asyncio
async def test_restart_with_reconnect_cycle_waits_for_completion(harness: Harness) -> None:
    harness.node.need_restart = True
    harness.node.params.set_input("Intro", "media", None)

    result = await harness.lifecycle.handle_restart()

    assert result.state == PuzzleState.STARTING
    assert harness.heartbeat_states() == ["starting", "downloading", "starting"]
    assert harness.lifecycle.restart_complete() == PuzzleState.RUNNING


@pytest.mark.asyncio
async def test_restart_with_reconnect_cycle_no_media(harness: Harness) -> None:
    harness.node.need_restart = True

    result = await harness.lifecycle.handle_restart()

    assert result.state == PuzzleState.STARTING
    assert harness.lifecycle.restart_complete() == PuzzleState.RUNNING
    assert harness.heartbeat_states() == ["starting", "running"]


def test_restart_complete_outside_starting_is_a_no_op(harness: Harness) -> None:
    harness.node.state = PuzzleState.SOLVED
    assert harness.lifecycle.restart_complete() == PuzzleState.SOLVED
    assert harness.heartbeat_states() == []


@pytest.mark.asyncio
async def test_custom_restart_signal(make_harness: Callable[..., Harness]) -> None:
    harness = make_harness(restart_command_key="Reset", restart_command_value="now")
    await harness.lifecycle.handle_restart()
    entry = harness.node.params.get_input("Reset")
    assert entry is not None and entry.data == "now"
