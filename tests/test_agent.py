from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
from conftest import FakeMediaTransport, RecordingPublisher

from pypuzzle.agent import PuzzleAgent
from pypuzzle.config import PuzzleConfig
from pypuzzle.exceptions import PuzzleError


def _config(tmp_path: Path, **overrides: Any) -> PuzzleConfig:
    settings: dict[str, Any] = {
        "base_dir": tmp_path,
        "local_ip": "10.1.2.3",
        "puzzle_name": "Vault",
        "heartbeat_interval": 0,
    }
    settings.update(overrides)
    return PuzzleConfig(**settings)


def test_identity_defaults_to_address(tmp_path: Path) -> None:
    agent = PuzzleAgent(_config(tmp_path), publisher=RecordingPublisher(), transport=FakeMediaTransport())

    assert agent.identity.device_id == "10.1.2.3"
    assert agent.topics.command == "puzzle/10.1.2.3/command"
    with pytest.raises(PuzzleError, match="not started"):
        _ = agent.dispatcher


def test_configured_defaults_are_applied(tmp_path: Path) -> None:
    config = _config(
        tmp_path,
        device_id="vault-1",
        need_restart=True,
        default_outputs={"Result": {"type": "boolean", "data": "0"}},
    )
    agent = PuzzleAgent(config, publisher=RecordingPublisher(), transport=FakeMediaTransport())

    assert agent.identity.device_id == "vault-1"
    assert agent.node.need_restart is True
    output = agent.get_output("Result")
    assert output is not None and output.data is False


@pytest.mark.asyncio
async def test_agent_lifecycle_and_puzzle_api(tmp_path: Path) -> None:
    publisher = RecordingPublisher()
    agent = PuzzleAgent(
        _config(tmp_path, device_id="vault-1"),
        publisher=publisher,
        transport=FakeMediaTransport(),
        serve_http=False,
    )

    async with agent:
        assert publisher.is_running
        assert (tmp_path / "MediaStorage").is_dir()

        assert await agent.set_state("active") == "running"
        await agent.send_param("Code", "number", "1234")
        assert agent.get_input("Code") is not None
        await agent.set_output("Result", "string", "open")
        await agent.trigger_external_check("1234")
        reply = await agent.download_media_file("intro.mp4")
        assert reply["name"] == "intro.mp4"

        # Commands from the MQTT thread arrive through the start callback.
        assert publisher.on_command is not None
        await publisher.on_command({"action": "setState", "state": "solved"})
        assert agent.state == "solved"

    assert not publisher.is_running
    topics = {topic for topic, _payload in publisher.messages}
    assert topics == {"puzzle/vault-1/heartbeat", "puzzle/vault-1/data", "puzzle/vault-1/external-check"}


@pytest.mark.asyncio
async def test_heartbeat_tick_runs_while_started(tmp_path: Path) -> None:
    publisher = RecordingPublisher()
    agent = PuzzleAgent(
        _config(tmp_path, heartbeat_interval=0.01),
        publisher=publisher,
        transport=FakeMediaTransport(),
        serve_http=False,
    )

    async with agent:
        await asyncio.sleep(0.05)

    count = len(publisher.messages)
    assert count >= 2
    await asyncio.sleep(0.03)
    assert len(publisher.messages) == count
