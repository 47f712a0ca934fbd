from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from pypuzzle._mqtt import PuzzleTopics
from pypuzzle.config import PuzzleConfig
from pypuzzle.dispatcher import CommandDispatcher
from pypuzzle.exceptions import MediaResolutionError, MediaTransferError, PuzzleTransportError
from pypuzzle.heartbeat import HeartbeatPublisher
from pypuzzle.lifecycle import LifecycleStateMachine
from pypuzzle.media import MediaOrchestrator
from pypuzzle.state.node import DeviceIdentity, NodeState


class RecordingPublisher:
    """In-memory publisher that records every message."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, Any]]] = []
        self.on_command: Callable[[dict[str, Any]], Any] | None = None
        self.fail = False
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, on_command: Callable[[dict[str, Any]], Any]) -> None:
        self.on_command = on_command
        self._running = True

    def stop(self) -> None:
        self._running = False

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        if self.fail:
            raise PuzzleTransportError("broker down", topic=topic)
        self.messages.append((topic, dict(payload)))

    def on(self, topic: str) -> list[dict[str, Any]]:
        return [payload for t, payload in self.messages if t == topic]

    def clear(self) -> None:
        self.messages.clear()


class FakeMediaTransport:
    """Media service double.

    ``names`` maps logical references to stored names; references listed in
    ``unresolvable`` fail resolution, names in ``broken`` fail download.
    """

    def __init__(
        self,
        *,
        names: Mapping[str, str] | None = None,
        unresolvable: Iterable[str] = (),
        broken: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.names = dict(names or {})
        self.unresolvable = set(unresolvable)
        self.broken = set(broken)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def _enter(self) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        if self.delay:
            await asyncio.sleep(self.delay)

    async def resolve(self, ref: str) -> str:
        self.calls.append(("resolve", ref))
        if ref in self.unresolvable:
            raise MediaResolutionError("Not found", name=ref, status_code=404)
        return self.names.get(ref, ref)

    async def download(self, remote_name: str, destination: Path) -> Path:
        self.calls.append(("download", remote_name))
        await self._enter()
        try:
            if remote_name in self.broken:
                raise MediaTransferError("Download failed (500)", name=remote_name, status_code=500)
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(remote_name.encode())
            return destination
        finally:
            self.active -= 1

    async def upload(self, local_path: Path, remote_name: str) -> dict[str, Any]:
        self.calls.append(("upload", remote_name))
        await self._enter()
        try:
            return {"success": True, "name": remote_name, "size": local_path.stat().st_size}
        finally:
            self.active -= 1


@dataclass
class Harness:
    config: PuzzleConfig
    node: NodeState
    topics: PuzzleTopics
    publisher: RecordingPublisher
    transport: FakeMediaTransport
    media: MediaOrchestrator
    heartbeat: HeartbeatPublisher
    lifecycle: LifecycleStateMachine
    dispatcher: CommandDispatcher

    def heartbeat_states(self) -> list[str]:
        return [payload["state"] for payload in self.publisher.on(self.topics.heartbeat)]


def build_harness(
    tmp_path: Path,
    *,
    transport: FakeMediaTransport | None = None,
    **overrides: Any,
) -> Harness:
    settings: dict[str, Any] = {
        "base_dir": tmp_path,
        "device_id": "dev-1",
        "puzzle_name": "Test Puzzle",
        "local_ip": "10.0.0.5",
        "heartbeat_interval": 0,
        "media_timeout": 5.0,
    }
    settings.update(overrides)
    config = PuzzleConfig(**settings)
    identity = DeviceIdentity(device_id="dev-1", display_name="Test Puzzle", network_address="10.0.0.5")
    node = NodeState(identity=identity, need_restart=config.need_restart)
    node.params.apply_defaults(config.default_outputs, config.default_external_check)
    topics = PuzzleTopics.for_device(identity.device_id)
    publisher = RecordingPublisher()
    transport = transport or FakeMediaTransport()
    media = MediaOrchestrator(config, node.params, transport)
    heartbeat = HeartbeatPublisher(node, publisher, topics, print_data=config.print_data)
    lifecycle = LifecycleStateMachine(
        node,
        media,
        heartbeat,
        restart_command_key=config.restart_command_key,
        restart_command_value=config.restart_command_value,
    )
    dispatcher = CommandDispatcher(node, lifecycle, media, heartbeat, config)
    return Harness(
        config=config,
        node=node,
        topics=topics,
        publisher=publisher,
        transport=transport,
        media=media,
        heartbeat=heartbeat,
        lifecycle=lifecycle,
        dispatcher=dispatcher,
    )


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return build_harness(tmp_path)


@pytest.fixture
def make_harness(tmp_path: Path) -> Callable[..., Harness]:
    def _make(**kwargs: Any) -> Harness:
        return build_harness(tmp_path, **kwargs)

    return _make
