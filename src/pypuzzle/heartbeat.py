"""Status announcements and outbound data publishing."""

from __future__ import annotations

import asyncio
import logging

from pypuzzle._mqtt import Publisher, PuzzleTopics
from pypuzzle.exceptions import PuzzleTransportError
from pypuzzle.models._base import PuzzleBaseModel
from pypuzzle.models.params import ParamType
from pypuzzle.models.payloads import DataPayload, ExternalCheckPayload, HeartbeatPayload
from pypuzzle.state.node import NodeState

_logger = logging.getLogger(__name__)


class HeartbeatPublisher:
    """Builds and emits heartbeat, data and external-check payloads.

    All payloads go through one emit path; a failed publish is logged and
    otherwise ignored (the next tick or command tries again).
    """

    def __init__(
        self,
        node: NodeState,
        publisher: Publisher,
        topics: PuzzleTopics,
        *,
        print_data: bool = False,
    ) -> None:
        self._node = node
        self._publisher = publisher
        self._topics = topics
        self._print_data = print_data

    @property
    def topics(self) -> PuzzleTopics:
        return self._topics

    def _emit(self, topic: str, payload: PuzzleBaseModel) -> bool:
        try:
            self._publisher.publish(topic, payload.to_wire())
        except PuzzleTransportError as exc:
            _logger.warning("Publish to %s failed: %s", topic, exc)
            return False
        return True

    def build(self) -> HeartbeatPayload:
        identity = self._node.identity
        return HeartbeatPayload(
            name=identity.display_name,
            state=str(self._node.state),
            device_id=identity.device_id,
            ip=identity.network_address,
        )

    def announce(self) -> HeartbeatPayload:
        """Emit ``{name, state, deviceId, ip}`` on the heartbeat topic."""
        payload = self.build()
        _logger.debug("[HEARTBEAT] %s", payload.to_wire())
        self._emit(self._topics.heartbeat, payload)
        return payload

    def relay(self, name: str | None, state: str | None) -> HeartbeatPayload:
        """Publish a caller-supplied name/state pair verbatim."""
        identity = self._node.identity
        payload = HeartbeatPayload(
            name=name,
            state=state,
            device_id=identity.device_id,
            ip=identity.network_address,
        )
        self._emit(self._topics.heartbeat, payload)
        return payload

    def publish_data(self, key: str) -> DataPayload | None:
        entry = self._node.params.get_output(key)
        if entry is None:
            return None
        data = key if entry.type == ParamType.MEDIA else entry.data
        payload = DataPayload(key=key, type=entry.type, data=data, device_id=self._node.identity.device_id)
        self._emit(self._topics.data, payload)
        if self._print_data:
            _logger.info("[DATA OUT] %s %r", key, data)
        return payload

    def publish_all_outputs(self) -> list[DataPayload]:
        published: list[DataPayload] = []
        for key in self._node.params.output_keys():
            payload = self.publish_data(key)
            if payload is not None:
                published.append(payload)
        return published

    def publish_external_check(self) -> ExternalCheckPayload:
        check = self._node.params.get_external_check()
        payload = ExternalCheckPayload(
            active=bool(check.active),
            variable=check.value,
            device_id=self._node.identity.device_id,
        )
        self._emit(self._topics.external_check, payload)
        return payload

    async def run(self, interval: float) -> None:
        """Announce every *interval* seconds until cancelled."""
        if interval <= 0:
            return
        while True:
            await asyncio.sleep(interval)
            self.announce()
