"""Pub/sub channel: topic layout, publisher interface and the paho-mqtt runtime."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from pypuzzle._constants import (
    TOPIC_COMMAND,
    TOPIC_DATA,
    TOPIC_EXTERNAL_CHECK,
    TOPIC_HEARTBEAT,
    TOPIC_PREFIX,
)
from pypuzzle._redact import summarize_for_log
from pypuzzle.exceptions import PuzzleTransportError

CommandCallback = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class PuzzleTopics:
    """Topics of one node: ``puzzle/<device_id>/<suffix>``."""

    heartbeat: str
    command: str
    data: str
    external_check: str

    @classmethod
    def for_device(cls, device_id: str) -> PuzzleTopics:
        base = f"{TOPIC_PREFIX}/{device_id}"
        return cls(
            heartbeat=f"{base}/{TOPIC_HEARTBEAT}",
            command=f"{base}/{TOPIC_COMMAND}",
            data=f"{base}/{TOPIC_DATA}",
            external_check=f"{base}/{TOPIC_EXTERNAL_CHECK}",
        )


class Publisher(Protocol):
    """Outbound publish / inbound subscribe capability.

    The dispatcher and heartbeat publisher only see this interface, so they
    behave the same whether a broker is connected or not.
    """

    @property
    def is_running(self) -> bool:
        ...

    def start(self, on_command: CommandCallback) -> None:
        ...

    def stop(self) -> None:
        ...

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        ...


class NullPublisher:
    """Publisher used when no broker is configured; drops everything."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    @property
    def is_running(self) -> bool:
        return False

    def start(self, on_command: CommandCallback) -> None:
        self._logger.info("MQTT disabled; hub commands are only accepted over HTTP")

    def stop(self) -> None:
        return None

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        self._logger.debug("MQTT disabled, not publishing topic=%s", topic)


def decode_command_payload(raw: bytes) -> dict[str, Any]:
    """Decode a command message; anything but a JSON object yields ``{}``."""
    try:
        parsed = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


class PuzzleMqttRuntime:
    """Threaded paho-mqtt runtime that hands command payloads to an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        host: str,
        port: int,
        command_topic: str,
        client_id: str,
        keepalive: int = 60,
        username: str | None = None,
        password: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._host = host
        self._port = port
        self._command_topic = command_topic
        self._client_id = client_id
        self._keepalive = keepalive
        self._username = username
        self._password = password
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._on_command: CommandCallback | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    def start(self, on_command: CommandCallback) -> None:
        """Connect in the background and subscribe to the command topic."""
        self.stop()
        self._on_command = on_command
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            self._host,
            self._port,
            self._command_topic,
            self._client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
        )
        client.enable_logger(self._logger)
        if self._username:
            client.username_pw_set(self._username, self._password)
        client.reconnect_delay_set(min_delay=1, max_delay=30)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.info("MQTT connected %s:%s", self._host, self._port)
            c.subscribe(self._command_topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            if msg.topic != self._command_topic:
                return
            payload = decode_command_payload(msg.payload)
            self._logger.debug("[MQTT recv] %s %s", msg.topic, summarize_for_log(payload))
            callback = self._on_command
            if callback is not None:
                self._loop.call_soon_threadsafe(callback, payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect_async(self._host, self._port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._on_command = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        client = self._client
        if client is None or not self._running:
            raise PuzzleTransportError("MQTT client not started", topic=topic)
        self._logger.debug("[MQTT publish] %s %s", topic, summarize_for_log(payload))
        try:
            info = client.publish(topic, json.dumps(payload, separators=(",", ":")))
        except (ValueError, OSError) as exc:
            raise PuzzleTransportError(f"MQTT publish failed: {exc}", topic=topic) from exc
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PuzzleTransportError(f"MQTT publish failed: {mqtt.error_string(info.rc)}", topic=topic)
