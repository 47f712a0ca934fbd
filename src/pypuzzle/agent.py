"""Puzzle node agent: wires configuration, state and the hub channels together."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiohttp
from aiohttp import web

from pypuzzle._constants import DEFAULT_DEVICE_ID
from pypuzzle._mqtt import NullPublisher, Publisher, PuzzleMqttRuntime, PuzzleTopics
from pypuzzle._netinfo import detect_local_ip
from pypuzzle._transport import HttpMediaTransport, MediaTransport
from pypuzzle.config import PuzzleConfig
from pypuzzle.dispatcher import CommandDispatcher, Reply
from pypuzzle.exceptions import PuzzleError
from pypuzzle.heartbeat import HeartbeatPublisher
from pypuzzle.lifecycle import LifecycleStateMachine
from pypuzzle.media import MediaOrchestrator
from pypuzzle.models.params import ParamEntry
from pypuzzle.server import create_app
from pypuzzle.state.node import DeviceIdentity, NodeState

_logger = logging.getLogger(__name__)


def _build_identity(config: PuzzleConfig) -> DeviceIdentity:
    address = detect_local_ip(config.local_ip)
    return DeviceIdentity(
        device_id=config.device_id or address or DEFAULT_DEVICE_ID,
        display_name=config.puzzle_name,
        network_address=address,
    )


class PuzzleAgent:
    """A puzzle node connected to the hub.

    Usage::

        async with PuzzleAgent(PuzzleConfig.load()) as agent:
            await agent.set_state("running")
            await agent.run_forever()

    Parameters
    ----------
    config : PuzzleConfig
        Agent configuration.
    publisher : Publisher, optional
        Pub/sub channel. Defaults to the paho-mqtt runtime, or a no-op
        publisher when MQTT is disabled.
    transport : MediaTransport, optional
        Media service client. Defaults to :class:`HttpMediaTransport`.
    session : aiohttp.ClientSession, optional
        HTTP session for the default transport; created and closed by the
        agent when omitted.
    serve_http : bool
        Start the request/response API on ``config.http_host:http_port``.
    """

    def __init__(
        self,
        config: PuzzleConfig,
        *,
        publisher: Publisher | None = None,
        transport: MediaTransport | None = None,
        session: aiohttp.ClientSession | None = None,
        serve_http: bool = True,
    ) -> None:
        self._config = config
        self._identity = _build_identity(config)
        self._topics = PuzzleTopics.for_device(self._identity.device_id)
        self._node = NodeState(identity=self._identity, need_restart=config.need_restart)
        self._node.params.apply_defaults(config.default_outputs, config.default_external_check)

        self._publisher = publisher
        self._transport = transport
        self._external_session = session is not None
        self._http_session = session
        self._serve_http = serve_http

        self._dispatcher: CommandDispatcher | None = None
        self._heartbeat: HeartbeatPublisher | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._runner: web.AppRunner | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> PuzzleConfig:
        return self._config

    @property
    def identity(self) -> DeviceIdentity:
        return self._identity

    @property
    def topics(self) -> PuzzleTopics:
        return self._topics

    @property
    def node(self) -> NodeState:
        return self._node

    @property
    def state(self) -> str:
        return self._node.state

    @property
    def dispatcher(self) -> CommandDispatcher:
        if self._dispatcher is None:
            raise PuzzleError("Agent not started. Use 'async with PuzzleAgent(...) as agent:'")
        return self._dispatcher

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PuzzleAgent:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def _make_publisher(self, loop: asyncio.AbstractEventLoop) -> Publisher:
        if not self._config.mqtt_enabled:
            return NullPublisher(_logger)
        return PuzzleMqttRuntime(
            loop=loop,
            host=self._config.broker_host,
            port=self._config.mqtt_port,
            command_topic=self._topics.command,
            client_id=f"puzzle-{self._identity.device_id}",
            keepalive=self._config.mqtt_keepalive,
            username=self._config.mqtt_username,
            password=self._config.mqtt_password,
            logger=logging.getLogger("pypuzzle.mqtt"),
        )

    async def start(self) -> None:
        """Build the components and connect both hub channels."""
        if self._dispatcher is not None:
            return
        loop = asyncio.get_running_loop()
        config = self._config
        _logger.info("Device ID: %s (address %s)", self._identity.device_id, self._identity.network_address)

        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpMediaTransport(config.media_base_url, self._http_session)
        if self._publisher is None:
            self._publisher = self._make_publisher(loop)

        media = MediaOrchestrator(config, self._node.params, self._transport)
        try:
            media.ensure_local_dir()
        except OSError:
            _logger.warning("Media directory %s could not be created", media.media_dir, exc_info=True)

        heartbeat = HeartbeatPublisher(self._node, self._publisher, self._topics, print_data=config.print_data)
        lifecycle = LifecycleStateMachine(
            self._node,
            media,
            heartbeat,
            restart_command_key=config.restart_command_key,
            restart_command_value=config.restart_command_value,
        )
        dispatcher = CommandDispatcher(self._node, lifecycle, media, heartbeat, config)
        self._heartbeat = heartbeat
        self._dispatcher = dispatcher

        try:
            self._publisher.start(dispatcher.submit_mqtt)
        except Exception:
            _logger.warning("MQTT startup failed, continuing without pub/sub", exc_info=True)
            self._publisher = NullPublisher(_logger)

        if self._serve_http:
            runner = web.AppRunner(create_app(dispatcher))
            await runner.setup()
            site = web.TCPSite(runner, config.http_host, config.http_port)
            await site.start()
            self._runner = runner
            _logger.info("Puzzle agent listening on http://%s:%s", config.http_host, config.http_port)
        _logger.info("Hub host: %s  MQTT: %s:%s", config.hub_host, config.broker_host, config.mqtt_port)

        if config.heartbeat_interval > 0:
            self._heartbeat_task = loop.create_task(heartbeat.run(config.heartbeat_interval))

    async def stop(self) -> None:
        """Cancel the heartbeat tick and close both channels."""
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        if self._publisher is not None:
            self._publisher.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._dispatcher = None
        self._heartbeat = None

    async def run_forever(self) -> None:
        """Block until cancelled."""
        await asyncio.Event().wait()

    # ------------------------------------------------------------------
    # Puzzle-logic API
    # ------------------------------------------------------------------

    async def _dispatch(self, action: str, **args: Any) -> Reply:
        return await self.dispatcher.dispatch_payload(args, action=action)

    async def set_state(self, state: str) -> str:
        """Request a lifecycle transition and return the resulting state."""
        reply = await self._dispatch("setState", state=state)
        return reply["state"]

    async def set_output(self, key: str, type_tag: str, data: Any, *, publish: bool = True) -> Reply:
        """Store an output; by default also publish it to the hub."""
        return await self._dispatch("sendOutput" if publish else "setOutput", key=key, type=type_tag, data=data)

    async def send_param(self, key: str, type_tag: str, data: Any) -> Reply:
        """Store an input as if the hub had sent it."""
        return await self._dispatch("sendParam", key=key, type=type_tag, data=data)

    def get_input(self, key: str) -> ParamEntry | None:
        return self._node.params.get_input(key)

    def get_output(self, key: str) -> ParamEntry | None:
        return self._node.params.get_output(key)

    async def set_external_check_value(self, value: Any, *, active: bool | None = None) -> Reply:
        return await self._dispatch("setExternalCheck", value=value, active=active)

    async def trigger_external_check(self, value: Any, *, active: bool = True) -> Reply:
        """Set the external check and notify the hub, even if unchanged."""
        return await self._dispatch("triggerExternalCheck", value=value, active=active)

    async def upload_media_file(self, local_path: str | Path, remote_name: str | None = None) -> Reply:
        return await self._dispatch("mediaUpload", localPath=str(local_path), remoteName=remote_name)

    async def download_media_file(self, remote_name: str, local_path: str | Path | None = None) -> Reply:
        return await self._dispatch(
            "mediaDownload",
            remoteName=remote_name,
            localPath=str(local_path) if local_path is not None else None,
        )
