"""Single command surface shared by the HTTP routes and the MQTT command topic."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pypuzzle._redact import summarize_for_log
from pypuzzle.config import PuzzleConfig
from pypuzzle.exceptions import PuzzleError, PuzzleValidationError, UnknownCommandError
from pypuzzle.heartbeat import HeartbeatPublisher
from pypuzzle.lifecycle import LifecycleStateMachine
from pypuzzle.media import MediaOrchestrator
from pypuzzle.models.commands import (
    READ_ONLY_ACTIONS,
    ClearData,
    Command,
    GetAll,
    GetExternalCheck,
    GetOutput,
    GetParam,
    GetState,
    InitKeys,
    MediaDownload,
    MediaUpload,
    RequestData,
    Restart,
    RestartComplete,
    RestartConfig,
    SendHeartbeat,
    SendOutput,
    SendParam,
    SetExternalCheck,
    SetOutput,
    SetState,
    TriggerExternalCheck,
    parse_command,
)
from pypuzzle.models.params import ParamEntry, ParamType
from pypuzzle.state.node import NodeState, RelayedHeartbeat
from pypuzzle.state.params import UNSET

_logger = logging.getLogger(__name__)

Reply = dict[str, Any]

# sendHeartbeat publishes its own (verbatim) heartbeat; media commands only
# touch files.
_NO_ANNOUNCE_ACTIONS: frozenset[str] = READ_ONLY_ACTIONS | {"sendHeartbeat", "mediaUpload", "mediaDownload"}


def _entry_json(entry: ParamEntry | None) -> dict[str, Any] | None:
    return entry.model_dump(mode="json") if entry is not None else None


class CommandDispatcher:
    """Apply hub commands to the node.

    Every command runs inside one ``asyncio.Lock``, so a command arriving on
    one channel never interleaves with a transition started from the other.
    Mutating commands announce status when they finish, failed or not.
    """

    def __init__(
        self,
        node: NodeState,
        lifecycle: LifecycleStateMachine,
        media: MediaOrchestrator,
        heartbeat: HeartbeatPublisher,
        config: PuzzleConfig,
    ) -> None:
        self._node = node
        self._lifecycle = lifecycle
        self._media = media
        self._heartbeat = heartbeat
        self._config = config
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()
        self._handlers: dict[type, Callable[[Any], Awaitable[Reply]]] = {
            SetState: self._set_state,
            GetState: self._get_state,
            SendParam: self._send_param,
            GetParam: self._get_param,
            SetOutput: self._set_output,
            SendOutput: self._send_output,
            GetOutput: self._get_output,
            RequestData: self._request_data,
            SetExternalCheck: self._set_external_check,
            GetExternalCheck: self._get_external_check,
            TriggerExternalCheck: self._trigger_external_check,
            InitKeys: self._init_keys,
            ClearData: self._clear_data,
            Restart: self._restart,
            RestartComplete: self._restart_complete,
            RestartConfig: self._restart_config,
            SendHeartbeat: self._send_heartbeat,
            GetAll: self._get_all,
            MediaUpload: self._media_upload,
            MediaDownload: self._media_download,
        }

    @property
    def node(self) -> NodeState:
        return self._node

    @property
    def busy(self) -> bool:
        """Whether a command is currently being handled."""
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def dispatch(self, command: Command) -> Reply:
        """Run *command* and return its reply.

        Raises
        ------
        PuzzleValidationError
            Bad arguments detected while handling the command.
        MediaError
            A single-file media command failed.
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise UnknownCommandError(command.action)
        async with self._lock:
            _logger.debug("Dispatch %s", summarize_for_log(command.model_dump(by_alias=True)))
            try:
                return await handler(command)
            finally:
                if command.action not in _NO_ANNOUNCE_ACTIONS:
                    self._heartbeat.announce()

    async def dispatch_payload(self, payload: Mapping[str, Any], *, action: str | None = None) -> Reply:
        """Parse a raw argument bag and dispatch it."""
        return await self.dispatch(parse_command(payload, action=action))

    async def dispatch_mqtt(self, payload: Mapping[str, Any]) -> None:
        """Handle a command from the MQTT topic.

        There is no reply channel, so failures are logged and dropped.
        """
        action = payload.get("action")
        try:
            command = parse_command(payload)
        except UnknownCommandError:
            _logger.warning("Ignoring MQTT command with unknown action %r", action)
            return
        except PuzzleValidationError as exc:
            _logger.warning("Ignoring invalid MQTT command %s: %s", action, exc)
            if action not in _NO_ANNOUNCE_ACTIONS:
                async with self._lock:
                    self._heartbeat.announce()
            return
        try:
            await self.dispatch(command)
        except PuzzleError as exc:
            _logger.warning("MQTT command %s failed: %s", command.action, exc)
        except Exception:
            _logger.exception("MQTT command %s raised", command.action)

    def submit_mqtt(self, payload: dict[str, Any]) -> asyncio.Task[None]:
        """Schedule :meth:`dispatch_mqtt` on the running loop.

        Used as the MQTT runtime callback, which runs on the event loop
        thread via ``call_soon_threadsafe``.
        """
        task = asyncio.get_running_loop().create_task(self.dispatch_mqtt(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _set_state(self, command: SetState) -> Reply:
        result = await self._lifecycle.transition_to(command.state)
        return {"ok": True, "state": str(result.state)}

    async def _get_state(self, _command: GetState) -> Reply:
        return {"state": str(self._node.state)}

    async def _restart(self, _command: Restart) -> Reply:
        result = await self._lifecycle.handle_restart()
        return {"ok": True, "state": str(result.state)}

    async def _restart_complete(self, _command: RestartComplete) -> Reply:
        return {"ok": True, "state": str(self._lifecycle.restart_complete())}

    async def _restart_config(self, command: RestartConfig) -> Reply:
        self._node.need_restart = command.need_restart
        return {"ok": True, "needRestart": self._node.need_restart}

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    async def _send_param(self, command: SendParam) -> Reply:
        self._node.params.set_input(command.key, command.type, command.data)
        return {
            "ok": True,
            "stored": {"key": command.key, "type": command.type or ParamType.STRING.value, "data": command.data},
        }

    async def _get_param(self, command: GetParam) -> Reply:
        return {"key": command.key, "data": _entry_json(self._node.params.get_input(command.key))}

    async def _store_output(self, command: SetOutput | SendOutput) -> Reply:
        entry = self._node.params.set_output(command.key, command.type, command.data)
        return {
            "ok": True,
            "stored": {"key": command.key, "type": command.type or ParamType.STRING.value, "data": _entry_json(entry)},
        }

    async def _set_output(self, command: SetOutput) -> Reply:
        return await self._store_output(command)

    async def _send_output(self, command: SendOutput) -> Reply:
        reply = await self._store_output(command)
        self._heartbeat.publish_data(command.key or "")
        return reply

    async def _get_output(self, command: GetOutput) -> Reply:
        return {"key": command.key, "data": _entry_json(self._node.params.get_output(command.key))}

    async def _request_data(self, command: RequestData) -> Reply:
        if command.key:
            payload = self._heartbeat.publish_data(command.key)
            published = [payload.key] if payload is not None else []
        else:
            published = [payload.key for payload in self._heartbeat.publish_all_outputs()]
        return {"ok": True, "published": published}

    async def _init_keys(self, command: InitKeys) -> Reply:
        inputs = [(spec.key, spec.type) for spec in command.inputs] if command.inputs is not None else None
        outputs = [(spec.key, spec.type) for spec in command.outputs] if command.outputs is not None else None
        self._node.params.init_keys(inputs, outputs)
        return {"ok": True, **self._node.params.snapshot()}

    async def _clear_data(self, _command: ClearData) -> Reply:
        params = self._node.params
        params.clear_all()
        params.apply_defaults(self._config.default_outputs, self._config.default_external_check)
        if self._config.print_data:
            _logger.info("[CLEAR DATA]")
        return {"ok": True}

    async def _get_all(self, _command: GetAll) -> Reply:
        return {**self._node.params.snapshot(), "state": str(self._node.state)}

    # ------------------------------------------------------------------
    # External check and heartbeat relay
    # ------------------------------------------------------------------

    async def _set_external_check(self, command: SetExternalCheck) -> Reply:
        check = self._node.params.set_external_check(
            command.value, active=UNSET if command.active is None else command.active
        )
        return {"ok": True, "externalCheck": check.model_dump(mode="json")}

    async def _get_external_check(self, _command: GetExternalCheck) -> Reply:
        return {"externalCheck": self._node.params.get_external_check().model_dump(mode="json")}

    async def _trigger_external_check(self, command: TriggerExternalCheck) -> Reply:
        # An explicit null deactivates; omitting the flag activates.
        check = self._node.params.set_external_check(command.value, active=bool(command.active))
        # Always notify, even when nothing changed.
        self._heartbeat.publish_external_check()
        return {"ok": True, "externalCheck": check.model_dump(mode="json")}

    async def _send_heartbeat(self, command: SendHeartbeat) -> Reply:
        self._node.heartbeat = RelayedHeartbeat(name=command.name, state=command.state)
        self._heartbeat.relay(command.name, command.state)
        return {"ok": True}

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def _media_upload(self, command: MediaUpload) -> Reply:
        return await self._media.upload_one(command.local_path, command.remote_name)

    async def _media_download(self, command: MediaDownload) -> Reply:
        return await self._media.download_file(command.remote_name, command.local_path)
