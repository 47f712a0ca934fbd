"""Lifecycle state machine.

Transitions (after resolving ``active`` -> ``running``)::

    -> starting      commit
    -> running       [downloading: fetch media inputs] -> running
    -> solved        [uploading: push media outputs] -> solved, re-publish outputs
    -> locked/uploading/downloading   commit
    -> anything else commit verbatim

Every commit announces status. Media failures are logged and collected in
the returned :class:`TransitionResult`; they never stop a transition.

Callers must serialize transitions; :class:`pypuzzle.dispatcher.CommandDispatcher`
does so with its dispatch lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pypuzzle.heartbeat import HeartbeatPublisher
from pypuzzle.media import MediaOrchestrator
from pypuzzle.models.lifecycle import PuzzleState, resolve_state
from pypuzzle.models.params import ParamType
from pypuzzle.state.node import NodeState

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Final state of a transition and the media errors collected on the way."""

    state: str
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


class LifecycleStateMachine:
    """Owns the current lifecycle state and performs transitions."""

    def __init__(
        self,
        node: NodeState,
        media: MediaOrchestrator,
        heartbeat: HeartbeatPublisher,
        *,
        restart_command_key: str,
        restart_command_value: str,
    ) -> None:
        self._node = node
        self._media = media
        self._heartbeat = heartbeat
        self._restart_command_key = restart_command_key
        self._restart_command_value = restart_command_value

    @property
    def state(self) -> str:
        return self._node.state

    def _commit(self, state: str, *, publish_outputs: bool = False) -> None:
        previous = self._node.state
        self._node.state = state
        if previous != state:
            _logger.info("State %s -> %s", previous, state)
        self._heartbeat.announce()
        if publish_outputs:
            self._heartbeat.publish_all_outputs()

    async def _download_media_inputs(self) -> list[str]:
        if not self._media.has_media_inputs():
            return []
        self._commit(PuzzleState.DOWNLOADING)
        errors = await self._media.download_all_media_inputs()
        if errors:
            _logger.warning("Media download errors: %s", " | ".join(errors))
        return errors

    async def _upload_media_outputs(self) -> list[str]:
        if not self._media.has_media_outputs():
            return []
        self._commit(PuzzleState.UPLOADING)
        errors = await self._media.upload_all_media_outputs()
        if errors:
            _logger.warning("Media upload errors: %s", " | ".join(errors))
        return errors

    async def transition_to(self, requested: str) -> TransitionResult:
        """Move to *requested*, running the media step the target requires."""
        desired = resolve_state(requested)

        if desired == PuzzleState.RUNNING:
            errors = await self._download_media_inputs()
            self._commit(PuzzleState.RUNNING)
            return TransitionResult(self._node.state, tuple(errors))

        if desired == PuzzleState.SOLVED:
            errors = await self._upload_media_outputs()
            self._commit(PuzzleState.SOLVED, publish_outputs=True)
            return TransitionResult(self._node.state, tuple(errors))

        # starting, locked, uploading, downloading and forward-compatible values
        self._commit(desired)
        return TransitionResult(self._node.state)

    async def handle_restart(self) -> TransitionResult:
        """Run the restart protocol.

        1. set the restart-signal input so puzzle logic can react,
        2. go to ``starting`` when a full reconnect cycle is required,
        3. download media inputs (``downloading`` only if there are any),
        4. go to ``running`` unless step 2 applied; then the node stays in
           ``starting`` until ``restart_complete`` advances it.
        """
        need_restart = self._node.need_restart
        if self._restart_command_key:
            self._node.params.set_input(
                self._restart_command_key,
                ParamType.STRING,
                self._restart_command_value,
            )
        if need_restart:
            self._commit(PuzzleState.STARTING)
        errors = await self._download_media_inputs()
        if not need_restart:
            self._commit(PuzzleState.RUNNING)
        elif self._node.state != PuzzleState.STARTING:
            # Back from the download detour; wait for restart_complete.
            self._commit(PuzzleState.STARTING)
        return TransitionResult(self._node.state, tuple(errors))

    def restart_complete(self) -> str:
        """Advance ``starting`` to ``running``; any other state is left as is."""
        if self._node.state == PuzzleState.STARTING:
            self._commit(PuzzleState.RUNNING)
        return self._node.state
