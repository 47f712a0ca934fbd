"""Media orchestration between local storage and the hub media service.

Bulk transfers are best-effort: each key is processed strictly one after
another and failures are collected as messages instead of aborting the
batch, so a lifecycle transition always reaches its target state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import Any, TypeVar

from pypuzzle._transport import MediaTransport
from pypuzzle.config import PuzzleConfig
from pypuzzle.exceptions import MediaError, MediaResolutionError, MediaTransferError
from pypuzzle.state.params import ParamStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class MediaOrchestrator:
    """Resolve, download and upload media files for media-typed parameters."""

    def __init__(
        self,
        config: PuzzleConfig,
        params: ParamStore,
        transport: MediaTransport,
    ) -> None:
        self._config = config
        self._params = params
        self._transport = transport
        self._timeout = config.media_timeout

    @property
    def media_dir(self) -> Path:
        return self._config.media_dir

    def ensure_local_dir(self) -> Path:
        directory = self.media_dir
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def find_local_media(self, key: str) -> Path | None:
        """Find a file in the media directory whose stem equals *key*."""
        base = (key or "").strip()
        if not base:
            return None
        try:
            directory = self.ensure_local_dir()
            for candidate in sorted(directory.iterdir()):
                if candidate.is_file() and candidate.stem == base:
                    return candidate
        except OSError:
            _logger.debug("Listing %s failed", self.media_dir, exc_info=True)
        return None

    def has_media_inputs(self) -> bool:
        return any(ref.strip() for _key, ref in self._params.list_media_inputs())

    def has_media_outputs(self) -> bool:
        return bool(self._params.list_media_outputs())

    async def _bounded(self, awaitable: Awaitable[T], *, name: str) -> T:
        if self._timeout <= 0:
            return await awaitable
        try:
            async with asyncio.timeout(self._timeout):
                return await awaitable
        except TimeoutError as exc:
            raise MediaTransferError(f"Timed out after {self._timeout:g}s", name=name) from exc

    # ------------------------------------------------------------------
    # Single-file operations
    # ------------------------------------------------------------------

    async def resolve_remote_name(self, ref: str) -> str:
        """Ask the media service for the stored file name behind *ref*."""
        key = (ref or "").strip()
        if not key:
            raise MediaResolutionError("Media reference is empty")
        return await self._bounded(self._transport.resolve(key), name=key)

    async def download_one(self, ref: str, destination_dir: Path | None = None) -> Path:
        """Resolve *ref* and download it into *destination_dir* (default: media dir)."""
        name = await self.resolve_remote_name(ref)
        directory = destination_dir if destination_dir is not None else self.ensure_local_dir()
        # The hub names the file; keep it inside the target directory.
        target = directory / Path(name).name
        return await self._bounded(self._transport.download(name, target), name=name)

    async def download_file(self, remote_name: str | None, local_path: str | None = None) -> dict[str, Any]:
        """Download *remote_name* as-is (no resolution) to *local_path*."""
        name = (remote_name or "").strip()
        if not name:
            raise MediaTransferError("remoteName required")
        if local_path:
            target = self._config.resolve_path(local_path)
        else:
            target = self.ensure_local_dir() / Path(name).name
        path = await self._bounded(self._transport.download(name, target), name=name)
        return {"success": True, "path": str(path), "name": name}

    async def upload_one(self, local_path: str | Path | None, remote_name: str | None = None) -> dict[str, Any]:
        """Upload a local file; *remote_name* defaults to its base name."""
        if not local_path:
            raise MediaTransferError("localPath required")
        path = self._config.resolve_path(local_path)
        if not path.is_file():
            raise MediaTransferError("Local file not found", name=str(local_path))
        name = remote_name or path.name
        return await self._bounded(self._transport.upload(path, name), name=name)

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    async def download_all_media_inputs(self) -> list[str]:
        """Download every media input; returns one message per failed key."""
        entries = [(key, ref) for key, ref in self._params.list_media_inputs() if ref.strip()]
        errors: list[str] = []
        for key, ref in entries:
            try:
                path = await self.download_one(ref)
                _logger.debug("Media input %s downloaded to %s", key, path)
            except (MediaError, OSError) as exc:
                errors.append(f"Media download failed for {key}: {exc}")
            except Exception as exc:
                _logger.debug("Media input %s failed unexpectedly", key, exc_info=True)
                errors.append(f"Media download failed for {key}: {exc!r}")
        return errors

    async def upload_all_media_outputs(self) -> list[str]:
        """Upload the local file of every media output; returns one message per failed key."""
        errors: list[str] = []
        for key, _ref in self._params.list_media_outputs():
            source = self.find_local_media(key)
            if source is None:
                errors.append(f"Media file not found: {key}")
                continue
            try:
                await self.upload_one(source, source.name)
                _logger.debug("Media output %s uploaded from %s", key, source)
            except (MediaError, OSError) as exc:
                errors.append(f"Media upload failed for {key}: {exc}")
            except Exception as exc:
                _logger.debug("Media output %s failed unexpectedly", key, exc_info=True)
                errors.append(f"Media upload failed for {key}: {exc!r}")
        return errors
