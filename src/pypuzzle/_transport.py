"""HTTP transport to the hub's media service."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import aiohttp

from pypuzzle._constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_SUFFIX,
    MEDIA_DOWNLOAD_PREFIX,
    MEDIA_RESOLVE_PATH,
    MEDIA_UPLOAD_PATH,
)
from pypuzzle.exceptions import MediaResolutionError, MediaTransferError

_logger = logging.getLogger(__name__)


class MediaTransport(Protocol):
    """Structural media-service interface used by :class:`~pypuzzle.media.MediaOrchestrator`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpMediaTransport`) concrete.
    """

    async def resolve(self, ref: str) -> str:
        ...

    async def download(self, remote_name: str, destination: Path) -> Path:
        ...

    async def upload(self, local_path: Path, remote_name: str) -> dict[str, Any]:
        ...


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def _error_text(payload: Any, text: str, fallback: str) -> str:
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return text.strip() or fallback


class HttpMediaTransport:
    """aiohttp implementation of :class:`MediaTransport`.

    Endpoints (relative to ``base_url``):

    * ``GET /api/media/resolve?name=<ref>`` -> ``{"name": <stored name>}``
    * ``GET /media/<name>`` -> file bytes
    * ``POST /api/media/upload?name=<name>`` with the raw file body
    """

    def __init__(self, base_url: str, http_session: aiohttp.ClientSession) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_session

    @property
    def base_url(self) -> str:
        return self._base_url

    async def resolve(self, ref: str) -> str:
        key = (ref or "").strip()
        if not key:
            raise MediaResolutionError("remoteName required")
        url = f"{self._base_url}{MEDIA_RESOLVE_PATH}"
        _logger.debug("GET %s name=%s", url, key)
        try:
            async with self._http.get(url, params={"name": key}) as resp:
                text = await resp.text(errors="replace")
                status = resp.status
        except aiohttp.ClientError as exc:
            raise MediaResolutionError(f"Resolve request failed: {exc}", name=key) from exc

        payload = _parse_json(text)
        if 200 <= status < 300:
            if isinstance(payload, dict) and payload.get("name"):
                return str(payload["name"])
            return key
        raise MediaResolutionError(
            _error_text(payload, text, f"Resolve failed ({status})"),
            name=key,
            status_code=status,
        )

    async def download(self, remote_name: str, destination: Path) -> Path:
        """Stream ``remote_name`` into ``<destination>.download`` then rename it into place."""
        name = (remote_name or "").strip()
        if not name:
            raise MediaTransferError("remoteName required")
        url = f"{self._base_url}{MEDIA_DOWNLOAD_PREFIX}{quote(name, safe='')}"
        destination.parent.mkdir(parents=True, exist_ok=True)
        temp_path = destination.with_name(destination.name + DOWNLOAD_SUFFIX)

        _logger.debug("GET %s -> %s", url, destination)
        try:
            async with self._http.get(url) as resp:
                if resp.status != 200:
                    text = await resp.text(errors="replace")
                    raise MediaTransferError(
                        text.strip() or f"Download failed ({resp.status})",
                        name=name,
                        status_code=resp.status,
                    )
                with temp_path.open("wb") as fh:
                    async for chunk in resp.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                        fh.write(chunk)
            os.replace(temp_path, destination)
        except MediaTransferError:
            temp_path.unlink(missing_ok=True)
            raise
        except (aiohttp.ClientError, OSError) as exc:
            temp_path.unlink(missing_ok=True)
            raise MediaTransferError(f"Download of {name} failed: {exc}", name=name) from exc
        except BaseException:
            # Timeout/cancellation: never leave a partial file behind.
            temp_path.unlink(missing_ok=True)
            raise
        return destination

    async def upload(self, local_path: Path, remote_name: str) -> dict[str, Any]:
        name = remote_name or local_path.name
        url = f"{self._base_url}{MEDIA_UPLOAD_PATH}"
        _logger.debug("POST %s name=%s from %s", url, name, local_path)
        try:
            with local_path.open("rb") as fh:
                async with self._http.post(
                    url,
                    params={"name": name},
                    data=fh,
                    headers={"Content-Type": "application/octet-stream"},
                ) as resp:
                    text = await resp.text(errors="replace")
                    status = resp.status
        except FileNotFoundError as exc:
            raise MediaTransferError("Local file not found", name=name) from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise MediaTransferError(f"Upload of {name} failed: {exc}", name=name) from exc

        payload = _parse_json(text)
        if 200 <= status < 300:
            if isinstance(payload, dict):
                return payload
            return {"success": True, "name": name}
        raise MediaTransferError(
            _error_text(payload, text, f"Upload failed ({status})"),
            name=name,
            status_code=status,
        )
