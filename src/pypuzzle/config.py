"""Agent configuration for pypuzzle.

Precedence (highest first): explicit keyword overrides, environment
variables, ``puzzle.config.json``, built-in defaults.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pypuzzle._constants import (
    CONFIG_FILE_NAME,
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    DEFAULT_HTTP_PORT,
    DEFAULT_HUB_HOST,
    DEFAULT_MEDIA_LOCAL_DIR,
    DEFAULT_MEDIA_TIMEOUT,
    DEFAULT_MQTT_PORT,
    DEFAULT_PUZZLE_NAME,
    DEFAULT_RESTART_COMMAND_KEY,
    DEFAULT_RESTART_COMMAND_VALUE,
)
from pypuzzle.exceptions import PuzzleConfigError

_logger = logging.getLogger(__name__)

_TRUE_WORDS = frozenset({"1", "true", "yes", "y", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "n", "off"})


def _env_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_WORDS:
        return True
    if normalized in _FALSE_WORDS:
        return False
    return default


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise PuzzleConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise PuzzleConfigError(f"{name} must be a number, got {value!r}") from exc


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read ``puzzle.config.json``; a missing or unreadable file yields ``{}``."""
    cfg_path = Path(path)
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        _logger.warning("Config file %s could not be read, using defaults", cfg_path, exc_info=True)
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        _logger.warning("Config file %s is not valid JSON, using defaults", cfg_path)
        return {}
    if not isinstance(data, dict):
        _logger.warning("Config file %s is not a JSON object, using defaults", cfg_path)
        return {}
    return data


@dataclasses.dataclass(frozen=True)
class PuzzleConfig:
    """Agent configuration.

    Parameters
    ----------
    hub_host : str
        Hub hostname; default MQTT broker and media server host.
    mqtt_broker : str or None
        MQTT broker host. Defaults to ``hub_host``.
    mqtt_port : int
        MQTT broker port.
    mqtt_enabled : bool
        When false the agent runs with a no-op publisher.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_username, mqtt_password : str or None
        Optional broker credentials.
    device_id : str or None
        Device id used in topics. Defaults to the detected address, then
        ``"puzzle-1"``.
    puzzle_name : str
        Display name announced in heartbeats.
    heartbeat_interval : float
        Seconds between periodic heartbeats; ``0`` disables the tick.
    debug : bool
        Verbose (DEBUG) logging.
    print_data : bool
        Log every published data entry.
    local_ip : str or None
        Overrides address detection.
    media_server : str or None
        Media service base URL. Defaults to ``http://<hub_host>``.
    media_local_dir : str
        Local media directory, relative to ``base_dir`` unless absolute.
    media_timeout : float
        Upper bound in seconds for one resolve/download/upload call.
    need_restart : bool
        Whether ``restart`` waits for an explicit ``restartComplete``.
    restart_command_key, restart_command_value : str
        Input entry set when a restart is requested.
    http_host, http_port
        Bind address of the request/response API.
    base_dir : Path
        Directory relative paths are resolved against.
    default_outputs : dict
        ``{key: {"type": ..., "data": ...}}`` applied at startup and on ``clearData``.
    default_external_check : dict or None
        ``{"value": ..., "active": ...}`` applied at startup and on ``clearData``.
    """

    hub_host: str = DEFAULT_HUB_HOST
    mqtt_broker: str | None = None
    mqtt_port: int = DEFAULT_MQTT_PORT
    mqtt_enabled: bool = True
    mqtt_keepalive: int = 60
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    device_id: str | None = None
    puzzle_name: str = DEFAULT_PUZZLE_NAME
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL_MS / 1000.0
    debug: bool = False
    print_data: bool = False
    local_ip: str | None = None
    media_server: str | None = None
    media_local_dir: str = DEFAULT_MEDIA_LOCAL_DIR
    media_timeout: float = DEFAULT_MEDIA_TIMEOUT
    need_restart: bool = False
    restart_command_key: str = DEFAULT_RESTART_COMMAND_KEY
    restart_command_value: str = DEFAULT_RESTART_COMMAND_VALUE
    http_host: str = "0.0.0.0"  # noqa: S104
    http_port: int = DEFAULT_HTTP_PORT
    base_dir: Path = dataclasses.field(default_factory=Path.cwd)
    default_outputs: dict[str, Any] = dataclasses.field(default_factory=dict)
    default_external_check: dict[str, Any] | None = None

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def broker_host(self) -> str:
        return self.mqtt_broker or self.hub_host

    @property
    def media_base_url(self) -> str:
        """Media service base URL without trailing slash.

        An unparsable ``media_server`` falls back to ``http://<hub_host>``.
        """
        candidate = self.media_server or f"http://{self.hub_host}"
        parts = urlsplit(candidate)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            _logger.warning("Invalid media server URL %r, using hub host", candidate)
            candidate = f"http://{self.hub_host}"
        return candidate.rstrip("/")

    @property
    def media_dir(self) -> Path:
        return self.resolve_path(self.media_local_dir)

    def resolve_path(self, value: str | Path) -> Path:
        """Resolve *value* against ``base_dir`` unless it is absolute."""
        path = Path(value)
        return path if path.is_absolute() else self.base_dir / path

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path | None = None, **overrides: Any) -> PuzzleConfig:
        """Create configuration from file, environment and overrides.

        Parameters
        ----------
        path : str or Path, optional
            Config file. Defaults to ``puzzle.config.json`` in the current
            directory. Its directory becomes ``base_dir``.
        **overrides
            Explicit field values that take precedence over everything.

        Returns
        -------
        PuzzleConfig
            Populated configuration.
        """
        cfg_path = Path(path) if path is not None else Path.cwd() / CONFIG_FILE_NAME
        file_cfg = load_config_file(cfg_path)
        kwargs = cls._from_mapping(file_cfg, os.environ)
        kwargs["base_dir"] = cfg_path.resolve().parent
        kwargs.update(overrides)
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> PuzzleConfig:
        """Create configuration from environment variables only."""
        kwargs = cls._from_mapping({}, os.environ)
        kwargs.update(overrides)
        return cls(**kwargs)

    @staticmethod
    def _from_mapping(file_cfg: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
        def pick(env_key: str, file_key: str) -> Any:
            value = env.get(env_key)
            if value not in (None, ""):
                return value
            return file_cfg.get(file_key)

        _STRING_MAP = {
            "hub_host": ("HUB_HOST", "hubHost"),
            "mqtt_broker": ("MQTT_BROKER", "mqttBroker"),
            "mqtt_username": ("MQTT_USERNAME", "mqttUsername"),
            "mqtt_password": ("MQTT_PASSWORD", "mqttPassword"),
            "device_id": ("DEVICE_ID", "deviceId"),
            "puzzle_name": ("PUZZLE_NAME", "puzzleName"),
            "local_ip": ("LOCAL_IP", "localIp"),
            "media_server": ("MEDIA_SERVER", "mediaServer"),
            "media_local_dir": ("MEDIA_LOCAL_DIR", "mediaLocalDir"),
            "restart_command_key": ("RESTART_COMMAND_KEY", "restartCommandKey"),
            "restart_command_value": ("RESTART_COMMAND_VALUE", "restartCommandValue"),
            "http_host": ("HTTP_HOST", "httpHost"),
        }
        kwargs: dict[str, Any] = {}
        for field_name, (env_key, file_key) in _STRING_MAP.items():
            value = pick(env_key, file_key)
            if value is not None and value != "":
                kwargs[field_name] = str(value)

        _BOOL_MAP = {
            "mqtt_enabled": ("MQTT_ENABLED", "mqttEnabled", True),
            "debug": ("DEBUG", "debug", False),
            "print_data": ("PRINT_DATA", "printData", False),
            "need_restart": ("NEED_RESTART", "needRestart", False),
        }
        for field_name, (env_key, file_key, default) in _BOOL_MAP.items():
            kwargs[field_name] = _env_bool(pick(env_key, file_key), default)

        port = pick("MQTT_PORT", "mqttPort")
        if port is not None:
            kwargs["mqtt_port"] = _as_int("MQTT_PORT", port)
        keepalive = pick("MQTT_KEEPALIVE", "mqttKeepalive")
        if keepalive is not None:
            kwargs["mqtt_keepalive"] = _as_int("MQTT_KEEPALIVE", keepalive)
        http_port = pick("PORT", "httpPort")
        if http_port is not None:
            kwargs["http_port"] = _as_int("PORT", http_port)

        # Heartbeat interval is configured in milliseconds on the wire.
        interval_ms = pick("HEARTBEAT_INTERVAL_MS", "heartbeatIntervalMs")
        if interval_ms is not None:
            kwargs["heartbeat_interval"] = _as_float("HEARTBEAT_INTERVAL_MS", interval_ms) / 1000.0
        media_timeout = pick("MEDIA_TIMEOUT", "mediaTimeout")
        if media_timeout is not None:
            kwargs["media_timeout"] = _as_float("MEDIA_TIMEOUT", media_timeout)

        outputs = file_cfg.get("outputs")
        if isinstance(outputs, dict):
            kwargs["default_outputs"] = outputs
        external_check = file_cfg.get("externalCheck")
        if isinstance(external_check, dict):
            kwargs["default_external_check"] = external_check

        return kwargs
