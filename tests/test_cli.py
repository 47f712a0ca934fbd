from __future__ import annotations

import json
from pathlib import Path

import pytest

import pypuzzle.__main__ as cli
from pypuzzle.config import PuzzleConfig


def test_cli_flags_override_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "puzzle.config.json"
    config_path.write_text(json.dumps({"puzzleName": "Lock", "httpPort": 5002}), encoding="utf-8")
    seen: list[PuzzleConfig] = []

    async def fake_serve(config: PuzzleConfig) -> None:
        seen.append(config)

    monkeypatch.setattr(cli, "_serve", fake_serve)

    assert cli.main(["--config", str(config_path), "--port", "6000", "--no-mqtt", "--debug"]) == 0

    (config,) = seen
    assert config.puzzle_name == "Lock"
    assert config.http_port == 6000
    assert config.mqtt_enabled is False
    assert config.debug is True


def test_cli_reports_bad_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MQTT_PORT", "not-a-port")
    monkeypatch.setattr(cli, "_serve", pytest.fail)

    assert cli.main(["--config", str(tmp_path / "missing.json")]) == 2
