"""Command-line entry point.

Usage:
    python -m pypuzzle [--config puzzle.config.json] [--port 5001] [--debug] [--no-mqtt]
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal

from pypuzzle.agent import PuzzleAgent
from pypuzzle.config import PuzzleConfig
from pypuzzle.exceptions import PuzzleConfigError


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pypuzzle", description="Escape room puzzle node agent")
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to puzzle.config.json (default: ./puzzle.config.json)",
    )
    parser.add_argument("--port", type=int, default=None, help="HTTP API port (overrides config)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-mqtt", action="store_true", help="Run without the MQTT channel")
    return parser.parse_args(argv)


async def _serve(config: PuzzleConfig) -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with PuzzleAgent(config):
        await stop.wait()
        logging.getLogger(__name__).info("Shutting down puzzle agent")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    overrides: dict[str, object] = {}
    if args.port is not None:
        overrides["http_port"] = args.port
    if args.no_mqtt:
        overrides["mqtt_enabled"] = False
    if args.debug:
        overrides["debug"] = True

    try:
        config = PuzzleConfig.load(args.config, **overrides)
    except PuzzleConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger(__name__).error("Invalid configuration: %s", exc)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve(config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
