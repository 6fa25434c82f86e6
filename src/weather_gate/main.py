"""CLI entry point: load settings, build the weather server, serve MCP on stdio."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from weather_gate.config import (
    DEFAULT_SETTINGS_PATH,
    STRATEGIES,
    ConfigError,
    load_settings,
    with_strategy,
)

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="weather-gate: NWS weather tools behind GitHub authentication (MCP over stdio)",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_SETTINGS_PATH) if DEFAULT_SETTINGS_PATH.exists() else None,
        help="Path to settings.yaml (default: config/settings.yaml when present)",
    )
    parser.add_argument(
        "--strategy",
        choices=STRATEGIES,
        default=None,
        help="Override auth.strategy from the settings file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)

    # stdout carries the MCP transport; diagnostics go to stderr.
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = load_settings(args.config)
        if args.strategy:
            settings = with_strategy(settings, args.strategy)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(1)

    from weather_gate.mcp.weather_server import WeatherMCPServer

    server = WeatherMCPServer.from_settings(settings)
    logger.info("Weather MCP Server running on stdio")
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    except Exception:
        logger.exception("Fatal error in main()")
        sys.exit(1)


if __name__ == "__main__":
    main()
