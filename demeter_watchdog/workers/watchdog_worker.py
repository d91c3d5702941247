from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from demeter_watchdog.core.config import (
    DEFAULT_CONFIG_PATH,
    Settings,
    apply_refresh_override,
    get_settings,
)
from demeter_watchdog.core.errors import ConfigurationInvalidError, ConfigurationMissingError
from demeter_watchdog.core.logging import configure_logging
from demeter_watchdog.persistence.neo4j import SessionProvider
from demeter_watchdog.services.watchdog import Watchdog


logger = logging.getLogger(__name__)

EXIT_LOG_FILE = 1
EXIT_CONFIG_MISSING = 2
EXIT_CONFIG_INVALID = 3

GREETING = """\
==============================================================================
  Demeter Watchdog - background tag watcher for Demeter's automation
------------------------------------------------------------------------------
  Options:
    --verbose        Print info level logs to stdout
    --refresh <ms>   Override the configured refresh rate (applied when > 1)
    --config <path>  Configuration file (default: conf.json)
    --once           Run a single polling cycle and exit

  Watches the Neo4j database for tags starting with the configured prefix
  and runs the Demeter grouping procedure for every tagged application.

  Status: the watchdog is now running in background
==============================================================================
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Watch Neo4j for Demeter tags and trigger grouping")
    parser.add_argument("--verbose", action="store_true", help="Print info level logs to stdout")
    parser.add_argument("--refresh", type=int, default=-1, help="Set the refresh rate of the watchdog (ms)")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to the JSON configuration file")
    parser.add_argument("--once", action="store_true", help="Run a single polling cycle and exit")
    return parser


def build_watchdog(settings: Settings) -> Watchdog:
    return Watchdog(settings.poll_config(), SessionProvider(settings.neo4j))


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except (NotImplementedError, RuntimeError):
            # Signal handlers are unavailable on some platforms and outside the main thread.
            logger.debug("signal_handler_unavailable signal=%s", signum)


async def _run(watchdog: Watchdog, *, once: bool) -> int:
    try:
        if once:
            await watchdog.run_cycle()
        else:
            stop = asyncio.Event()
            _install_signal_handlers(stop)
            await watchdog.run(stop)
    finally:
        await watchdog.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = get_settings(args.config)
    except ConfigurationMissingError as exc:
        print(f"{exc}. Aborting now...", file=sys.stderr)
        return EXIT_CONFIG_MISSING
    except ConfigurationInvalidError as exc:
        print(f"The configuration is not in a good JSON format: {exc}", file=sys.stderr)
        return EXIT_CONFIG_INVALID

    try:
        configure_logging(settings.log_path, verbose=args.verbose, level=settings.log_level)
    except OSError as exc:
        print(f"Failed to open log file {settings.log_path}: {exc}. Aborting now...", file=sys.stderr)
        return EXIT_LOG_FILE

    settings = apply_refresh_override(settings, args.refresh)
    logger.info("configuration_loaded app=%s config=%s", settings.app_name, settings.redacted())

    print(GREETING)
    return asyncio.run(_run(build_watchdog(settings), once=args.once))


if __name__ == "__main__":
    raise SystemExit(main())
