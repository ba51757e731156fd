"""
ledger-sync CLI entry point.

Mirror an Ethereum-compatible chain into local storage and record derived
values for the stored blocks.

Usage::

    python -m ledger_sync sync --rpc-url http://localhost:8545 --database ledger.sqlite
    python -m ledger_sync sync --config ledger.yaml --api-port 9100
    python -m ledger_sync watch-supply --config ledger.yaml --token 0xa0b8...eb48 --once

Options:
    --config        Path to a settings YAML file
    --rpc-url       JSON-RPC endpoint (overrides RPC_URL)
    --database      SQLite path or ":memory:" (overrides DATABASE)
    --api-port      Serve /health, /sync/progress and /metrics on this port
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path

import yaml

from ledger_sync.api import ApiServer, ApiServerConfig
from ledger_sync.chain import RpcBlockConverter, RpcChainReader, RpcTokenSupplySource
from ledger_sync.settings import MEMORY_DATABASE, SyncConfig
from ledger_sync.storage import Database, InMemoryDatabase, SQLiteDatabase
from ledger_sync.sync import SyncService
from ledger_sync.sync.gaps import format_ranges
from ledger_sync.types import LedgerSyncError, TransientError
from ledger_sync.watchers import TokenSupplyWatcher

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{timestamp} {levelname} {name}: {message}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_config(args: argparse.Namespace) -> SyncConfig:
    """Build settings from the optional YAML file and command line overrides."""
    config = SyncConfig.from_yaml_file(args.config) if args.config else SyncConfig()

    overrides: dict[str, object] = {}
    if args.rpc_url is not None:
        overrides["rpc_url"] = args.rpc_url
    if args.database is not None:
        overrides["database"] = args.database
    if getattr(args, "low_watermark", None) is not None:
        overrides["low_watermark"] = args.low_watermark
    if getattr(args, "tokens", None):
        overrides["tokens"] = config.tokens + args.tokens

    if not overrides:
        return config
    # Validate again so overrides go through the same checks as YAML values.
    return SyncConfig.model_validate(config.model_dump() | overrides)


def open_database(location: str) -> Database:
    """Open the store named by a DATABASE setting."""
    if location == MEMORY_DATABASE:
        logger.warning("Using the in-memory store; nothing survives a restart")
        return InMemoryDatabase()
    return SQLiteDatabase(location)


def install_stop_handlers(stop: Callable[[], None]) -> None:
    """Call `stop` on SIGINT and SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            signal.signal(sig, lambda *_: stop())


async def run_sync(config: SyncConfig, api: ApiServerConfig | None = None) -> None:
    """
    Run the ingestion loop until interrupted.

    Args:
        config: Loaded settings.
        api: Where to serve health, progress and metrics. Not served if None.
    """
    database = open_database(config.database)
    server: ApiServer | None = None
    try:
        async with RpcChainReader(
            url=config.rpc_url,
            timeout=config.fetch_timeout,
            include_receipts=config.include_receipts,
        ) as reader:
            service = SyncService(
                database=database,
                reader=reader,
                converter=RpcBlockConverter(),
                low_watermark=config.low_watermark,
                page_size=config.page_size,
                finality_window=config.finality_window,
                fetch_timeout=config.fetch_timeout,
                poll_interval=config.poll_interval,
            )
            install_stop_handlers(service.stop)

            if api is not None:
                server = ApiServer(config=api, progress_getter=service.get_progress)
                await server.start()

            logger.info("Syncing from %s into %s", config.rpc_url, config.database)
            await service.run()

            progress = service.get_progress()
            logger.info(
                "Session done: ingested=%d failures=%d stored=%d head=%s",
                progress.blocks_ingested,
                progress.failures,
                progress.stored_blocks,
                progress.head,
            )
    finally:
        if server is not None:
            await server.close()
        database.close()


async def run_watch_supply(
    config: SyncConfig,
    start: int | None = None,
    end: int | None = None,
    once: bool = False,
    api: ApiServerConfig | None = None,
) -> int:
    """
    Record token supplies for stored blocks lacking them.

    Args:
        config: Loaded settings. `tokens` names the contracts to watch.
        start: First block to consider. Defaults to the low watermark.
        end: Last block to consider. Defaults to the chain head on each pass.
        once: Run one pass per token and return instead of looping.
        api: Where to serve health and metrics. Not served if None.

    Returns:
        Process exit code: 1 if the last pass had failures, else 0.
    """
    if not config.tokens:
        logger.error("No tokens configured; pass --token or set TOKENS")
        return 1

    stopped = asyncio.Event()
    install_stop_handlers(stopped.set)

    database = open_database(config.database)
    server = ApiServer(config=api) if api is not None else None
    failures = 0
    try:
        if server is not None:
            await server.start()
        async with RpcChainReader(url=config.rpc_url, timeout=config.fetch_timeout) as reader:
            watcher = TokenSupplyWatcher(
                blocks=database,
                source=RpcTokenSupplySource(reader),
                page_size=config.page_size,
            )
            first = config.low_watermark if start is None else start

            while not stopped.is_set():
                try:
                    last = end if end is not None else await reader.fetch_head()
                except TransientError as e:
                    if once:
                        raise
                    logger.warning("Head fetch failed, retrying: %s", e)
                    await asyncio.sleep(config.poll_interval)
                    continue
                failures = 0
                for token in config.tokens:
                    result = await watcher.observe_range(token, first, last)
                    failures += len(result.failures)
                    if result.failures:
                        logger.warning(
                            "%s: failed at blocks %s", token, format_ranges(sorted(result.failures))
                        )
                if once:
                    break
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(stopped.wait(), timeout=config.poll_interval)
    finally:
        if server is not None:
            await server.close()
        database.close()
    return 1 if failures else 0


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=None, help="Path to settings YAML file")
    common.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint (overrides RPC_URL)")
    common.add_argument(
        "--database",
        default=None,
        help='SQLite file path, or ":memory:" (overrides DATABASE)',
    )
    common.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="Serve health, sync progress and Prometheus metrics on this port",
    )
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    common.add_argument("--no-color", action="store_true", help="Disable colored logging output")

    parser = argparse.ArgumentParser(
        prog="ledger-sync",
        description="Mirror an Ethereum-compatible chain into local storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", parents=[common], help="Ingest blocks until interrupted")
    sync.add_argument(
        "--low-watermark",
        type=int,
        default=None,
        help="First block number to keep (overrides LOW_WATERMARK)",
    )

    watch = commands.add_parser(
        "watch-supply", parents=[common], help="Record ERC-20 total supply per stored block"
    )
    watch.add_argument(
        "--token",
        action="append",
        default=[],
        dest="tokens",
        help="Token contract address (can be repeated)",
    )
    watch.add_argument("--from", type=int, default=None, dest="start", help="First block")
    watch.add_argument("--to", type=int, default=None, dest="end", help="Last block")
    watch.add_argument("--once", action="store_true", help="Run a single pass and exit")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.no_color)

    try:
        config = load_config(args)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    api = ApiServerConfig(port=args.api_port) if args.api_port is not None else None

    try:
        if args.command == "sync":
            asyncio.run(run_sync(config, api))
            return 0
        return asyncio.run(run_watch_supply(config, args.start, args.end, args.once, api))
    except LedgerSyncError as e:
        logger.error("Aborted: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
