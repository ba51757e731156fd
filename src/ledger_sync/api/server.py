"""
API server for health, sync progress and metrics endpoints.

Provides HTTP endpoints for:
- /health - Health check endpoint
- /sync/progress - Current sync progress as JSON
- /metrics - Prometheus metrics endpoint
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from aiohttp import web

from ledger_sync.metrics import generate_metrics
from ledger_sync.sync import SyncProgress
from ledger_sync.types import LedgerSyncError

logger = logging.getLogger(__name__)

SERVICE_NAME = "ledger-sync"


def _no_progress() -> SyncProgress | None:
    """Default progress getter that returns None."""
    return None


async def _handle_health(_request: web.Request) -> web.Response:
    """Handle health check endpoint."""
    return web.json_response({"status": "healthy", "service": SERVICE_NAME})


async def _handle_metrics(_request: web.Request) -> web.Response:
    """Handle Prometheus metrics endpoint."""
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain; version=0.0.4",
        charset="utf-8",
    )


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Configuration for the API server."""

    host: str = "0.0.0.0"
    """Host address to bind to."""

    port: int = 9100
    """Port to listen on."""

    enabled: bool = True
    """Whether the API server is enabled."""


@dataclass(slots=True)
class ApiServer:
    """HTTP server exposing the state of a running ingestion process."""

    config: ApiServerConfig
    """Server configuration."""

    progress_getter: Callable[[], SyncProgress | None] = _no_progress
    """Callable that returns the current sync progress, if a sync loop runs."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    async def start(self) -> None:
        """Start the API server in the background."""
        if not self.config.enabled:
            logger.info("API server is disabled")
            return

        app = web.Application()
        app.add_routes(
            [
                web.get("/health", _handle_health),
                web.get("/metrics", _handle_metrics),
                web.get("/sync/progress", self._handle_progress),
            ]
        )

        self._runner = web.AppRunner(app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info("API server listening on %s:%d", self.config.host, self.config.port)

    async def close(self) -> None:
        """Gracefully stop the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("API server stopped")

    async def _handle_progress(self, _request: web.Request) -> web.Response:
        """
        Handle sync progress endpoint.

        Response format:
        {
            "state": "SYNCING",
            "head": <block_number or null>,
            "blocksIngested": <count>,
            "failures": <count>,
            "storedBlocks": <count>
        }
        """
        try:
            progress = self.progress_getter()
        except LedgerSyncError as e:
            logger.error("Failed to read sync progress: %s", e)
            raise web.HTTPServiceUnavailable(reason="Storage unavailable") from e

        if progress is None:
            raise web.HTTPServiceUnavailable(reason="Sync not running")

        return web.json_response(
            {
                "state": progress.state.name,
                "head": progress.head,
                "blocksIngested": progress.blocks_ingested,
                "failures": progress.failures,
                "storedBlocks": progress.stored_blocks,
            }
        )
