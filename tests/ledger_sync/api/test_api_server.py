"""Tests for the API server."""

from __future__ import annotations

import asyncio

import httpx

from ledger_sync.api import ApiServer, ApiServerConfig
from ledger_sync.storage import InMemoryDatabase
from ledger_sync.sync import SyncProgress, SyncState


class TestApiServerConfiguration:
    """Tests for API server configuration behavior."""

    def test_default_config(self) -> None:
        """Default configuration binds all interfaces on port 9100."""
        config = ApiServerConfig()

        assert config.host == "0.0.0.0"
        assert config.port == 9100
        assert config.enabled is True


async def _get(port: int, path: str, server: ApiServer) -> httpx.Response:
    """Start the server, issue one GET, stop the server."""
    await server.start()
    try:
        async with httpx.AsyncClient() as client:
            return await client.get(f"http://127.0.0.1:{port}{path}")
    finally:
        await server.close()


class TestEndpoints:
    """Tests for the HTTP endpoints."""

    def test_health(self) -> None:
        """Health endpoint returns JSON with healthy status."""
        server = ApiServer(config=ApiServerConfig(host="127.0.0.1", port=15152))

        response = asyncio.run(_get(15152, "/health", server))

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "ledger-sync"}

    def test_metrics(self) -> None:
        """Metrics endpoint returns Prometheus text."""
        server = ApiServer(config=ApiServerConfig(host="127.0.0.1", port=15153))

        response = asyncio.run(_get(15153, "/metrics", server))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "ledger_blocks_ingested_total" in response.text

    def test_progress_unavailable_without_sync(self) -> None:
        """Progress returns 503 when no sync loop is attached."""
        server = ApiServer(config=ApiServerConfig(host="127.0.0.1", port=15154))

        response = asyncio.run(_get(15154, "/sync/progress", server))

        assert response.status_code == 503

    def test_progress(self) -> None:
        """Progress is served as camelCase JSON."""
        progress = SyncProgress(
            state=SyncState.SYNCING, head=130, blocks_ingested=7, failures=1, stored_blocks=99
        )
        server = ApiServer(
            config=ApiServerConfig(host="127.0.0.1", port=15155),
            progress_getter=lambda: progress,
        )

        response = asyncio.run(_get(15155, "/sync/progress", server))

        assert response.status_code == 200
        assert response.json() == {
            "state": "SYNCING",
            "head": 130,
            "blocksIngested": 7,
            "failures": 1,
            "storedBlocks": 99,
        }

    def test_progress_when_storage_fails(self) -> None:
        """A storage failure while reading progress is a 503."""
        db = InMemoryDatabase()
        db.close()

        def progress() -> SyncProgress:
            return SyncProgress(state=SyncState.IDLE, stored_blocks=db.block_count())

        server = ApiServer(
            config=ApiServerConfig(host="127.0.0.1", port=15156), progress_getter=progress
        )

        response = asyncio.run(_get(15156, "/sync/progress", server))

        assert response.status_code == 503

    def test_disabled_server_does_not_listen(self) -> None:
        """A disabled server starts nothing."""

        async def scenario() -> None:
            server = ApiServer(config=ApiServerConfig(port=15157, enabled=False))
            await server.start()
            assert server._runner is None

        asyncio.run(scenario())


class TestLifecycle:
    """Tests for starting and closing the server."""

    def test_close_before_start_is_noop(self) -> None:
        """Closing a server that never started does nothing."""
        server = ApiServer(config=ApiServerConfig(host="127.0.0.1", port=15158))

        asyncio.run(server.close())

    def test_close_releases_port(self) -> None:
        """After close() returns, the port can be bound again."""

        async def scenario() -> None:
            config = ApiServerConfig(host="127.0.0.1", port=15159)
            first = ApiServer(config=config)
            await first.start()
            await first.close()
            await first.close()

            second = ApiServer(config=config)
            await second.start()
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15159/health")
                assert response.status_code == 200
            finally:
                await second.close()

        asyncio.run(scenario())
