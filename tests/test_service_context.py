"""Tests for application wiring: the expiry sweep and the stream body generator."""

from __future__ import annotations

import asyncio

import pytest

from apex_mcp.application.api.route.stream import session_frames
from apex_mcp.application.api.service_context import build_services
from apex_mcp.infrastructure.config.settings import Settings

from tests.fakes import FlakyStore
from tests.helpers import parse_sse


class ConnectedRequest:
    """Stands in for a Starlette request whose client never goes away"""

    async def is_disconnected(self) -> bool:
        return False


class TestExpirySweep:
    @pytest.mark.asyncio
    async def test_expired_entries_removed_without_reads(self) -> None:
        services = build_services(
            Settings(_env_file=None, context_ttl_seconds=1, store_sweep_interval=0.05)
        )
        await services.startup()
        try:
            for i in range(50):
                await services.repository.submit(f"client-{i}", f"item {i}")
            assert len(services.store.cache) == 100

            await asyncio.sleep(1.2)

            assert len(services.store.cache) == 0
            assert services.metrics.metrics["keys_expired"] == 100
        finally:
            await services.shutdown()

    @pytest.mark.asyncio
    async def test_live_entries_survive_sweep(self) -> None:
        services = build_services(Settings(_env_file=None, store_sweep_interval=0.05))
        await services.startup()
        try:
            item = await services.repository.submit("c1", "keep me")
            await asyncio.sleep(0.15)
            assert await services.repository.fetch(item.id) is not None
        finally:
            await services.shutdown()

    @pytest.mark.asyncio
    async def test_sweep_failure_is_counted_not_raised(self, fast_settings: Settings) -> None:
        store = FlakyStore()
        store.fail_writes = True
        services = build_services(fast_settings, store=store)

        assert await services.sweep_expired() == 0
        assert services.metrics.metrics["sweep_errors"] == 1

        store.fail_writes = False
        assert await services.sweep_expired() == 0

    @pytest.mark.asyncio
    async def test_shutdown_stops_sweeping(self) -> None:
        store = FlakyStore()
        services = build_services(Settings(_env_file=None, store_sweep_interval=0.05), store=store)
        await services.startup()
        await services.shutdown()

        store.fail_writes = True
        await asyncio.sleep(0.15)
        assert "sweep_errors" not in services.metrics.metrics


class TestSessionFrames:
    @pytest.mark.asyncio
    async def test_session_not_started_until_body_is_read(self, fast_settings: Settings) -> None:
        services = build_services(fast_settings)
        frames = session_frames(ConnectedRequest(), services, "c1")

        await asyncio.sleep(0.1)
        assert services.session_manager.get_sessions() == []

        await frames.aclose()
        assert services.session_manager.get_sessions() == []

    @pytest.mark.asyncio
    async def test_closing_body_ends_session(self, fast_settings: Settings) -> None:
        services = build_services(fast_settings.model_copy(update={"max_session_lifetime": 30.0}))
        frames = session_frames(ConnectedRequest(), services, "c1")

        first = await frames.__anext__()
        [(name, payload)] = parse_sse(first)
        assert name == "connected"
        assert payload["data"]["clientId"] == "c1"
        assert len(services.session_manager.get_sessions("c1")) == 1

        await frames.aclose()
        await asyncio.sleep(0.1)

        assert services.session_manager.get_sessions() == []
