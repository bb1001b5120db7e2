from dataclasses import dataclass, field
from typing import Optional
import asyncio

import httpx
import structlog
from fastapi import Request

from apex_mcp.application.stream.session_manager import SessionManager
from apex_mcp.application.stream.transport import StreamTransport
from apex_mcp.domain.context.context_repository import ContextRepository
from apex_mcp.domain.context.store import CacheMemoryStore, ItemStore, SQLiteItemStore
from apex_mcp.domain.streaming.periodic import run_periodic
from apex_mcp.domain.streaming.subscription_session import SubscriptionSession
from apex_mcp.domain.tool.tool_executor import ToolExecutor
from apex_mcp.domain.tool.tool_registry import ToolRegistry
from apex_mcp.infrastructure.config.settings import Settings
from apex_mcp.infrastructure.observability.logging import MetricsCollector
from apex_mcp.infrastructure.providers.dataforseo_client import DataForSEOClient

logger = structlog.get_logger(__name__)


@dataclass
class ServiceContext:
    """Everything a request handler needs, built once per application"""
    settings: Settings
    store: ItemStore
    repository: ContextRepository
    session_manager: SessionManager
    tool_registry: ToolRegistry
    tool_executor: ToolExecutor
    provider_client: DataForSEOClient
    metrics: MetricsCollector = field(default_factory=MetricsCollector)
    _sweeper: Optional[asyncio.Task] = field(default=None, init=False, repr=False)
    _stopped: Optional[asyncio.Event] = field(default=None, init=False, repr=False)

    def new_session(self, client_id: str, transport: StreamTransport) -> SubscriptionSession:
        return SubscriptionSession(
            client_id=client_id,
            repository=self.repository,
            transport=transport,
            heartbeat_interval=self.settings.heartbeat_interval,
            poll_interval=self.settings.poll_interval,
            max_lifetime=self.settings.max_session_lifetime,
            protocol_version=self.settings.protocol_version,
            server_name=self.settings.service_name,
            metrics=self.metrics
        )

    async def startup(self) -> None:
        if isinstance(self.store, SQLiteItemStore):
            await self.store.initialize()

        self._stopped = asyncio.Event()
        self._sweeper = asyncio.create_task(
            run_periodic(self.settings.store_sweep_interval, self.sweep_expired, self._stopped, name="sweep")
        )

    async def sweep_expired(self) -> int:
        """Purge expired keys from the store; failures are logged and retried next sweep"""
        try:
            removed = await self.store.clear_expired()
        except Exception as e:
            self.metrics.increment_counter("sweep_errors")
            logger.error("Store sweep failed", error=str(e))
            return 0

        if removed:
            self.metrics.increment_counter("keys_expired", removed)
            logger.debug("Swept expired keys", count=removed)
        return removed

    async def shutdown(self) -> None:
        if self._sweeper is not None:
            self._stopped.set()
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None

        await self.session_manager.close_all()
        await self.repository.flush_evictions()
        await self.provider_client.close()


def build_services(
    settings: Settings,
    store: Optional[ItemStore] = None,
    provider_transport: Optional[httpx.AsyncBaseTransport] = None
) -> ServiceContext:
    """Wire the store, repository, sessions and tool gateway from settings"""

    metrics = MetricsCollector()

    if store is None:
        if settings.store_backend == "sqlite":
            store = SQLiteItemStore(settings.sqlite_path)
        else:
            store = CacheMemoryStore()

    repository = ContextRepository(
        store,
        ttl_seconds=settings.context_ttl_seconds,
        pending_cap=settings.pending_index_cap,
        anonymous_client_id=settings.anonymous_client_id,
        metrics=metrics
    )

    provider_client = DataForSEOClient(
        settings.dataforseo_username,
        settings.dataforseo_secret(),
        base_url=settings.dataforseo_base_url,
        timeout=settings.provider_timeout,
        transport=provider_transport
    )
    registry = ToolRegistry()

    return ServiceContext(
        settings=settings,
        store=store,
        repository=repository,
        session_manager=SessionManager(metrics),
        tool_registry=registry,
        tool_executor=ToolExecutor(registry, provider_client, metrics),
        provider_client=provider_client,
        metrics=metrics
    )


def get_services(request: Request) -> ServiceContext:
    """FastAPI dependency returning the application's ServiceContext"""
    return request.app.state.services
