from __future__ import annotations

import pytest

from apex_mcp.application.stream.transport import QueueTransport
from apex_mcp.domain.context.context_repository import ContextRepository
from apex_mcp.domain.context.store import CacheMemoryStore
from apex_mcp.domain.streaming.subscription_session import SubscriptionSession
from apex_mcp.infrastructure.config.settings import Settings

from tests.fakes import FlakyStore


@pytest.fixture
def store() -> CacheMemoryStore:
    return CacheMemoryStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def repository(store: CacheMemoryStore) -> ContextRepository:
    return ContextRepository(store)


@pytest.fixture
def flaky_repository(flaky_store: FlakyStore) -> ContextRepository:
    return ContextRepository(flaky_store)


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        _env_file=None,
        heartbeat_interval=10.0,
        poll_interval=0.05,
        max_session_lifetime=0.4,
    )


@pytest.fixture
def make_session(repository: ContextRepository):
    """Factory for sessions on fast timers over the shared repository"""

    def factory(
        client_id: str = "c1",
        heartbeat_interval: float = 10.0,
        poll_interval: float = 0.05,
        max_lifetime: float = 0.3,
        repo: ContextRepository = None,
    ):
        transport = QueueTransport()
        session = SubscriptionSession(
            client_id=client_id,
            repository=repo or repository,
            transport=transport,
            heartbeat_interval=heartbeat_interval,
            poll_interval=poll_interval,
            max_lifetime=max_lifetime,
        )
        return session, transport

    return factory
