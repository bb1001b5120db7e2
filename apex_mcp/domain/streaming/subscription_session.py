from typing import Optional
import asyncio
import uuid
from datetime import datetime, timezone

import structlog

from apex_mcp.application.stream.schema.events import (
    BaseEvent, ConnectedEvent, ContextEvent, HeartbeatEvent
)
from apex_mcp.application.stream.transport import StreamTransport
from apex_mcp.domain.context.context_repository import ContextRepository
from apex_mcp.domain.errors import TransportClosedError
from apex_mcp.domain.models.context_item import ContextItem
from apex_mcp.infrastructure.observability.logging import MetricsCollector, delivery_logger
from .delivery_scheduler import DeliveryScheduler
from .periodic import run_periodic

logger = structlog.get_logger(__name__)


class SubscriptionSession:
    """One open event stream for one client.

    Emits ``connected`` first, then heartbeats and context events from the
    delivery scheduler until the transport closes or ``max_lifetime``
    elapses. Ending the session stops both timers before anything else is
    emitted; a reconnecting client resumes from the durable indices.
    """

    def __init__(
        self,
        client_id: str,
        repository: ContextRepository,
        transport: StreamTransport,
        heartbeat_interval: float = 30.0,
        poll_interval: float = 5.0,
        max_lifetime: float = 3600.0,
        protocol_version: str = "mcp-v1",
        server_name: str = "apex-mcp-server",
        metrics: Optional[MetricsCollector] = None,
        session_id: Optional[str] = None
    ):
        self.client_id = client_id
        self.session_id = session_id or str(uuid.uuid4())
        self.repository = repository
        self.transport = transport
        self.heartbeat_interval = heartbeat_interval
        self.max_lifetime = max_lifetime
        self.protocol_version = protocol_version
        self.server_name = server_name
        self.metrics = metrics or repository.metrics

        self.scheduler = DeliveryScheduler(
            client_id=client_id,
            repository=repository,
            emit=self.emit,
            is_active=lambda: self.active,
            poll_interval=poll_interval,
            metrics=self.metrics
        )

        self.connected_at: Optional[datetime] = None
        self.end_reason: Optional[str] = None
        self.events_sent = 0
        self._ended = asyncio.Event()
        self._started = False

    @property
    def anonymous(self) -> bool:
        return self.repository.is_anonymous(self.client_id)

    @property
    def active(self) -> bool:
        return self._started and not self._ended.is_set() and not self.transport.closed

    async def run(self) -> str:
        """Drive the session to completion and return why it ended"""

        if self._started:
            raise RuntimeError("Session already started")
        self._started = True
        self.connected_at = datetime.now(timezone.utc)

        structlog.contextvars.bind_contextvars(client_id=self.client_id, session_id=self.session_id)
        delivery_logger.log_session_event("opened", self.client_id, self.session_id)

        tasks = []
        try:
            await self.emit(ConnectedEvent.create(self.client_id, self.protocol_version, self.server_name))
            await self._touch()

            tasks = [
                asyncio.create_task(
                    run_periodic(self.heartbeat_interval, self._heartbeat, self._ended, name="heartbeat")
                ),
                asyncio.create_task(self.scheduler.run(self._ended)),
            ]

            try:
                await asyncio.wait_for(self.transport.wait_closed(), timeout=self.max_lifetime)
                self.end_reason = "disconnected"
            except asyncio.TimeoutError:
                self.end_reason = "max_lifetime"
        except asyncio.CancelledError:
            self.end_reason = "cancelled"
            raise
        finally:
            self._ended.set()
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            self.transport.close()

            delivery_logger.log_session_event(
                "closed",
                self.client_id,
                self.session_id,
                data={"reason": self.end_reason, "events_sent": self.events_sent}
            )

        return self.end_reason

    def close(self) -> None:
        """Ask the session to end; ``run`` returns shortly after"""

        self.transport.close()

    async def emit(self, event: BaseEvent) -> bool:
        """Hand one event to the transport; False once the session has ended"""

        if self._ended.is_set() or self.transport.closed:
            return False

        try:
            await self.transport.send(event)
        except TransportClosedError:
            return False

        self.events_sent += 1
        return True

    async def offer(self, item: ContextItem) -> bool:
        """Best-effort immediate delivery of an item that is not indexed"""

        return await self.emit(ContextEvent.from_item(item))

    async def _heartbeat(self) -> None:
        if await self.emit(HeartbeatEvent.create()):
            await self._touch()

    async def _touch(self) -> None:
        if self.anonymous:
            return
        try:
            await self.repository.record_last_seen(self.client_id)
        except Exception as e:
            logger.warning("Could not record last seen", client_id=self.client_id, error=str(e))
