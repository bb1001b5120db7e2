from typing import Awaitable, Callable, List, Optional
import asyncio
import time

import structlog

from apex_mcp.application.stream.schema.events import BaseEvent, ContextEvent
from apex_mcp.domain.context.context_repository import ContextRepository
from apex_mcp.infrastructure.observability.logging import MetricsCollector
from .periodic import run_periodic

logger = structlog.get_logger(__name__)


class DeliveryScheduler:
    """Polls the repository for a client's undelivered items and emits them.

    Runs inside one subscription session. Polling stands in for push because
    the stream is one-way; delivery latency is bounded by ``poll_interval``.
    """

    def __init__(
        self,
        client_id: str,
        repository: ContextRepository,
        emit: Callable[[BaseEvent], Awaitable[bool]],
        is_active: Callable[[], bool],
        poll_interval: float = 5.0,
        metrics: Optional[MetricsCollector] = None
    ):
        self.client_id = client_id
        self.repository = repository
        self.poll_interval = poll_interval
        self.metrics = metrics or repository.metrics
        self._emit = emit
        self._is_active = is_active

    async def run(self, stopped: asyncio.Event) -> None:
        """Poll until ``stopped`` is set"""

        await run_periodic(self.poll_interval, self.tick, stopped, name="poll")

    async def tick(self) -> List[str]:
        """Deliver whatever is pending; returns the ids marked delivered.

        Store failures are logged and end the tick early; the next tick
        rediscovers anything still undelivered.
        """

        started = time.perf_counter()
        try:
            delivered = await self._deliver_pending()
        except Exception as e:
            self.metrics.increment_counter("poll_errors")
            logger.error("Poll tick failed", client_id=self.client_id, error=str(e))
            return []

        if delivered:
            self.metrics.record_latency("poll_tick", (time.perf_counter() - started) * 1000)
        return delivered

    async def _deliver_pending(self) -> List[str]:
        context_ids = await self.repository.list_undelivered(self.client_id)
        if not context_ids:
            return []

        emitted: List[str] = []
        for context_id in context_ids:
            if not self._is_active():
                return []

            item = await self.repository.fetch(context_id)
            if item is None:
                # Expired or evicted since it was indexed
                logger.debug("Skipping missing context", context_id=context_id)
                continue

            if not await self._emit(ContextEvent.from_item(item)):
                return []
            emitted.append(context_id)

        if not emitted or not self._is_active():
            return []

        await self.repository.mark_delivered(self.client_id, emitted)
        logger.info("Delivered context", client_id=self.client_id, count=len(emitted))
        return emitted
