"""Context items and the per-client pending/delivered indices.

Layout in the item store:

    context:{id}                          one ContextItem as JSON
    client:{client_id}:contexts           pending index, JSON list, oldest first
    client:{client_id}:processed_contexts delivered index, JSON list
    client:{client_id}:last_seen          ISO timestamp of the last session activity

Index updates are whole-value read-modify-write. Two writers racing on the
same client's index can lose an update; submissions for one client are
expected to be serialised upstream.
"""

from typing import Any, Dict, Iterable, List, Optional, Set
import asyncio
import json
from datetime import datetime, timezone

import structlog
from pydantic import ValidationError

from apex_mcp.domain.context.store.item_store import ItemStore
from apex_mcp.domain.errors import InvalidSubmissionError
from apex_mcp.domain.models.context_item import ClientStatus, ContextItem
from apex_mcp.infrastructure.observability.logging import MetricsCollector, delivery_logger

logger = structlog.get_logger(__name__)

ANONYMOUS_CLIENT_ID = "anonymous"
DEFAULT_TTL_SECONDS = 86400
DEFAULT_PENDING_CAP = 100


def item_key(context_id: str) -> str:
    return f"context:{context_id}"


def pending_key(client_id: str) -> str:
    return f"client:{client_id}:contexts"


def delivered_key(client_id: str) -> str:
    return f"client:{client_id}:processed_contexts"


def last_seen_key(client_id: str) -> str:
    return f"client:{client_id}:last_seen"


class ContextRepository:
    """Submit, list, fetch and acknowledge context items for clients"""

    def __init__(
        self,
        store: ItemStore,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        pending_cap: int = DEFAULT_PENDING_CAP,
        anonymous_client_id: str = ANONYMOUS_CLIENT_ID,
        metrics: Optional[MetricsCollector] = None
    ):
        if pending_cap < 1:
            raise ValueError("pending_cap must be at least 1")
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.pending_cap = pending_cap
        self.anonymous_client_id = anonymous_client_id
        self.metrics = metrics or MetricsCollector()
        self._evictions: Set[asyncio.Task] = set()

    def is_anonymous(self, client_id: str) -> bool:
        return client_id == self.anonymous_client_id

    async def submit(
        self,
        client_id: str,
        content: Any,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ContextItem:
        """Persist a new item and append it to the client's pending index.

        Items for the anonymous client are built but never written; they can
        only be handed to sessions that are live right now.
        """

        if not client_id or content is None or content == "":
            raise InvalidSubmissionError("Missing required fields: clientId and content are required")
        if metadata is not None and not isinstance(metadata, dict):
            raise InvalidSubmissionError("metadata must be an object")

        item = ContextItem.create(client_id, content, metadata, ttl_seconds=self.ttl_seconds)

        if self.is_anonymous(client_id):
            logger.debug("Anonymous context not persisted", context_id=item.id)
            return item

        await self.store.put(item_key(item.id), item.to_json(), self.ttl_seconds)

        pending = await self._read_index(pending_key(client_id))
        pending.append(item.id)

        evicted: List[str] = []
        if len(pending) > self.pending_cap:
            evicted = pending[:-self.pending_cap]
            pending = pending[-self.pending_cap:]

        await self._write_index(pending_key(client_id), pending)

        if evicted:
            self._schedule_eviction(client_id, evicted)

        self.metrics.increment_counter("contexts_submitted")
        delivery_logger.log_context_update(client_id, "submitted", [item.id])
        return item

    async def list_undelivered(self, client_id: str) -> List[str]:
        """Ids in the pending index not yet in the delivered index, in submission order"""

        if self.is_anonymous(client_id):
            return []

        pending = await self._read_index(pending_key(client_id))
        if not pending:
            return []

        delivered = set(await self._read_index(delivered_key(client_id)))
        return [context_id for context_id in pending if context_id not in delivered]

    async def fetch(self, context_id: str) -> Optional[ContextItem]:
        """Load an item; None if it expired, was evicted or is unreadable"""

        raw = await self.store.get(item_key(context_id))
        if raw is None:
            return None

        try:
            return ContextItem.from_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable context item", context_id=context_id, error=str(e))
            return None

    async def mark_delivered(self, client_id: str, context_ids: Iterable[str]) -> None:
        """Record ids as emitted to the client.

        Ids no longer in the pending index are dropped from the delivered
        index at the same time; they were evicted and can never be listed again.
        """

        context_ids = list(context_ids)
        if not context_ids or self.is_anonymous(client_id):
            return

        delivered = await self._read_index(delivered_key(client_id))
        seen = set(delivered)
        for context_id in context_ids:
            if context_id not in seen:
                delivered.append(context_id)
                seen.add(context_id)

        pending = set(await self._read_index(pending_key(client_id)))
        delivered = [context_id for context_id in delivered if context_id in pending]

        await self._write_index(delivered_key(client_id), delivered)

        self.metrics.increment_counter("contexts_delivered", len(context_ids))
        delivery_logger.log_context_update(client_id, "delivered", context_ids)

    async def record_last_seen(self, client_id: str) -> None:
        if self.is_anonymous(client_id):
            return

        await self.store.put(
            last_seen_key(client_id),
            datetime.now(timezone.utc).isoformat(),
            self.ttl_seconds
        )

    async def last_seen(self, client_id: str) -> Optional[datetime]:
        if self.is_anonymous(client_id):
            return None

        raw = await self.store.get(last_seen_key(client_id))
        if raw is None:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Invalid last_seen value", client_id=client_id, value=raw)
            return None

    async def client_status(self, client_id: str) -> ClientStatus:
        if self.is_anonymous(client_id):
            return ClientStatus(client_id=client_id)

        pending = await self._read_index(pending_key(client_id))
        undelivered = await self.list_undelivered(client_id)
        return ClientStatus(
            client_id=client_id,
            last_seen=await self.last_seen(client_id),
            pending=len(pending),
            undelivered=len(undelivered)
        )

    async def flush_evictions(self) -> None:
        """Wait for background evictions scheduled so far"""

        if self._evictions:
            await asyncio.gather(*list(self._evictions), return_exceptions=True)

    def _schedule_eviction(self, client_id: str, context_ids: List[str]) -> None:
        task = asyncio.create_task(self._evict(client_id, context_ids))
        self._evictions.add(task)
        task.add_done_callback(self._evictions.discard)

    async def _evict(self, client_id: str, context_ids: List[str]) -> None:
        for context_id in context_ids:
            try:
                await self.store.delete(item_key(context_id))
            except Exception as e:
                # The item still ages out through its TTL
                logger.warning("Eviction failed", client_id=client_id, context_id=context_id, error=str(e))

        self.metrics.increment_counter("contexts_evicted", len(context_ids))
        delivery_logger.log_context_update(client_id, "evicted", context_ids)

    async def _read_index(self, key: str) -> List[str]:
        raw = await self.store.get(key)
        if raw is None:
            return []

        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed index", key=key)
            return []

        if not isinstance(value, list):
            logger.warning("Ignoring malformed index", key=key)
            return []

        return [str(context_id) for context_id in value]

    async def _write_index(self, key: str, ids: List[str]) -> None:
        await self.store.put(key, json.dumps(ids), self.ttl_seconds)
