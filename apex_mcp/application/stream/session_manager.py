from typing import Dict, List, Optional, Set
import asyncio
import structlog

from apex_mcp.domain.models.context_item import ContextItem
from apex_mcp.domain.streaming.subscription_session import SubscriptionSession
from apex_mcp.infrastructure.observability.logging import MetricsCollector

logger = structlog.get_logger(__name__)


class SessionManager:
    """Tracks live subscription sessions"""

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.active_sessions: Dict[str, SubscriptionSession] = {}
        self.metrics = metrics or MetricsCollector()
        self._tasks: Set[asyncio.Task] = set()

    def register(self, session: SubscriptionSession):
        """Add a session that is about to start"""
        self.active_sessions[session.session_id] = session
        self.metrics.set_gauge("active_sessions", len(self.active_sessions))

        logger.info("Stream session registered", session_id=session.session_id, client_id=session.client_id)

    def unregister(self, session_id: str):
        """Forget a session once it has ended"""
        session = self.active_sessions.pop(session_id, None)
        self.metrics.set_gauge("active_sessions", len(self.active_sessions))

        if session is not None:
            logger.info("Stream session unregistered", session_id=session_id, reason=session.end_reason)

    def start(self, session: SubscriptionSession) -> asyncio.Task:
        """Register a session and run it in the background"""
        self.register(session)
        task = asyncio.create_task(self._drive(session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _drive(self, session: SubscriptionSession) -> Optional[str]:
        try:
            return await session.run()
        finally:
            self.unregister(session.session_id)

    async def broadcast_to_client(self, client_id: str, item: ContextItem) -> int:
        """Offer an item to every live session of a client; returns how many took it"""
        sessions = self.get_sessions(client_id)
        if not sessions:
            return 0

        results = await asyncio.gather(
            *(session.offer(item) for session in sessions),
            return_exceptions=True
        )

        delivered = 0
        for session, result in zip(sessions, results):
            if isinstance(result, Exception):
                logger.error("Live delivery failed", session_id=session.session_id, error=str(result))
            elif result:
                delivered += 1
        return delivered

    def get_sessions(self, client_id: Optional[str] = None) -> List[SubscriptionSession]:
        """Get live sessions, optionally filtered by client"""
        return [
            session
            for session in self.active_sessions.values()
            if client_id is None or session.client_id == client_id
        ]

    def get_active_session_ids(self, client_id: Optional[str] = None) -> Set[str]:
        return {session.session_id for session in self.get_sessions(client_id)}

    async def close_all(self, timeout: float = 5.0):
        """Close every live session and wait for their tasks to finish"""
        sessions = self.get_sessions()
        for session in sessions:
            session.close()

        if self._tasks:
            _, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Sessions cancelled after shutdown timeout", count=len(pending))

        logger.info("All stream sessions closed", count=len(sessions))
