from typing import AsyncIterator, Optional, Protocol
import asyncio

import structlog

from apex_mcp.domain.errors import TransportClosedError
from .schema.events import BaseEvent

logger = structlog.get_logger(__name__)


class StreamTransport(Protocol):
    """Append-only event sink with a remote-closed signal"""

    @property
    def closed(self) -> bool:
        ...

    async def send(self, event: BaseEvent) -> None:
        ...

    async def wait_closed(self) -> None:
        ...

    def close(self) -> None:
        ...


class QueueTransport:
    """Buffers events for an HTTP streaming response.

    The session side calls ``send``; the response side iterates ``frames``.
    Either side may call ``close``: the response does so when the client goes
    away, the session does so when its lifetime ends.
    """

    _END = None

    def __init__(self, maxsize: int = 0):
        self._queue: "asyncio.Queue[Optional[BaseEvent]]" = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, event: BaseEvent) -> None:
        if self.closed:
            raise TransportClosedError(f"Cannot send {event.type.value} event on a closed stream")
        await self._queue.put(event)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        try:
            self._queue.put_nowait(self._END)
        except asyncio.QueueFull:
            # Reader notices the closed flag after draining
            pass

    async def events(self) -> AsyncIterator[BaseEvent]:
        """Yield queued events until the transport closes"""

        while True:
            if self.closed and self._queue.empty():
                return
            event = await self._queue.get()
            if event is self._END:
                return
            yield event

    async def frames(self) -> AsyncIterator[str]:
        """Yield queued events rendered as SSE frames"""

        async for event in self.events():
            yield event.to_sse()
