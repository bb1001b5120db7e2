from typing import AsyncIterator, Optional
import asyncio

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import StreamingResponse
import structlog

from apex_mcp.application.api.service_context import ServiceContext, get_services
from apex_mcp.application.stream.transport import QueueTransport

router = APIRouter(prefix="/v1", tags=["stream"])
logger = structlog.get_logger(__name__)

DISCONNECT_CHECK_INTERVAL = 1.0


async def _watch_disconnect(request: Request, transport: QueueTransport):
    """Close the transport once the HTTP client has gone away"""
    while not transport.closed:
        if await request.is_disconnected():
            logger.info("Stream client disconnected")
            transport.close()
            return
        await asyncio.sleep(DISCONNECT_CHECK_INTERVAL)


async def session_frames(request: Request, services: ServiceContext, client_id: str) -> AsyncIterator[str]:
    """Run one subscription session for as long as the response is being read.

    The session only starts once the response body is iterated, and the
    transport is closed whenever iteration stops, so a response that is
    never sent leaves nothing running.
    """
    transport = QueueTransport()
    session = services.new_session(client_id, transport)
    services.session_manager.start(session)
    logger.info("Stream opened", client_id=client_id, session_id=session.session_id)

    watcher = asyncio.create_task(_watch_disconnect(request, transport))
    try:
        async for frame in transport.frames():
            yield frame
    finally:
        transport.close()
        watcher.cancel()


@router.get("/stream")
async def stream_context(
    request: Request,
    client_id: Optional[str] = Query(None),
    x_client_id: Optional[str] = Header(None),
    services: ServiceContext = Depends(get_services)
):
    """
    Open a Server-Sent Events stream for one client.

    The client is identified by the ``X-Client-ID`` header, then the
    ``client_id`` query parameter, and is ``anonymous`` otherwise. The stream
    carries ``connected``, ``heartbeat`` and ``context`` events until the
    client disconnects or the session lifetime runs out.

    Usage:
        curl -N -H 'X-Client-ID: c1' http://localhost:8000/v1/stream
    """
    resolved_client_id = x_client_id or client_id or services.settings.anonymous_client_id

    return StreamingResponse(
        session_frames(request, services, resolved_client_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )
