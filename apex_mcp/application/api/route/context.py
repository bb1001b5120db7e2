from fastapi import APIRouter, Depends, Request
import structlog

from apex_mcp.application.api.schema.requests import ContextSubmission, ContextSubmitted
from apex_mcp.application.api.service_context import ServiceContext, get_services
from .common import parse_body

router = APIRouter(prefix="/v1", tags=["context"])
logger = structlog.get_logger(__name__)


@router.post("/context")
async def submit_context(request: Request, services: ServiceContext = Depends(get_services)):
    """Store a context item for later delivery to a client's stream.

    Missing ``clientId`` or ``content`` is a 400; a store outage is a 503.
    Anonymous items are not stored and only reach streams open right now.
    """
    submission = await parse_body(request, ContextSubmission)

    item = await services.repository.submit(
        submission.client_id,
        submission.content,
        submission.metadata
    )

    if services.repository.is_anonymous(item.client_id):
        delivered = await services.session_manager.broadcast_to_client(item.client_id, item)
        logger.info("Anonymous context broadcast", context_id=item.id, sessions=delivered)

    return ContextSubmitted(context_id=item.id).model_dump(by_alias=True)


@router.get("/clients/{client_id}")
async def client_status(client_id: str, services: ServiceContext = Depends(get_services)):
    """Liveness and backlog for one client"""
    status = await services.repository.client_status(client_id)
    body = status.model_dump(mode="json", by_alias=True)
    body["activeSessions"] = len(services.session_manager.get_sessions(client_id))
    return body
