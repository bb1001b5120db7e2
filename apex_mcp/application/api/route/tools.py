from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
import structlog

from apex_mcp.application.api.schema.requests import ToolCallRequest
from apex_mcp.application.api.service_context import ServiceContext, get_services
from .common import parse_body

router = APIRouter(prefix="/v1", tags=["tools"])
logger = structlog.get_logger(__name__)


@router.get("/tools")
async def list_tools(services: ServiceContext = Depends(get_services)):
    """List every tool with its parameter schema"""
    tools = [tool.public_view() for tool in services.tool_registry.get_available_tools()]
    logger.debug("Exposing tools", count=len(tools))
    return {"tools": tools}


@router.api_route("/discovery", methods=["GET", "POST"])
async def discovery(services: ServiceContext = Depends(get_services)):
    """Server information and capabilities for MCP clients"""
    settings = services.settings
    return {
        "server_info": {
            "name": settings.service_name,
            "version": settings.version,
            "description": "MCP Server for SEO API integration with DataForSEO"
        },
        "protocol_version": settings.protocol_version,
        "capabilities": {
            "tools": [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "schema": tool.parameters.as_schema()
                }
                for tool in services.tool_registry.get_available_tools()
            ],
            "streaming": {"path": "/v1/stream", "events": ["connected", "heartbeat", "context"]}
        }
    }


@router.post("/tools/execute")
async def execute_tool(request: Request, services: ServiceContext = Depends(get_services)):
    """Run a tool on behalf of a client.

    Unknown tools are 404, bad arguments 400, provider failures 502.
    """
    call = await parse_body(request, ToolCallRequest)
    if not call.client_id or not call.name:
        raise HTTPException(status_code=400, detail="Missing required fields: clientId and name are required")

    result = await services.tool_executor.execute(call.name, call.parameters or {}, call.client_id)

    if not result.success:
        return JSONResponse(
            status_code=502,
            content={"success": False, "error": result.error, "metadata": result.metadata}
        )

    return {"success": True, "result": result.result, "metadata": result.metadata}
