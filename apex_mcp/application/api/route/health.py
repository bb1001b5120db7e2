from datetime import datetime, timezone

from fastapi import APIRouter, Depends
import structlog

from apex_mcp.application.api.service_context import ServiceContext, get_services

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)

HEALTH_KEY = "health:check"


async def check_store_health(services: ServiceContext) -> bool:
    """Write a probe value and read it back"""
    probe = f"Health check at {datetime.now(timezone.utc).isoformat()}"
    try:
        await services.store.put(HEALTH_KEY, probe, 60)
        return await services.store.get(HEALTH_KEY) == probe
    except Exception as e:
        logger.error("Store health check failed", error=str(e))
        return False


@router.get("/health")
async def health_check(services: ServiceContext = Depends(get_services)):
    """Health check endpoint"""
    store_ok = await check_store_health(services)
    return {
        "status": "ok" if store_ok else "degraded",
        "version": services.settings.version,
        "services": {"kv": "ok" if store_ok else "error"},
        "activeSessions": len(services.session_manager.active_sessions),
        "metrics": services.metrics.get_metrics_summary(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
