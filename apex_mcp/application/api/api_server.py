from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from apex_mcp.domain.errors import (
    InvalidSubmissionError, ProviderError, StoreUnavailableError,
    ToolNotFoundError, ToolValidationError
)
from apex_mcp.infrastructure.config.settings import Settings
from apex_mcp.infrastructure.observability.logging import setup_logging
from .service_context import ServiceContext, build_services
from .route import context, health, stream, tools

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, services: Optional[ServiceContext] = None) -> FastAPI:
    """Build the FastAPI application around one ServiceContext"""

    settings = settings or (services.settings if services else Settings())
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.startup()
        logger.info("Apex MCP server started", store=type(services.store).__name__)
        try:
            yield
        finally:
            await services.shutdown()
            logger.info("Apex MCP server shutdown")

    app = FastAPI(title="Apex MCP Server", version=settings.version, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Client-ID", "X-API-Key"],
        max_age=86400,
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(stream.router)
    app.include_router(context.router)
    app.include_router(tools.router)

    return app


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def register_exception_handlers(app: FastAPI):
    """Map domain errors onto HTTP responses with an ``error`` body"""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(InvalidSubmissionError)
    async def invalid_submission(request: Request, exc: InvalidSubmissionError):
        return _error(400, str(exc))

    @app.exception_handler(ToolValidationError)
    async def invalid_tool_arguments(request: Request, exc: ToolValidationError):
        return _error(400, f"Invalid parameters for {exc.tool_name}", errors=exc.errors)

    @app.exception_handler(ToolNotFoundError)
    async def tool_not_found(request: Request, exc: ToolNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(ProviderError)
    async def provider_error(request: Request, exc: ProviderError):
        return _error(502, str(exc))

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(request: Request, exc: StoreUnavailableError):
        logger.error("Store unavailable", operation=exc.operation, key=exc.key, error=str(exc.cause))
        return _error(503, "Context store unavailable, retry later")


def main():
    import uvicorn

    settings = Settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name, settings.version)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
