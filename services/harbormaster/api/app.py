"""
FastAPI application factory for the Harbormaster control plane.

Uses lifespan handler for startup/shutdown with async resource management.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from harbormaster.config import RepositoryBackend, settings
from harbormaster.db.session import close_db, init_db
from harbormaster.errors import HarbormasterError, InternalError
from harbormaster.logging_config import configure_logging, get_logger
from harbormaster.redis.client import close_redis, init_redis
from harbormaster.services.encryption_service import init_encryption
from harbormaster.services.infra_lock import init_infra_lock
from harbormaster.services.provisioner_client import close_provisioner, init_provisioner

from .health import router as health_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting Harbormaster API server", version="0.1.0")

    if settings.repository.backend == RepositoryBackend.POSTGRES:
        await init_db()

    await init_redis()
    init_infra_lock()
    init_encryption()
    init_provisioner()

    yield

    logger.info("Shutting down Harbormaster API server")
    await close_provisioner()
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Harbormaster API",
        description="Harbormaster - infrastructure lifecycle control plane",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Ensure every request has a request ID for logging correlation."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        structlog.contextvars.unbind_contextvars("request_id")

        return response

    @app.exception_handler(HarbormasterError)
    async def harbormaster_error_handler(request: Request, exc: HarbormasterError) -> JSONResponse:
        """Render domain errors with their status code."""
        if isinstance(exc, InternalError):
            logger.error(
                "Internal error",
                error=exc.message,
                error_type=type(exc).__name__,
                path=str(request.url.path),
            )
        else:
            logger.info(
                "Request failed",
                status_code=exc.status_code,
                error=exc.message,
                path=str(request.url.path),
            )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    app.include_router(health_router)

    from harbormaster.api.routers.infras import router as infras_router

    app.include_router(infras_router)

    from harbormaster.api.routers.provisioner import router as provisioner_router

    app.include_router(provisioner_router)

    from harbormaster.api.routers.environments import router as environments_router

    app.include_router(environments_router)

    return app


# Application instance
app = create_app()
