"""
Health check endpoints for the Harbormaster control plane.

Provides /health (liveness) and /ready (readiness) endpoints.
"""

from fastapi import APIRouter, Response, status

from harbormaster.config import RepositoryBackend, settings
from harbormaster.db.session import get_db_health
from harbormaster.logging_config import get_logger
from harbormaster.redis.client import get_redis_health
from harbormaster.services.encryption_service import is_encryption_available

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(response: Response) -> dict[str, str | dict[str, str]]:
    """Readiness probe endpoint.

    Infra configuration cannot be persisted without an encryption key, so
    a missing key makes the server not ready.
    """
    checks: dict[str, str] = {}

    if settings.repository.backend == RepositoryBackend.POSTGRES:
        checks["database"] = "healthy" if await get_db_health() else "unhealthy"
    checks["redis"] = "healthy" if await get_redis_health() else "unhealthy"
    checks["encryption"] = "healthy" if is_encryption_available() else "unhealthy"

    if not all(v == "healthy" for v in checks.values()):
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}

    return {"status": "ready", "checks": checks}
