"""
Repository layer for Harbormaster.

Provides get_repository() as a FastAPI dependency, selecting the backend
from configuration.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from harbormaster.config import RepositoryBackend, settings
from harbormaster.logging_config import get_logger
from harbormaster.repository.memory import MemoryInfraRepository
from harbormaster.repository.protocol import InfraRepository

logger = get_logger(__name__)

# Shared instance for the memory backend
_memory_repo: MemoryInfraRepository | None = None


def get_memory_repository() -> MemoryInfraRepository:
    """Return the process-wide memory repository, creating it on first use."""
    global _memory_repo  # noqa: PLW0603
    if _memory_repo is None:
        _memory_repo = MemoryInfraRepository()
        logger.warning("Using in-memory repository; state is lost on restart")
    return _memory_repo


async def _postgres_repository() -> AsyncGenerator[InfraRepository]:
    from harbormaster.db.session import get_db
    from harbormaster.repository.postgres import SQLAlchemyInfraRepository

    async for db in get_db():
        yield SQLAlchemyInfraRepository(db)


async def get_repository() -> AsyncGenerator[InfraRepository]:
    """FastAPI dependency that yields the configured repository."""
    if settings.repository.backend == RepositoryBackend.MEMORY:
        yield get_memory_repository()
        return

    async for repo in _postgres_repository():
        yield repo

