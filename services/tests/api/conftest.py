"""
Shared fixtures for API tests.
"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from harbormaster.api.app import create_app
from harbormaster.repository import get_repository
from harbormaster.services.provisioner_client import get_provisioner


@pytest_asyncio.fixture
async def client(repo, provisioner) -> AsyncGenerator[AsyncClient]:
    """Client for an app bound to the memory repository and mock provisioner."""
    app = create_app()
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_provisioner] = lambda: provisioner

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
