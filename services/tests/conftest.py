"""
Top-level test configuration for Harbormaster.
"""

import os

# Ensure test-friendly defaults
os.environ.setdefault("HARBORMASTER_REPOSITORY__BACKEND", "memory")
os.environ.setdefault("HARBORMASTER_JSON_LOGS", "false")
os.environ.setdefault("HARBORMASTER_LOG_LEVEL", "DEBUG")

import json  # noqa: E402
from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from cryptography.fernet import Fernet  # noqa: E402

from harbormaster.db.models import (  # noqa: E402
    CloudIntegration,
    CloudProvider,
    Cluster,
    Infra,
    InfraStatus,
    Operation,
)
from harbormaster.repository.memory import MemoryInfraRepository  # noqa: E402
from harbormaster.services.encryption_service import encrypt_config, init_encryption  # noqa: E402
from harbormaster.services.provisioner_client import ProvisionerClient  # noqa: E402

PROJECT_ID = 4
AWS_INTEGRATION_ID = 1
DO_INTEGRATION_ID = 2
CLUSTER_ID = 1
PROVISIONER_URL = "http://provisioner.test/api/v1"


@pytest.fixture(autouse=True)
def encryption_key() -> bytes:
    """Fresh Fernet key for every test."""
    key = Fernet.generate_key()
    init_encryption(key)
    return key


@pytest.fixture
def repo() -> MemoryInfraRepository:
    """Memory repository seeded with one project's integrations and an EKS cluster."""
    repo = MemoryInfraRepository()
    repo.add_integration(CloudIntegration(project_id=PROJECT_ID, provider=CloudProvider.AWS))
    repo.add_integration(CloudIntegration(project_id=PROJECT_ID, provider=CloudProvider.DO))
    repo.add_cluster(
        Cluster(
            project_id=PROJECT_ID,
            name="prod",
            aws_integration_id=AWS_INTEGRATION_ID,
            aws_region="us-east-2",
        )
    )
    return repo


def seed_infra(
    repo: MemoryInfraRepository,
    status: str = InfraStatus.CREATED,
    kind: str = "eks",
    values: dict | None = None,
    op_type: str = "create",
    op_status: str = "completed",
    op_error: str = "",
    uid: str = "0123456789abcdef0123",
    infra_id: int | None = None,
    aws_integration_id: int = AWS_INTEGRATION_ID,
    do_integration_id: int = 0,
    parent_cluster_id: int = 0,
) -> tuple[Infra, Operation]:
    """Insert an infra with a single operation carrying ``values``."""
    ciphertext = encrypt_config(values or {})
    infra = repo.add_infra(
        Infra(
            id=infra_id,
            project_id=PROJECT_ID,
            kind=kind,
            api_version="v2",
            source_link="",
            source_version="",
            suffix="ab12cd",
            status=status,
            created_by_user_id=7,
            parent_cluster_id=parent_cluster_id,
            aws_integration_id=aws_integration_id,
            gcp_integration_id=0,
            do_integration_id=do_integration_id,
            last_applied=ciphertext if op_status == "completed" else None,
        )
    )
    operation = repo.add_operation(
        Operation(
            uid=uid,
            infra_id=infra.id,
            type=op_type,
            status=op_status,
            errored=op_status == "errored",
            error=op_error,
            last_applied=ciphertext,
        )
    )
    return infra, operation


@pytest.fixture
def seed(repo: MemoryInfraRepository) -> Callable[..., tuple[Infra, Operation]]:
    """Seed infras into the ``repo`` fixture; see seed_infra()."""

    def _seed(**kwargs) -> tuple[Infra, Operation]:  # type: ignore[no-untyped-def]
        return seed_infra(repo, **kwargs)

    return _seed


async def _accept(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"id": body["operation_id"], "status": "accepted"})


class RecordingProvisioner:
    """httpx.MockTransport handler that records apply calls.

    Replace ``respond`` to answer with an error, raise a transport error,
    or block.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], Awaitable[httpx.Response]] = _accept

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return await self.respond(request)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.calls]


@pytest.fixture
def provisioner_handler() -> RecordingProvisioner:
    return RecordingProvisioner()


@pytest_asyncio.fixture
async def provisioner(
    provisioner_handler: RecordingProvisioner,
) -> AsyncGenerator[ProvisionerClient]:
    client = ProvisionerClient(PROVISIONER_URL, transport=httpx.MockTransport(provisioner_handler))
    yield client
    await client.close()
