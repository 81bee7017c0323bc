"""FastAPI dependencies for the infra API.

Authentication happens in front of this service: the gateway forwards the
authenticated user's id in the X-Harbormaster-User-ID header.
"""

from fastapi import Depends, Header, HTTPException, status

from harbormaster.config import settings
from harbormaster.repository import get_repository
from harbormaster.repository.protocol import InfraRepository
from harbormaster.services.infra_lock import get_infra_lock
from harbormaster.services.orchestrator import ProvisioningOrchestrator
from harbormaster.services.provisioner_client import ProvisionerClient, get_provisioner


async def get_current_user_id(
    x_harbormaster_user_id: int | None = Header(default=None),
) -> int:
    """User id forwarded by the auth gateway."""
    if x_harbormaster_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Harbormaster-User-ID header",
        )
    return x_harbormaster_user_id


async def get_orchestrator(
    repo: InfraRepository = Depends(get_repository),
    provisioner: ProvisionerClient = Depends(get_provisioner),
) -> ProvisioningOrchestrator:
    """Orchestrator bound to the request's repository."""
    return ProvisioningOrchestrator(
        repo=repo,
        provisioner=provisioner,
        operations=settings.operations,
        lock=get_infra_lock(),
        dispatch_deadline=settings.provisioner.dispatch_deadline_seconds,
    )
