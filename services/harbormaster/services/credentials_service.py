"""Cloud credential checks for mutating infra requests.

The caller names the cloud integration it wants the provisioner to use.
The integration must exist in the infra's project, target the provider the
kind needs, and, once an infra has been created with an integration,
remain that same integration.
"""

from pydantic import BaseModel, Field

from harbormaster.db.models import CloudProvider, Infra
from harbormaster.errors import ForbiddenError, NotFoundError
from harbormaster.infra.kinds import get_kind_handler
from harbormaster.logging_config import get_logger
from harbormaster.repository.protocol import InfraRepository

logger = get_logger(__name__)


class InfraCredentials(BaseModel):
    """Integration ids supplied with a request. 0 means not supplied."""

    aws_integration_id: int = Field(default=0, ge=0)
    gcp_integration_id: int = Field(default=0, ge=0)
    do_integration_id: int = Field(default=0, ge=0)

    def for_provider(self, provider: str) -> int:
        return getattr(self, f"{provider}_integration_id")


def _infra_integration_id(infra: Infra, provider: str) -> int:
    return getattr(infra, f"{provider}_integration_id") or 0


async def check_infra_credentials(
    repo: InfraRepository,
    project_id: int,
    infra: Infra,
    credentials: InfraCredentials,
) -> int:
    """Validate supplied credentials for an infra. Returns the integration id.

    Raises ForbiddenError on any mismatch; never retried automatically.
    """
    handler = get_kind_handler(infra.kind)
    if handler is None:
        raise ForbiddenError(f"unsupported infra kind '{infra.kind}'")

    provider = CloudProvider(handler.provider)
    supplied = credentials.for_provider(provider)
    if not supplied:
        raise ForbiddenError(f"{provider} integration id is required for {infra.kind} infra")

    configured = _infra_integration_id(infra, provider)
    if configured and configured != supplied:
        logger.warning(
            "Credential mismatch",
            infra_id=infra.id,
            provider=str(provider),
            configured=configured,
            supplied=supplied,
        )
        raise ForbiddenError(f"{provider} integration {supplied} does not match infra")

    try:
        await repo.read_cloud_integration(project_id, provider, supplied)
    except NotFoundError:
        raise ForbiddenError(
            f"{provider} integration {supplied} not found in project {project_id}"
        ) from None

    return supplied
