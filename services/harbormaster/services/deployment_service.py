"""Preview environment deployment triggers."""

import httpx

from harbormaster.db.models import Deployment, DeploymentStatus, Environment
from harbormaster.errors import ForbiddenError, NotFoundError
from harbormaster.logging_config import get_logger
from harbormaster.repository.protocol import InfraRepository
from harbormaster.services import github_service

logger = get_logger(__name__)


def workflow_file_name(env: Environment) -> str:
    """Workflow file a preview environment is deployed by."""
    return f"porter_{env.name}_env.yml"


def workflow_inputs(depl: Deployment) -> dict[str, str]:
    return {
        "pr_number": str(depl.pull_request_id),
        "pr_title": depl.pr_name,
        "pr_branch_from": depl.pr_branch_from,
        "pr_branch_into": depl.pr_branch_into,
    }


async def trigger_deployment_workflow(
    repo: InfraRepository,
    project_id: int,
    cluster_id: int,
    deployment_id: int,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Re-run the GitHub workflow for a deployment's pull request branch.

    Returns False without contacting GitHub when the deployment is inactive.
    """
    try:
        depl = await repo.read_deployment_by_id(project_id, cluster_id, deployment_id)
        if depl.status == DeploymentStatus.INACTIVE:
            logger.info("Skipping workflow trigger for inactive deployment", deployment_id=depl.id)
            return False
        env = await repo.read_environment_by_id(project_id, cluster_id, depl.environment_id)
    except NotFoundError as e:
        raise ForbiddenError(str(e)) from None

    await github_service.dispatch_workflow(
        installation_id=env.git_installation_id,
        owner=env.git_repo_owner,
        repo=env.git_repo_name,
        workflow_file=workflow_file_name(env),
        ref=depl.pr_branch_from,
        inputs=workflow_inputs(depl),
        transport=transport,
    )
    return True
