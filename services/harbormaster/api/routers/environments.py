"""Preview environment endpoints.

Endpoints:
    POST   /api/v1/projects/{project_id}/clusters/{cluster_id}/deployments/{deployment_id}/trigger_workflow
"""

from fastapi import APIRouter, Depends, Path, Response, status

from harbormaster.repository import get_repository
from harbormaster.repository.protocol import InfraRepository
from harbormaster.services import deployment_service

router = APIRouter(
    prefix="/api/v1/projects/{project_id}/clusters/{cluster_id}", tags=["environments"]
)


@router.post("/deployments/{deployment_id}/trigger_workflow")
async def trigger_deployment_workflow(
    project_id: int = Path(ge=0),
    cluster_id: int = Path(ge=0),
    deployment_id: int = Path(ge=0),
    repo: InfraRepository = Depends(get_repository),
) -> Response:
    await deployment_service.trigger_deployment_workflow(
        repo, project_id, cluster_id, deployment_id
    )
    return Response(status_code=status.HTTP_200_OK)
