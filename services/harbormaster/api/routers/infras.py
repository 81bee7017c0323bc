"""Infra lifecycle endpoints.

Endpoints:
    GET    /api/v1/projects/{project_id}/infras                                  (list infras)
    POST   /api/v1/projects/{project_id}/infras                                  (create infra)
    GET    /api/v1/projects/{project_id}/infras/{infra_id}                       (show infra)
    POST   /api/v1/projects/{project_id}/infras/{infra_id}/update                (update)
    POST   /api/v1/projects/{project_id}/infras/{infra_id}/delete                (delete)
    POST   /api/v1/projects/{project_id}/infras/{infra_id}/retry_create          (retry create)
    POST   /api/v1/projects/{project_id}/infras/{infra_id}/retry_delete          (retry delete)
    POST   /api/v1/projects/{project_id}/infras/{infra_id}/retry                 (retry latest)
    GET    /api/v1/projects/{project_id}/infras/{infra_id}/operations            (list operations)
    GET    /api/v1/projects/{project_id}/infras/{infra_id}/operations/{op_id}    (show operation)

Mutating verbs answer 204 when the infra has already been deleted.
"""

from typing import Any

from fastapi import APIRouter, Depends, Path, Response, status
from pydantic import Field

from harbormaster.api.dependencies import get_current_user_id, get_orchestrator
from harbormaster.logging_config import get_logger
from harbormaster.services.credentials_service import InfraCredentials
from harbormaster.services.infra_service import to_operation, to_operation_meta, to_public_summary
from harbormaster.services.orchestrator import DispatchResult, ProvisioningOrchestrator

router = APIRouter(prefix="/api/v1/projects/{project_id}/infras", tags=["infras"])
logger = get_logger(__name__)


class InfraRequest(InfraCredentials):
    """Credentials plus optional values. Empty values reuse the last applied ones."""

    values: dict[str, Any] | None = None


class CreateInfraRequest(InfraCredentials):
    kind: str = Field(min_length=1, pattern=r"^[a-z0-9]+$")
    values: dict[str, Any] = Field(default_factory=dict)
    parent_cluster_id: int = Field(default=0, ge=0)
    source_link: str = ""
    source_version: str = ""


def _credentials(body: InfraCredentials) -> InfraCredentials:
    return InfraCredentials(
        aws_integration_id=body.aws_integration_id,
        gcp_integration_id=body.gcp_integration_id,
        do_integration_id=body.do_integration_id,
    )


def _dispatch_json(result: DispatchResult | None) -> dict | Response:
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return {
        "infra": to_public_summary(result.infra),
        "operation": to_operation_meta(result.operation),
        "workspace_id": result.workspace_id,
    }


@router.get("")
async def list_infras(
    project_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> list[dict]:
    return [to_public_summary(i) for i in await orchestrator.list_infras(project_id)]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_infra(
    body: CreateInfraRequest,
    project_id: int = Path(ge=0),
    user_id: int = Depends(get_current_user_id),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict:
    result = await orchestrator.create(
        project_id=project_id,
        kind=body.kind,
        credentials=_credentials(body),
        created_by_user_id=user_id,
        values=body.values,
        parent_cluster_id=body.parent_cluster_id,
        source_link=body.source_link,
        source_version=body.source_version,
    )
    return _dispatch_json(result)


@router.get("/{infra_id}")
async def get_infra(
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict:
    return to_public_summary(await orchestrator.get_infra(project_id, infra_id))


@router.post("/{infra_id}/update", response_model=None)
async def update_infra(
    body: InfraRequest,
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict | Response:
    result = await orchestrator.update(project_id, infra_id, _credentials(body), body.values)
    return _dispatch_json(result)


@router.post("/{infra_id}/delete", response_model=None)
async def delete_infra(
    body: InfraCredentials,
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict | Response:
    return _dispatch_json(await orchestrator.delete(project_id, infra_id, body))


@router.post("/{infra_id}/retry_create", response_model=None)
async def retry_create_infra(
    body: InfraRequest,
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict | Response:
    result = await orchestrator.retry_create(project_id, infra_id, _credentials(body), body.values)
    return _dispatch_json(result)


@router.post("/{infra_id}/retry_delete", response_model=None)
async def retry_delete_infra(
    body: InfraCredentials,
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict | Response:
    return _dispatch_json(await orchestrator.retry_delete(project_id, infra_id, body))


@router.post("/{infra_id}/retry", response_model=None)
async def retry_infra(
    body: InfraCredentials,
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict | Response:
    return _dispatch_json(await orchestrator.retry(project_id, infra_id, body))


@router.get("/{infra_id}/operations")
async def list_operations(
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> list[dict]:
    operations = await orchestrator.list_operations(project_id, infra_id)
    return [to_operation_meta(o) for o in operations]


@router.get("/{infra_id}/operations/{operation_id}")
async def get_operation(
    project_id: int = Path(ge=0),
    infra_id: int = Path(ge=0),
    operation_id: str = Path(pattern=r"^[0-9a-f]+$"),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict:
    return to_operation(await orchestrator.get_operation(project_id, infra_id, operation_id))
