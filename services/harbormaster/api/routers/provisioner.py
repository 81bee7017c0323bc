"""Callback endpoint the provisioner reports operation results to.

Endpoints:
    POST   /api/v1/provisioner/operations/{workspace_id}/result
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from harbormaster.api.dependencies import get_orchestrator
from harbormaster.services.infra_service import to_operation_meta
from harbormaster.services.orchestrator import ProvisioningOrchestrator

router = APIRouter(prefix="/api/v1/provisioner", tags=["provisioner"])


class OperationResult(BaseModel):
    succeeded: bool
    error: str = ""


@router.post("/operations/{workspace_id}/result")
async def report_operation_result(
    workspace_id: str,
    body: OperationResult,
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> dict:
    operation = await orchestrator.complete_operation(workspace_id, body.succeeded, body.error)
    return to_operation_meta(operation)
