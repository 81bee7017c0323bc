"""Provisioning orchestrator: drives infra operations through the provisioner.

Every mutating verb follows the same path:

1. load the infra (and its parent cluster) within the project
2. check the supplied cloud credentials
3. resolve the effective configuration, falling back to the values sent
   with the latest operation when none are supplied
4. run the kind's postrenderer for cluster-scoped infras
5. record a new operation and move the infra into its in-flight status
6. call the provisioner, then record the dispatch outcome

Nothing is persisted before step 5, so requests rejected by credentials,
status, or postrenderer checks leave no trace. The provisioner's terminal
result arrives later through complete_operation().
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from harbormaster.config import OperationsConfig
from harbormaster.db.models import Cluster, Infra, InfraStatus, Operation, OperationType
from harbormaster.errors import (
    ForbiddenError,
    InternalError,
    NotFoundError,
    PassThroughError,
    RequestRejectedError,
)
from harbormaster.infra.kinds import get_kind_handler
from harbormaster.infra.workspace_id import get_workspace_id, parse_workspace_id
from harbormaster.logging_config import get_logger
from harbormaster.repository.protocol import InfraRepository
from harbormaster.services import infra_service, operation_state
from harbormaster.services.credentials_service import InfraCredentials, check_infra_credentials
from harbormaster.services.encryption_service import decrypt_config, encrypt_config, random_token
from harbormaster.services.infra_lock import InfraLock, NullInfraLock
from harbormaster.services.operation_state import (
    OPERATION_COMPLETED,
    OPERATION_ERRORED,
    OPERATION_STARTING,
    TERMINAL_OPERATION_STATUSES,
)
from harbormaster.services.provisioner_client import (
    ApplyRequest,
    OperationHandle,
    ProvisionerClient,
    ProvisionerResponseError,
    ProvisionerUnavailableError,
)

logger = get_logger(__name__)

CANCELED_MESSAGE = "operation canceled"

_RETRY_TYPE_FOR: dict[str, OperationType] = {
    OperationType.CREATE: OperationType.RETRY_CREATE,
    OperationType.RETRY_CREATE: OperationType.RETRY_CREATE,
    OperationType.UPDATE: OperationType.UPDATE,
    OperationType.DELETE: OperationType.RETRY_DELETE,
    OperationType.RETRY_DELETE: OperationType.RETRY_DELETE,
}

# Verb that resubmits an abandoned dispatch from a non-error status
_RESUBMIT_TYPE_FOR: dict[str, OperationType] = {
    OperationType.RETRY_DELETE: OperationType.DELETE,
}


@dataclass
class DispatchResult:
    """An operation the provisioner accepted."""

    infra: Infra
    operation: Operation
    workspace_id: str
    handle: OperationHandle


class ProvisioningOrchestrator:
    """Lifecycle verbs for infras, bound to one repository and provisioner."""

    def __init__(
        self,
        repo: InfraRepository,
        provisioner: ProvisionerClient,
        operations: OperationsConfig,
        lock: InfraLock | None = None,
        dispatch_deadline: float | None = None,
    ) -> None:
        self._repo = repo
        self._provisioner = provisioner
        self._config = operations
        self._lock = lock or NullInfraLock()
        self._dispatch_deadline = dispatch_deadline or None

    # --- Reads ---

    async def get_infra(self, project_id: int, infra_id: int) -> Infra:
        """Load an infra. Absence and foreign projects are both Forbidden."""
        try:
            return await self._repo.read_infra_by_id(project_id, infra_id)
        except NotFoundError:
            raise ForbiddenError(
                f"infra with id {infra_id} not found in project {project_id}"
            ) from None

    async def list_infras(self, project_id: int) -> list[Infra]:
        return await self._repo.list_infras(project_id)

    async def list_operations(self, project_id: int, infra_id: int) -> list[Operation]:
        infra = await self.get_infra(project_id, infra_id)
        return await self._repo.list_operations(infra)

    async def get_operation(self, project_id: int, infra_id: int, uid: str) -> Operation:
        infra = await self.get_infra(project_id, infra_id)
        return await self._repo.read_operation_by_uid(infra, uid)

    # --- Verbs ---

    async def create(
        self,
        project_id: int,
        kind: str,
        credentials: InfraCredentials,
        created_by_user_id: int,
        values: dict[str, Any] | None = None,
        parent_cluster_id: int = 0,
        api_version: str = "v2",
        source_link: str = "",
        source_version: str = "",
        timeout: float | None = None,
    ) -> DispatchResult:
        """Create an infra together with its first operation and dispatch it."""
        handler = get_kind_handler(kind)
        if handler is None:
            raise RequestRejectedError(f"unsupported infra kind '{kind}'")

        infra = Infra(
            project_id=project_id,
            kind=str(kind),
            api_version=api_version,
            source_link=source_link,
            source_version=source_version,
            suffix=random_token(self._config.suffix_bytes),
            status=InfraStatus.CREATING,
            created_by_user_id=created_by_user_id,
            parent_cluster_id=parent_cluster_id,
            aws_integration_id=0,
            gcp_integration_id=0,
            do_integration_id=0,
            last_applied=None,
        )

        cluster = await self._load_parent_cluster(project_id, infra)
        integration_id = await check_infra_credentials(self._repo, project_id, infra, credentials)
        setattr(infra, f"{handler.provider}_integration_id", integration_id)

        rendered = self._postrender(infra, cluster, dict(values or {}))
        operation = self._new_operation(OperationType.CREATE, rendered)
        await self._repo.create_infra(infra, operation)

        logger.info("Infra created", infra_id=infra.id, project_id=project_id, kind=infra.kind)
        return await self._dispatch(infra, operation, rendered, previous_status=None, timeout=timeout)

    async def update(
        self,
        project_id: int,
        infra_id: int,
        credentials: InfraCredentials,
        values: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> DispatchResult | None:
        """Apply new values, or re-apply the last ones when none are supplied."""
        return await self._run(project_id, infra_id, OperationType.UPDATE, credentials, values, timeout)

    async def delete(
        self,
        project_id: int,
        infra_id: int,
        credentials: InfraCredentials,
        timeout: float | None = None,
    ) -> DispatchResult | None:
        return await self._run(project_id, infra_id, OperationType.DELETE, credentials, None, timeout)

    async def retry_create(
        self,
        project_id: int,
        infra_id: int,
        credentials: InfraCredentials,
        values: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> DispatchResult | None:
        return await self._run(
            project_id, infra_id, OperationType.RETRY_CREATE, credentials, values, timeout
        )

    async def retry_delete(
        self,
        project_id: int,
        infra_id: int,
        credentials: InfraCredentials,
        timeout: float | None = None,
    ) -> DispatchResult | None:
        return await self._run(
            project_id, infra_id, OperationType.RETRY_DELETE, credentials, None, timeout
        )

    async def retry(
        self,
        project_id: int,
        infra_id: int,
        credentials: InfraCredentials,
        timeout: float | None = None,
    ) -> DispatchResult | None:
        """Repeat the latest operation with its own values."""
        infra = await self.get_infra(project_id, infra_id)
        if operation_state.is_final(infra):
            logger.info("Ignoring request against finalized infra", infra_id=infra.id, verb="retry")
            return None

        latest = await self._latest_operation(infra)
        retry_type = _RETRY_TYPE_FOR[latest.type]
        if not operation_state.is_retryable(infra.status):
            # A dispatch that never reached the provisioner left the infra where it was
            retry_type = _RESUBMIT_TYPE_FOR.get(retry_type, retry_type)
        return await self._run(project_id, infra_id, retry_type, credentials, None, timeout)

    async def complete_operation(
        self, workspace_id: str, succeeded: bool, error: str = ""
    ) -> Operation:
        """Record the provisioner's terminal result for an operation.

        A terminal operation is never modified again, so a repeated report is
        a no-op. The infra only follows the result of its latest operation.
        """
        parsed = parse_workspace_id(workspace_id, self._config.uid_bytes)
        infra = await self.get_infra(parsed.project_id, parsed.infra_id)
        if infra.kind != parsed.kind or infra.suffix != parsed.suffix:
            raise ForbiddenError(f"workspace id {workspace_id} does not match infra {infra.id}")

        try:
            operation = await self._repo.read_operation_by_uid(infra, parsed.operation_uid)
        except NotFoundError:
            raise ForbiddenError(f"operation {parsed.operation_uid} not found for infra") from None

        log = logger.bind(infra_id=infra.id, operation_id=operation.uid, workspace_id=workspace_id)

        if operation.status in TERMINAL_OPERATION_STATUSES:
            log.info("Operation already resolved", status=operation.status)
            return operation

        operation.status = OPERATION_COMPLETED if succeeded else OPERATION_ERRORED
        operation.errored = not succeeded
        operation.error = "" if succeeded else (error or "operation failed")
        await self._repo.update_operation(operation)
        log.info("Operation resolved", status=operation.status, error=operation.error)

        latest = await self._latest_operation(infra)
        if latest.uid != operation.uid:
            log.warning("Operation superseded; infra status unchanged", latest_operation_id=latest.uid)
            return operation

        target = operation_state.resolved_status(operation.type, succeeded)
        if not operation_state.can_transition(infra.status, target):
            log.warning("Infra not in flight; status unchanged", status=infra.status, target=target)
            return operation

        operation_state.transition_infra(infra, target)
        if succeeded:
            infra.last_applied = operation.last_applied
        await self._repo.update_infra(infra)
        return operation

    # --- Internals ---

    async def _run(
        self,
        project_id: int,
        infra_id: int,
        operation_type: OperationType,
        credentials: InfraCredentials,
        values: dict[str, Any] | None,
        timeout: float | None,
    ) -> DispatchResult | None:
        infra = await self.get_infra(project_id, infra_id)
        if operation_state.is_final(infra):
            logger.info(
                "Ignoring request against finalized infra",
                infra_id=infra.id,
                verb=str(operation_type),
            )
            return None

        async with self._lock.hold(infra.id):
            cluster = await self._load_parent_cluster(project_id, infra)
            await check_infra_credentials(self._repo, project_id, infra, credentials)
            target = operation_state.check_dispatch(infra, operation_type)

            if values:
                effective = dict(values)
            else:
                latest = await self._latest_operation(infra)
                effective = decrypt_config(latest.last_applied)

            rendered = self._postrender(infra, cluster, effective)

            operation = self._new_operation(operation_type, rendered)
            operation.infra_id = infra.id
            previous_status = infra.status
            operation_state.transition_infra(infra, target)
            await self._repo.create_operation(operation)
            await self._repo.update_infra(infra)

            return await self._dispatch(infra, operation, rendered, previous_status, timeout)

    async def _dispatch(
        self,
        infra: Infra,
        operation: Operation,
        values: dict[str, Any],
        previous_status: str | None,
        timeout: float | None,
    ) -> DispatchResult:
        workspace_id = get_workspace_id(infra, operation)
        log = logger.bind(infra_id=infra.id, operation_id=operation.uid, workspace_id=workspace_id)
        req = ApplyRequest(
            kind=infra.kind,
            values=values,
            operation_kind=operation.type,
            workspace_id=workspace_id,
            operation_id=operation.uid,
        )
        deadline = timeout if timeout is not None else self._dispatch_deadline

        try:
            async with asyncio.timeout(deadline):
                handle = await self._provisioner.apply(infra.project_id, infra.id, req)
        except TimeoutError:
            await self._abandon(
                infra, operation, previous_status, f"{CANCELED_MESSAGE}: dispatch deadline exceeded"
            )
            raise InternalError("provisioner dispatch deadline exceeded") from None
        except asyncio.CancelledError:
            await self._abandon(infra, operation, previous_status, CANCELED_MESSAGE)
            raise
        except ProvisionerUnavailableError as e:
            await self._abandon(infra, operation, previous_status, f"provisioner unreachable: {e}")
            raise InternalError(str(e)) from e
        except ProvisionerResponseError as e:
            await self._fail(infra, operation, e.message)
            if 400 <= e.status_code < 500:
                raise PassThroughError(e.message, e.status_code) from e
            raise InternalError(str(e)) from e

        log.info("Operation dispatched", type=operation.type, provisioner_status=handle.status)
        return DispatchResult(infra=infra, operation=operation, workspace_id=workspace_id, handle=handle)

    async def _abandon(
        self, infra: Infra, operation: Operation, previous_status: str | None, message: str
    ) -> None:
        """Record a dispatch that never reached the provisioner.

        The infra returns to where it was so the same request can be
        resubmitted; a brand-new infra has nowhere to return to and lands in
        its error status instead.
        """
        self._mark_errored(operation, message)
        await self._repo.update_operation(operation)
        if previous_status is None:
            operation_state.transition_infra(
                infra, operation_state.resolved_status(operation.type, succeeded=False)
            )
        else:
            operation_state.restore_status(infra, previous_status)
        await self._repo.update_infra(infra)
        logger.warning(
            "Operation abandoned", infra_id=infra.id, operation_id=operation.uid, error=message
        )

    async def _fail(self, infra: Infra, operation: Operation, message: str) -> None:
        """Record an operation the provisioner received and refused."""
        self._mark_errored(operation, message)
        await self._repo.update_operation(operation)
        operation_state.transition_infra(
            infra, operation_state.resolved_status(operation.type, succeeded=False)
        )
        await self._repo.update_infra(infra)
        logger.warning(
            "Operation failed at dispatch", infra_id=infra.id, operation_id=operation.uid, error=message
        )

    @staticmethod
    def _mark_errored(operation: Operation, message: str) -> None:
        operation.status = OPERATION_ERRORED
        operation.errored = True
        operation.error = message

    def _new_operation(self, operation_type: OperationType, values: dict[str, Any]) -> Operation:
        return Operation(
            uid=random_token(self._config.uid_bytes),
            type=str(operation_type),
            status=OPERATION_STARTING,
            errored=False,
            error="",
            last_applied=encrypt_config(values),
        )

    async def _latest_operation(self, infra: Infra) -> Operation:
        try:
            return await infra_service.latest_operation(self._repo, infra)
        except NotFoundError:
            logger.error("Infra has no operations", infra_id=infra.id)
            raise InternalError(f"infra {infra.id} has no operations") from None

    async def _load_parent_cluster(self, project_id: int, infra: Infra) -> Cluster | None:
        if not infra.parent_cluster_id:
            return None
        try:
            return await self._repo.read_cluster_by_id(project_id, infra.parent_cluster_id)
        except NotFoundError:
            raise ForbiddenError(
                f"cluster with id {infra.parent_cluster_id} not found in project {project_id}"
            ) from None

    @staticmethod
    def _postrender(infra: Infra, cluster: Cluster | None, values: dict[str, Any]) -> dict[str, Any]:
        handler = get_kind_handler(infra.kind)
        if not infra.parent_cluster_id or handler is None or handler.postrenderer is None:
            return values
        return handler.postrenderer(cluster, values)
