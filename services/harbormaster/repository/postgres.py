"""PostgreSQL repository backed by an async SQLAlchemy session.

Every write commits, so operation records outlive errors raised later in
the same request.
"""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from harbormaster.db.models import (
    CloudIntegration,
    Cluster,
    Deployment,
    Environment,
    Infra,
    Operation,
)
from harbormaster.errors import InternalError, NotFoundError
from harbormaster.logging_config import get_logger

logger = get_logger(__name__)


class SQLAlchemyInfraRepository:
    """InfraRepository over a request-scoped AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _one_or_none(self, stmt):  # type: ignore[no-untyped-def]
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Repository read failed", error=str(e))
            raise InternalError(str(e)) from e
        return result.scalar_one_or_none()

    async def _all(self, stmt) -> list:  # type: ignore[no-untyped-def]
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Repository read failed", error=str(e))
            raise InternalError(str(e)) from e
        return list(result.scalars().all())

    async def _commit(self) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error("Repository write failed", error=str(e))
            raise InternalError(str(e)) from e

    # --- Infra ---

    async def read_infra_by_id(self, project_id: int, infra_id: int) -> Infra:
        infra = await self._one_or_none(
            select(Infra).where(Infra.id == infra_id, Infra.project_id == project_id)
        )
        if infra is None:
            raise NotFoundError("infra", infra_id)
        return infra

    async def list_infras(self, project_id: int) -> list[Infra]:
        return await self._all(
            select(Infra).where(Infra.project_id == project_id).order_by(Infra.id.asc())
        )

    async def create_infra(self, infra: Infra, operation: Operation) -> Infra:
        self._db.add(infra)
        try:
            await self._db.flush()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise InternalError(str(e)) from e
        operation.infra_id = infra.id
        self._db.add(operation)
        await self._commit()
        return infra

    async def update_infra(self, infra: Infra) -> Infra:
        self._db.add(infra)
        await self._commit()
        return infra

    # --- Operations ---

    async def get_latest_operation(self, infra: Infra) -> Operation:
        operation = await self._one_or_none(
            select(Operation)
            .where(Operation.infra_id == infra.id)
            .order_by(Operation.id.desc())
            .limit(1)
        )
        if operation is None:
            raise NotFoundError("operation for infra", infra.id)
        return operation

    async def list_operations(self, infra: Infra) -> list[Operation]:
        return await self._all(
            select(Operation)
            .where(Operation.infra_id == infra.id)
            .order_by(Operation.id.asc())
        )

    async def read_operation_by_uid(self, infra: Infra, uid: str) -> Operation:
        operation = await self._one_or_none(
            select(Operation).where(Operation.uid == uid, Operation.infra_id == infra.id)
        )
        if operation is None:
            raise NotFoundError("operation", uid)
        return operation

    async def create_operation(self, operation: Operation) -> Operation:
        self._db.add(operation)
        await self._commit()
        return operation

    async def update_operation(self, operation: Operation) -> Operation:
        self._db.add(operation)
        await self._commit()
        return operation

    # --- Collaborator entities ---

    async def read_cluster_by_id(self, project_id: int, cluster_id: int) -> Cluster:
        cluster = await self._one_or_none(
            select(Cluster).where(Cluster.id == cluster_id, Cluster.project_id == project_id)
        )
        if cluster is None:
            raise NotFoundError("cluster", cluster_id)
        return cluster

    async def read_cloud_integration(
        self, project_id: int, provider: str, integration_id: int
    ) -> CloudIntegration:
        integration = await self._one_or_none(
            select(CloudIntegration).where(
                CloudIntegration.id == integration_id,
                CloudIntegration.project_id == project_id,
                CloudIntegration.provider == provider,
            )
        )
        if integration is None:
            raise NotFoundError(f"{provider} integration", integration_id)
        return integration

    async def read_environment_by_id(
        self, project_id: int, cluster_id: int, environment_id: int
    ) -> Environment:
        env = await self._one_or_none(
            select(Environment).where(
                Environment.id == environment_id,
                Environment.project_id == project_id,
                Environment.cluster_id == cluster_id,
            )
        )
        if env is None:
            raise NotFoundError("environment", environment_id)
        return env

    async def read_deployment_by_id(
        self, project_id: int, cluster_id: int, deployment_id: int
    ) -> Deployment:
        depl = await self._one_or_none(
            select(Deployment)
            .join(Environment, Deployment.environment_id == Environment.id)
            .where(
                Deployment.id == deployment_id,
                Environment.project_id == project_id,
                Environment.cluster_id == cluster_id,
            )
        )
        if depl is None:
            raise NotFoundError("deployment", deployment_id)
        return depl
