"""In-process repository for local development and tests.

Holds model instances in dicts; ids are assigned from per-table counters so
insertion order is also id order, matching the PostgreSQL backend.
"""

import itertools

from harbormaster.db.models import (
    CloudIntegration,
    Cluster,
    Deployment,
    Environment,
    Infra,
    Operation,
    utc_now,
)
from harbormaster.errors import NotFoundError


class MemoryInfraRepository:
    """InfraRepository held entirely in memory."""

    def __init__(self) -> None:
        self.infras: dict[int, Infra] = {}
        self.operations: dict[int, Operation] = {}
        self.clusters: dict[int, Cluster] = {}
        self.integrations: dict[int, CloudIntegration] = {}
        self.environments: dict[int, Environment] = {}
        self.deployments: dict[int, Deployment] = {}
        self._ids: dict[str, itertools.count] = {}

    def _next_id(self, table: str) -> int:
        return next(self._ids.setdefault(table, itertools.count(1)))

    def _stamp(self, obj, table: str) -> None:  # type: ignore[no-untyped-def]
        if obj.id is None:
            obj.id = self._next_id(table)
        now = utc_now()
        if getattr(obj, "created_at", None) is None:
            obj.created_at = now
        if hasattr(obj, "updated_at"):
            obj.updated_at = now

    # --- Seeding helpers for collaborator entities ---

    def add_cluster(self, cluster: Cluster) -> Cluster:
        self._stamp(cluster, "clusters")
        self.clusters[cluster.id] = cluster
        return cluster

    def add_integration(self, integration: CloudIntegration) -> CloudIntegration:
        self._stamp(integration, "cloud_integrations")
        self.integrations[integration.id] = integration
        return integration

    def add_environment(self, env: Environment) -> Environment:
        self._stamp(env, "environments")
        self.environments[env.id] = env
        return env

    def add_deployment(self, depl: Deployment) -> Deployment:
        self._stamp(depl, "deployments")
        self.deployments[depl.id] = depl
        return depl

    def add_infra(self, infra: Infra) -> Infra:
        """Insert an infra without an operation (for seeding legacy rows)."""
        self._stamp(infra, "infras")
        self.infras[infra.id] = infra
        return infra

    def add_operation(self, operation: Operation) -> Operation:
        self._stamp(operation, "operations")
        self.operations[operation.id] = operation
        return operation

    # --- Infra ---

    async def read_infra_by_id(self, project_id: int, infra_id: int) -> Infra:
        infra = self.infras.get(infra_id)
        if infra is None or infra.project_id != project_id:
            raise NotFoundError("infra", infra_id)
        return infra

    async def list_infras(self, project_id: int) -> list[Infra]:
        return [i for _, i in sorted(self.infras.items()) if i.project_id == project_id]

    async def create_infra(self, infra: Infra, operation: Operation) -> Infra:
        self.add_infra(infra)
        operation.infra_id = infra.id
        await self.create_operation(operation)
        return infra

    async def update_infra(self, infra: Infra) -> Infra:
        infra.updated_at = utc_now()
        self.infras[infra.id] = infra
        return infra

    # --- Operations ---

    def _operations_of(self, infra: Infra) -> list[Operation]:
        return [o for _, o in sorted(self.operations.items()) if o.infra_id == infra.id]

    async def get_latest_operation(self, infra: Infra) -> Operation:
        operations = self._operations_of(infra)
        if not operations:
            raise NotFoundError("operation for infra", infra.id)
        return operations[-1]

    async def list_operations(self, infra: Infra) -> list[Operation]:
        return self._operations_of(infra)

    async def read_operation_by_uid(self, infra: Infra, uid: str) -> Operation:
        for operation in self._operations_of(infra):
            if operation.uid == uid:
                return operation
        raise NotFoundError("operation", uid)

    async def create_operation(self, operation: Operation) -> Operation:
        return self.add_operation(operation)

    async def update_operation(self, operation: Operation) -> Operation:
        operation.updated_at = utc_now()
        self.operations[operation.id] = operation
        return operation

    # --- Collaborator entities ---

    async def read_cluster_by_id(self, project_id: int, cluster_id: int) -> Cluster:
        cluster = self.clusters.get(cluster_id)
        if cluster is None or cluster.project_id != project_id:
            raise NotFoundError("cluster", cluster_id)
        return cluster

    async def read_cloud_integration(
        self, project_id: int, provider: str, integration_id: int
    ) -> CloudIntegration:
        integration = self.integrations.get(integration_id)
        if (
            integration is None
            or integration.project_id != project_id
            or integration.provider != provider
        ):
            raise NotFoundError(f"{provider} integration", integration_id)
        return integration

    async def read_environment_by_id(
        self, project_id: int, cluster_id: int, environment_id: int
    ) -> Environment:
        env = self.environments.get(environment_id)
        if env is None or env.project_id != project_id or env.cluster_id != cluster_id:
            raise NotFoundError("environment", environment_id)
        return env

    async def read_deployment_by_id(
        self, project_id: int, cluster_id: int, deployment_id: int
    ) -> Deployment:
        depl = self.deployments.get(deployment_id)
        if depl is None:
            raise NotFoundError("deployment", deployment_id)
        env = self.environments.get(depl.environment_id)
        if env is None or env.project_id != project_id or env.cluster_id != cluster_id:
            raise NotFoundError("deployment", deployment_id)
        return depl
