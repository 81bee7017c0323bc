"""
Repository protocol for Harbormaster.

Defines the InfraRepository Protocol that all persistence backends must
satisfy. Reads raise NotFoundError when the entity is absent or outside
the given project; storage failures surface as InternalError.

Writes are durable when the call returns: an errored operation recorded
just before an error is raised to the caller must survive that error.
"""

from typing import Protocol, runtime_checkable

from harbormaster.db.models import (
    CloudIntegration,
    Cluster,
    Deployment,
    Environment,
    Infra,
    Operation,
)


@runtime_checkable
class InfraRepository(Protocol):
    """Persistence operations the orchestrator depends on."""

    # --- Infra ---

    async def read_infra_by_id(self, project_id: int, infra_id: int) -> Infra:
        """Return the infra, or raise NotFoundError if it is not in the project."""
        ...

    async def list_infras(self, project_id: int) -> list[Infra]:
        """Return every infra of a project, oldest first."""
        ...

    async def create_infra(self, infra: Infra, operation: Operation) -> Infra:
        """Persist a new infra together with its first operation, atomically.

        Assigns ``infra.id`` and ``operation.infra_id``.
        """
        ...

    async def update_infra(self, infra: Infra) -> Infra:
        """Persist changes to an infra's status or last-applied configuration."""
        ...

    # --- Operations ---

    async def get_latest_operation(self, infra: Infra) -> Operation:
        """Return the most recently created operation, or raise NotFoundError."""
        ...

    async def list_operations(self, infra: Infra) -> list[Operation]:
        """Return an infra's operations, oldest first."""
        ...

    async def read_operation_by_uid(self, infra: Infra, uid: str) -> Operation:
        """Return the infra's operation with this uid, or raise NotFoundError."""
        ...

    async def create_operation(self, operation: Operation) -> Operation:
        """Append an operation to its infra's log."""
        ...

    async def update_operation(self, operation: Operation) -> Operation:
        """Persist the terminal outcome of an operation."""
        ...

    # --- Collaborator entities ---

    async def read_cluster_by_id(self, project_id: int, cluster_id: int) -> Cluster:
        ...

    async def read_cloud_integration(
        self, project_id: int, provider: str, integration_id: int
    ) -> CloudIntegration:
        ...

    async def read_environment_by_id(
        self, project_id: int, cluster_id: int, environment_id: int
    ) -> Environment:
        ...

    async def read_deployment_by_id(
        self, project_id: int, cluster_id: int, deployment_id: int
    ) -> Deployment:
        ...
