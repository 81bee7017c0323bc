"""
SQLAlchemy database models for Harbormaster.

All models use:
- Integer autoincrement primary keys (they appear as decimal segments of
  workspace identifiers)
- snake_case column names
- Plural table names
- TIMESTAMPTZ with UTC for all timestamps

Operations are never deleted: they are the audit trail of an infra.
"""

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class InfraKind(StrEnum):
    """Built-in infra kinds. Others may be registered at runtime."""

    ECR = "ecr"
    EKS = "eks"
    GCR = "gcr"
    GKE = "gke"
    DOCR = "docr"
    DOKS = "doks"
    RDS = "rds"


class InfraStatus(StrEnum):
    """Lifecycle status of an infra."""

    CREATING = "creating"
    CREATED = "created"
    ERROR_CREATING = "error_creating"
    UPDATING = "updating"
    ERROR_UPDATING = "error_updating"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR_DELETING = "error_deleting"


class OperationType(StrEnum):
    """Lifecycle action recorded by an operation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RETRY_CREATE = "retry_create"
    RETRY_DELETE = "retry_delete"


class CloudProvider(StrEnum):
    AWS = "aws"
    GCP = "gcp"
    DO = "do"


class DeploymentStatus(StrEnum):
    CREATING = "creating"
    CREATED = "created"
    FAILED = "failed"
    INACTIVE = "inactive"


class Base(DeclarativeBase):
    """Base class for all models."""


class Project(Base):
    """Tenant that owns infras, clusters, and cloud integrations."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class CloudIntegration(Base):
    """Cloud credentials registered for a project.

    The secret material is held by the credential store; this row only
    records that the integration exists and which provider it targets.
    """

    __tablename__ = "cloud_integrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (Index("ix_cloud_integrations_project_id", "project_id"),)


class Cluster(Base):
    """A Kubernetes cluster connected to a project."""

    __tablename__ = "clusters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    aws_integration_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    aws_region: Mapped[str] = mapped_column(String(30), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class Infra(Base):
    """An infrastructure resource provisioned on behalf of a project.

    ``suffix`` is assigned once at creation and, together with kind,
    project and id, forms the stable part of the workspace identifier.
    """

    __tablename__ = "infras"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    api_version: Mapped[str] = mapped_column(String(20), nullable=False, default="v2")
    source_link: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source_version: Mapped[str] = mapped_column(String(63), nullable=False, default="")
    suffix: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=InfraStatus.CREATING)
    created_by_user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # 0 when the infra is not scoped to an existing cluster
    parent_cluster_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    aws_integration_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gcp_integration_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    do_integration_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Encrypted JSON of the configuration most recently applied successfully
    last_applied: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    operations: Mapped[list["Operation"]] = relationship(
        back_populates="infra", order_by="Operation.id"
    )

    __table_args__ = (Index("ix_infras_project_id", "project_id"),)


class Operation(Base):
    """One attempted lifecycle action against an infra.

    Created when dispatched, updated once when it reaches a terminal status,
    never deleted.
    """

    __tablename__ = "operations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    infra_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("infras.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="starting")
    errored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    error: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Encrypted JSON of the configuration sent for this attempt
    last_applied: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    infra: Mapped["Infra"] = relationship(back_populates="operations")

    __table_args__ = (Index("ix_operations_infra_id", "infra_id"),)


class Environment(Base):
    """A preview environment backed by a GitHub repository workflow."""

    __tablename__ = "environments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    cluster_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("clusters.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    git_installation_id: Mapped[int] = mapped_column(Integer, nullable=False)
    git_repo_owner: Mapped[str] = mapped_column(String(255), nullable=False)
    git_repo_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class Deployment(Base):
    """A pull-request deployment into an environment."""

    __tablename__ = "deployments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    environment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("environments.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeploymentStatus.CREATING
    )
    pull_request_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pr_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    pr_branch_from: Mapped[str] = mapped_column(String(255), nullable=False)
    pr_branch_into: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
