"""Initial schema: projects, cloud integrations, clusters, infras, operations,
environments, deployments.

Operations are append-only; last_applied columns hold Fernet ciphertext.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        )
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
    return cols


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "cloud_integrations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "project_id",
            sa.Integer,
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider", sa.String(10), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_cloud_integrations_project_id", "cloud_integrations", ["project_id"])

    op.create_table(
        "clusters",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "project_id",
            sa.Integer,
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("aws_integration_id", sa.Integer, nullable=False, server_default="0"),
        sa.Column("aws_region", sa.String(30), nullable=False, server_default=""),
        *_timestamps(updated=False),
    )

    op.create_table(
        "infras",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "project_id",
            sa.Integer,
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("api_version", sa.String(20), nullable=False, server_default="v2"),
        sa.Column("source_link", sa.Text, nullable=False, server_default=""),
        sa.Column("source_version", sa.String(63), nullable=False, server_default=""),
        sa.Column("suffix", sa.String(64), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="creating"),
        sa.Column("created_by_user_id", sa.Integer, nullable=False, server_default="0"),
        sa.Column("parent_cluster_id", sa.Integer, nullable=False, server_default="0"),
        sa.Column("aws_integration_id", sa.Integer, nullable=False, server_default="0"),
        sa.Column("gcp_integration_id", sa.Integer, nullable=False, server_default="0"),
        sa.Column("do_integration_id", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_applied", sa.LargeBinary, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_infras_project_id", "infras", ["project_id"])

    op.create_table(
        "operations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("uid", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "infra_id",
            sa.Integer,
            sa.ForeignKey("infras.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="starting"),
        sa.Column("errored", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("error", sa.Text, nullable=False, server_default=""),
        sa.Column("last_applied", sa.LargeBinary, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_operations_infra_id", "operations", ["infra_id"])

    op.create_table(
        "environments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "project_id",
            sa.Integer,
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "cluster_id",
            sa.Integer,
            sa.ForeignKey("clusters.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("git_installation_id", sa.Integer, nullable=False),
        sa.Column("git_repo_owner", sa.String(255), nullable=False),
        sa.Column("git_repo_name", sa.String(255), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "deployments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "environment_id",
            sa.Integer,
            sa.ForeignKey("environments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="creating"),
        sa.Column("pull_request_id", sa.Integer, nullable=False),
        sa.Column("pr_name", sa.Text, nullable=False, server_default=""),
        sa.Column("pr_branch_from", sa.String(255), nullable=False),
        sa.Column("pr_branch_into", sa.String(255), nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("deployments")
    op.drop_table("environments")
    op.drop_index("ix_operations_infra_id", table_name="operations")
    op.drop_table("operations")
    op.drop_index("ix_infras_project_id", table_name="infras")
    op.drop_table("infras")
    op.drop_table("clusters")
    op.drop_index("ix_cloud_integrations_project_id", table_name="cloud_integrations")
    op.drop_table("cloud_integrations")
    op.drop_table("projects")
