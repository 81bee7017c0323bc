"""Value transforms applied to cluster-scoped infras before dispatch.

A postrenderer receives the parent cluster and the effective values and
returns the values to send. Raising RequestRejectedError aborts the request
before any operation is recorded.
"""

from typing import Any

from harbormaster.db.models import Cluster
from harbormaster.errors import RequestRejectedError

RDS_REQUIRED_FIELDS = ("db_name", "db_user", "db_passwd")


def rds_postrenderer(cluster: Cluster | None, values: dict[str, Any]) -> dict[str, Any]:
    """Bind an RDS instance to the VPC of its parent EKS cluster.

    The provisioner places the database next to the cluster, so the
    cluster id, name and region are injected from the cluster record.
    """
    if cluster is None:
        raise RequestRejectedError("rds infra must be scoped to a cluster")
    if not cluster.aws_integration_id:
        raise RequestRejectedError(
            f"cluster {cluster.id} is not backed by an AWS integration"
        )

    missing = [f for f in RDS_REQUIRED_FIELDS if not values.get(f)]
    if missing:
        raise RequestRejectedError(f"missing required fields: {', '.join(missing)}")

    rendered = dict(values)
    rendered["cluster_id"] = cluster.id
    rendered["cluster_name"] = cluster.name
    if not rendered.get("aws_region"):
        if not cluster.aws_region:
            raise RequestRejectedError(
                f"aws_region not supplied and cluster {cluster.id} has no region"
            )
        rendered["aws_region"] = cluster.aws_region
    return rendered
