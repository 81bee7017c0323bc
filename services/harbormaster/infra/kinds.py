"""Per-kind behavior registry.

Each infra kind registers an InfraKindHandler describing which cloud
provider it needs credentials for, how its last-applied configuration is
shaped, which of those fields are safe to show publicly, and optionally a
postrenderer run before dispatch when the infra is scoped to a cluster.
New kinds call register_kind(); nothing else needs to change.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from harbormaster.db.models import CloudProvider, Cluster, InfraKind
from harbormaster.logging_config import get_logger

logger = get_logger(__name__)

Postrenderer = Callable[[Cluster | None, dict[str, Any]], dict[str, Any]]


class LastApplied(BaseModel):
    """Base for per-kind configuration. Unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")


class ECRLastApplied(LastApplied):
    ecr_name: str = ""


class EKSLastApplied(LastApplied):
    eks_name: str = ""
    machine_type: str = ""


class GCRLastApplied(LastApplied):
    pass


class GKELastApplied(LastApplied):
    gke_name: str = ""


class DOCRLastApplied(LastApplied):
    docr_name: str = ""
    docr_subscription_tier: str = ""


class DOKSLastApplied(LastApplied):
    doks_name: str = ""
    do_region: str = ""


class RDSLastApplied(LastApplied):
    cluster_id: int = 0
    aws_region: str = ""
    db_name: str = ""


@dataclass(frozen=True)
class InfraKindHandler:
    kind: str
    provider: CloudProvider
    last_applied_model: type[LastApplied]
    redact: Callable[[Any], dict[str, str]]
    postrenderer: Postrenderer | None = None

    def redacted(self, values: dict[str, Any]) -> dict[str, str]:
        """Project decrypted configuration onto the public fields of this kind."""
        try:
            parsed = self.last_applied_model.model_validate(values)
        except ValidationError as e:
            logger.warning("Last-applied does not match kind schema", kind=self.kind, error=str(e))
            return {}
        return self.redact(parsed)


_registry: dict[str, InfraKindHandler] = {}


def register_kind(handler: InfraKindHandler) -> None:
    """Register (or replace) the handler for a kind."""
    _registry[str(handler.kind)] = handler


def get_kind_handler(kind: str) -> InfraKindHandler | None:
    """Return the handler for a kind, or None for unknown kinds."""
    return _registry.get(str(kind))


def registered_kinds() -> list[str]:
    return sorted(_registry)


def _register_builtin_kinds() -> None:
    from harbormaster.infra.postrenderers import rds_postrenderer

    register_kind(
        InfraKindHandler(
            kind=InfraKind.ECR,
            provider=CloudProvider.AWS,
            last_applied_model=ECRLastApplied,
            redact=lambda v: {"ecr_name": v.ecr_name},
        )
    )
    register_kind(
        InfraKindHandler(
            kind=InfraKind.EKS,
            provider=CloudProvider.AWS,
            last_applied_model=EKSLastApplied,
            redact=lambda v: {"eks_name": v.eks_name, "machine_type": v.machine_type},
        )
    )
    register_kind(
        InfraKindHandler(
            kind=InfraKind.GCR,
            provider=CloudProvider.GCP,
            last_applied_model=GCRLastApplied,
            redact=lambda v: {},
        )
    )
    register_kind(
        InfraKindHandler(
            kind=InfraKind.GKE,
            provider=CloudProvider.GCP,
            last_applied_model=GKELastApplied,
            redact=lambda v: {"gke_name": v.gke_name},
        )
    )
    register_kind(
        InfraKindHandler(
            kind=InfraKind.DOCR,
            provider=CloudProvider.DO,
            last_applied_model=DOCRLastApplied,
            redact=lambda v: {
                "docr_name": v.docr_name,
                "docr_subscription_tier": v.docr_subscription_tier,
            },
        )
    )
    register_kind(
        InfraKindHandler(
            kind=InfraKind.DOKS,
            provider=CloudProvider.DO,
            last_applied_model=DOKSLastApplied,
            redact=lambda v: {"cluster_name": v.doks_name, "do_region": v.do_region},
        )
    )
    register_kind(
        InfraKindHandler(
            kind=InfraKind.RDS,
            provider=CloudProvider.AWS,
            last_applied_model=RDSLastApplied,
            redact=lambda v: {
                "cluster_id": str(v.cluster_id),
                "aws_region": v.aws_region,
                "db_name": v.db_name,
            },
            postrenderer=rds_postrenderer,
        )
    )


_register_builtin_kinds()
