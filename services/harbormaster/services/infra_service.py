"""Infra and operation log views.

Builds the redacted public view of an infra and the operation views
returned to callers. Raw ciphertext never leaves this module.
"""

from typing import Any

from harbormaster.db.models import Infra, Operation
from harbormaster.errors import DecryptionError
from harbormaster.infra.kinds import get_kind_handler
from harbormaster.logging_config import get_logger
from harbormaster.repository.protocol import InfraRepository
from harbormaster.services.encryption_service import decrypt_config

logger = get_logger(__name__)


def safely_get_last_applied(infra: Infra) -> dict[str, str]:
    """Non-sensitive fields of the infra's last-applied configuration.

    Best effort: unknown kinds, empty or undecryptable payloads all yield an
    empty map so that redaction never blocks reading an infra's identity.
    """
    handler = get_kind_handler(infra.kind)
    if handler is None or not infra.last_applied:
        return {}

    try:
        values = decrypt_config(infra.last_applied)
    except DecryptionError as e:
        logger.warning("Could not decrypt infra last-applied", infra_id=infra.id, error=str(e))
        return {}
    except RuntimeError as e:
        logger.warning("Encryption unavailable for redaction", infra_id=infra.id, error=str(e))
        return {}

    return handler.redacted(values)


def to_public_summary(infra: Infra) -> dict[str, Any]:
    """Public view of an infra: identity, status, and redacted configuration."""
    return {
        "id": infra.id,
        "created_at": infra.created_at,
        "updated_at": infra.updated_at,
        "project_id": infra.project_id,
        "api_version": infra.api_version,
        "source_link": infra.source_link,
        "source_version": infra.source_version,
        "kind": infra.kind,
        "status": infra.status,
        "parent_cluster_id": infra.parent_cluster_id,
        "aws_integration_id": infra.aws_integration_id,
        "gcp_integration_id": infra.gcp_integration_id,
        "do_integration_id": infra.do_integration_id,
        "last_applied": safely_get_last_applied(infra),
    }


def to_operation_meta(operation: Operation) -> dict[str, Any]:
    return {
        "id": operation.uid,
        "infra_id": operation.infra_id,
        "type": operation.type,
        "status": operation.status,
        "errored": operation.errored,
        "error": operation.error,
        "last_updated": operation.updated_at,
    }


def to_operation(operation: Operation) -> dict[str, Any]:
    """Operation view including its decrypted configuration.

    Unlike the infra summary, a payload that fails to decrypt here is an
    error: the caller asked for exactly this record.
    """
    view = to_operation_meta(operation)
    view["last_applied"] = decrypt_config(operation.last_applied)
    return view


async def latest_operation(repo: InfraRepository, infra: Infra) -> Operation:
    """Most recent operation of an infra. Raises NotFoundError if it has none."""
    return await repo.get_latest_operation(infra)

