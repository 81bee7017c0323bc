"""Infra status state machine.

An infra moves into an in-flight status when an operation is dispatched
and out of it when the operation's terminal result is reported:

    creating → created | error_creating
    updating → created | error_updating
    deleting → deleted | error_deleting

Error statuses are retryable. ``deleted`` is final: further requests are
ignored rather than rejected.
"""

from harbormaster.db.models import Infra, InfraStatus, OperationType
from harbormaster.errors import ConflictError
from harbormaster.logging_config import get_logger

logger = get_logger(__name__)

# Operation status labels
OPERATION_STARTING = "starting"
OPERATION_COMPLETED = "completed"
OPERATION_ERRORED = "errored"

TERMINAL_OPERATION_STATUSES = {OPERATION_COMPLETED, OPERATION_ERRORED}

_ERROR_STATES = {
    InfraStatus.ERROR_CREATING,
    InfraStatus.ERROR_UPDATING,
    InfraStatus.ERROR_DELETING,
}

VALID_TRANSITIONS: dict[str, set[str]] = {
    InfraStatus.CREATING: {InfraStatus.CREATED, InfraStatus.ERROR_CREATING},
    InfraStatus.UPDATING: {InfraStatus.CREATED, InfraStatus.ERROR_UPDATING},
    InfraStatus.DELETING: {InfraStatus.DELETED, InfraStatus.ERROR_DELETING},
    InfraStatus.CREATED: {InfraStatus.UPDATING, InfraStatus.DELETING},
    **{
        state: {InfraStatus.CREATING, InfraStatus.UPDATING, InfraStatus.DELETING}
        for state in _ERROR_STATES
    },
}

FINAL_STATES = {InfraStatus.DELETED}

IN_FLIGHT_STATES = {InfraStatus.CREATING, InfraStatus.UPDATING, InfraStatus.DELETING}

# Status an infra enters when an operation of each type is dispatched
IN_FLIGHT_STATUS: dict[str, InfraStatus] = {
    OperationType.CREATE: InfraStatus.CREATING,
    OperationType.RETRY_CREATE: InfraStatus.CREATING,
    OperationType.UPDATE: InfraStatus.UPDATING,
    OperationType.DELETE: InfraStatus.DELETING,
    OperationType.RETRY_DELETE: InfraStatus.DELETING,
}

_SUCCESS_STATUS: dict[InfraStatus, InfraStatus] = {
    InfraStatus.CREATING: InfraStatus.CREATED,
    InfraStatus.UPDATING: InfraStatus.CREATED,
    InfraStatus.DELETING: InfraStatus.DELETED,
}

_ERROR_STATUS: dict[InfraStatus, InfraStatus] = {
    InfraStatus.CREATING: InfraStatus.ERROR_CREATING,
    InfraStatus.UPDATING: InfraStatus.ERROR_UPDATING,
    InfraStatus.DELETING: InfraStatus.ERROR_DELETING,
}


def can_transition(current: str, target: str) -> bool:
    """Check if a status transition is valid."""
    if current in FINAL_STATES:
        return False
    return target in VALID_TRANSITIONS.get(current, set())


def is_final(infra: Infra) -> bool:
    return infra.status in FINAL_STATES


def is_retryable(status: str) -> bool:
    return status in _ERROR_STATES


def resolved_status(operation_type: str, succeeded: bool) -> InfraStatus:
    """Status an infra settles in once an operation of this type finishes."""
    in_flight = IN_FLIGHT_STATUS[operation_type]
    return _SUCCESS_STATUS[in_flight] if succeeded else _ERROR_STATUS[in_flight]


def check_dispatch(infra: Infra, operation_type: str) -> InfraStatus:
    """Validate that an operation may be dispatched; return the in-flight status.

    Retries are only legal from an error status. Raises ConflictError
    otherwise.
    """
    target = IN_FLIGHT_STATUS[operation_type]
    if operation_type in (OperationType.RETRY_CREATE, OperationType.RETRY_DELETE):
        if not is_retryable(infra.status):
            raise ConflictError(
                f"cannot {operation_type} infra {infra.id} in status '{infra.status}'"
            )
    if not can_transition(infra.status, target):
        raise ConflictError(
            f"cannot {operation_type} infra {infra.id} in status '{infra.status}'"
        )
    return target


def transition_infra(infra: Infra, target: str) -> Infra:
    """Move an infra to a new status. Caller persists the change."""
    if not can_transition(infra.status, target):
        raise ConflictError(f"Invalid transition: {infra.status} → {target}")

    old_status = infra.status
    infra.status = target

    logger.info(
        "Infra transitioned",
        infra_id=infra.id,
        from_status=old_status,
        to_status=target,
    )
    return infra


def restore_status(infra: Infra, previous: str) -> Infra:
    """Undo an in-flight transition after a dispatch that never reached the provisioner."""
    if infra.status not in IN_FLIGHT_STATES:
        raise ConflictError(f"infra {infra.id} is not in flight (status '{infra.status}')")

    logger.info(
        "Infra status restored",
        infra_id=infra.id,
        from_status=infra.status,
        to_status=previous,
    )
    infra.status = previous
    return infra
