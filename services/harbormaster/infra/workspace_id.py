"""
Workspace identifiers: the dash-delimited token correlating an infra (and
optionally one of its operations) with provisioner log streams and callbacks.

    {kind}-{project_id}-{infra_id}-{suffix}                   unique name
    {kind}-{project_id}-{infra_id}-{suffix}-{operation_uid}   workspace id

Kinds and suffixes must not contain dashes. Decoding is strict: a token is
either fully valid or rejected with MalformedIdentifierError.
"""

import string
from dataclasses import dataclass
from typing import Protocol

from harbormaster.errors import MalformedIdentifierError

DEFAULT_UID_BYTES = 10

_HEX_DIGITS = frozenset(string.hexdigits.lower())


class _InfraLike(Protocol):
    kind: str
    project_id: int
    id: int
    suffix: str


class _OperationLike(Protocol):
    uid: str


@dataclass(frozen=True)
class UniqueName:
    """Resource-only identifier."""

    kind: str
    project_id: int
    infra_id: int
    suffix: str


@dataclass(frozen=True)
class UniqueNameWithOperation(UniqueName):
    """Identifier of one operation against a resource."""

    operation_uid: str


def _check_segment(token: str, value: str, name: str) -> None:
    if not value or "-" in value:
        raise MalformedIdentifierError(token, f"{name} must be non-empty and dash-free")


def encode_unique_name(kind: str, project_id: int, infra_id: int, suffix: str) -> str:
    """Encode the 4-segment resource identifier."""
    token = f"{kind}-{project_id}-{infra_id}-{suffix}"
    _check_segment(token, str(kind), "kind")
    _check_segment(token, suffix, "suffix")
    if project_id < 0 or infra_id < 0:
        raise MalformedIdentifierError(token, "ids must be non-negative")
    return token


def encode_workspace_id(
    kind: str, project_id: int, infra_id: int, suffix: str, operation_uid: str
) -> str:
    """Encode the 5-segment operation-qualified identifier."""
    token = f"{encode_unique_name(kind, project_id, infra_id, suffix)}-{operation_uid}"
    _check_segment(token, operation_uid, "operation uid")
    return token


def get_unique_name(infra: _InfraLike) -> str:
    """Unique name of an infra, e.g. ``eks-4-9-ab12cd``."""
    return encode_unique_name(infra.kind, infra.project_id, infra.id, infra.suffix)


def get_workspace_id(infra: _InfraLike, operation: _OperationLike) -> str:
    """Workspace id of an operation, e.g. ``eks-4-9-ab12cd-0123456789abcdef0123``."""
    return encode_workspace_id(
        infra.kind, infra.project_id, infra.id, infra.suffix, operation.uid
    )


def _parse_uint(token: str, segment: str, name: str) -> int:
    if not segment or not segment.isascii() or not segment.isdigit():
        raise MalformedIdentifierError(token, f"{name} is not a non-negative integer")
    return int(segment)


def _split(token: str, expected: int) -> list[str]:
    parts = token.split("-")
    if len(parts) != expected:
        raise MalformedIdentifierError(
            token, f"expected {expected} segments, got {len(parts)}"
        )
    if not parts[0]:
        raise MalformedIdentifierError(token, "kind is empty")
    if not parts[3]:
        raise MalformedIdentifierError(token, "suffix is empty")
    return parts


def parse_unique_name(token: str) -> UniqueName:
    """Decode a 4-segment unique name."""
    parts = _split(token, 4)
    return UniqueName(
        kind=parts[0],
        project_id=_parse_uint(token, parts[1], "project id"),
        infra_id=_parse_uint(token, parts[2], "infra id"),
        suffix=parts[3],
    )


def parse_workspace_id(token: str, uid_bytes: int = DEFAULT_UID_BYTES) -> UniqueNameWithOperation:
    """Decode a 5-segment workspace id.

    The operation uid segment must be exactly the hex encoding of a
    ``uid_bytes``-byte identifier, so truncated or padded tokens from
    external systems are refused.
    """
    parts = _split(token, 5)
    project_id = _parse_uint(token, parts[1], "project id")
    infra_id = _parse_uint(token, parts[2], "infra id")

    uid = parts[4]
    if len(uid) != 2 * uid_bytes:
        raise MalformedIdentifierError(
            token, f"operation uid does not have hex length {2 * uid_bytes}"
        )
    if not _HEX_DIGITS.issuperset(uid):
        raise MalformedIdentifierError(token, "operation uid is not lowercase hex")

    return UniqueNameWithOperation(
        kind=parts[0],
        project_id=project_id,
        infra_id=infra_id,
        suffix=parts[3],
        operation_uid=uid,
    )
