"""
Error taxonomy for Harbormaster.

Services raise these; the API layer renders them with their status code.
Only PassThroughError and RequestRejectedError carry a caller-facing message
verbatim. InternalError keeps the upstream cause for logging and renders a
generic message.
"""


class HarbormasterError(Exception):
    """Base exception for control plane failures."""

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(message)

    @property
    def public_message(self) -> str:
        """Message safe to return to an external caller."""
        return self.message


class NotFoundError(HarbormasterError):
    """Raised when a referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, identifier: object) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class ForbiddenError(HarbormasterError):
    """Authorization, credential, or project-scope failure. Never retried."""

    status_code = 403


class MalformedIdentifierError(HarbormasterError):
    """A workspace identifier failed structural validation."""

    status_code = 400

    def __init__(self, token: str, reason: str) -> None:
        self.token = token
        self.reason = reason
        super().__init__(f"workspace id improperly formatted: {reason}")


class RequestRejectedError(HarbormasterError):
    """A postrenderer or validation step rejected the supplied configuration."""

    status_code = 400


class ConflictError(HarbormasterError):
    """The requested operation is not legal from the infra's current status."""

    status_code = 409


class InternalError(HarbormasterError):
    """Transport, storage, or unexpected failure. Safe to retry by resubmission."""

    status_code = 500

    @property
    def public_message(self) -> str:
        return "Internal server error"


class DecryptionError(InternalError):
    """Stored ciphertext could not be decrypted (corruption or key mismatch)."""


class PassThroughError(HarbormasterError):
    """An upstream status relayed to the caller because the caller can fix it."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code
