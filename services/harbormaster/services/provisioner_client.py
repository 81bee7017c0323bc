"""HTTP client for the external provisioner service.

The provisioner executes operations asynchronously and reports results
out-of-band, keyed by workspace id. From here an apply call is a single
request/response: either the provisioner accepted (and recorded) the
operation, answered with an error, or could not be reached at all.
"""

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from harbormaster.logging_config import get_logger

logger = get_logger(__name__)


class ApplyRequest(BaseModel):
    kind: str
    values: dict[str, Any]
    operation_kind: str
    workspace_id: str
    operation_id: str


class OperationHandle(BaseModel):
    """The provisioner's acknowledgement of an accepted operation."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default="", description="Operation uid echoed by the provisioner")
    status: str = Field(default="")


class ProvisionerError(Exception):
    """Base exception for provisioner calls."""


class ProvisionerUnavailableError(ProvisionerError):
    """The request never produced a response (connect error, timeout, reset)."""


class ProvisionerResponseError(ProvisionerError):
    """The provisioner answered with an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"provisioner returned {status_code}: {message}")


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


class ProvisionerClient:
    """Client for the provisioner's apply API."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def apply(self, project_id: int, infra_id: int, req: ApplyRequest) -> OperationHandle:
        """Submit an operation for an infra."""
        try:
            resp = await self._client.post(
                f"/projects/{project_id}/infras/{infra_id}/apply",
                json=req.model_dump(),
            )
        except httpx.TransportError as e:
            logger.warning(
                "Provisioner unreachable",
                infra_id=infra_id,
                workspace_id=req.workspace_id,
                error=str(e),
            )
            raise ProvisionerUnavailableError(str(e)) from e

        if resp.is_error:
            message = _error_message(resp)
            logger.warning(
                "Provisioner rejected apply",
                infra_id=infra_id,
                workspace_id=req.workspace_id,
                status_code=resp.status_code,
                error=message,
            )
            raise ProvisionerResponseError(resp.status_code, message)

        handle = OperationHandle.model_validate(resp.json() if resp.content else {})
        logger.info(
            "Provisioner accepted apply",
            infra_id=infra_id,
            workspace_id=req.workspace_id,
            status=handle.status,
        )
        return handle


# --- Lifecycle ---

_client: ProvisionerClient | None = None


def init_provisioner() -> None:
    """Create the shared provisioner client. Call during API lifespan startup."""
    global _client  # noqa: PLW0603
    from harbormaster.config import settings

    cfg = settings.provisioner
    _client = ProvisionerClient(cfg.base_url, timeout_seconds=cfg.timeout_seconds)
    logger.info("Provisioner client initialized", base_url=cfg.base_url)


async def close_provisioner() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.close()
        _client = None


def get_provisioner() -> ProvisionerClient:
    """FastAPI dependency that returns the provisioner client."""
    if _client is None:
        raise RuntimeError("Provisioner client not initialized: call init_provisioner() first")
    return _client
