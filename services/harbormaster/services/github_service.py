"""GitHub App client for preview environment workflows.

Handles JWT generation, installation token management, and workflow
dispatch via the GitHub REST API. The App id and private key come from
settings; each environment records the installation that grants access to
its repository.
"""

import time
from typing import Any

import httpx
import jwt

from harbormaster.config import settings
from harbormaster.errors import InternalError, PassThroughError
from harbormaster.logging_config import get_logger

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"

# Installation token cache: {installation_id: (token, expires_at_epoch)}
_token_cache: dict[int, tuple[str, float]] = {}


def _api_url() -> str:
    return settings.github.api_url.rstrip("/")


def _headers(bearer: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {bearer}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }


def _generate_app_jwt(app_id: int, private_key: str) -> str:
    """Generate a short-lived JWT for GitHub App authentication.

    The JWT is signed with RS256 using the app's private key and has a
    10-minute lifetime (GitHub maximum).
    """
    now = int(time.time())
    payload = {
        "iat": now - 60,  # 60s clock skew allowance
        "exp": now + (10 * 60),
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


async def get_installation_token(
    installation_id: int, transport: httpx.AsyncBaseTransport | None = None
) -> str:
    """Get an installation access token, using a 50-minute cache.

    Installation tokens are valid for 1 hour.
    """
    cached = _token_cache.get(installation_id)
    if cached:
        token, expires_at = cached
        if time.time() < expires_at:
            return token

    if not settings.github.app_id or not settings.github.private_key:
        raise InternalError("GitHub App is not configured")

    app_jwt = _generate_app_jwt(settings.github.app_id, settings.github.private_key)

    try:
        async with httpx.AsyncClient(transport=transport) as client:
            resp = await client.post(
                f"{_api_url()}/app/installations/{installation_id}/access_tokens",
                headers=_headers(app_jwt),
            )
    except httpx.TransportError as e:
        logger.error("GitHub unreachable", installation_id=installation_id, error=str(e))
        raise InternalError(str(e)) from e

    if resp.is_error:
        logger.error(
            "GitHub installation token request failed",
            installation_id=installation_id,
            status_code=resp.status_code,
        )
        raise InternalError(f"GitHub token request returned {resp.status_code}")

    try:
        token = resp.json()["token"]
    except (ValueError, KeyError, TypeError) as e:
        logger.error("GitHub token response malformed", installation_id=installation_id)
        raise InternalError("GitHub token response carried no token") from e

    _token_cache[installation_id] = (token, time.time() + 50 * 60)

    logger.debug("GitHub installation token obtained", installation_id=installation_id)
    return token


async def dispatch_workflow(
    installation_id: int,
    owner: str,
    repo: str,
    workflow_file: str,
    ref: str,
    inputs: dict[str, Any],
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Trigger a workflow_dispatch run of a workflow file on a branch.

    A missing workflow file is relayed to the caller as a 404: they can fix
    it by adding the file. Any other failure is internal.
    """
    token = await get_installation_token(installation_id, transport=transport)

    try:
        async with httpx.AsyncClient(transport=transport) as client:
            resp = await client.post(
                f"{_api_url()}/repos/{owner}/{repo}/actions/workflows/{workflow_file}/dispatches",
                json={"ref": ref, "inputs": inputs},
                headers=_headers(token),
            )
    except httpx.TransportError as e:
        logger.error("GitHub unreachable", owner=owner, repo=repo, error=str(e))
        raise InternalError(str(e)) from e

    if resp.status_code == 404:
        raise PassThroughError("workflow file not found", 404)
    if resp.is_error:
        logger.error(
            "Workflow dispatch failed",
            owner=owner,
            repo=repo,
            workflow=workflow_file,
            status_code=resp.status_code,
        )
        raise InternalError(f"workflow dispatch returned {resp.status_code}")

    logger.info("Workflow dispatched", owner=owner, repo=repo, workflow=workflow_file, ref=ref)
