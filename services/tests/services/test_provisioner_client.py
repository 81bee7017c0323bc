"""Tests for the provisioner HTTP client."""

import json

import httpx
import pytest

from harbormaster.services.provisioner_client import (
    ApplyRequest,
    ProvisionerClient,
    ProvisionerResponseError,
    ProvisionerUnavailableError,
)

REQUEST = ApplyRequest(
    kind="eks",
    values={"machine_type": "t3.medium"},
    operation_kind="update",
    workspace_id="eks-4-9-ab12cd-0123456789abcdef0123",
    operation_id="0123456789abcdef0123",
)


def _client(handler) -> ProvisionerClient:
    return ProvisionerClient(
        "http://provisioner.test/api/v1/", transport=httpx.MockTransport(handler)
    )


class TestApply:
    async def test_posts_to_infra_apply(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "0123456789abcdef0123", "status": "queued"})

        client = _client(handler)
        handle = await client.apply(4, 9, REQUEST)
        await client.close()

        assert handle.id == "0123456789abcdef0123"
        assert handle.status == "queued"
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/v1/projects/4/infras/9/apply"
        assert json.loads(seen[0].content) == {
            "kind": "eks",
            "values": {"machine_type": "t3.medium"},
            "operation_kind": "update",
            "workspace_id": "eks-4-9-ab12cd-0123456789abcdef0123",
            "operation_id": "0123456789abcdef0123",
        }

    async def test_empty_body_accepted(self):
        client = _client(lambda request: httpx.Response(202))
        handle = await client.apply(4, 9, REQUEST)
        await client.close()

        assert handle.id == ""

    async def test_error_status_carries_message(self):
        client = _client(
            lambda request: httpx.Response(422, json={"error": "unknown machine type"})
        )

        with pytest.raises(ProvisionerResponseError) as exc_info:
            await client.apply(4, 9, REQUEST)
        await client.close()

        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "unknown machine type"

    async def test_non_json_error_body(self):
        client = _client(lambda request: httpx.Response(502, text="bad gateway"))

        with pytest.raises(ProvisionerResponseError) as exc_info:
            await client.apply(4, 9, REQUEST)
        await client.close()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "bad gateway"

    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)

        with pytest.raises(ProvisionerUnavailableError, match="connection refused"):
            await client.apply(4, 9, REQUEST)
        await client.close()
