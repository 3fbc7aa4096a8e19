from unittest.mock import AsyncMock, MagicMock

import pytest

from statsgate import (
    AsyncRequestExecutor,
    CredentialRing,
    GatewayConfig,
    HttpxTransport,
    UpstreamUnavailable,
)


def _resp(status=200, content=b'{"a": 1}'):
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    resp.headers = {}
    return resp


@pytest.mark.asyncio
async def test_httpx_injection_header():
    async_client = AsyncMock()
    async_client.get.return_value = _resp()
    ex = AsyncRequestExecutor(
        CredentialRing(["T"]),
        transport=HttpxTransport(client=async_client),
        config=GatewayConfig(base_url="https://example.com"),
    )
    assert await ex.execute("/x") == {"a": 1}
    args, kwargs = async_client.get.call_args
    assert args[0] == "https://example.com/x"
    assert kwargs["headers"]["Authorization"] == "Bearer T"


@pytest.mark.asyncio
async def test_httpx_real_client_with_mock_transport():
    import httpx  # noqa: PLC0415

    seen = []

    def handler(request):
        seen.append(request.headers["Authorization"])
        if len(seen) == 1:
            return httpx.Response(429, request=request)
        return httpx.Response(200, json={"player_id": "p"}, request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        ex = AsyncRequestExecutor(CredentialRing(["T1", "T2"]), transport=HttpxTransport(client=client))
        assert await ex.execute("/players/p") == {"player_id": "p"}
    assert seen == ["Bearer T1", "Bearer T2"]


@pytest.mark.asyncio
async def test_httpx_transport_error_maps_to_unavailable():
    import httpx  # noqa: PLC0415

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        transport = HttpxTransport(client=client)
        with pytest.raises(UpstreamUnavailable):
            await transport.get("https://example.com/x", headers={})
