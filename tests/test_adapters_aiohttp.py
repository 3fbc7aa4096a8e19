from unittest.mock import MagicMock

import pytest

from statsgate import (
    AiohttpTransport,
    AsyncRequestExecutor,
    CredentialRing,
    GatewayConfig,
    UpstreamUnavailable,
)


class FakeResponse:
    def __init__(self, status=200, body=b"{}", headers=None):
        self.status = status
        self.headers = headers or {}
        self._body = body

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.mark.asyncio
async def test_aiohttp_header_injection_and_rotation():
    session = MagicMock()
    session.get.side_effect = [FakeResponse(429), FakeResponse(200, b'{"ok": 1}')]
    ex = AsyncRequestExecutor(
        CredentialRing(["T1", "T2"]),
        transport=AiohttpTransport(session=session),
        config=GatewayConfig(base_url="https://example.com"),
    )
    assert await ex.execute("/x") == {"ok": 1}
    calls = session.get.call_args_list
    assert calls[0].args[0] == "https://example.com/x"
    assert [c.kwargs["headers"]["Authorization"] for c in calls] == ["Bearer T1", "Bearer T2"]


@pytest.mark.asyncio
async def test_aiohttp_client_error_maps_to_unavailable():
    import aiohttp  # noqa: PLC0415

    session = MagicMock()
    session.get.side_effect = aiohttp.ClientConnectionError("refused")
    with pytest.raises(UpstreamUnavailable):
        await AiohttpTransport(session=session).get("https://example.com", headers={})


@pytest.mark.asyncio
async def test_aiohttp_owned_session_closed():
    transport = AiohttpTransport()
    async with transport:
        session = transport._session()
        assert not session.closed
    assert session.closed
    assert transport.session is None
