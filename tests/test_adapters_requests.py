from unittest.mock import MagicMock

import pytest

from statsgate import (
    AuthConfig,
    CredentialRing,
    GatewayConfig,
    RequestExecutor,
    RequestsTransport,
    UpstreamUnavailable,
)


def _resp(status=200, content=b'{"a": 1}', headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    resp.headers = headers or {}
    return resp


def test_requests_injection_header():
    sess = MagicMock()
    sess.get.return_value = _resp()
    ex = RequestExecutor(
        CredentialRing(["T"]),
        transport=RequestsTransport(session=sess),
        config=GatewayConfig(base_url="https://example.com", timeout=3.0),
    )
    assert ex.execute("/players/x") == {"a": 1}
    args, kwargs = sess.get.call_args
    assert args[0] == "https://example.com/players/x"
    assert kwargs["headers"]["Authorization"] == "Bearer T"
    assert kwargs["timeout"] == 3.0  # noqa: PLR2004


def test_requests_custom_auth_header():
    sess = MagicMock()
    sess.get.return_value = _resp()
    ex = RequestExecutor(
        CredentialRing(["T"]),
        transport=RequestsTransport(session=sess),
        auth_config=AuthConfig(header="X-Auth", scheme="Token"),
    )
    ex.execute("/x")
    _, kwargs = sess.get.call_args
    assert kwargs["headers"]["X-Auth"] == "Token T"


def test_requests_rotates_on_429():
    sess = MagicMock()
    sess.get.side_effect = [_resp(429, b""), _resp(200, b"{}")]
    ex = RequestExecutor(CredentialRing(["T1", "T2"]), transport=RequestsTransport(session=sess))
    assert ex.execute("/x") == {}
    tokens = [c.kwargs["headers"]["Authorization"] for c in sess.get.call_args_list]
    assert tokens == ["Bearer T1", "Bearer T2"]


def test_requests_error_maps_to_unavailable():
    import requests  # noqa: PLC0415

    sess = MagicMock()
    sess.get.side_effect = requests.ConnectionError("refused")
    transport = RequestsTransport(session=sess)
    with pytest.raises(UpstreamUnavailable):
        transport.get("https://example.com/x", headers={})


def test_borrowed_session_is_not_closed():
    sess = MagicMock()
    with RequestsTransport(session=sess):
        pass
    sess.close.assert_not_called()


def test_owned_session_is_closed(monkeypatch):
    import requests  # noqa: PLC0415

    created = MagicMock()
    monkeypatch.setattr(requests, "Session", lambda: created)
    with RequestExecutor(CredentialRing(["T"])) as ex:
        ex.transport._session()
    created.close.assert_called_once()
