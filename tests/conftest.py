import pytest

from statsgate import UpstreamResponse


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    async def asleep(self, seconds):
        self.sleep(seconds)


class FakeTransport:
    """Records every physical attempt; ``responder(token, url)`` returns (status, body)."""

    def __init__(self, responder=None):
        self.responder = responder or (lambda token, url: (200, b'{"ok": true}'))
        self.calls = []

    def _respond(self, url, headers):
        token = headers["Authorization"].split(" ", 1)[1]
        self.calls.append((url, token))
        status, body = self.responder(token, url)
        return UpstreamResponse(status=status, headers={}, body=body)

    def get(self, url, headers, timeout=None):
        return self._respond(url, headers)

    def close(self):
        pass


class AsyncFakeTransport(FakeTransport):
    async def get(self, url, headers, timeout=None):
        return self._respond(url, headers)

    async def aclose(self):
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def make_async_transport():
    return AsyncFakeTransport
