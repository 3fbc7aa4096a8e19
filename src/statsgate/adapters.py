import contextlib

from .errors import UpstreamUnavailable
from .types import UpstreamResponse

# Transports perform exactly one GET and translate library errors into
# UpstreamUnavailable. Rotation, retries and rate limiting live in the executors.


# ---------- requests (sync) ----------
class RequestsTransport:
    def __init__(self, session=None):
        self.session = session
        self._own_session = session is None

    def _session(self):
        if self.session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
        return self.session

    def get(self, url: str, headers: dict[str, str], timeout: float | None = None) -> UpstreamResponse:
        import requests  # noqa: PLC0415

        try:
            resp = self._session().get(url, headers=headers, timeout=timeout)
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"request to {url} failed: {e}") from e
        return UpstreamResponse(
            status=resp.status_code,
            headers=dict(resp.headers or {}),
            body=resp.content or b"",
        )

    def close(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                self.session.close()
            self.session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


# ---------- httpx (async) ----------
class HttpxTransport:
    def __init__(self, client=None):
        self.client = client
        self._own_client = client is None

    def _client(self):
        if self.client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.AsyncClient()
        return self.client

    async def get(
        self, url: str, headers: dict[str, str], timeout: float | None = None
    ) -> UpstreamResponse:
        import httpx  # noqa: PLC0415

        try:
            resp = await self._client().get(url, headers=headers, timeout=timeout)
        except (httpx.TransportError, httpx.TimeoutException) as e:
            raise UpstreamUnavailable(f"request to {url} failed: {e!r}") from e
        return UpstreamResponse(
            status=resp.status_code,
            headers=dict(resp.headers or {}),
            body=resp.content or b"",
        )

    async def aclose(self):
        if self._own_client and self.client is not None:
            with contextlib.suppress(Exception):
                await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False


# ---------- aiohttp (async) ----------
class AiohttpTransport:
    def __init__(self, session=None):
        self.session = session
        self._own_session = session is None

    def _session(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession()
        return self.session

    async def get(
        self, url: str, headers: dict[str, str], timeout: float | None = None
    ) -> UpstreamResponse:
        import asyncio  # noqa: PLC0415

        import aiohttp  # noqa: PLC0415

        kwargs = {"headers": headers}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)
        try:
            async with self._session().get(url, **kwargs) as resp:
                body = await resp.read()
                return UpstreamResponse(
                    status=resp.status,
                    headers=dict(getattr(resp, "headers", {}) or {}),
                    body=body or b"",
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailable(f"request to {url} failed: {e!r}") from e

    async def aclose(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                await self.session.close()
            self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False
