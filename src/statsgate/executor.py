import contextlib
import json
import logging
import math
import threading
import time
from typing import Any, Union

from .adapters import HttpxTransport, RequestsTransport
from .bucket import AsyncTokenBucket, TokenBucket
from .env import load_settings_from_env
from .errors import MalformedResponse, RateLimitExceeded, UpstreamError
from .ring import CredentialRing
from .types import AuthConfig, GatewayConfig, UpstreamResponse

# ---------- Common helpers ----------


def _parse_retry_after(headers: dict[str, str], now: float) -> Union[float, None]:
    ra = None
    for k, v in headers.items():
        if k.lower() == "retry-after":
            ra = v
            break
    if ra is None:
        return None
    try:
        seconds = float(ra)
    except ValueError:
        # Try HTTP-date per RFC7231
        import email.utils as eut  # noqa: PLC0415

        try:
            ts = eut.parsedate_to_datetime(ra)
        except (TypeError, ValueError):
            return None
        if ts is None:
            return None
        # Round up so a short delay does not truncate to zero
        return max(0.0, float(math.ceil(ts.timestamp() - now)))
    # "inf" and "nan" parse as floats but are not a delay
    if not math.isfinite(seconds):
        return None
    return max(0.0, seconds)


def _join(base_url: str, endpoint_path: str) -> str:
    if not endpoint_path.startswith("/"):
        endpoint_path = "/" + endpoint_path
    return base_url.rstrip("/") + endpoint_path


# ---------- Base executor (shared logic; I/O handled by subclasses) ----------


class _Executor:
    def __init__(
        self,
        ring: CredentialRing,
        config: Union[GatewayConfig, None],
        auth_config: Union[AuthConfig, None],
        log_level: Union[int, None],
    ):
        self.ring = ring
        self.config = config or GatewayConfig()
        self.auth_config = auth_config or AuthConfig()
        self.base_url = self.config.base_url
        self.timeout = self.config.timeout
        self._logger = logging.getLogger("statsgate")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    def _headers(self, token: str) -> dict[str, str]:
        ac = self.auth_config
        return {
            "Accept": "application/json",
            ac.header: f"{ac.scheme} {token}".strip(),
        }

    def _key_name(self, token: str) -> str:
        for c in self.ring.credentials:
            if c.token == token:
                return c.name
        return "?"

    def _rate_limited(self, endpoint_path: str, resp: UpstreamResponse) -> RateLimitExceeded:
        return RateLimitExceeded(
            retry_after=_parse_retry_after(resp.headers, time.time()),
            endpoint=endpoint_path,
        )

    def _finish(self, endpoint_path: str, resp: UpstreamResponse) -> Any:
        """Turn the final response of a logical call into a value or an error."""
        if resp.status == 429:  # noqa: PLR2004, http status code can be constant
            raise self._rate_limited(endpoint_path, resp)
        if not 200 <= resp.status < 300:  # noqa: PLR2004
            detail = resp.body[:200].decode("utf-8", errors="replace")
            self._logger.warning(
                f"upstream error status={resp.status} endpoint={endpoint_path}"
            )
            raise UpstreamError(resp.status, endpoint=endpoint_path, detail=detail)
        if resp.status == 204:  # noqa: PLR2004
            return None
        try:
            return json.loads(resp.body)
        except ValueError as e:
            raise MalformedResponse(endpoint_path, str(e)) from e

    def _should_retry(self, endpoint_path: str, token: str, resp: UpstreamResponse) -> bool:
        if resp.status != 429:  # noqa: PLR2004, http status code can be constant
            return False
        self._logger.info(f"429 on endpoint={endpoint_path} key={self._key_name(token)}; rotating")
        switched = self.ring.report_rate_limited(token)
        if not switched:
            self._logger.warning(f"no credential left to rotate to for endpoint={endpoint_path}")
        return switched

    def _combined_status(self, bucket_status) -> dict[str, Any]:
        ring_status = self.ring.status()
        return {
            "credentials": {
                "active": ring_status.active,
                "active_index": ring_status.active_index,
                "backup_available": ring_status.backup_available,
                "primary_blocked_for": ring_status.primary_blocked_for,
            },
            "rate_limiter": {
                "tokens": bucket_status.tokens_available,
                "max_tokens": bucket_status.max_tokens,
            },
        }


# ---------- Sync executor (requests) ----------


class RequestExecutor(_Executor):
    """Single choke point for upstream calls from threaded code.

    One bucket token is charged per logical call; the rotation retry is free.
    """

    def __init__(
        self,
        ring: CredentialRing,
        bucket: Union[TokenBucket, None] = None,
        transport=None,
        config: Union[GatewayConfig, None] = None,
        auth_config: Union[AuthConfig, None] = None,
        log_level: Union[int, None] = None,
    ):
        super().__init__(ring, config, auth_config, log_level)
        self.bucket = bucket or TokenBucket(self.config.max_tokens, self.config.refill_rate)
        self._own_transport = transport is None
        self.transport = transport or RequestsTransport()

    def _send(self, endpoint_path: str, token: str) -> UpstreamResponse:
        url = _join(self.base_url, endpoint_path)
        key_name = self._key_name(token)
        self._logger.debug(f"req start endpoint={endpoint_path} key={key_name}")
        resp = self.transport.get(url, headers=self._headers(token), timeout=self.timeout)
        self._logger.debug(f"req done endpoint={endpoint_path} key={key_name} status={resp.status}")
        return resp

    def execute(
        self,
        endpoint_path: str,
        acquire_timeout: Union[float, None] = None,
        cancel: Union[threading.Event, None] = None,
    ) -> Any:
        """GET ``endpoint_path`` from the upstream and return the parsed JSON body.

        Raises:
            NoCredentialConfigured: the ring is empty
            RateLimitExceeded: 429 and no credential left to rotate to, or the retry
                was rate limited too
            UpstreamError: any other non-2xx status
            MalformedResponse: 2xx with a body that is not JSON
            UpstreamUnavailable: the upstream could not be reached
            AcquireTimeout / AcquireCancelled: the rate limit wait was abandoned
        """
        self.ring.active()  # fail fast before spending a token
        self.bucket.acquire(timeout=acquire_timeout, cancel=cancel)
        token = self.ring.active()
        resp = self._send(endpoint_path, token)
        if self._should_retry(endpoint_path, token, resp):
            token = self.ring.active()
            self._logger.info(f"retrying endpoint={endpoint_path} with key={self._key_name(token)}")
            resp = self._send(endpoint_path, token)
        return self._finish(endpoint_path, resp)

    def status(self) -> dict[str, Any]:
        return self._combined_status(self.bucket.status())

    def close(self):
        if self._own_transport:
            self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ---------- composition root ----------
    @classmethod
    def from_env(
        cls,
        names=None,
        prefix: Union[str, None] = None,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Build ring, bucket and executor from the environment.

        Credential vars default to FACEIT_API_KEY / FACEIT_API_KEY_BACKUP; gateway
        settings come from STATSGATE_* vars unless ``config`` is passed.
        """
        config = kwargs.pop("config", None) or load_settings_from_env(env_path)
        loader_keys = {
            k: kwargs.pop(k)
            for k in list(kwargs.keys())
            if k in {"to_lower_names", "split_commas", "strip_prefix"}
        }
        ring = CredentialRing.from_env(
            names=names, prefix=prefix, env_path=env_path, cooldown=config.cooldown, **loader_keys
        )
        bucket = kwargs.pop("bucket", None) or TokenBucket(config.max_tokens, config.refill_rate)
        return cls(ring, bucket=bucket, config=config, **kwargs)


# ---------- Async executor (httpx by default, aiohttp via AiohttpTransport) ----------


class AsyncRequestExecutor(_Executor):
    """asyncio flavour of RequestExecutor. Bucket waits yield to the event loop."""

    def __init__(
        self,
        ring: CredentialRing,
        bucket: Union[AsyncTokenBucket, None] = None,
        transport=None,
        config: Union[GatewayConfig, None] = None,
        auth_config: Union[AuthConfig, None] = None,
        log_level: Union[int, None] = None,
    ):
        super().__init__(ring, config, auth_config, log_level)
        self.bucket = bucket or AsyncTokenBucket(self.config.max_tokens, self.config.refill_rate)
        self._own_transport = transport is None
        self.transport = transport or HttpxTransport()

    async def _send(self, endpoint_path: str, token: str) -> UpstreamResponse:
        url = _join(self.base_url, endpoint_path)
        key_name = self._key_name(token)
        self._logger.debug(f"req start endpoint={endpoint_path} key={key_name}")
        resp = await self.transport.get(url, headers=self._headers(token), timeout=self.timeout)
        self._logger.debug(f"req done endpoint={endpoint_path} key={key_name} status={resp.status}")
        return resp

    async def execute(self, endpoint_path: str, acquire_timeout: Union[float, None] = None) -> Any:
        self.ring.active()
        await self.bucket.acquire(timeout=acquire_timeout)
        token = self.ring.active()
        resp = await self._send(endpoint_path, token)
        if self._should_retry(endpoint_path, token, resp):
            token = self.ring.active()
            self._logger.info(f"retrying endpoint={endpoint_path} with key={self._key_name(token)}")
            resp = await self._send(endpoint_path, token)
        return self._finish(endpoint_path, resp)

    def status(self) -> dict[str, Any]:
        return self._combined_status(self.bucket.status())

    async def aclose(self):
        if self._own_transport:
            await self.transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    @classmethod
    def from_env(
        cls,
        names=None,
        prefix: Union[str, None] = None,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        config = kwargs.pop("config", None) or load_settings_from_env(env_path)
        loader_keys = {
            k: kwargs.pop(k)
            for k in list(kwargs.keys())
            if k in {"to_lower_names", "split_commas", "strip_prefix"}
        }
        ring = CredentialRing.from_env(
            names=names, prefix=prefix, env_path=env_path, cooldown=config.cooldown, **loader_keys
        )
        bucket = kwargs.pop("bucket", None) or AsyncTokenBucket(config.max_tokens, config.refill_rate)
        return cls(ring, bucket=bucket, config=config, **kwargs)
