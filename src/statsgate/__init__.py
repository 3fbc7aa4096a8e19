from .adapters import AiohttpTransport, HttpxTransport, RequestsTransport
from .bucket import AsyncTokenBucket, TokenBucket
from .client import AsyncStatsClient, StatsClient
from .env import load_credentials_from_env, load_settings_from_env
from .errors import (
    AcquireCancelled,
    AcquireTimeout,
    InvalidIdentifier,
    MalformedResponse,
    NoCredentialConfigured,
    RateLimitExceeded,
    StatsGateError,
    UpstreamError,
    UpstreamUnavailable,
)
from .executor import AsyncRequestExecutor, RequestExecutor
from .ring import CredentialRing
from .types import (
    AuthConfig,
    BucketStatus,
    CredentialConfig,
    GatewayConfig,
    RingStatus,
    UpstreamResponse,
)

__all__ = [
    "CredentialConfig",
    "AuthConfig",
    "GatewayConfig",
    "UpstreamResponse",
    "RingStatus",
    "BucketStatus",
    "CredentialRing",
    "TokenBucket",
    "AsyncTokenBucket",
    "RequestExecutor",
    "AsyncRequestExecutor",
    "RequestsTransport",
    "HttpxTransport",
    "AiohttpTransport",
    "StatsClient",
    "AsyncStatsClient",
    "load_credentials_from_env",
    "load_settings_from_env",
    "StatsGateError",
    "NoCredentialConfigured",
    "RateLimitExceeded",
    "UpstreamError",
    "MalformedResponse",
    "UpstreamUnavailable",
    "AcquireTimeout",
    "AcquireCancelled",
    "InvalidIdentifier",
]
