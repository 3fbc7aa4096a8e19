from dataclasses import dataclass

DEFAULT_BASE_URL = "https://open.faceit.com/data/v4"


@dataclass(frozen=True)
class CredentialConfig:
    name: str
    token: str


@dataclass(frozen=True)
class AuthConfig:
    header: str = "Authorization"
    scheme: str = "Bearer"


@dataclass(frozen=True)
class GatewayConfig:
    base_url: str = DEFAULT_BASE_URL
    # Token bucket: burst capacity and refill (tokens per second)
    max_tokens: int = 10
    refill_rate: float = 2.0
    # How long the primary credential rests after a 429 (seconds)
    cooldown: float = 300.0
    # Per-attempt HTTP timeout (seconds)
    timeout: float = 10.0


@dataclass(frozen=True)
class UpstreamResponse:
    status: int
    headers: dict[str, str]
    body: bytes = b""


@dataclass(frozen=True)
class RingStatus:
    active: str
    active_index: int
    backup_available: bool
    primary_blocked_for: int | None = None


@dataclass(frozen=True)
class BucketStatus:
    tokens_available: int
    max_tokens: int
