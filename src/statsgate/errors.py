class StatsGateError(Exception):
    """Base class for every error raised by statsgate."""


class NoCredentialConfigured(StatsGateError):
    def __init__(self, message: str = "no upstream API credential configured"):
        super().__init__(message)


class RateLimitExceeded(StatsGateError):
    status_code = 429

    def __init__(self, retry_after: float | None = None, endpoint: str | None = None):
        self.retry_after = retry_after
        self.endpoint = endpoint
        if retry_after:
            msg = f"upstream rate limit exceeded; retry after {retry_after:g}s"
        else:
            msg = "upstream rate limit exceeded"
        super().__init__(msg)


class UpstreamError(StatsGateError):
    def __init__(self, status_code: int, endpoint: str | None = None, detail: str = ""):
        self.status_code = status_code
        self.endpoint = endpoint
        self.detail = detail
        msg = f"upstream returned HTTP {status_code}"
        if endpoint:
            msg += f" for {endpoint}"
        super().__init__(msg)


class MalformedResponse(StatsGateError):
    """The upstream answered 2xx but the body is not valid JSON."""

    def __init__(self, endpoint: str | None = None, detail: str = ""):
        self.endpoint = endpoint
        self.detail = detail
        msg = "malformed upstream response"
        if endpoint:
            msg += f" for {endpoint}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class UpstreamUnavailable(StatsGateError):
    """The upstream could not be reached at all (connection, DNS, timeout)."""


class AcquireTimeout(StatsGateError):
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"no rate limit token available within {timeout:g}s")


class AcquireCancelled(StatsGateError):
    def __init__(self, message: str = "rate limit wait cancelled"):
        super().__init__(message)


class InvalidIdentifier(StatsGateError, ValueError):
    def __init__(self, kind: str, value: object):
        self.kind = kind
        self.value = value
        super().__init__(f"invalid {kind}: {value!r}")
